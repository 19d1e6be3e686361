"""Shared fixtures for filestore tests."""

import io
from unittest.mock import MagicMock

import pytest

from filestore.keys import DefaultFormDataFileKeyProvider
from filestore.metadata import FileData, FileMetadata
from filestore.repository import ObjectFileRepository, ObjectFormDataFileRepository
from filestore.service import FileStorageService, FormDataFileStorageService
from filestore.storage import LocalStorage

BUCKET = "bucket"


@pytest.fixture
def key_provider() -> DefaultFormDataFileKeyProvider:
    return DefaultFormDataFileKeyProvider()


@pytest.fixture
def local_storage(tmp_path) -> LocalStorage:
    """Filesystem storage rooted in a temporary directory."""
    return LocalStorage(str(tmp_path / "store"))


@pytest.fixture
def mock_storage() -> MagicMock:
    return MagicMock()


@pytest.fixture
def form_data_service(local_storage, key_provider) -> FormDataFileStorageService:
    """Form-data service writing to local storage."""
    return FormDataFileStorageService(
        repository=ObjectFormDataFileRepository(BUCKET, local_storage),
        key_provider=key_provider,
    )


@pytest.fixture
def file_service(local_storage, key_provider) -> FileStorageService:
    """Plain file service writing to local storage."""
    return FileStorageService(
        repository=ObjectFileRepository(BUCKET, local_storage),
        key_provider=key_provider,
    )


def make_file_data(content: bytes = b"Hello", content_type: str = "text/plain", **fields) -> FileData:
    return FileData(
        metadata=FileMetadata.build(content_type=content_type, **fields),
        content=io.BytesIO(content),
    )
