"""Repository protocols and conversion helpers shared by both file variants."""

from typing import Iterable, Protocol, TypeVar

from filestore.metadata import (
    BaseFileMetadata,
    FileData,
    FileMetadata,
    FileObject,
    UserMetadataHeaders,
)
from filestore.storage.base import ObjectMetadata

M = TypeVar("M", BaseFileMetadata, FileMetadata)


class FileRepository(Protocol):
    """Stores plain files."""

    def put(self, key: str, file_object: FileObject) -> BaseFileMetadata:
        ...

    def set_user_metadata(self, key: str, user_metadata: dict[str, str]) -> BaseFileMetadata:
        ...


class FormDataFileRepository(Protocol):
    """Stores, reads and enumerates form-data files."""

    def get(self, key: str) -> FileData | None:
        """Retrieve file content and metadata, or None if the key does not exist."""
        ...

    def put(self, key: str, file_data: FileData) -> FileMetadata:
        ...

    def get_metadata(self, keys: Iterable[str]) -> list[FileMetadata]:
        """Get metadata for existing keys. Missing keys are absent from the result."""
        ...

    def get_metadata_by_prefix(self, prefix: str) -> list[FileMetadata]:
        ...

    def get_keys(self, prefix: str) -> set[str]:
        ...

    def delete(self, keys: Iterable[str]) -> None:
        ...


def user_metadata_for_key(key: str, user_metadata: dict[str, str]) -> dict[str, str]:
    """Copy of user_metadata with ``id`` defaulting to the storage key."""
    result = dict(user_metadata)
    result.setdefault(UserMetadataHeaders.ID, key)
    return result


def to_metadata(metadata_cls: type[M], metadata: ObjectMetadata) -> M:
    return metadata_cls.from_object_metadata(metadata)


def to_metadata_list(metadata_cls: type[M], records: Iterable[ObjectMetadata]) -> list[M]:
    return [metadata_cls.from_object_metadata(record) for record in records]
