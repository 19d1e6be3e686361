"""Assemble storage services from configuration."""

from filestore.config import Config, StorageConfig
from filestore.keys import DefaultFormDataFileKeyProvider
from filestore.repository import ObjectFileRepository, ObjectFormDataFileRepository
from filestore.service import FileStorageService, FormDataFileStorageService
from filestore.storage import LocalStorage, ObjectStorage, S3RequestsStorage


def create_storage(config: StorageConfig) -> ObjectStorage:
    """Get storage backend based on configuration."""
    config.validate()
    if config.type == "s3":
        storage = S3RequestsStorage(
            endpoint=config.endpoint,
            access_key=config.access_key,
            secret_key=config.secret_key,
            region=config.region,
            max_retries=config.max_retries,
            timeout=config.timeout_seconds,
        )
        if config.check_bucket:
            storage.ensure_bucket(config.bucket)
        return storage
    return LocalStorage(base_path=config.base_path)


def file_storage_service(
    config: Config, storage: ObjectStorage | None = None
) -> FileStorageService:
    if storage is None:
        storage = create_storage(config.storage)
    return FileStorageService(
        repository=ObjectFileRepository(config.storage.bucket, storage),
        key_provider=DefaultFormDataFileKeyProvider(namespace=config.keys.namespace),
    )


def form_data_file_storage_service(
    config: Config, storage: ObjectStorage | None = None
) -> FormDataFileStorageService:
    if storage is None:
        storage = create_storage(config.storage)
    return FormDataFileStorageService(
        repository=ObjectFormDataFileRepository(config.storage.bucket, storage),
        key_provider=DefaultFormDataFileKeyProvider(namespace=config.keys.namespace),
    )
