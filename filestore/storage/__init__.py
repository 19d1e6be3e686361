"""Object storage backend implementations."""

from filestore.storage.base import ObjectMetadata, ObjectNotFoundError, ObjectStorage, StoredObject
from filestore.storage.local import LocalStorage
from filestore.storage.s3 import S3RequestsStorage

__all__ = [
    "ObjectMetadata",
    "ObjectNotFoundError",
    "ObjectStorage",
    "StoredObject",
    "LocalStorage",
    "S3RequestsStorage",
]
