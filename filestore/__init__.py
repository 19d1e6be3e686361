"""Keyed file storage for process instance attachments."""

from filestore.exceptions import InvalidIdentifierError, StoredFileNotFoundError
from filestore.keys import DefaultFormDataFileKeyProvider, FormDataFileKeyProvider
from filestore.metadata import (
    BaseFileMetadata,
    FileData,
    FileMetadata,
    FileObject,
    UserMetadataHeaders,
)
from filestore.service import FileStorageService, FormDataFileStorageService

__all__ = [
    "BaseFileMetadata",
    "DefaultFormDataFileKeyProvider",
    "FileData",
    "FileMetadata",
    "FileObject",
    "FileStorageService",
    "FormDataFileKeyProvider",
    "FormDataFileStorageService",
    "InvalidIdentifierError",
    "StoredFileNotFoundError",
    "UserMetadataHeaders",
]
