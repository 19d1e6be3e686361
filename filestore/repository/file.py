"""Plain file repository backed by an object storage."""

from filestore.metadata import BaseFileMetadata, FileObject
from filestore.repository.base import to_metadata, user_metadata_for_key
from filestore.storage.base import ObjectStorage


class ObjectFileRepository:
    """Writes plain files and updates their metadata in one bucket."""

    def __init__(self, bucket: str, storage: ObjectStorage):
        self.bucket = bucket
        self.storage = storage

    def put(self, key: str, file_object: FileObject) -> BaseFileMetadata:
        metadata = file_object.metadata
        record = self.storage.put(
            self.bucket,
            key,
            metadata.content_type,
            user_metadata_for_key(key, metadata.user_metadata),
            file_object.content,
            content_length=metadata.content_length or None,
        )
        return to_metadata(BaseFileMetadata, record)

    def set_user_metadata(self, key: str, user_metadata: dict[str, str]) -> BaseFileMetadata:
        """Replace user metadata of an existing file without rewriting content."""
        record = self.storage.set_user_metadata(self.bucket, key, dict(user_metadata))
        return to_metadata(BaseFileMetadata, record)
