"""Form-data file repository backed by an object storage."""

from typing import Iterable

from filestore.metadata import FileData, FileMetadata
from filestore.repository.base import to_metadata, to_metadata_list, user_metadata_for_key
from filestore.storage.base import ObjectStorage, StoredObject


class ObjectFormDataFileRepository:
    """Reads, writes, lists and deletes form-data files in one bucket."""

    def __init__(self, bucket: str, storage: ObjectStorage):
        self.bucket = bucket
        self.storage = storage

    def get(self, key: str) -> FileData | None:
        stored = self.storage.get(self.bucket, key)
        if stored is None:
            return None
        return self._to_file_data(stored)

    def put(self, key: str, file_data: FileData) -> FileMetadata:
        # Content length is left for the backend to determine from the stream
        record = self.storage.put(
            self.bucket,
            key,
            file_data.metadata.content_type,
            user_metadata_for_key(key, file_data.metadata.user_metadata),
            file_data.content,
        )
        return to_metadata(FileMetadata, record)

    def get_metadata(self, keys: Iterable[str]) -> list[FileMetadata]:
        return to_metadata_list(FileMetadata, self.storage.get_metadata(self.bucket, keys))

    def get_metadata_by_prefix(self, prefix: str) -> list[FileMetadata]:
        return to_metadata_list(
            FileMetadata, self.storage.get_metadata_by_prefix(self.bucket, prefix)
        )

    def get_keys(self, prefix: str) -> set[str]:
        return self.storage.get_keys(self.bucket, prefix)

    def delete(self, keys: Iterable[str]) -> None:
        self.storage.delete(self.bucket, keys)

    @staticmethod
    def _to_file_data(stored: StoredObject) -> FileData:
        return FileData(
            metadata=to_metadata(FileMetadata, stored.metadata),
            content=stored.content,
        )
