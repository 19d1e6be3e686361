"""Storage services for files attached to process instances."""

import logging
from typing import Iterable

from filestore.exceptions import StoredFileNotFoundError
from filestore.keys import FormDataFileKeyProvider
from filestore.metadata import BaseFileMetadata, FileData, FileMetadata, FileObject
from filestore.repository.base import FileRepository, FormDataFileRepository

logger = logging.getLogger(__name__)


class FileStorageService:
    """Storage service for plain files."""

    def __init__(self, repository: FileRepository, key_provider: FormDataFileKeyProvider):
        self._repository = repository
        self._key_provider = key_provider

    def save(self, key: str, file_object: FileObject) -> BaseFileMetadata:
        """Save a file under the given storage key.

        Args:
            key: Storage key.
            file_object: File content and metadata. The content stream is consumed.

        Returns:
            Metadata reported by storage for the saved file.
        """
        logger.info("Save file with key %s", key)
        result = self._repository.put(key, file_object)
        logger.info("File was saved with key %s", key)
        return result

    def save_by_process_instance_id_and_id(
        self, process_instance_id: str, file_id: str, file_object: FileObject
    ) -> BaseFileMetadata:
        """Save a file under the key derived from process instance id and file id."""
        logger.info(
            "Save file by process instance id %s, file id %s", process_instance_id, file_id
        )
        key = self._key_provider.generate_key(process_instance_id, file_id)
        return self.save(key, file_object)

    def set_user_metadata(self, key: str, user_metadata: dict[str, str]) -> BaseFileMetadata:
        """Replace user metadata of the file with the given key.

        Content is not rewritten. Fails with the storage backend's error if
        the key does not exist.
        """
        logger.info("Set user metadata to file with key %s", key)
        result = self._repository.set_user_metadata(key, user_metadata)
        logger.info("Metadata saved %s", key)
        return result

    def set_user_metadata_by_process_instance_id_and_id(
        self, process_instance_id: str, file_id: str, user_metadata: dict[str, str]
    ) -> BaseFileMetadata:
        logger.info(
            "Set user metadata to file by process instance id %s, file id %s",
            process_instance_id,
            file_id,
        )
        key = self._key_provider.generate_key(process_instance_id, file_id)
        return self.set_user_metadata(key, user_metadata)


class FormDataFileStorageService:
    """Storage service for form-data files.

    Repositories report absence as None or an empty list; this service
    turns it into StoredFileNotFoundError where the caller asked for
    specific files.
    """

    def __init__(
        self, repository: FormDataFileRepository, key_provider: FormDataFileKeyProvider
    ):
        self._repository = repository
        self._key_provider = key_provider

    def load_by_key(self, key: str) -> FileData:
        """Load a file by storage key.

        Raises:
            StoredFileNotFoundError: If nothing is stored under key. ``ids`` holds the key.
        """
        logger.info("Load file by key %s", key)
        result = self._repository.get(key)
        if result is None:
            raise StoredFileNotFoundError([key])
        logger.info("File was loaded by key %s", key)
        return result

    def load_by_process_instance_id_and_id(self, process_instance_id: str, file_id: str) -> FileData:
        """Load a file attached to a process instance.

        Raises:
            StoredFileNotFoundError: If the file does not exist. ``ids`` holds
                the file id, not the derived key.
        """
        logger.info(
            "Load file by process instance id %s, file id %s", process_instance_id, file_id
        )
        key = self._key_provider.generate_key(process_instance_id, file_id)
        result = self._repository.get(key)
        if result is None:
            raise StoredFileNotFoundError([file_id])
        logger.info("File was loaded by key %s", key)
        return result

    def save(self, key: str, file_data: FileData) -> FileMetadata:
        logger.info("Save file by key %s", key)
        result = self._repository.put(key, file_data)
        logger.info("File was saved by key %s", key)
        return result

    def save_by_process_instance_id_and_id(
        self, process_instance_id: str, file_id: str, file_data: FileData
    ) -> FileMetadata:
        logger.info(
            "Save file by process instance id %s, file id %s", process_instance_id, file_id
        )
        key = self._key_provider.generate_key(process_instance_id, file_id)
        return self.save(key, file_data)

    def get_metadata(self, process_instance_id: str, file_ids: Iterable[str]) -> list[FileMetadata]:
        """Get metadata of files attached to a process instance.

        Files that do not exist are left out of the result. The call fails
        only when none of the requested files exist.

        Raises:
            StoredFileNotFoundError: If no file was found. ``ids`` holds every requested id.
        """
        file_ids = set(file_ids)
        logger.info(
            "Get metadata by process instance id %s and file ids %s",
            process_instance_id,
            file_ids,
        )
        keys = {
            self._key_provider.generate_key(process_instance_id, file_id)
            for file_id in file_ids
        }
        result = self._repository.get_metadata(keys)
        if not result:
            raise StoredFileNotFoundError(file_ids)
        logger.info("Metadata was found by keys %s", keys)
        return result

    def get_metadata_by_process_instance_id(self, process_instance_id: str) -> list[FileMetadata]:
        """Get metadata of every file attached to a process instance.

        An empty list means the process instance has no files.
        """
        prefix = self._key_provider.get_key_prefix_by_process_instance_id(process_instance_id)
        logger.info(
            "Get metadata by process instance id %s, files prefix %s", process_instance_id, prefix
        )
        result = self._repository.get_metadata_by_prefix(prefix)
        logger.info("Found metadata of %d files by prefix %s", len(result), prefix)
        return result

    def delete_by_process_instance_id(self, process_instance_id: str) -> None:
        """Delete every file attached to a process instance. No-op if there are none."""
        prefix = self._key_provider.get_key_prefix_by_process_instance_id(process_instance_id)
        logger.info(
            "Delete files by process instance id %s, files prefix %s", process_instance_id, prefix
        )
        keys = self._repository.get_keys(prefix)
        if keys:
            self._repository.delete(keys)
            logger.debug(
                "Deleted next files from storage - %s, process_instance_id=%s",
                keys,
                process_instance_id,
            )
