"""Local filesystem storage backend."""

import io
import json
import logging
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

from filestore.storage.base import ObjectMetadata, ObjectNotFoundError, StoredObject

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class LocalStorage:
    """Storage backend using local filesystem.

    Each bucket is a directory under base_path. Content is written to
    ``<bucket>/objects/<key>`` and metadata to ``<bucket>/metadata/<key>.json``.
    """

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.name = f"local filesystem ({self.base_path.absolute()})"

    def _objects_dir(self, bucket: str) -> Path:
        return self.base_path / bucket / "objects"

    def _resolve(self, bucket: str, key: str) -> Path:
        """Resolve a key to the content path."""
        return self._objects_dir(bucket) / key

    def _resolve_metadata(self, bucket: str, key: str) -> Path:
        """Resolve a key to the metadata sidecar path."""
        return self.base_path / bucket / "metadata" / f"{key}.json"

    def _read_metadata(self, bucket: str, key: str) -> ObjectMetadata | None:
        path = self._resolve(bucket, key)
        if not path.is_file():
            return None

        meta_path = self._resolve_metadata(bucket, key)
        data = {}
        if meta_path.exists():
            data = json.loads(meta_path.read_text(encoding="utf-8"))

        return ObjectMetadata(
            key=key,
            content_length=path.stat().st_size,
            content_type=data.get("content_type"),
            user_metadata=dict(data.get("user_metadata", {})),
        )

    def _write_metadata(
        self, bucket: str, key: str, content_type: str | None, user_metadata: dict[str, str]
    ) -> None:
        meta_path = self._resolve_metadata(bucket, key)
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        meta_path.write_text(
            json.dumps({"content_type": content_type, "user_metadata": user_metadata}),
            encoding="utf-8",
        )

    def _iter_keys(self, bucket: str) -> Iterator[str]:
        objects_dir = self._objects_dir(bucket)
        if not objects_dir.exists():
            return

        for path in objects_dir.rglob("*"):
            if path.is_file():
                yield path.relative_to(objects_dir).as_posix()

    def put(
        self,
        bucket: str,
        key: str,
        content_type: str | None,
        user_metadata: dict[str, str],
        content: BinaryIO,
        content_length: int | None = None,
    ) -> ObjectMetadata:
        """Write content to a file and metadata to its sidecar."""
        path = self._resolve(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            for chunk in iter(lambda: content.read(_CHUNK_SIZE), b""):
                f.write(chunk)

        self._write_metadata(bucket, key, content_type, dict(user_metadata))
        logger.debug("Stored %s/%s (%d bytes)", bucket, key, path.stat().st_size)
        return self._read_metadata(bucket, key)

    def get(self, bucket: str, key: str) -> StoredObject | None:
        """Load a file. Returns None if not found."""
        metadata = self._read_metadata(bucket, key)
        if metadata is None:
            return None
        content = io.BytesIO(self._resolve(bucket, key).read_bytes())
        return StoredObject(metadata=metadata, content=content)

    def set_user_metadata(
        self, bucket: str, key: str, user_metadata: dict[str, str]
    ) -> ObjectMetadata:
        """Replace the metadata sidecar of an existing file."""
        metadata = self._read_metadata(bucket, key)
        if metadata is None:
            raise ObjectNotFoundError(bucket, key)

        self._write_metadata(bucket, key, metadata.content_type, dict(user_metadata))
        return self._read_metadata(bucket, key)

    def get_metadata(self, bucket: str, keys: Iterable[str]) -> list[ObjectMetadata]:
        """Load metadata for the given keys, skipping missing ones."""
        result = []
        for key in keys:
            metadata = self._read_metadata(bucket, key)
            if metadata is not None:
                result.append(metadata)
        return result

    def get_metadata_by_prefix(self, bucket: str, prefix: str) -> list[ObjectMetadata]:
        """Load metadata for every file with the given prefix."""
        return self.get_metadata(bucket, sorted(self.get_keys(bucket, prefix)))

    def get_keys(self, bucket: str, prefix: str) -> set[str]:
        """List all files with the given prefix."""
        return {key for key in self._iter_keys(bucket) if key.startswith(prefix)}

    def delete(self, bucket: str, keys: Iterable[str]) -> None:
        """Delete files and their metadata. Missing files are ignored."""
        for key in keys:
            self._resolve(bucket, key).unlink(missing_ok=True)
            self._resolve_metadata(bucket, key).unlink(missing_ok=True)

        # Clean up empty directories
        for root in (self._objects_dir(bucket), self.base_path / bucket / "metadata"):
            if not root.exists():
                continue
            for dirpath in sorted(root.rglob("*"), reverse=True):
                if dirpath.is_dir() and not any(dirpath.iterdir()):
                    dirpath.rmdir()
