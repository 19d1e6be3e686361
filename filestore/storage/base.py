"""Object storage protocol definition."""

from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Protocol


class ObjectNotFoundError(Exception):
    """Raised by a storage backend when an operation requires an existing object."""

    def __init__(self, bucket: str, key: str):
        self.bucket = bucket
        self.key = key
        super().__init__(f"Object '{key}' not found in bucket '{bucket}'")


@dataclass
class ObjectMetadata:
    """Metadata record reported by a storage backend."""

    key: str
    content_length: int = 0
    content_type: str | None = None
    user_metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class StoredObject:
    """Stored object: backend metadata plus a readable content stream."""

    metadata: ObjectMetadata
    content: BinaryIO


class ObjectStorage(Protocol):
    """Protocol for object storage backends (S3-compatible or local filesystem).

    Every operation is scoped to the bucket passed in. Absence is reported
    as None or an empty collection, never as an error, except for
    set_user_metadata which needs an existing object.
    """

    name: str

    def put(
        self,
        bucket: str,
        key: str,
        content_type: str | None,
        user_metadata: dict[str, str],
        content: BinaryIO,
        content_length: int | None = None,
    ) -> ObjectMetadata:
        """Write content and metadata under key. Consumes the content stream."""
        ...

    def get(self, bucket: str, key: str) -> StoredObject | None:
        """Load an object. Returns None if not found."""
        ...

    def set_user_metadata(
        self, bucket: str, key: str, user_metadata: dict[str, str]
    ) -> ObjectMetadata:
        """Replace the user metadata of an existing object without rewriting content."""
        ...

    def get_metadata(self, bucket: str, keys: Iterable[str]) -> list[ObjectMetadata]:
        """Load metadata for the given keys. Missing keys are skipped."""
        ...

    def get_metadata_by_prefix(self, bucket: str, prefix: str) -> list[ObjectMetadata]:
        """Load metadata for every key with the given prefix."""
        ...

    def get_keys(self, bucket: str, prefix: str) -> set[str]:
        """List all keys with the given prefix."""
        ...

    def delete(self, bucket: str, keys: Iterable[str]) -> None:
        """Delete the given keys. Missing keys are ignored."""
        ...
