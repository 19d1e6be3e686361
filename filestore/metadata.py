"""File metadata model.

Typed views over the flat string-to-string attribute map stored next to
each object. Reserved attributes live inside that map under well-known
names; everything else the caller puts there is kept untouched.
"""

from dataclasses import dataclass, field
from typing import BinaryIO, Final, MutableMapping

from filestore.storage.base import ObjectMetadata


class UserMetadataHeaders:
    """Reserved attribute names."""

    ID: Final = "id"
    CHECKSUM: Final = "checksum"
    FILENAME: Final = "filename"
    FIELD_NAME: Final = "fieldName"
    FORM_KEY: Final = "formKey"


BASE_HEADERS: Final = frozenset(
    {UserMetadataHeaders.ID, UserMetadataHeaders.CHECKSUM, UserMetadataHeaders.FILENAME}
)
FORM_DATA_HEADERS: Final = BASE_HEADERS | {
    UserMetadataHeaders.FIELD_NAME,
    UserMetadataHeaders.FORM_KEY,
}

_LOWERED_NAMES: Final = {
    name.lower(): name for name in FORM_DATA_HEADERS if name != name.lower()
}


def set_if_not_none(
    mapping: MutableMapping[str, str], name: str | None, value: str | None
) -> None:
    """Upsert value under name unless either is None."""
    if name is not None and value is not None:
        mapping[name] = value


def normalize_user_metadata(user_metadata: dict[str, str] | None) -> dict[str, str]:
    """Return a copy with reserved attribute names in canonical case.

    S3-compatible stores lower-case attribute names, so ``fieldName``
    comes back as ``fieldname``. Only that exact lower-case form is
    renamed, and never over a value already stored under the canonical name.
    """
    result = dict(user_metadata or {})
    for lowered, canonical in _LOWERED_NAMES.items():
        if lowered in result and canonical not in result:
            result[canonical] = result.pop(lowered)
    return result


class UserMetadataAttribute:
    """Reserved attribute projected out of ``user_metadata``.

    Reading an absent attribute gives None. Assigning None is a no-op and
    keeps the previous value.
    """

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance.user_metadata.get(self.name)

    def __set__(self, instance, value: str | None) -> None:
        set_if_not_none(instance.user_metadata, self.name, value)


@dataclass
class BaseFileMetadata:
    """Metadata of a plain file."""

    content_length: int = 0
    content_type: str | None = None
    user_metadata: dict[str, str] = field(default_factory=dict)

    id = UserMetadataAttribute(UserMetadataHeaders.ID)
    checksum = UserMetadataAttribute(UserMetadataHeaders.CHECKSUM)
    filename = UserMetadataAttribute(UserMetadataHeaders.FILENAME)

    @classmethod
    def from_object_metadata(cls, metadata: ObjectMetadata) -> "BaseFileMetadata":
        return cls(
            content_length=metadata.content_length,
            content_type=metadata.content_type,
            user_metadata=normalize_user_metadata(metadata.user_metadata),
        )


@dataclass
class FileMetadata:
    """Metadata of a form-data file.

    Content length stays None until a write assigns it.
    """

    content_length: int | None = None
    content_type: str | None = None
    user_metadata: dict[str, str] = field(default_factory=dict)

    id = UserMetadataAttribute(UserMetadataHeaders.ID)
    checksum = UserMetadataAttribute(UserMetadataHeaders.CHECKSUM)
    filename = UserMetadataAttribute(UserMetadataHeaders.FILENAME)
    field_name = UserMetadataAttribute(UserMetadataHeaders.FIELD_NAME)
    form_key = UserMetadataAttribute(UserMetadataHeaders.FORM_KEY)

    @classmethod
    def build(
        cls,
        content_type: str | None = None,
        content_length: int | None = None,
        id: str | None = None,
        checksum: str | None = None,
        filename: str | None = None,
        field_name: str | None = None,
        form_key: str | None = None,
    ) -> "FileMetadata":
        """Create metadata with reserved attributes written into the map.

        Attributes left as None are omitted from the map.
        """
        metadata = cls(content_length=content_length, content_type=content_type)
        metadata.id = id
        metadata.checksum = checksum
        metadata.filename = filename
        metadata.field_name = field_name
        metadata.form_key = form_key
        return metadata

    @classmethod
    def from_object_metadata(cls, metadata: ObjectMetadata) -> "FileMetadata":
        return cls(
            content_length=metadata.content_length,
            content_type=metadata.content_type,
            user_metadata=normalize_user_metadata(metadata.user_metadata),
        )


@dataclass
class FileObject:
    """Plain file: metadata plus a content stream consumed by a single write."""

    metadata: BaseFileMetadata
    content: BinaryIO


@dataclass
class FileData:
    """Form-data file: metadata plus a content stream consumed by a single write."""

    metadata: FileMetadata
    content: BinaryIO
