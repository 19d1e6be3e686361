"""Exceptions for file storage services."""

from typing import Iterable


class StoredFileNotFoundError(FileNotFoundError):
    """Raised when requested files do not exist in storage.

    ``ids`` holds the identifiers that could not be resolved: logical file
    ids when the caller supplied them, storage keys otherwise.
    """

    def __init__(self, ids: Iterable[str]) -> None:
        self.ids = list(ids)
        super().__init__(f"Files not found in storage: {', '.join(sorted(self.ids))}")


class InvalidIdentifierError(ValueError):
    """Raised when an identifier cannot be used to build a storage key."""

    def __init__(self, name: str, value: str | None, delimiter: str) -> None:
        self.name = name
        self.value = value
        super().__init__(
            f"Invalid {name} {value!r}: must be a non-empty string "
            f"without '{delimiter}', other than '.' or '..'",
        )
