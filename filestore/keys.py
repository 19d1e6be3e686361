"""Storage key derivation for form-data files."""

from typing import Protocol

from filestore.exceptions import InvalidIdentifierError

DEFAULT_NAMESPACE = "process"
DEFAULT_DELIMITER = "/"

# Path normalization in filesystems and HTTP clients collapses these segments
_DOT_SEGMENTS = frozenset({".", ".."})


class FormDataFileKeyProvider(Protocol):
    """Maps process instance files to storage keys."""

    def generate_key(self, process_instance_id: str, file_id: str) -> str:
        """Build the key of a file attached to a process instance."""
        ...

    def get_key_prefix_by_process_instance_id(self, process_instance_id: str) -> str:
        """Build the prefix shared by every file key of a process instance."""
        ...


class DefaultFormDataFileKeyProvider:
    """Key provider producing ``<namespace>/<process_instance_id>/<file_id>``.

    The prefix keeps its trailing delimiter, so the prefix of ``p1`` never
    matches keys of ``p10``. Identifiers containing the delimiter, and the
    dot segments ``.`` and ``..``, are rejected because they would break
    that guarantee.
    """

    def __init__(self, namespace: str = DEFAULT_NAMESPACE, delimiter: str = DEFAULT_DELIMITER):
        if not delimiter:
            raise ValueError("Key delimiter cannot be empty")
        self.delimiter = delimiter
        self.namespace = self._validate("namespace", namespace)

    def _validate(self, name: str, value: str) -> str:
        if (
            not isinstance(value, str)
            or not value
            or self.delimiter in value
            or value in _DOT_SEGMENTS
        ):
            raise InvalidIdentifierError(name, value, self.delimiter)
        return value

    def generate_key(self, process_instance_id: str, file_id: str) -> str:
        prefix = self.get_key_prefix_by_process_instance_id(process_instance_id)
        return prefix + self._validate("file id", file_id)

    def get_key_prefix_by_process_instance_id(self, process_instance_id: str) -> str:
        process_instance_id = self._validate("process instance id", process_instance_id)
        return self.delimiter.join((self.namespace, process_instance_id, ""))
