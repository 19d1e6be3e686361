"""File repositories."""

from filestore.repository.base import FileRepository, FormDataFileRepository
from filestore.repository.file import ObjectFileRepository
from filestore.repository.form_data import ObjectFormDataFileRepository

__all__ = [
    "FileRepository",
    "FormDataFileRepository",
    "ObjectFileRepository",
    "ObjectFormDataFileRepository",
]
