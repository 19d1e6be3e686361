"""Utility functions for the command line."""

import hashlib
import mimetypes
from typing import BinaryIO

_CHUNK_SIZE = 8192


def format_size(size_bytes: int | None) -> str:
    """Format size in human-readable format."""
    if size_bytes is None:
        return "-"
    if size_bytes < 1024:
        return f"{size_bytes}B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.0f}KB"
    else:
        return f"{size_bytes / (1024 * 1024):.0f}MB"


def detect_mime_type(filename: str) -> str:
    """Guess MIME type from the filename extension.

    Returns 'application/octet-stream' if the type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return "application/octet-stream"
    return mime_type


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of a seekable file.

    Resets the file pointer to the beginning afterwards.
    """
    sha256_hash = hashlib.sha256()
    file_obj.seek(0)
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b""):
        sha256_hash.update(chunk)
    file_obj.seek(0)
    return sha256_hash.hexdigest()
