"""File handling utility functions."""

import re
import time
import uuid
import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def generate_unique_filename(
    original_filename: Optional[str] = None,
    extension: Optional[str] = None,
    prefix: str = "",
) -> str:
    """
    Generate a unique filename using UUID.

    Args:
        original_filename: Original filename to extract extension from
        extension: File extension to use (overrides original_filename extension)
        prefix: Optional readable prefix, e.g. "audio-"

    Returns:
        Unique filename with UUID
    """
    if extension:
        if not extension.startswith('.'):
            extension = f'.{extension}'
    elif original_filename:
        extension = Path(original_filename).suffix
    else:
        extension = ''

    return f"{prefix}{uuid.uuid4().hex}{extension}"


def timestamped_filename(original_filename: str) -> str:
    """Return ``<epoch-ms>-<sanitized name>`` for storing an uploaded original."""
    name = PurePosixPath(original_filename or "upload").name
    safe = _UNSAFE_NAME_CHARS.sub("_", name).strip("._") or "upload"
    return f"{int(time.time() * 1000)}-{safe}"


def get_file_extension(filename: str) -> str:
    """Lower-cased extension without the leading dot."""
    return Path(filename or "").suffix.lower().lstrip('.')


def is_valid_file_extension(filename: str, allowed_extensions: Iterable[str]) -> bool:
    """
    Check if file has a valid extension.

    Args:
        filename: Name of the file
        allowed_extensions: Allowed extensions (with or without dots)

    Returns:
        True if extension is allowed, False otherwise
    """
    file_ext = get_file_extension(filename)
    normalized_extensions = [ext.lower().lstrip('.') for ext in allowed_extensions]
    return bool(file_ext) and file_ext in normalized_extensions
