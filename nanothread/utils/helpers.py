"""Small helpers shared across nanothread."""

import os
import re
import tempfile
from pathlib import Path
from urllib.parse import urlsplit

from loguru import logger

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_DISPLAY_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")

MAX_DISPLAY_NAME_LENGTH = 64


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(name: str) -> str:
    """Replace characters that are unsafe in file names with underscores."""
    return _UNSAFE_FILENAME_CHARS.sub("_", name).strip()


def sanitize_display_name(name: str) -> str:
    """Reduce a display name to ``[A-Za-z0-9_-]`` and at most 64 chars."""
    return _DISPLAY_NAME_CHARS.sub("_", name)[:MAX_DISPLAY_NAME_LENGTH]


def atomic_write_text(path: Path, text: str) -> None:
    """
    Write ``text`` to ``path`` through a unique temp file in the same directory.

    Concurrent writers to the same path each get their own temp file; the last
    ``os.replace`` wins and readers only ever see a complete file.

    Raises:
        OSError: The temp file could not be written or moved into place. The
            temp file is removed before the error propagates.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)


def strip_query(url: str) -> str:
    """
    Strip the query string and fragment from a URL.

    Comparison keys for media are based on scheme, host and path only, so
    tracking parameters on an otherwise identical URL do not defeat
    deduplication.

    Args:
        url: The full URL, possibly with query parameters.

    Returns:
        ``scheme://host/path`` or the input unchanged if it is not a URL.
    """
    try:
        parts = urlsplit(url)
    except ValueError as e:
        logger.warning(f"strip_query failed for {url}: {e}")
        return url
    if not parts.scheme or not parts.netloc:
        return url
    return f"{parts.scheme}://{parts.netloc}{parts.path}"
