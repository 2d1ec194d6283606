"""File handler module: encoding-aware read, atomic write, path checks.

Provides the file I/O layer under the Markdown file store. The sync
functions do nothing besides file I/O; async wrappers push them onto a
worker thread via ``run_sync()`` / ``run_sync_limited()``.
"""

import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

from note_md_sync.core.async_utils import run_sync, run_sync_limited

# =============================================================================
# Path Validation
# =============================================================================


def validate_sync_directory(path_str: str) -> Path:
    """Validate a directory that notes will be exported into.

    The directory may not exist yet, but it must be absolute and must not
    be an existing regular file.

    Args:
        path_str: Absolute directory path.

    Returns:
        Resolved Path object.

    Raises:
        ValueError: If the path is relative or points at a file.
    """
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        raise ValueError(f"Sync directory must be absolute: {path_str}")
    resolved = path.resolve()
    if resolved.exists() and not resolved.is_dir():
        raise ValueError(f"Sync directory is not a directory: {path_str}")
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def read_file_if_exists(path: Path) -> str | None:
    """Return the decoded file content, or ``None`` when there is no file."""
    if not path.is_file():
        return None
    content, _ = read_file_with_encoding(path)
    return content


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content atomically, creating parent directories as needed.

    The content goes to a temporary file in the target directory which
    then replaces the target, so readers never see a half-written note.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)


# =============================================================================
# Async Wrappers
# =============================================================================


async def read_file_async(path: Path) -> str | None:
    """Async wrapper: read a file if present, bounded by the read semaphore.

    Args:
        path: File to read.

    Returns:
        The decoded content, or ``None`` if the file does not exist.
    """
    return await run_sync_limited(read_file_if_exists, path)


async def write_file_async(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Async wrapper: write a file atomically on a worker thread.

    Returns:
        Number of bytes written.
    """
    return await run_sync(write_file, path, content, encoding)
