"""Shared read-only file helpers."""

import errno
import logging
import os
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)

# Directories to skip when walking skill and plugin trees
DEFAULT_SKIP_DIRS: frozenset[str] = frozenset({
    "node_modules",
    ".git",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    ".pytest_cache",
    ".mypy_cache",
    "dist",
    "build",
    "coverage",
})

# Largest single read; the signature scanner reads bigger files in chunks of this size
MAX_FILE_SIZE = 1_048_576  # 1 MB

_TRANSIENT_ERRNOS = {errno.EINTR, errno.EAGAIN, errno.EIO, errno.EBUSY}


def read_file_bytes(path: str | Path, max_bytes: int = MAX_FILE_SIZE) -> bytes:
    """Read up to max_bytes from a file, retrying once on a transient error.

    Raises:
        OSError: If the file cannot be read after the retry, or on
            FileNotFoundError/PermissionError (never retried).
    """
    for attempt in range(2):
        try:
            with open(path, "rb") as f:
                return f.read(max_bytes)
        except (FileNotFoundError, PermissionError):
            raise
        except OSError as e:
            if attempt == 0 and e.errno in _TRANSIENT_ERRNOS:
                logger.debug(f"Retrying read of {path}: {e}")
                continue
            raise
    raise OSError(f"Could not read {path}")


def read_text(path: str | Path, max_bytes: int = MAX_FILE_SIZE) -> str:
    """Read a file as text, ignoring undecodable bytes."""
    return read_file_bytes(path, max_bytes).decode("utf-8", errors="ignore")


def is_binary(data: bytes) -> bool:
    """Check whether content looks binary (NUL byte near the start)."""
    return b"\x00" in data[:8192]


def walk_files(
    root: str | Path,
    extensions: frozenset[str] | None = None,
    skip_dirs: frozenset[str] = DEFAULT_SKIP_DIRS,
) -> Generator[Path, None, None]:
    """Walk a directory tree yielding files in sorted order.

    Args:
        root: Directory to walk.
        extensions: Lower-case suffixes to include; all files when None.
        skip_dirs: Directory names that are not descended into.

    Yields:
        Path objects, ordered by directory then file name.
    """
    root = Path(root)
    if not root.is_dir():
        return

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in skip_dirs)
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if extensions is None or path.suffix.lower() in extensions:
                yield path


def display_path(path: str | Path, base: str | Path) -> str:
    """Path relative to base when possible, else the path itself."""
    try:
        return str(Path(path).relative_to(base))
    except ValueError:
        return str(path)


def redact_secret(value: str) -> str:
    """Redact a secret value, showing only first 4 and last 4 chars."""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"
