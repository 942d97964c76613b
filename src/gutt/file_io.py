"""Scoped temporary files for captured command output, plus atomic writes."""

from __future__ import annotations

import atexit
import logging
import os
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from pathlib import Path

logger = logging.getLogger(__name__)

_ATOMIC_REPLACE_MAX_RETRIES = 8
_ATOMIC_REPLACE_RETRY_SECONDS = 0.01
_SCRATCH_PREFIX = "gutt."

_LIVE_SCRATCH: set[Path] = set()


def cleanup_scratch_files() -> None:
    """Delete every scratch file still registered.  Registered with ``atexit``."""
    for path in list(_LIVE_SCRATCH):
        with suppress(OSError):
            path.unlink(missing_ok=True)
        _LIVE_SCRATCH.discard(path)


atexit.register(cleanup_scratch_files)


def live_scratch_files() -> list[Path]:
    """Return scratch files that have not been released yet."""
    return sorted(_LIVE_SCRATCH)


@contextmanager
def scratch_file(suffix: str = ".out") -> Iterator[Path]:
    """Yield a fresh temporary file path that is removed on every exit path."""
    fd, tmp_name = tempfile.mkstemp(prefix=_SCRATCH_PREFIX, suffix=suffix)
    os.close(fd)
    path = Path(tmp_name)
    _LIVE_SCRATCH.add(path)
    try:
        yield path
    finally:
        with suppress(OSError):
            path.unlink(missing_ok=True)
        _LIVE_SCRATCH.discard(path)


def read_text_lossy(path: Path) -> str:
    """Read captured output, replacing undecodable bytes."""
    try:
        return path.read_bytes().decode("utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Could not read captured output %s: %s", path, exc)
        return ""


def _replace_file_with_retry(src: Path, dst: Path) -> None:
    last_error: OSError | None = None
    for attempt in range(_ATOMIC_REPLACE_MAX_RETRIES):
        try:
            src.replace(dst)
            return
        except PermissionError as exc:
            last_error = exc
        except OSError as exc:
            if exc.errno != 13:
                raise
            last_error = exc
        if attempt < _ATOMIC_REPLACE_MAX_RETRIES - 1:
            time.sleep(_ATOMIC_REPLACE_RETRY_SECONDS * (attempt + 1))
    if last_error is not None:
        raise last_error


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to disk atomically to avoid partial/corrupt files."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f"{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            handle.write(content)
        _replace_file_with_retry(tmp_path, path)
    finally:
        with suppress(OSError):
            tmp_path.unlink(missing_ok=True)
