"""Record file I/O: tolerant reads, atomic writes and per-record file locks.

Every mutation of a record goes through :func:`file_lock` and ends with
:func:`write_json_atomic`, so two writers never interleave a read-modify-write
and readers never see a half-written file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock, Timeout

from .errors import LockTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LockOptions:
    timeout: float = 5.0
    retry_interval: float = 0.05


def lock_path(path: Path) -> Path:
    return path.with_name(path.name + ".lock")


def read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def read_json(path: Path) -> Any | None:
    """Return the parsed JSON document at ``path``, or ``None`` if missing or unreadable."""

    raw = read_text(path)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring unparseable record", extra={"path": str(path), "error": str(exc)})
        return None


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` as JSON via a temp file renamed over ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


@contextmanager
def file_lock(path: Path, options: LockOptions | None = None) -> Iterator[Path]:
    """Hold an exclusive OS-level lock on ``<path>.lock`` for the duration of the block.

    The lock dies with its holder, so a crashed writer never blocks later ones.
    """

    opts = options or LockOptions()
    target = lock_path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(target), timeout=opts.timeout)
    try:
        lock.acquire(poll_interval=opts.retry_interval)
    except Timeout as exc:
        raise LockTimeoutError(f"Timed out after {opts.timeout:.2f}s waiting for lock {target}") from exc
    try:
        yield target
    finally:
        lock.release()


__all__ = [
    "LockOptions",
    "file_lock",
    "lock_path",
    "read_json",
    "read_text",
    "write_json_atomic",
]
