"""Cross-process write lock for the task store.

Built on :class:`filelock.FileLock`: the operating system releases the lock
when the holding process exits, so a crashed writer never blocks later ones.
The lock file itself is left in place between runs.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from filelock import FileLock, Timeout

from tasque import log
from tasque.errors import IO_ERROR, LOCK_TIMEOUT, TasqueError


def store_lock(lock_file: Path, timeout: float) -> FileLock:
    return FileLock(str(lock_file), timeout=timeout)


@contextmanager
def write_lock(lock_file: Path, timeout: float) -> Iterator[FileLock]:
    """Hold the store write lock for the duration of the block.

    Raises ``LOCK_TIMEOUT`` (exit code 2) when another writer keeps the lock
    longer than *timeout* seconds.
    """
    lock = store_lock(lock_file, timeout)
    try:
        lock.acquire()
    except Timeout:
        raise TasqueError(
            LOCK_TIMEOUT,
            "Timed out waiting for the store lock",
            {"lock_file": str(lock_file), "timeout_seconds": timeout},
            exit_code=2,
        )
    except OSError as exc:
        raise TasqueError(IO_ERROR, f"Failed to lock {lock_file}: {exc}", exit_code=2)

    log.debug(f"Acquired {lock_file}")
    try:
        yield lock
    finally:
        lock.release()
