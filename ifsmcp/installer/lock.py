"""Advisory lock serializing installs against one install root.

The lock file is a sibling of the root (``<root>.lock``) so it survives the
root being deleted and replaced. ``fcntl.flock`` is used on POSIX and
``msvcrt.locking`` on Windows; both are released when the file is closed,
including when the process dies.
"""

import asyncio
import contextlib
import logging
import os
import time
from collections.abc import AsyncIterator
from pathlib import Path
from typing import IO

from ..errors import InstallLocked

POLL_INTERVAL = 0.1

_logging = logging.getLogger(__name__)


def lock_path_for(install_root: Path) -> Path:
    return install_root.with_name(install_root.name + ".lock")


def _try_lock(handle: IO[str]) -> bool:
    if os.name == "nt":
        import msvcrt

        # msvcrt.locking needs a non-empty byte range.
        handle.seek(0, os.SEEK_END)
        if handle.tell() == 0:
            handle.write("0")
            handle.flush()
        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError:
            return False
        return True

    import fcntl

    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


def _unlock(handle: IO[str]) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        with contextlib.suppress(OSError):
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        return

    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def _open(lock_file: Path) -> IO[str]:
    lock_file.parent.mkdir(parents=True, exist_ok=True)
    return lock_file.open("a+", encoding="utf-8")


@contextlib.asynccontextmanager
async def install_lock(install_root: Path, timeout: float = 10.0) -> AsyncIterator[Path]:
    """Hold the install lock for ``install_root``.

    Non-blocking attempts are retried until ``timeout`` seconds have passed.

    Raises:
        InstallLocked: If another holder keeps the lock past the timeout
    """
    lock_file = lock_path_for(install_root)
    handle = _open(lock_file)
    try:
        deadline = time.monotonic() + timeout
        while not _try_lock(handle):
            if time.monotonic() >= deadline:
                raise InstallLocked(install_root)
            await asyncio.sleep(POLL_INTERVAL)
        _logging.debug(f"Acquired install lock {lock_file}")
        try:
            yield lock_file
        finally:
            _unlock(handle)
            _logging.debug(f"Released install lock {lock_file}")
    finally:
        handle.close()


def is_install_locked(install_root: Path) -> bool:
    """Whether some other holder currently has the install lock."""
    lock_file = lock_path_for(install_root)
    if not lock_file.exists():
        return False
    with lock_file.open("a+", encoding="utf-8") as handle:
        if not _try_lock(handle):
            return True
        _unlock(handle)
    return False


__all__ = ["install_lock", "is_install_locked", "lock_path_for"]
