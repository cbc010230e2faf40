"""Advisory cross-process lock colocated with the registry file.

Wraps the ``BACKUP -> WRITE -> VERIFY`` span of every mutating operation so
that several instances sharing one registry cannot interleave.  The lock is
advisory: it only excludes other holders of the same lock file.
"""
from __future__ import annotations

import asyncio
import os
import sys
import time
from pathlib import Path
from types import TracebackType

import structlog

from deployguard.shared.exceptions import RegistryLockError

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

logger = structlog.get_logger(__name__)


def _try_lock(fd: int) -> bool:
    try:
        if sys.platform == "win32":
            msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except (BlockingIOError, PermissionError):
        return False
    except OSError:
        # msvcrt reports contention as EDEADLOCK
        if sys.platform == "win32":
            return False
        raise
    return True


def _unlock(fd: int) -> None:
    if sys.platform == "win32":
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)


class RegistryLock:
    """Async context manager holding an exclusive lock on ``<registry>.lock``.

    Args:
        registry_path: The registry file being protected.
        timeout: Seconds to wait before giving up.
        poll_interval: Seconds between acquisition attempts.

    Raises:
        RegistryLockError: The lock was not acquired within *timeout*.
    """

    def __init__(self, registry_path: Path, timeout: float = 10.0, poll_interval: float = 0.05) -> None:
        self.lock_path = registry_path.with_name(registry_path.name + ".lock")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._fd: int | None = None

    async def __aenter__(self) -> RegistryLock:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        deadline = time.monotonic() + self.timeout
        try:
            while not _try_lock(fd):
                if time.monotonic() >= deadline:
                    logger.error("registry_lock_timeout", lock_path=str(self.lock_path), timeout=self.timeout)
                    raise RegistryLockError(
                        f"Timed out after {self.timeout}s waiting for {self.lock_path}",
                        context={"lock_path": str(self.lock_path), "timeout": self.timeout},
                    )
                await asyncio.sleep(self.poll_interval)
        except BaseException:
            # Includes cancellation while polling.
            os.close(fd)
            raise
        self._fd = fd
        logger.debug("registry_lock_acquired", lock_path=str(self.lock_path))
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._fd is None:
            return
        try:
            _unlock(self._fd)
        finally:
            os.close(self._fd)
            self._fd = None
            logger.debug("registry_lock_released", lock_path=str(self.lock_path))
