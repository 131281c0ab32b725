"""
Per-remote exclusive lock.

Two sous processes syncing the same vault would race on clone, pull,
and plaintext writes. Each remote gets ``<cache>/<md5(url)>.lock``,
held with ``flock`` for the whole sync + decrypt. The kernel drops the
lock if the process dies, so a stale lock file is harmless.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import LockTimeout

logger = logging.getLogger("sous.locking")

POLL_INTERVAL = 0.1


@contextmanager
def vault_lock(lock_path: Path, timeout: Optional[float] = None) -> Iterator[Path]:
    """Hold an exclusive lock on *lock_path* for the ``with`` body.

    Args:
        lock_path: Lock file; created if missing, never deleted.
        timeout: Seconds to wait. None blocks until the lock is free.

    Raises:
        LockTimeout: If *timeout* elapses first.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(lock_path), os.O_RDWR | os.O_CREAT, 0o600)
    try:
        if timeout is None:
            fcntl.flock(fd, fcntl.LOCK_EX)
        else:
            deadline = time.monotonic() + timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise LockTimeout(lock_path, timeout) from None
                    time.sleep(POLL_INTERVAL)
        logger.debug("Acquired %s", lock_path)
        try:
            yield lock_path
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Released %s", lock_path)
    finally:
        os.close(fd)
