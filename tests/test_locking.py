"""Tests for the per-remote vault lock."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from sous.errors import LockTimeout
from sous.locking import vault_lock


class TestVaultLock:
    """Tests for vault_lock()."""

    def test_creates_lock_file(self, tmp_path: Path) -> None:
        """Lock file and parents are created and kept."""
        lock = tmp_path / "cache" / "abc.lock"
        with vault_lock(lock) as held:
            assert held == lock
            assert lock.exists()
        assert lock.exists()

    def test_contended_lock_times_out(self, tmp_path: Path) -> None:
        """A second holder gives up after the timeout."""
        lock = tmp_path / "abc.lock"
        with vault_lock(lock):
            start = time.monotonic()
            with pytest.raises(LockTimeout) as exc_info:
                with vault_lock(lock, timeout=0.3):
                    pass
            assert time.monotonic() - start >= 0.3
        assert exc_info.value.lock_path == lock

    def test_released_on_exception(self, tmp_path: Path) -> None:
        """An exception in the body still releases the lock."""
        lock = tmp_path / "abc.lock"
        with pytest.raises(RuntimeError):
            with vault_lock(lock):
                raise RuntimeError("sync blew up")
        with vault_lock(lock, timeout=0.1):
            pass

    def test_waiter_proceeds_after_release(self, tmp_path: Path) -> None:
        """A blocked waiter gets the lock once the holder leaves."""
        lock = tmp_path / "abc.lock"
        acquired = threading.Event()
        release = threading.Event()

        def holder() -> None:
            with vault_lock(lock):
                acquired.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        acquired.wait(5)
        threading.Timer(0.2, release.set).start()

        with vault_lock(lock, timeout=5):
            assert release.is_set()
        thread.join(5)

    def test_different_remotes_independent(self, tmp_path: Path) -> None:
        """Locks for different remotes never contend."""
        with vault_lock(tmp_path / "a.lock"):
            with vault_lock(tmp_path / "b.lock", timeout=0.1):
                pass
