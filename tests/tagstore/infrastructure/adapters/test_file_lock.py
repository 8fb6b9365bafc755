"""Unit tests for the sidecar file lock."""

import errno
import os
import time
from typing import Any

import pytest

from tagstore.infrastructure.adapters import file_lock
from tagstore.infrastructure.adapters.file_lock import FileLock
from tagstore.models.errors import StoreLockedError


@pytest.fixture
def lock_path(store_path: str) -> str:
    return store_path + ".lock"


class TestFileLock:
    def test_acquire_and_release(self, lock_path: str) -> None:
        lock = FileLock(lock_path)

        lock.acquire(timeout=0.1)
        assert lock.locked

        lock.release()
        assert not lock.locked

    def test_acquire_twice_is_a_no_op(self, lock_path: str) -> None:
        lock = FileLock(lock_path)
        lock.acquire(timeout=0.1)
        try:
            lock.acquire(timeout=0.1)
            assert lock.locked
        finally:
            lock.release()

    def test_release_without_acquire(self, lock_path: str) -> None:
        FileLock(lock_path).release()

    def test_second_holder_times_out(self, lock_path: str) -> None:
        first = FileLock(lock_path)
        first.acquire(timeout=0.1)
        try:
            second = FileLock(lock_path)
            started = time.monotonic()

            with pytest.raises(StoreLockedError) as exc_info:
                second.acquire(timeout=0.2)

            assert time.monotonic() - started >= 0.2
            assert exc_info.value.details["lock_file"] == lock_path
            assert not second.locked
        finally:
            first.release()

    def test_lock_is_available_after_release(self, lock_path: str) -> None:
        first = FileLock(lock_path)
        first.acquire(timeout=0.1)
        first.release()

        second = FileLock(lock_path)
        second.acquire(timeout=0.1)
        assert second.locked
        second.release()

    def test_unexpected_flock_error_closes_descriptor(
        self, lock_path: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        opened: list[int] = []
        closed: list[int] = []
        real_open, real_close = os.open, os.close

        def tracking_open(*args: Any) -> int:
            fd = real_open(*args)
            opened.append(fd)
            return fd

        def tracking_close(fd: int) -> None:
            closed.append(fd)
            real_close(fd)

        def no_locks(fd: int, operation: int) -> None:
            raise OSError(errno.ENOLCK, "No locks available")

        monkeypatch.setattr(file_lock.os, "open", tracking_open)
        monkeypatch.setattr(file_lock.os, "close", tracking_close)
        monkeypatch.setattr(file_lock.fcntl, "flock", no_locks)

        lock = FileLock(lock_path)
        with pytest.raises(OSError) as exc_info:
            lock.acquire(timeout=0.1)

        assert exc_info.value.errno == errno.ENOLCK
        assert not isinstance(exc_info.value, StoreLockedError)
        assert opened and closed == opened
        assert not lock.locked
