"""Exclusive advisory lock on a sidecar file (POSIX `flock`)."""

import fcntl
import os
import time

from aws_lambda_powertools import Logger

from tagstore.models.errors import StoreLockedError
from tagstore.utils.constants import DB_FILE_MODE, LOCK_POLL_INTERVAL, LOG_SERVICE_NAME

logger = Logger(service=LOG_SERVICE_NAME, UTC=True)


class FileLock:
    """Process-exclusive lock held for the lifetime of an open store.

    The lock belongs to the open file description, so a second store opened
    on the same path, even from the same process, waits for the first one to
    release it.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._fd: int | None = None

    @property
    def locked(self) -> bool:
        return self._fd is not None

    def acquire(self, *, timeout: float) -> None:
        """Take the lock, polling until `timeout` seconds have passed.

        Raises:
            StoreLockedError: If another holder keeps the lock past `timeout`
        """
        if self._fd is not None:
            return

        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, DB_FILE_MODE)
        deadline = time.monotonic() + timeout

        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise StoreLockedError(
                            details={"lock_file": self.path, "timeout": timeout},
                        ) from None
                    time.sleep(LOCK_POLL_INTERVAL)
        except BaseException:
            os.close(fd)
            raise

        self._fd = fd
        logger.debug("Store lock acquired", extra={"lock_file": self.path})

    def release(self) -> None:
        if self._fd is None:
            return

        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.debug("Store lock released", extra={"lock_file": self.path})
