"""Advisory inter-process lock for policy file rewrites."""

import asyncio
import fcntl
import os
import time
from pathlib import Path

from permctl.domain.exceptions import SynchronizationError


class SudoersFileLock:
    """Exclusive flock on a side file, acquired with a bounded poll.

    flock locks belong to the open file description, so two holders in the
    same process exclude each other as well.
    """

    def __init__(self, path: Path, timeout: float = 10.0, poll_interval: float = 0.05) -> None:
        self._path = path
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._fd: int | None = None

    async def __aenter__(self) -> "SudoersFileLock":
        try:
            fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as exc:
            raise SynchronizationError(self._path, f"cannot open lock file: {exc}") from exc

        deadline = time.monotonic() + self._timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    raise SynchronizationError(
                        self._path, f"lock not acquired within {self._timeout}s"
                    ) from None
                await asyncio.sleep(self._poll_interval)
            except OSError as exc:
                os.close(fd)
                raise SynchronizationError(self._path, f"cannot lock: {exc}") from exc
        self._fd = fd
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
