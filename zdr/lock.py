from __future__ import annotations

import fcntl
import os
from pathlib import Path
from types import TracebackType

from .errors import IoError, LockBusy


LOCK_NAME = ".zdr.lock"


class DeploymentLock:
    """Advisory lock over a deployment directory for the length of one run.

    Non-blocking: a second holder gets LockBusy immediately.
    """

    def __init__(self, deploy_dir: str | os.PathLike[str]):
        self.path = Path(deploy_dir) / LOCK_NAME
        self._fd: int | None = None

    def acquire(self) -> None:
        try:
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise IoError(f"Cannot open lock file {self.path}: {e}") from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            os.close(fd)
            raise LockBusy(f"Another rollback holds {self.path}") from e
        try:
            os.ftruncate(fd, 0)
            os.write(fd, f"{os.getpid()}\n".encode())
        except OSError as e:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)
            raise IoError(f"Cannot write lock file {self.path}: {e}") from e
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> "DeploymentLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
