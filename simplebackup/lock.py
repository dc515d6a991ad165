"""Per-destination locking for simplebackup.

This module provides the LockManager class that keeps two backups from
writing into the same folder name at the same time. It uses fcntl.flock on a
lock file derived from the destination path, with PID tracking.
"""

import fcntl
import hashlib
import os
import time
from pathlib import Path
from typing import Optional, Union


DEFAULT_LOCK_DIRECTORY = Path.home() / ".cache/simplebackup/locks"


class LockError(Exception):
    """Raised when lock cannot be acquired."""
    pass


def lock_path_for(destination: Union[str, Path], lock_directory: Optional[Path] = None) -> Path:
    """
    Return the lock file path guarding ``destination``.

    The lock lives outside the backup root so it never shows up as a backup.
    The file name is a digest of the absolute destination path plus its base
    name for readability.
    """
    if lock_directory is None:
        lock_directory = DEFAULT_LOCK_DIRECTORY
    destination = Path(destination).absolute()
    digest = hashlib.sha1(str(destination).encode("utf-8")).hexdigest()[:16]
    return Path(lock_directory) / f"{destination.name}-{digest}.lock"


class LockManager:
    """
    Manages an exclusive advisory lock.

    Acquisition is a single non-blocking flock retried until ``timeout``;
    the holder's PID is written into the lock file while held.

    Use it as a context manager around the guarded work.
    """

    def __init__(self, lock_path: Path, timeout: float = 5):
        """
        Args:
            lock_path: Path to the lock file
            timeout: Seconds to wait for the lock before giving up
        """
        self.lock_path = Path(lock_path)
        self.timeout = timeout
        self._lock_fd: Optional[int] = None

    @classmethod
    def for_destination(
        cls,
        destination: Union[str, Path],
        lock_directory: Optional[Path] = None,
        timeout: float = 5,
    ) -> "LockManager":
        """Create a LockManager guarding the backup folder ``destination``."""
        return cls(lock_path_for(destination, lock_directory), timeout=timeout)

    @property
    def acquired(self) -> bool:
        return self._lock_fd is not None

    def _try_lock(self, fd: int) -> bool:
        """One non-blocking flock attempt; False if another process holds it."""
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        return True

    def acquire(self) -> bool:
        """
        Acquire the lock, waiting up to ``timeout`` seconds.

        Returns True once the lock is held.

        Raises:
            LockError: If the lock file cannot be opened, or the lock is
                still held by another process when the timeout expires.
        """
        deadline = time.monotonic() + self.timeout
        fd = self._open()
        while True:
            if self._try_lock(fd):
                if self._is_current_file(fd):
                    break
                # Locked a file the previous holder has since unlinked
                os.close(fd)
                fd = self._open()
                continue
            if time.monotonic() >= deadline:
                os.close(fd)
                holder = self.get_lock_holder_pid()
                who = f"process {holder}" if holder else "another process"
                raise LockError(f"Lock held by {who} after {self.timeout}s timeout")
            time.sleep(0.1)

        self._lock_fd = fd
        self._write_pid()
        return True

    def release(self) -> None:
        """Release the lock and remove the lock file."""
        fd, self._lock_fd = self._lock_fd, None
        if fd is None:
            return
        # Unlink while still holding the lock so a waiter never reads our PID
        steps = (
            self.lock_path.unlink,
            lambda: fcntl.flock(fd, fcntl.LOCK_UN),
            lambda: os.close(fd),
        )
        for step in steps:
            try:
                step()
            except OSError:
                pass

    def is_locked(self) -> bool:
        """Check if the lock is currently held by any process."""
        if not self.lock_path.exists():
            return False
        if self._lock_fd is not None:
            return True

        try:
            fd = os.open(str(self.lock_path), os.O_RDONLY)
        except OSError:
            return False
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            fcntl.flock(fd, fcntl.LOCK_UN)
            return False
        except BlockingIOError:
            return True
        finally:
            os.close(fd)

    def get_lock_holder_pid(self) -> Optional[int]:
        """Return PID of process holding lock, or None."""
        try:
            content = self.lock_path.read_text().strip()
            if content:
                return int(content)
        except (OSError, ValueError):
            pass

        return None

    def _open(self) -> int:
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            return os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise LockError(f"Cannot open lock file {self.lock_path}: {e}")

    def _is_current_file(self, fd: int) -> bool:
        """Check that ``fd`` still refers to the file at ``lock_path``."""
        try:
            return os.fstat(fd).st_ino == os.stat(self.lock_path).st_ino
        except OSError:
            return False

    def _write_pid(self) -> None:
        if self._lock_fd is None:
            return
        try:
            os.ftruncate(self._lock_fd, 0)
            os.lseek(self._lock_fd, 0, os.SEEK_SET)
            os.write(self._lock_fd, str(os.getpid()).encode())
        except OSError:
            pass  # Best effort

    def __enter__(self) -> "LockManager":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False  # Don't suppress exceptions
