"""
State directory lock for decompgit.

OS-level advisory file locking guarantees that only one run works on
a state directory at a time:
- Windows: msvcrt.locking()
- Unix: fcntl.flock()

The lock file is <state_dir>/.decompgit.lock and is released when the
holding process exits, even if it is killed.
"""

import os
import sys
import time
from pathlib import Path
from typing import Optional, TextIO

from ..exit_codes import ConcurrentRunError

LOCK_FILENAME = ".decompgit.lock"


class StateLock:
    """
    Exclusive, non-blocking lock on a state directory.

    Example:
        with StateLock(state_dir):
            ...  # raises ConcurrentRunError if another run holds it
    """

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)
        self.lock_path = self.state_dir / LOCK_FILENAME
        self._lock_file: Optional[TextIO] = None

    @property
    def acquired(self) -> bool:
        return self._lock_file is not None

    def acquire(self) -> None:
        """
        Acquire the lock without waiting.

        Raises:
            ConcurrentRunError: If another process holds the lock
        """
        if self._lock_file is not None:
            return

        self.state_dir.mkdir(parents=True, exist_ok=True)
        lock_file = open(self.lock_path, 'a+')
        try:
            if sys.platform == 'win32':
                import msvcrt
                lock_file.seek(0)
                msvcrt.locking(lock_file.fileno(), msvcrt.LK_NBLCK, 1)
            else:
                import fcntl
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            holder = self._read_holder(lock_file)
            lock_file.close()
            message = f"Another run holds the lock on {self.state_dir}"
            if holder:
                message += f" ({holder})"
            raise ConcurrentRunError(message)

        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write(f"pid={os.getpid()} acquired_at={time.time():.0f}\n")
        lock_file.flush()
        self._lock_file = lock_file

    def release(self) -> None:
        if self._lock_file is None:
            return
        try:
            if sys.platform == 'win32':
                import msvcrt
                self._lock_file.seek(0)
                msvcrt.locking(self._lock_file.fileno(), msvcrt.LK_UNLCK, 1)
            else:
                import fcntl
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)
        finally:
            self._lock_file.close()
            self._lock_file = None

    @staticmethod
    def _read_holder(lock_file: TextIO) -> str:
        try:
            lock_file.seek(0)
            return lock_file.read().strip()
        except OSError:
            return ""

    def __enter__(self) -> 'StateLock':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
