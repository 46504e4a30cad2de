"""File lock preventing two bootstraps from running in the same project."""

import fcntl
import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ProcessLock:
    """Non-blocking fcntl.flock() lock.

    The kernel drops the lock when its holder exits, so a lock file left
    behind by a dead process is simply reacquired. The file stores the
    owning PID for diagnostics only.
    """

    def __init__(self, lock_path: Path):
        self.lock_path = Path(lock_path)
        self._fd: Optional[int] = None

    def acquire(self) -> bool:
        """Try to acquire the lock (non-blocking). Returns True on success."""
        try:
            self._fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR)
        except OSError as e:
            logger.error("Cannot open lock file %s: %s", self.lock_path, e)
            return False

        try:
            fcntl.flock(self._fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            self._report_owner()
            self._close()
            return False

        os.ftruncate(self._fd, 0)
        os.lseek(self._fd, 0, os.SEEK_SET)
        os.write(self._fd, str(os.getpid()).encode())
        return True

    def _read_owner_pid(self) -> Optional[int]:
        if self._fd is None:
            return None
        try:
            os.lseek(self._fd, 0, os.SEEK_SET)
            data = os.read(self._fd, 32).decode().strip()
            return int(data) if data else None
        except (OSError, ValueError):
            return None

    def _report_owner(self):
        pid = self._read_owner_pid()
        if pid:
            logger.error("Another bootstrap is already running (PID %d).", pid)
        else:
            logger.error("Another bootstrap is already running.")

    def _close(self):
        if self._fd is not None:
            try:
                os.close(self._fd)
            except OSError:
                pass
            self._fd = None

    def release(self):
        """Release the lock and remove the lock file."""
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        except OSError:
            pass
        self._close()
        try:
            self.lock_path.unlink(missing_ok=True)
        except OSError:
            pass
