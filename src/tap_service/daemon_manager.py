"""Process management for the tap-service daemon.

A PID file doubles as the single-instance lock (``fcntl.flock``); the
kernel drops the lock when the process exits, so a crashed daemon never
blocks the next start.
"""

import errno
import fcntl
import os
import signal
import sys
import time
from pathlib import Path

from common.models import DATA_DIR


_LOCK_HELD = (errno.EACCES, errno.EAGAIN, errno.EWOULDBLOCK)


class DaemonManager:
    """Single-instance lock, PID bookkeeping and stop for tap-service.

    Args:
        pid_file: Path to the PID/lock file
    """

    def __init__(self, pid_file: Path | None = None) -> None:
        self.pid_file = pid_file or DATA_DIR / 'tap-service.pid'
        self.pid_fd: int | None = None
        self.pid_file.parent.mkdir(parents=True, exist_ok=True)

    def acquire_lock(self) -> bool:
        """Take the exclusive lock and record our PID.

        Returns:
            bool: False if another instance already holds the lock
        """
        fd = os.open(self.pid_file, os.O_CREAT | os.O_RDWR, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            os.close(fd)
            if e.errno in _LOCK_HELD:
                return False
            raise
        self.pid_fd = fd
        self._write_pid()
        return True

    def update_pid(self) -> None:
        """Rewrite the PID after ``daemonize()``; the lock survives the fork."""
        if self.pid_fd is None and not self.acquire_lock():
            raise RuntimeError('Failed to re-acquire lock in daemon process')  # noqa: TRY003
        self._write_pid()

    def _write_pid(self) -> None:
        os.ftruncate(self.pid_fd, 0)
        os.lseek(self.pid_fd, 0, os.SEEK_SET)
        os.write(self.pid_fd, f'{os.getpid()}\n'.encode())
        os.fsync(self.pid_fd)

    def is_running(self) -> bool:
        """Return True if some process currently holds the lock."""
        if self.pid_fd is not None:
            return True
        try:
            fd = os.open(self.pid_file, os.O_RDWR)
        except OSError:
            return False
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            if e.errno in _LOCK_HELD:
                return True
            raise
        else:
            fcntl.flock(fd, fcntl.LOCK_UN)
            return False
        finally:
            os.close(fd)

    def get_pid(self) -> int | None:
        try:
            return int(self.pid_file.read_text().strip())
        except (ValueError, OSError):
            return None

    def stop(self, timeout: float = 5.0) -> bool:
        """Send SIGTERM, then SIGKILL if the daemon outlives ``timeout``.

        Returns:
            bool: True if the process was stopped, False if it was not running
                or could not be signalled
        """
        pid = self.get_pid()
        if pid is None:
            return False

        try:
            os.kill(pid, signal.SIGTERM)
            deadline = time.monotonic() + timeout
            while time.monotonic() < deadline:
                os.kill(pid, 0)
                time.sleep(0.1)
            os.kill(pid, signal.SIGKILL)
            time.sleep(0.5)
        except ProcessLookupError:
            pass
        except PermissionError:
            return False

        self.pid_file.unlink(missing_ok=True)
        return True

    def cleanup(self) -> None:
        """Release the lock and remove the PID file on shutdown."""
        if self.pid_fd is not None:
            try:
                fcntl.flock(self.pid_fd, fcntl.LOCK_UN)
                os.close(self.pid_fd)
            except OSError:
                pass
            finally:
                self.pid_fd = None
        self.pid_file.unlink(missing_ok=True)


def daemonize() -> None:
    """Detach from the terminal with the classic double fork.

    Reference: https://www.python.org/dev/peps/pep-3143/
    """
    for attempt in (1, 2):
        try:
            if os.fork() > 0:
                sys.exit(0)
        except OSError as e:
            sys.stderr.write(f'Fork #{attempt} failed: {e}\n')
            sys.exit(1)
        if attempt == 1:
            os.chdir('/')
            os.setsid()
            os.umask(0o077)

    sys.stdout.flush()
    sys.stderr.flush()

    # Logging goes to the log file from here on
    with Path('/dev/null').open() as devnull:
        os.dup2(devnull.fileno(), sys.stdin.fileno())
    with Path('/dev/null').open('w') as devnull:
        os.dup2(devnull.fileno(), sys.stdout.fileno())
        os.dup2(devnull.fileno(), sys.stderr.fileno())
