"""
Exclusive lock file guarding the first-run bootstrap.

Two containers sharing the project volume may start at the same moment.
The lock is created with O_CREAT | O_EXCL so only one of them can hold it;
the other waits and then re-checks the marker file.

The file lives on the shared volume, so a bootstrap killed mid-run leaves it
behind. A lock whose holder process is gone (same host) or whose file is
older than stale_after is reclaimed.
"""
import logging
import os
import socket
import time
from pathlib import Path
from typing import Optional, Set

from stackboot.errors import LockTimeoutError

logger = logging.getLogger(__name__)

# Lock files held by this process
_held_paths: Set[str] = set()


class BootstrapLock:
    """Context manager around an exclusively created lock file."""

    def __init__(
        self,
        path: Path,
        poll_interval: float = 1.0,
        timeout: Optional[float] = None,
        stale_after: Optional[float] = None
    ):
        """
        Args:
            path: Lock file path
            poll_interval: Seconds between acquisition attempts
            timeout: Give up after this many seconds (None waits forever)
            stale_after: Reclaim a lock file older than this many seconds
                (None only reclaims locks of dead local processes)
        """
        self.path = Path(path)
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.stale_after = stale_after
        self.acquired = False

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False

        _held_paths.add(self._key())
        with os.fdopen(fd, 'w') as f:
            f.write(f"{os.getpid()}@{socket.gethostname()}\n")
        return True

    def _key(self) -> str:
        return os.path.abspath(self.path)

    def holder(self) -> Optional[str]:
        """Return the pid@host recorded by the current holder, if any."""
        try:
            return self.path.read_text().strip() or None
        except FileNotFoundError:
            return None

    def is_stale(self) -> bool:
        """
        Check whether the current lock file was left by a dead bootstrap.

        A holder on this host is checked with signal 0. Our own pid on a
        lock this process does not hold means a previous run of this
        container (pid 1 again after a restart). Holders on other hosts can
        only be judged by file age.
        """
        holder = self.holder()
        if holder is None:
            return False

        pid_text, _, host = holder.partition('@')
        if host == socket.gethostname() and pid_text.isdigit():
            pid = int(pid_text)
            if pid == os.getpid():
                return self._key() not in _held_paths
            try:
                os.kill(pid, 0)
            except ProcessLookupError:
                return True
            except PermissionError:
                # Alive, owned by another user
                pass
            return False

        if self.stale_after is None:
            return False

        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return False
        return age >= self.stale_after

    def reclaim(self) -> bool:
        """
        Remove the lock file if it is stale.

        Returns:
            True if a stale lock was removed
        """
        holder = self.holder()
        if not self.is_stale():
            return False

        # Only remove the file we judged; a fresh holder may have replaced it
        if self.holder() != holder:
            return False
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False

        logger.warning(f"Reclaimed stale bootstrap lock {self.path} (held by {holder})")
        return True

    def acquire(self) -> 'BootstrapLock':
        """
        Block until the lock file is created by this process.

        Raises:
            LockTimeoutError: If timeout elapses first
        """
        started = time.monotonic()
        waiting_logged = False

        while not self._try_create():
            if self.reclaim():
                continue

            if not waiting_logged:
                logger.info(f"Waiting for bootstrap lock {self.path} (held by {self.holder()})")
                waiting_logged = True

            if self.timeout is not None and time.monotonic() - started >= self.timeout:
                raise LockTimeoutError(
                    f"Timed out after {self.timeout}s waiting for {self.path} "
                    f"(held by {self.holder()}). Remove the file if no bootstrap is running."
                )
            time.sleep(self.poll_interval)

        self.acquired = True
        logger.debug(f"Acquired bootstrap lock {self.path}")
        return self

    def release(self):
        """Remove the lock file if this process holds it."""
        if not self.acquired:
            return

        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Bootstrap lock {self.path} vanished before release")
        self.acquired = False
        _held_paths.discard(self._key())

    def __enter__(self) -> 'BootstrapLock':
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
