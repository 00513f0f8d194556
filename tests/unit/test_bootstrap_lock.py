"""
Unit tests for the bootstrap lock file.
"""
import os
import threading
import time
import pytest
import socket
from unittest.mock import patch

from stackboot.bootstrap.lock import BootstrapLock
from stackboot.errors import LockTimeoutError


class TestBootstrapLock:
    """Test exclusive-create lock semantics."""

    def test_acquire_creates_file_with_holder(self, tmp_path):
        """Should create the lock file recording pid@host."""
        lock = BootstrapLock(tmp_path / ".lock")

        with lock:
            assert lock.path.exists()
            assert lock.holder().startswith(f"{os.getpid()}@")

        assert not lock.path.exists()

    def test_release_on_exception(self, tmp_path):
        """Should remove the lock file when the body raises."""
        lock = BootstrapLock(tmp_path / ".lock")

        with pytest.raises(RuntimeError):
            with lock:
                raise RuntimeError("boom")

        assert not lock.path.exists()

    def test_second_holder_times_out(self, tmp_path):
        """Should not let two holders own the lock at once."""
        path = tmp_path / ".lock"
        first = BootstrapLock(path).acquire()
        second = BootstrapLock(path, poll_interval=0.01, timeout=0.05)

        with pytest.raises(LockTimeoutError, match="Timed out"):
            second.acquire()

        assert not second.acquired
        first.release()
        assert not path.exists()

    def test_waits_until_released(self, tmp_path):
        """Should acquire once the current holder releases."""
        path = tmp_path / ".lock"
        first = BootstrapLock(path).acquire()

        def release_later():
            time.sleep(0.05)
            first.release()

        thread = threading.Thread(target=release_later)
        thread.start()
        second = BootstrapLock(path, poll_interval=0.01, timeout=5).acquire()
        thread.join()

        assert second.acquired
        second.release()

    def test_release_without_acquire_is_noop(self, tmp_path):
        """Should leave a foreign lock file alone."""
        path = tmp_path / ".lock"
        path.write_text("42@elsewhere\n")

        BootstrapLock(path).release()

        assert path.read_text() == "42@elsewhere\n"

    def test_holder_none_when_free(self, tmp_path):
        assert BootstrapLock(tmp_path / ".lock").holder() is None


class TestStaleLock:
    """Locks left behind by a killed bootstrap are reclaimed."""

    def test_dead_local_holder_reclaimed(self, tmp_path):
        """Should take over a lock whose pid no longer exists on this host."""
        path = tmp_path / ".lock"
        path.write_text(f"999999@{socket.gethostname()}\n")

        with patch('stackboot.bootstrap.lock.os.kill', side_effect=ProcessLookupError):
            lock = BootstrapLock(path, poll_interval=0.01, timeout=1).acquire()

        assert lock.acquired
        assert lock.holder().startswith(f"{os.getpid()}@")
        lock.release()

    def test_live_local_holder_kept(self, tmp_path):
        """Should keep waiting while the recorded process is alive."""
        path = tmp_path / ".lock"
        path.write_text(f"{os.getppid()}@{socket.gethostname()}\n")
        lock = BootstrapLock(path, poll_interval=0.01, timeout=0.05, stale_after=3600)

        with pytest.raises(LockTimeoutError):
            lock.acquire()

        assert path.read_text() == f"{os.getppid()}@{socket.gethostname()}\n"

    def test_own_pid_from_previous_run_reclaimed(self, tmp_path):
        """Should reclaim a lock naming this pid that this instance never took."""
        path = tmp_path / ".lock"
        path.write_text(f"{os.getpid()}@{socket.gethostname()}\n")

        lock = BootstrapLock(path, poll_interval=0.01, timeout=1).acquire()

        assert lock.acquired
        lock.release()
        assert not path.exists()

    def test_old_foreign_lock_reclaimed(self, tmp_path):
        """Should reclaim a lock from another host once it is older than stale_after."""
        path = tmp_path / ".lock"
        path.write_text("1@other-container\n")
        old = time.time() - 7200
        os.utime(path, (old, old))

        lock = BootstrapLock(path, poll_interval=0.01, timeout=1, stale_after=3600).acquire()

        assert lock.acquired
        lock.release()

    def test_fresh_foreign_lock_not_stale(self, tmp_path):
        path = tmp_path / ".lock"
        path.write_text("1@other-container\n")

        assert not BootstrapLock(path, stale_after=3600).is_stale()
        assert not BootstrapLock(path).is_stale()

    def test_reclaim_logs_warning(self, tmp_path, caplog):
        path = tmp_path / ".lock"
        path.write_text("1@other-container\n")
        old = time.time() - 10
        os.utime(path, (old, old))

        with caplog.at_level("WARNING"):
            assert BootstrapLock(path, stale_after=5).reclaim()

        assert "Reclaimed stale bootstrap lock" in caplog.text
        assert not path.exists()
