"""
Bootstrap for the asset-build sidecar.

The node container shares the project volume with the web container. It
waits for the web role to finish provisioning the tree, installs the frontend
packages once, then hands off to the asset watcher.
"""
import logging
import time
from typing import List, Optional

from stackboot.bootstrap.lock import BootstrapLock
from stackboot.commands import CommandRunner
from stackboot.config import StackConfig
from stackboot.errors import LockTimeoutError

logger = logging.getLogger(__name__)


class AssetBuilder:
    """Provisions node_modules for the asset watcher."""

    def __init__(self, config: StackConfig, runner: Optional[CommandRunner] = None):
        self.config = config
        self.runner = runner or CommandRunner(config.workdir)

    @property
    def node_modules(self):
        return self.config.workdir / "node_modules"

    def _project_ready(self) -> bool:
        # composer.json is copied in before the web role runs composer require,
        # which writes package.json. The lock is held until that step is done.
        if not self.config.marker_path.exists():
            return False
        lock = BootstrapLock(self.config.lock_path, stale_after=self.config.lock_stale_after)
        return not lock.path.exists() or lock.is_stale()

    def wait_for_project(self):
        """
        Block until the marker file exists and no bootstrap lock is held.

        Uses the lock timeout setting; None waits forever.

        Raises:
            LockTimeoutError: If the timeout elapses first
        """
        started = time.monotonic()
        logged = False

        while not self._project_ready():
            if not logged:
                logger.info(
                    f"Waiting for {self.config.marker_path} and release of "
                    f"{self.config.lock_path} before installing assets"
                )
                logged = True

            timeout = self.config.lock_timeout
            if timeout is not None and time.monotonic() - started >= timeout:
                raise LockTimeoutError(
                    f"Timed out after {timeout}s waiting for the web bootstrap to finish "
                    f"({self.config.marker_path}, lock {self.config.lock_path})"
                )
            time.sleep(self.config.lock_poll_interval)

    def install(self) -> bool:
        """
        Install frontend dependencies if node_modules is missing.

        Returns:
            True if installation ran
        """
        self.wait_for_project()

        if self.node_modules.exists():
            logger.info("node_modules present, nothing to install")
            return False

        self.runner.run(['npm', 'install'])
        if self.config.frontend_extras:
            self.runner.run(['npm', 'install', '--save-dev', *self.config.frontend_extras])

        logger.info("Frontend dependencies installed")
        return True

    def run(self, command: Optional[List[str]] = None):
        """Install, then exec the asset watcher. Does not return."""
        self.install()
        self.runner.exec(command or self.config.assets_command)
