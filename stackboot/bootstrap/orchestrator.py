"""
Bootstrap orchestrator for the web container.

Ensures the application tree exists exactly once, then hands control to
the foreground service process.

States:
    unprovisioned -> provisioned   (marker file absent at start)
    provisioned                    (marker file present, nothing to do)
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from stackboot.bootstrap import permissions, scaffold
from stackboot.bootstrap.lock import BootstrapLock
from stackboot.commands import CommandRunner
from stackboot.config import StackConfig

logger = logging.getLogger(__name__)


class ProvisioningState(str, Enum):
    """Provisioning state derived from the marker file."""
    UNPROVISIONED = "unprovisioned"
    PROVISIONED = "provisioned"


@dataclass
class BootstrapResult:
    """Outcome of one provision() call."""
    initial_state: ProvisioningState
    final_state: ProvisioningState
    steps: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def performed(self) -> bool:
        """True if this call ran the first-run sequence."""
        return bool(self.steps)


class BootstrapOrchestrator:
    """
    Runs the first-run provisioning sequence for the web role.

    Workflow (marker absent):
    1. Generate scaffold into staging directory
    2. Copy into working directory, remove staging
    3. Install the extra package set
    4. Normalise ownership and permissions
    5. Log completion
    """

    def __init__(self, config: StackConfig, runner: Optional[CommandRunner] = None):
        self.config = config
        self.runner = runner or CommandRunner(config.workdir)

    def state(self) -> ProvisioningState:
        """Current provisioning state of the working directory."""
        if self.config.marker_path.exists():
            return ProvisioningState.PROVISIONED
        return ProvisioningState.UNPROVISIONED

    def provision(self) -> BootstrapResult:
        """
        Provision the working directory if the marker file is absent.

        External tool failures propagate as subprocess.CalledProcessError;
        the lock and the staging directory are cleaned up either way.

        Returns:
            BootstrapResult describing what was done
        """
        started_at = datetime.now(timezone.utc)
        initial = self.state()

        if initial == ProvisioningState.PROVISIONED:
            logger.info(f"{self.config.marker} found in {self.config.workdir}, nothing to do")
            return BootstrapResult(
                initial_state=initial,
                final_state=initial,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc)
            )

        self.config.workdir.mkdir(parents=True, exist_ok=True)
        lock = BootstrapLock(
            self.config.lock_path,
            poll_interval=self.config.lock_poll_interval,
            timeout=self.config.lock_timeout,
            stale_after=self.config.lock_stale_after
        )

        with lock:
            # Another container may have finished while we waited
            if self.state() == ProvisioningState.PROVISIONED:
                logger.info(f"{self.config.marker} created by another bootstrap, nothing to do")
                return BootstrapResult(
                    initial_state=initial,
                    final_state=ProvisioningState.PROVISIONED,
                    started_at=started_at,
                    completed_at=datetime.now(timezone.utc)
                )

            steps = self._first_run()

        logger.info(f"Bootstrap complete: {self.config.workdir} is provisioned")
        return BootstrapResult(
            initial_state=initial,
            final_state=self.state(),
            steps=steps,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc)
        )

    def _first_run(self) -> List[str]:
        config = self.config
        steps = []

        logger.info(f"{config.marker} not found in {config.workdir}, bootstrapping project")
        scaffold.ensure_empty_target(config.staging_dir)

        try:
            scaffold.generate(self.runner, config.skeleton, config.staging_dir)
            steps.append("scaffold")

            scaffold.copy_tree(config.staging_dir, config.workdir)
            steps.append("copy")
        finally:
            scaffold.remove_staging(config.staging_dir)

        if config.extras:
            self.runner.run(['composer', 'require', '--no-interaction', *config.extras])
            steps.append("install")

        permissions.normalize_tree(
            config.workdir, config.runtime_user, config.runtime_group, config.mode
        )
        steps.append("permissions")

        return steps

    def run(self, command: Optional[List[str]] = None):
        """Provision, then exec the foreground service command. Does not return."""
        self.provision()
        self.runner.exec(command or self.config.web_command)
