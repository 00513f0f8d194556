"""
External tool invocation for the bootstrap sequence.

Every tool runs with check=True: a non-zero exit raises
subprocess.CalledProcessError and halts the remaining steps.
"""
import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs external tools in the project working directory."""

    def __init__(self, workdir: Path):
        self.workdir = workdir
        self.history: List[Tuple[Tuple[str, ...], Path]] = []

    def run(self, command: List[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        """
        Run a command from list of arguments.

        Output is streamed to the container log rather than captured, so
        the tool's own progress and error messages stay visible.

        Args:
            command: Command as list of arguments
            cwd: Working directory (defaults to workdir)

        Returns:
            CompletedProcess result

        Raises:
            subprocess.CalledProcessError: If the command exits non-zero
        """
        if cwd is None:
            cwd = self.workdir

        logger.info(f"Running: {' '.join(command)} (cwd={cwd})")
        self.history.append((tuple(command), Path(cwd)))

        return subprocess.run(command, cwd=cwd, check=True)

    def exec(self, command: List[str], cwd: Optional[Path] = None):
        """
        Replace the current process with the foreground service command.

        Does not return.
        """
        if cwd is None:
            cwd = self.workdir

        logger.info(f"Handing off to: {' '.join(command)}")
        os.chdir(cwd)
        os.execvp(command[0], command)

    def count(self, *prefix: str) -> int:
        """Number of recorded invocations whose arguments start with prefix."""
        return sum(1 for args, _ in self.history if args[:len(prefix)] == prefix)
