"""
Pytest configuration for unit tests.

Provides a stack configuration rooted in tmp_path and a command runner that
records invocations instead of spawning composer or npm.
"""
import os
import pwd
import grp
import subprocess
import pytest
from pathlib import Path

from stackboot.commands import CommandRunner
from stackboot.config import StackConfig

# Keep the developer's environment from leaking into config tests
for _key in list(os.environ):
    if _key.startswith("STACKBOOT_"):
        del os.environ[_key]


class FakeRunner(CommandRunner):
    """CommandRunner that simulates the external tools."""

    def __init__(self, workdir: Path, fail_on=None):
        super().__init__(workdir)
        self.fail_on = fail_on
        self.exec_calls = []

    def run(self, command, cwd=None):
        if cwd is None:
            cwd = self.workdir
        self.history.append((tuple(command), Path(cwd)))

        if self.fail_on and tuple(command[:len(self.fail_on)]) == tuple(self.fail_on):
            raise subprocess.CalledProcessError(2, command)

        if command[:2] == ['composer', 'create-project']:
            staging = Path(command[-1])
            (staging / "public").mkdir(parents=True)
            (staging / "composer.json").write_text('{"name": "symfony/website-skeleton"}\n')
            (staging / ".env").write_text("APP_ENV=dev\n")
            (staging / "public" / "index.php").write_text("<?php\n")
        elif command[:2] == ['npm', 'install'] and len(command) == 2:
            (Path(cwd) / "node_modules").mkdir()

        return subprocess.CompletedProcess(command, 0)

    def exec(self, command, cwd=None):
        self.exec_calls.append(list(command))


@pytest.fixture
def current_user():
    """Name of the user running the tests (chown to self always succeeds)."""
    return pwd.getpwuid(os.getuid()).pw_name


@pytest.fixture
def current_group():
    return grp.getgrgid(os.getgid()).gr_name


@pytest.fixture
def stack_config(tmp_path, current_user, current_group):
    """StackConfig with working and staging directories under tmp_path."""
    return StackConfig(
        workdir=tmp_path / "project",
        staging_dir=tmp_path / "staging",
        runtime_user=current_user,
        runtime_group=current_group,
        lock_poll_interval=0.01,
    )


@pytest.fixture
def fake_runner(stack_config):
    return FakeRunner(stack_config.workdir)


@pytest.fixture
def failing_runner(stack_config):
    """Factory for a runner whose command with the given prefix exits non-zero."""
    def make(*prefix):
        return FakeRunner(stack_config.workdir, fail_on=list(prefix))
    return make
