"""
Scaffold generation into a staging directory.

Composer refuses to create a project in a non-empty directory, and the
working directory usually already holds mounted files (Dockerfile, compose
file). The skeleton is therefore generated into an empty staging directory
and merged into the working directory afterwards.
"""
import logging
import shutil
from pathlib import Path
from typing import List

from stackboot.commands import CommandRunner
from stackboot.errors import ScaffoldPreconditionError

logger = logging.getLogger(__name__)


def ensure_empty_target(path: Path):
    """
    Check that the scaffold target is absent or an empty directory.

    Raises:
        ScaffoldPreconditionError: If the path is a file or a non-empty directory
    """
    if not path.exists():
        return

    if not path.is_dir():
        raise ScaffoldPreconditionError(f"Scaffold target {path} exists and is not a directory")

    leftovers = sorted(p.name for p in path.iterdir())
    if leftovers:
        preview = ', '.join(leftovers[:5])
        raise ScaffoldPreconditionError(
            f"Scaffold target {path} is not empty ({preview}). "
            f"Remove it before bootstrapping; it is left behind by an interrupted run."
        )


def generate(runner: CommandRunner, skeleton: str, staging: Path):
    """Run the scaffold generator into the staging directory."""
    ensure_empty_target(staging)
    staging.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Generating {skeleton} into {staging}")
    runner.run(
        ['composer', 'create-project', '--no-interaction', skeleton, str(staging)],
        cwd=staging.parent
    )


def copy_tree(staging: Path, workdir: Path) -> List[str]:
    """
    Merge the generated tree into the working directory.

    Dotfiles are included. Entries with the same name are overwritten.

    Returns:
        Names of top-level entries copied
    """
    workdir.mkdir(parents=True, exist_ok=True)
    copied = []

    for entry in sorted(staging.iterdir()):
        destination = workdir / entry.name
        if entry.is_dir() and not entry.is_symlink():
            # Merge only into a real directory, never through a link
            if destination.is_symlink() or (destination.exists() and not destination.is_dir()):
                destination.unlink()
            shutil.copytree(entry, destination, symlinks=True, dirs_exist_ok=True)
        else:
            if destination.is_symlink() or destination.is_file():
                destination.unlink()
            elif destination.is_dir():
                shutil.rmtree(destination)
            shutil.copy2(entry, destination, follow_symlinks=False)
        copied.append(entry.name)

    logger.info(f"Copied {len(copied)} entries from {staging} to {workdir}")
    return copied


def remove_staging(staging: Path):
    """Remove the staging directory if present."""
    if staging.exists():
        shutil.rmtree(staging)
