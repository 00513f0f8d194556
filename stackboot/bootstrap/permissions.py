"""
Ownership and mode normalisation for the provisioned tree.
"""
import grp
import logging
import os
import pwd
from pathlib import Path
from typing import Tuple

logger = logging.getLogger(__name__)


def resolve_ids(user: str, group: str) -> Tuple[int, int]:
    """
    Resolve user and group names to numeric ids.

    Numeric strings are accepted as-is.

    Raises:
        KeyError: If the user or group does not exist
    """
    uid = int(user) if user.isdigit() else pwd.getpwnam(user).pw_uid
    gid = int(group) if group.isdigit() else grp.getgrnam(group).gr_gid
    return uid, gid


def normalize_tree(root: Path, user: str, group: str, mode: int = 0o755) -> int:
    """
    Recursively chown and chmod root and everything under it.

    Symlinks are re-owned but never followed or chmodded.

    Returns:
        Number of paths updated
    """
    uid, gid = resolve_ids(user, group)
    count = 0

    def apply(path: str):
        os.chown(path, uid, gid, follow_symlinks=False)
        if not os.path.islink(path):
            os.chmod(path, mode)

    apply(str(root))
    count += 1

    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            apply(os.path.join(dirpath, name))
            count += 1

    logger.info(f"Set owner {user}:{group} and mode {oct(mode)} on {count} paths under {root}")
    return count
