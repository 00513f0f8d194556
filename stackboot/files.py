"""
Rendering stack files onto disk.

Files are rewritten only when their content changes. A rewrite goes through
a temp file in the same directory and keeps the existing file's mode, so a
hand-made chmod on a rendered file survives the next render.
"""
import os
import stat
import tempfile
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from stackboot.config import StackConfig
from stackboot import proxy, topology

NEW_FILE_MODE = 0o644


class WriteStatus(str, Enum):
    """Outcome of rendering one file."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def render_all(config: StackConfig) -> Dict[str, str]:
    """Render every stack file, keyed by its path relative to the project root."""
    return {
        'docker-compose.yml': topology.render_compose(config),
        topology.PHP_DOCKERFILE: topology.render_dockerfile(config, role="web"),
        topology.NODE_DOCKERFILE: topology.render_dockerfile(config, role="assets"),
        topology.NGINX_SITE: proxy.render_nginx(config),
    }


def _replace(path: Path, data: bytes, mode: int):
    temp_fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".stackboot"
    )

    try:
        with os.fdopen(temp_fd, 'wb') as f:
            f.write(data)
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def write_rendered(files: Dict[str, str], root: Path) -> Dict[str, WriteStatus]:
    """
    Write rendered files under root.

    Args:
        files: Dict mapping paths relative to root to contents
        root: Project directory

    Returns:
        Dict mapping each path to what happened to it
    """
    results = {}

    for name, content in files.items():
        path = root / name
        if not content.endswith('\n'):
            content += '\n'
        data = content.encode('utf-8')

        current: Optional[os.stat_result]
        try:
            current = path.stat()
        except FileNotFoundError:
            current = None

        if current is not None and stat.S_ISREG(current.st_mode) and path.read_bytes() == data:
            results[name] = WriteStatus.UNCHANGED
            continue

        path.parent.mkdir(parents=True, exist_ok=True)
        mode = stat.S_IMODE(current.st_mode) if current is not None else NEW_FILE_MODE
        _replace(path, data, mode)
        results[name] = WriteStatus.UPDATED if current is not None else WriteStatus.CREATED

    return results
