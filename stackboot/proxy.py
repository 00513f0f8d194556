"""
Reverse-proxy routing for the nginx front.

The rule is static:
- *.php requests go to php-fpm on the fixed FastCGI port
- other requests are served from the document root when the file exists
- everything else falls through to the front controller (/index.php)

route_request() models the rule so it can be checked without nginx;
render_nginx() produces the matching server block.
"""
import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from stackboot.config import StackConfig

FRONT_CONTROLLER = "/index.php"
PHP_SERVICE = "php"

_PHP_SCRIPT = re.compile(r'^(.+\.php)(/.*)?$')


class RouteKind(str, Enum):
    """Where a request ends up."""
    FRONT_CONTROLLER = "front_controller"
    PHP_BACKEND = "php_backend"
    STATIC = "static"


@dataclass
class RouteDecision:
    """Result of routing one request path."""
    kind: RouteKind
    target: str                      # script name, or file path for static
    upstream: Optional[str] = None   # host:port of php-fpm when used
    path_info: str = ""

    @property
    def uses_backend(self) -> bool:
        return self.upstream is not None


def normalize_uri(uri: str) -> str:
    """Drop query string and fragment, collapse dot segments."""
    path = uri.split('?', 1)[0].split('#', 1)[0] or '/'
    if not path.startswith('/'):
        path = '/' + path

    normalized = posixpath.normpath(path)
    # normpath keeps a leading '//' and drops a trailing slash
    normalized = '/' + normalized.lstrip('/')
    if path.endswith('/') and normalized != '/':
        normalized += '/'
    return normalized


def route_request(uri: str, document_root: Path, upstream: str = f"{PHP_SERVICE}:9000") -> RouteDecision:
    """
    Route a request URI the way the nginx server block does.

    Args:
        uri: Request URI (may include a query string)
        document_root: Directory static files are served from
        upstream: php-fpm address

    Returns:
        RouteDecision
    """
    path = normalize_uri(uri)

    match = _PHP_SCRIPT.match(path)
    if match:
        return RouteDecision(
            kind=RouteKind.PHP_BACKEND,
            target=match.group(1),
            upstream=upstream,
            path_info=match.group(2) or "",
        )

    # try_files $uri: only regular files, never directories
    if not path.endswith('/'):
        candidate = Path(document_root) / path.lstrip('/')
        if candidate.is_file():
            return RouteDecision(kind=RouteKind.STATIC, target=str(candidate))

    return RouteDecision(kind=RouteKind.FRONT_CONTROLLER, target=FRONT_CONTROLLER, upstream=upstream)


def render_nginx(config: StackConfig, server_name: str = "localhost") -> str:
    """Render the nginx site config for the stack."""
    return f"""server {{
    listen 80;
    server_name {server_name};
    root {config.document_root};

    location / {{
        try_files $uri {FRONT_CONTROLLER}$is_args$args;
    }}

    location ~ \\.php(/|$) {{
        fastcgi_pass {PHP_SERVICE}:{config.fpm_port};
        fastcgi_split_path_info ^(.+\\.php)(/.*)$;
        include fastcgi_params;
        fastcgi_param SCRIPT_FILENAME $realpath_root$fastcgi_script_name;
        fastcgi_param DOCUMENT_ROOT $realpath_root;
    }}

    error_log /var/log/nginx/{config.project_name}_error.log;
    access_log /var/log/nginx/{config.project_name}_access.log;
}}
"""


def route_for_config(uri: str, config: StackConfig) -> RouteDecision:
    """route_request() with the document root and upstream of a config."""
    return route_request(uri, config.document_root, upstream=f"{PHP_SERVICE}:{config.fpm_port}")
