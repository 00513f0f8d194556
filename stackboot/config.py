"""
Configuration for the stackboot bootstrapper.

Loads configuration from environment variables, optionally overlaid by a
YAML profile file.
"""
import os
import yaml
from pathlib import Path
from typing import Optional, Dict, List
from dataclasses import dataclass, field, fields

from stackboot.errors import ConfigError


def _split_list(value: str) -> List[str]:
    """Split a comma separated env value, dropping empty items."""
    return [item.strip() for item in value.split(',') if item.strip()]


def _raw_scalar(text: str, key: str, default):
    """Return the unparsed text of a top-level scalar value in a YAML mapping."""
    root = yaml.compose(text, Loader=yaml.SafeLoader)
    for key_node, value_node in root.value:
        if key_node.value == key and isinstance(value_node, yaml.ScalarNode):
            return value_node.value
    return default


_INT_FIELDS = ('http_port', 'fpm_port', 'db_port')
_FLOAT_FIELDS = ('lock_timeout', 'lock_poll_interval', 'lock_stale_after')
_OPTIONAL_FIELDS = ('lock_timeout', 'lock_stale_after')
_LIST_FIELDS = ('extras', 'frontend_extras', 'web_command', 'assets_command')


def parse_mode(value) -> int:
    """
    Parse a permission mode written as octal digits.

    Accepts '0755', '755' or the YAML integer 755 (read as the digits 7-5-5).

    Raises:
        ValueError: If the value is not octal or exceeds 0o7777
    """
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"mode must be octal digits, got {value!r}")
    text = str(value).strip()
    if text.lower().startswith('0o'):
        text = text[2:]
    mode = int(text, 8)
    if mode < 0 or mode > 0o7777:
        raise ValueError(f"mode {value!r} is outside 0000-7777")
    return mode


@dataclass
class StackConfig:
    """Bootstrap and topology settings for one project stack."""
    project_name: str = "symfony-vue"
    workdir: Path = Path("/var/www/project")
    marker: str = "composer.json"
    staging_dir: Path = Path("/tmp/stackboot-scaffold")
    lock_name: str = ".stackboot.lock"
    lock_timeout: Optional[float] = None
    lock_poll_interval: float = 1.0
    lock_stale_after: Optional[float] = 3600.0

    # Scaffold and dependency installation
    skeleton: str = "symfony/website-skeleton"
    extras: List[str] = field(default_factory=lambda: ["symfony/webpack-encore-bundle"])
    frontend_extras: List[str] = field(
        default_factory=lambda: ["vue", "vue-loader", "vue-template-compiler"]
    )

    # Ownership and permissions applied after scaffolding
    runtime_user: str = "www-data"
    runtime_group: str = "www-data"
    mode: int = 0o755

    # Foreground processes
    web_command: List[str] = field(default_factory=lambda: ["php-fpm"])
    assets_command: List[str] = field(default_factory=lambda: ["npm", "run", "watch"])

    # Network surface
    http_port: int = 8080
    fpm_port: int = 9000
    db_port: int = 3306
    db_user: str = "symfony"
    db_password: str = "symfony"
    db_name: str = "symfony"
    db_image: str = "mysql:8.0"
    php_image: str = "php:8.2-fpm"
    node_image: str = "node:18-alpine"
    nginx_image: str = "nginx:stable-alpine"

    # Where the images install stackboot from: a path in the build context
    # or a pip VCS/archive URL
    install_source: str = "docker/stackboot"

    log_level: str = "INFO"

    @property
    def marker_path(self) -> Path:
        """Full path to the marker file inside the working directory."""
        return self.workdir / self.marker

    @property
    def lock_path(self) -> Path:
        """Full path to the bootstrap lock file."""
        return self.workdir / self.lock_name

    @property
    def document_root(self) -> Path:
        """Directory the reverse proxy serves static files from."""
        return self.workdir / "public"

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'StackConfig':
        """
        Load configuration from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            StackConfig instance

        Raises:
            ConfigError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        config = cls()

        try:
            if env.get("STACKBOOT_PROJECT_NAME"):
                config.project_name = env["STACKBOOT_PROJECT_NAME"]
            if env.get("STACKBOOT_WORKDIR"):
                config.workdir = Path(env["STACKBOOT_WORKDIR"])
            if env.get("STACKBOOT_MARKER"):
                config.marker = env["STACKBOOT_MARKER"]
            if env.get("STACKBOOT_STAGING_DIR"):
                config.staging_dir = Path(env["STACKBOOT_STAGING_DIR"])
            if env.get("STACKBOOT_LOCK_TIMEOUT"):
                config.lock_timeout = float(env["STACKBOOT_LOCK_TIMEOUT"])
            if env.get("STACKBOOT_LOCK_STALE_AFTER"):
                config.lock_stale_after = float(env["STACKBOOT_LOCK_STALE_AFTER"])
            if env.get("STACKBOOT_SKELETON"):
                config.skeleton = env["STACKBOOT_SKELETON"]
            if "STACKBOOT_EXTRAS" in env:
                config.extras = _split_list(env["STACKBOOT_EXTRAS"])
            if "STACKBOOT_FRONTEND_EXTRAS" in env:
                config.frontend_extras = _split_list(env["STACKBOOT_FRONTEND_EXTRAS"])
            if env.get("STACKBOOT_RUNTIME_USER"):
                config.runtime_user = env["STACKBOOT_RUNTIME_USER"]
            if env.get("STACKBOOT_RUNTIME_GROUP"):
                config.runtime_group = env["STACKBOOT_RUNTIME_GROUP"]
            if env.get("STACKBOOT_MODE"):
                config.mode = parse_mode(env["STACKBOOT_MODE"])
            if env.get("STACKBOOT_HTTP_PORT"):
                config.http_port = int(env["STACKBOOT_HTTP_PORT"])
            if env.get("STACKBOOT_FPM_PORT"):
                config.fpm_port = int(env["STACKBOOT_FPM_PORT"])
            if env.get("STACKBOOT_DB_PORT"):
                config.db_port = int(env["STACKBOOT_DB_PORT"])
        except ValueError as e:
            raise ConfigError(f"Invalid stackboot environment setting: {e}") from e

        # Database credentials come from the same variables the compose file passes through
        config.db_user = env.get("STACKBOOT_DB_USER", config.db_user)
        config.db_password = env.get("STACKBOOT_DB_PASSWORD", config.db_password)
        config.db_name = env.get("STACKBOOT_DB_NAME", config.db_name)
        config.install_source = env.get("STACKBOOT_INSTALL_SOURCE", config.install_source)
        config.log_level = env.get("STACKBOOT_LOG_LEVEL", config.log_level).upper()

        return config

    def apply_profile(self, yaml_path: Path) -> 'StackConfig':
        """
        Overlay settings from a YAML profile file.

        The profile is a mapping whose keys are StackConfig field names.
        Unknown keys are rejected so typos do not go unnoticed.

        Args:
            yaml_path: Path to profile YAML file

        Returns:
            self, for chaining

        Raises:
            ConfigError: If the file is missing, not a mapping, has unknown keys
                or holds a value of the wrong type
        """
        if not yaml_path.exists():
            raise ConfigError(f"Profile not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            text = f.read()
        data = yaml.safe_load(text) or {}

        if not isinstance(data, dict):
            raise ConfigError(f"Invalid profile in {yaml_path}: must be a YAML mapping")

        known = {f.name for f in fields(self)}
        unknown = sorted(key for key in data if key not in known)
        if unknown:
            raise ConfigError(f"Unknown settings in {yaml_path}: {', '.join(unknown)}")

        if 'mode' in data:
            # YAML reads 0755 as 493 and 755 as decimal; keep the written digits
            data['mode'] = _raw_scalar(text, 'mode', data['mode'])

        for key, value in data.items():
            setattr(self, key, self._coerce(key, value, yaml_path))

        return self

    @staticmethod
    def _coerce(key: str, value, source: Path):
        """Convert one profile value to the field's type."""
        if value is None and key in _OPTIONAL_FIELDS:
            return None

        try:
            if key in ('workdir', 'staging_dir'):
                return Path(value).expanduser()
            if key == 'mode':
                return parse_mode(value)
            if key in _INT_FIELDS:
                if isinstance(value, (bool, float)):
                    raise ValueError(f"expected an integer, got {value!r}")
                return int(value)
            if key in _FLOAT_FIELDS:
                if isinstance(value, bool):
                    raise ValueError(f"expected a number, got {value!r}")
                return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid setting '{key}' in {source}: {e}") from e

        if key in _LIST_FIELDS:
            if isinstance(value, str):
                value = value.split()
            if not isinstance(value, list):
                raise ConfigError(f"Setting '{key}' in {source} must be a list")
            return [str(item) for item in value]

        if value is None or isinstance(value, (dict, list)):
            raise ConfigError(f"Setting '{key}' in {source} must be a string")
        return str(value)


def load_config(profile: Optional[Path] = None) -> StackConfig:
    """Get configuration from the environment, overlaid by an optional profile."""
    config = StackConfig.from_env()
    if profile is not None:
        config.apply_profile(profile)
    return config
