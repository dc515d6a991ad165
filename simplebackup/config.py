"""Configuration management for simplebackup.

Settings live in a TOML file with a [main] table and optional
[updates], [lock] and [logging] tables. Every optional key has a default.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import os
import tomllib


class ConfigurationError(Exception):
    """Raised when configuration file is missing or malformed."""
    pass


class ValidationError(Exception):
    """Raised when configuration values have invalid types."""
    pass


DEFAULT_API_URL = "https://api.github.com/repos/dynamiccookies/Simple-Backup-Utility/releases"
DEFAULT_REPOSITORY = "dynamiccookies/Simple-Backup-Utility"
DEFAULT_RELEASE_PAGE_URL = "https://github.com/dynamiccookies/Simple-Backup-Utility/releases/tag/"


@dataclass
class UpdateConfig:
    """Configuration for the release feed and self-update."""
    api_url: str = DEFAULT_API_URL
    repository: str = DEFAULT_REPOSITORY
    release_page_url: str = DEFAULT_RELEASE_PAGE_URL
    timeout_seconds: int = 10
    # File overwritten by `simplebackup update`; None disables updating
    update_target: Optional[Path] = None


@dataclass
class LockConfig:
    """Configuration for per-destination backup locks."""
    lock_directory: Path = field(
        default_factory=lambda: Path.home() / ".cache/simplebackup/locks"
    )
    timeout_seconds: int = 5


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"  # "DEBUG", "INFO", "ERROR"
    log_file: Path = field(
        default_factory=lambda: Path.home() / ".local/log/simplebackup.log"
    )
    error_log_file: Path = field(
        default_factory=lambda: Path.home() / ".local/log/simplebackup.err"
    )
    log_max_size_mb: int = 10
    log_backup_count: int = 5

    @property
    def log_max_bytes(self) -> int:
        """Return max size in bytes for use with RotatingFileHandler."""
        return self.log_max_size_mb * 1024 * 1024


@dataclass
class Configuration:
    """Main configuration for simplebackup.

    Backups are stored directly under ``app_directory``; the folders that
    can be backed up are the other directories next to it.
    ``app_directory`` is made absolute relative to the current directory.
    """
    app_directory: Path
    updates: UpdateConfig = field(default_factory=UpdateConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        # A relative app_directory such as "." has no usable parent or name
        self.app_directory = Path(os.path.abspath(Path(self.app_directory).expanduser()))

    @property
    def sources_root(self) -> Path:
        """Directory whose subdirectories are the backup candidates."""
        return self.app_directory.parent


# Default config file path
DEFAULT_CONFIG_PATH = Path.home() / ".config/simplebackup/config.toml"

# Required keys in configuration
REQUIRED_KEYS = ["app_directory"]


def default_configuration(app_directory: Optional[Path] = None) -> Configuration:
    """Build a configuration rooted at ``app_directory`` (default: cwd)."""
    if app_directory is None:
        app_directory = Path.cwd()
    return Configuration(app_directory=Path(app_directory).resolve())


def _check(value: Any, expected_type: type, key: str) -> Any:
    """Return ``value`` if it is an ``expected_type``, else raise ValidationError."""
    # TOML booleans are ints to isinstance; reject them for numeric keys
    wrong = isinstance(value, bool) and expected_type is int
    if wrong or not isinstance(value, expected_type):
        raise ValidationError(
            f"Key '{key}' has invalid type: expected {expected_type.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


def _table(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    return _check(data.get(name, {}), dict, name)


def _path(value: str) -> Path:
    return Path(value).expanduser()


class _Section:
    """Typed lookups inside one TOML table, with dotted key names in errors."""

    def __init__(self, data: Dict[str, Any], name: str):
        self.name = name
        self.values = _table(data, name)

    def get(self, key: str, default: Any, expected_type: type = str) -> Any:
        return _check(self.values.get(key, default), expected_type, f"{self.name}.{key}")

    def path(self, key: str, default: Path) -> Path:
        return _path(self.get(key, str(default)))

    def optional_path(self, key: str) -> Optional[Path]:
        if key not in self.values:
            return None
        return _path(self.get(key, None))


def parse_config_string(toml_content: str) -> Configuration:
    """
    Build a Configuration from TOML text.

    Raises:
        ConfigurationError: If the text is not TOML or app_directory is missing
        ValidationError: If a value has the wrong type
    """
    try:
        data = tomllib.loads(toml_content)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML format: {e}")

    # [main] is optional; app_directory may sit at the top level
    main = data.get("main", data)
    missing = [key for key in REQUIRED_KEYS if key not in main]
    if missing:
        raise ConfigurationError(f"Missing required configuration key: '{missing[0]}'")

    defaults = LoggingConfig()
    updates = _Section(data, "updates")
    lock = _Section(data, "lock")
    logs = _Section(data, "logging")

    return Configuration(
        app_directory=_path(_check(main["app_directory"], str, "app_directory")),
        updates=UpdateConfig(
            api_url=updates.get("api_url", DEFAULT_API_URL),
            repository=updates.get("repository", DEFAULT_REPOSITORY),
            release_page_url=updates.get("release_page_url", DEFAULT_RELEASE_PAGE_URL),
            timeout_seconds=updates.get("timeout_seconds", 10, int),
            update_target=updates.optional_path("update_target"),
        ),
        lock=LockConfig(
            lock_directory=lock.path("lock_directory", LockConfig().lock_directory),
            timeout_seconds=lock.get("timeout_seconds", 5, int),
        ),
        logging=LoggingConfig(
            level=logs.get("level", defaults.level),
            log_file=logs.path("log_file", defaults.log_file),
            error_log_file=logs.path("error_log_file", defaults.error_log_file),
            log_max_size_mb=logs.get("log_max_size_mb", defaults.log_max_size_mb, int),
            log_backup_count=logs.get("log_backup_count", defaults.log_backup_count, int),
        ),
    )


def parse_config(config_path: Optional[Path] = None) -> Configuration:
    """
    Read and parse a TOML configuration file.

    Args:
        config_path: Config file; DEFAULT_CONFIG_PATH when None

    Raises:
        ConfigurationError: If the file is missing, unreadable or incomplete
        ValidationError: If a value has the wrong type
    """
    path = DEFAULT_CONFIG_PATH if config_path is None else config_path
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        content = path.read_text()
    except PermissionError:
        raise ConfigurationError(f"Permission denied reading configuration file: {path}")
    except OSError as e:
        raise ConfigurationError(f"Error reading configuration file {path}: {e}")
    return parse_config_string(content)


def _escape_toml_string(s: str) -> str:
    """Escape a string for TOML basic string format."""
    # Backslashes first, then quotes
    return s.replace("\\", "\\\\").replace('"', '\\"')


def _toml_value(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return f'"{_escape_toml_string(str(value))}"'


def _emit(name: str, items: List[Tuple[str, Any]]) -> List[str]:
    body = [f"{key} = {_toml_value(value)}" for key, value in items if value is not None]
    return [f"[{name}]", *body]


def format_config(config: Configuration) -> str:
    """Render ``config`` as TOML that parse_config_string reads back unchanged."""
    updates, lock, logs = config.updates, config.lock, config.logging
    sections = [
        _emit("main", [("app_directory", config.app_directory)]),
        _emit("updates", [
            ("api_url", updates.api_url),
            ("repository", updates.repository),
            ("release_page_url", updates.release_page_url),
            ("timeout_seconds", updates.timeout_seconds),
            ("update_target", updates.update_target),
        ]),
        _emit("lock", [
            ("lock_directory", lock.lock_directory),
            ("timeout_seconds", lock.timeout_seconds),
        ]),
        _emit("logging", [
            ("level", logs.level),
            ("log_file", logs.log_file),
            ("error_log_file", logs.error_log_file),
            ("log_max_size_mb", logs.log_max_size_mb),
            ("log_backup_count", logs.log_backup_count),
        ]),
    ]
    return "\n\n".join("\n".join(section) for section in sections) + "\n"


def create_default_config(app_directory: Optional[Path] = None) -> str:
    """
    Generate default configuration TOML for `simplebackup init`.

    Args:
        app_directory: Directory that will hold the backups (default: cwd)

    Returns:
        TOML formatted string with default configuration
    """
    if app_directory is None:
        app_directory = Path.cwd()

    return f'''# simplebackup configuration file

[main]
# Directory that holds the backups. Every other folder next to it
# can be selected as a backup source.
app_directory = "{_escape_toml_string(str(app_directory))}"

[updates]
# Release feed used for version checks and self-update
api_url = "{DEFAULT_API_URL}"
repository = "{DEFAULT_REPOSITORY}"
release_page_url = "{DEFAULT_RELEASE_PAGE_URL}"
timeout_seconds = 10
# File replaced by `simplebackup update` (leave unset to disable)
# update_target = "/path/to/simplebackup.pyz"

[lock]
# Advisory locks that serialize backups into the same folder name
lock_directory = "~/.cache/simplebackup/locks"
timeout_seconds = 5

[logging]
# Log level: DEBUG, INFO, ERROR
level = "INFO"
log_file = "~/.local/log/simplebackup.log"
error_log_file = "~/.local/log/simplebackup.err"
log_max_size_mb = 10
log_backup_count = 5
'''
