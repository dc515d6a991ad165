"""simplebackup - Labelled copies of sibling project folders."""

__version__ = "1.2.1"

from simplebackup.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
    format_config,
    create_default_config,
    default_configuration,
)
from simplebackup.lock import LockManager, LockError
from simplebackup.listing import (
    DirectoryEntry,
    list_directories,
    list_sibling_folders,
)
from simplebackup.naming import (
    NamedSnapshot,
    normalize_label,
    derive_destination_name,
    check_collision,
    split_display_name,
    is_safe_name,
)
from simplebackup.snapshot import (
    SnapshotEngine,
    SnapshotResult,
)
from simplebackup.registry import (
    BackupRecord,
    BackupRegistry,
    list_backups,
)
from simplebackup.version import (
    CURRENT_VERSION,
    VersionStatus,
    compare_versions,
    describe_version_status,
)
from simplebackup.logger import (
    LoggingError,
    setup_logging,
    log_error,
    read_recent_errors,
)
from simplebackup.release import (
    ReleaseError,
    get_latest_release,
    apply_update,
)
from simplebackup.actions import (
    ActionMessage,
    ActionOutcome,
    BackupUtility,
    VersionInfo,
)

__all__ = [
    "Configuration",
    "ConfigurationError",
    "ValidationError",
    "parse_config",
    "format_config",
    "create_default_config",
    "default_configuration",
    "LockManager",
    "LockError",
    "DirectoryEntry",
    "list_directories",
    "list_sibling_folders",
    "NamedSnapshot",
    "normalize_label",
    "derive_destination_name",
    "check_collision",
    "split_display_name",
    "is_safe_name",
    "SnapshotEngine",
    "SnapshotResult",
    "BackupRecord",
    "BackupRegistry",
    "list_backups",
    "CURRENT_VERSION",
    "VersionStatus",
    "compare_versions",
    "describe_version_status",
    "LoggingError",
    "setup_logging",
    "log_error",
    "read_recent_errors",
    "ReleaseError",
    "get_latest_release",
    "apply_update",
    "ActionMessage",
    "ActionOutcome",
    "BackupUtility",
    "VersionInfo",
]
