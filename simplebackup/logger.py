"""Logging setup for simplebackup.

Every module logs through ``logging.getLogger(__name__)`` below the
``simplebackup`` logger. ``setup_logging`` attaches:
- the main log file (configured level)
- the error log file (ERROR and above)
- optionally the console

Log files rotate by size and rotated files are gzip-compressed.

Failures that the operator may need to act on are logged as one-line JSON
events carrying an ErrorCode and a hint, so ``read_recent_errors`` can pull
them back out of the log.
"""

from collections import deque
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional
import gzip
import json
import logging
import os
import shutil

from simplebackup.config import LoggingConfig


LOGGER_NAME = "simplebackup"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "ERROR": logging.ERROR,
}


class ErrorCode(Enum):
    """Codes attached to logged failures."""
    # Backup (1xxx)
    BACKUP_INVALID_SOURCE = "E1001"
    BACKUP_COLLISION = "E1002"
    BACKUP_PARTIAL_COPY = "E1003"
    BACKUP_NO_SELECTION = "E1004"
    BACKUP_INVALID_LABEL = "E1005"

    # Delete (2xxx)
    DELETE_TARGET_MISSING = "E2001"
    DELETE_PARTIAL = "E2002"

    # Configuration (4xxx)
    CONFIG_NOT_FOUND = "E4001"
    CONFIG_INVALID = "E4002"

    # Locking (5xxx)
    LOCK_HELD = "E5001"

    # Release feed and update (6xxx)
    RELEASE_FEED_UNAVAILABLE = "E6001"
    UPDATE_DOWNLOAD_FAILED = "E6002"
    UPDATE_WRITE_FAILED = "E6003"

    # Other (0xxx)
    UNKNOWN_ERROR = "E0001"
    INTERNAL_ERROR = "E0002"


HINTS: Dict[ErrorCode, str] = {
    ErrorCode.BACKUP_INVALID_SOURCE: "The selected folder is not a directory anymore. Refresh the folder list and try again.",
    ErrorCode.BACKUP_COLLISION: "A backup with this name already exists. Choose a different label or delete the old backup first.",
    ErrorCode.BACKUP_PARTIAL_COPY: "Some files could not be copied. Check file permissions and free disk space.",
    ErrorCode.BACKUP_NO_SELECTION: "No folders were selected. Pick at least one folder to back up.",
    ErrorCode.BACKUP_INVALID_LABEL: "The backup label is empty. Enter a short label such as a date or a description.",
    ErrorCode.DELETE_TARGET_MISSING: "The backup folder does not exist. It may already have been deleted.",
    ErrorCode.DELETE_PARTIAL: "Some files could not be removed. Check permissions on the backup folder.",
    ErrorCode.CONFIG_NOT_FOUND: "No configuration file found. Run `simplebackup init` to create one.",
    ErrorCode.CONFIG_INVALID: "The configuration file is invalid. Fix the reported key or run `simplebackup init --force`.",
    ErrorCode.LOCK_HELD: "Another backup into the same folder is already running. Wait for it to finish.",
    ErrorCode.RELEASE_FEED_UNAVAILABLE: "Could not reach the release feed. Check your network connection.",
    ErrorCode.UPDATE_DOWNLOAD_FAILED: "The update could not be downloaded. Try again later.",
    ErrorCode.UPDATE_WRITE_FAILED: "The update could not be written. Check permissions on the application file.",
    ErrorCode.UNKNOWN_ERROR: "Something unexpected went wrong. The log file has the details.",
    ErrorCode.INTERNAL_ERROR: "simplebackup hit an internal error. Please report it with the log file attached.",
}


class LoggingError(Exception):
    """Raised when logging setup fails."""
    pass


@dataclass
class LogEvent:
    """A logged failure or notice, serialized as one JSON object per line."""
    timestamp: str
    level: str
    message: str
    code: Optional[str] = None
    hint: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    @classmethod
    def new(
        cls,
        level: str,
        message: str,
        code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> "LogEvent":
        return cls(
            timestamp=datetime.now().isoformat(timespec="seconds"),
            level=level,
            message=message,
            code=code.value if code else None,
            hint=hint_for(code) if code else None,
            context=context or None,
        )

    def to_json(self) -> str:
        return json.dumps(
            {k: v for k, v in asdict(self).items() if v is not None},
            default=str,
        )

    @classmethod
    def from_json(cls, text: str) -> "LogEvent":
        """
        Raises:
            ValueError: If ``text`` is not a JSON object with the event fields
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("log event must be a JSON object")
        known = {f.name for f in fields(cls)}
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            raise ValueError(f"incomplete log event: {e}")


def hint_for(code: ErrorCode) -> str:
    return HINTS.get(code, HINTS[ErrorCode.UNKNOWN_ERROR])


def _gzip_name(default_name: str) -> str:
    return default_name + ".gz"


def _gzip_rotate(source: str, dest: str) -> None:
    """Compress ``source`` into ``dest``; keep it uncompressed if that fails."""
    if not os.path.exists(source):
        return
    try:
        with open(source, "rb") as plain, gzip.open(dest, "wb") as packed:
            shutil.copyfileobj(plain, packed)
        os.remove(source)
    except OSError:
        try:
            os.replace(source, dest[:-len(".gz")])
        except OSError:
            pass  # Never let rotation break logging


def rotating_handler(path: Path, level: int, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    """Size-rotated file handler whose rotated files are gzip-compressed."""
    path = path.expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    except OSError as e:
        raise LoggingError(f"Cannot open log file {path}: {e}")
    handler.namer = _gzip_name
    handler.rotator = _gzip_rotate
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(config: Optional[LoggingConfig] = None, console: bool = True) -> logging.Logger:
    """
    Configure the ``simplebackup`` logger from ``config``.

    Calling it again replaces the handlers from the previous call.

    Args:
        config: Logging settings; defaults to LoggingConfig()
        console: Also log to stderr. The MCP server turns this off.

    Raises:
        LoggingError: If the level is unknown or a log file cannot be opened
    """
    if config is None:
        config = LoggingConfig()

    level = LEVELS.get(config.level.upper())
    if level is None:
        raise LoggingError(
            f"Invalid log level '{config.level}'. Must be one of: {', '.join(LEVELS)}"
        )

    handlers: List[logging.Handler] = [
        rotating_handler(config.log_file, level, config.log_max_bytes, config.log_backup_count),
        rotating_handler(config.error_log_file, logging.ERROR, config.log_max_bytes, config.log_backup_count),
    ]
    if console:
        stream = logging.StreamHandler()
        stream.setLevel(level)
        stream.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handlers.append(stream)

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    # Handlers filter by level
    logger.setLevel(logging.DEBUG)
    for handler in handlers:
        logger.addHandler(handler)

    return logger


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    code: Optional[ErrorCode] = None,
    **context: Any,
) -> LogEvent:
    """Log ``message`` as a JSON LogEvent and return the event."""
    event = LogEvent.new(logging.getLevelName(level), message, code, context)
    logger.log(level, event.to_json())
    return event


def log_error(logger: logging.Logger, code: ErrorCode, message: str, **context: Any) -> LogEvent:
    return log_event(logger, logging.ERROR, message, code, **context)


def log_warning(logger: logging.Logger, code: ErrorCode, message: str, **context: Any) -> LogEvent:
    return log_event(logger, logging.WARNING, message, code, **context)


def parse_log_line(line: str) -> Optional[LogEvent]:
    """Return the LogEvent in a formatted log line, or None for plain lines."""
    start = line.find("{")
    if start == -1:
        return None
    try:
        return LogEvent.from_json(line[start:])
    except ValueError:
        return None


def read_recent_errors(log_file: Path, limit: int = 10) -> List[LogEvent]:
    """
    Return the last ``limit`` error events in ``log_file``, oldest first.

    A missing or unreadable file yields an empty list.
    """
    recent: deque = deque(maxlen=limit)
    try:
        with open(log_file, "r", encoding="utf-8") as f:
            for line in f:
                event = parse_log_line(line)
                if event is not None and event.level in ("ERROR", "CRITICAL"):
                    recent.append(event)
    except OSError:
        return []
    return list(recent)
