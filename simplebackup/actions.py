"""Backup and delete actions for simplebackup.

This module ties the components together the way the operator uses them:
- Select sibling folders and a label, create one backup per folder
- Select backups, delete them
- Check the installed version against the latest release, self-update

Every action returns an ActionOutcome carrying the messages for the operator
and the refreshed backup list; nothing is kept in shared state between
actions.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional
import logging

from simplebackup.config import Configuration
from simplebackup.listing import list_sibling_folders
from simplebackup.lock import LockError, LockManager
from simplebackup.logger import ErrorCode, log_error
from simplebackup.naming import (
    check_collision,
    derive_destination_name,
    is_safe_name,
    normalize_label,
)
from simplebackup.registry import BackupRecord, BackupRegistry
from simplebackup.release import ReleaseError, apply_update, get_latest_release, release_url
from simplebackup.snapshot import SnapshotEngine
from simplebackup.version import CURRENT_VERSION, VersionStatus, compare_versions, describe_version_status


logger = logging.getLogger(__name__)


@dataclass
class ActionMessage:
    """One line of feedback for the operator."""
    text: str
    is_error: bool = False


@dataclass
class ActionOutcome:
    """Result of a backup or delete action."""
    messages: List[ActionMessage] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    backups: List[BackupRecord] = field(default_factory=list)

    def add(self, text: str, is_error: bool = False) -> None:
        self.messages.append(ActionMessage(text=text, is_error=is_error))

    @property
    def has_errors(self) -> bool:
        return any(m.is_error for m in self.messages)

    @property
    def success(self) -> bool:
        return not self.has_errors

    @property
    def status(self) -> str:
        """'error' if any message is an error, 'success' if there are messages, else ''."""
        if self.has_errors:
            return "error"
        return "success" if self.messages else ""

    @property
    def text(self) -> str:
        return "\n".join(m.text for m in self.messages)


@dataclass
class VersionInfo:
    """Installed version compared with the latest release."""
    current: str
    latest: str
    status: VersionStatus
    message: str
    release_url: str


class BackupUtility:
    """
    Operator-facing backup actions rooted at ``config.app_directory``.

    Backups are folders directly under the app directory; sources are the
    folders next to it.
    """

    def __init__(self, config: Configuration, engine: Optional[SnapshotEngine] = None):
        self.config = config
        self.engine = engine or SnapshotEngine()
        self.registry = BackupRegistry(config.app_directory)

    @property
    def backup_root(self) -> Path:
        return self.config.app_directory

    def sibling_folders(self) -> List[str]:
        """Folders that can be selected as backup sources."""
        return list_sibling_folders(self.config.app_directory)

    def list_backups(self) -> List[BackupRecord]:
        """Existing backups, newest first."""
        return self.registry.list_backups()

    def _lock_for(self, destination: Path) -> LockManager:
        return LockManager.for_destination(
            destination,
            lock_directory=self.config.lock.lock_directory,
            timeout=self.config.lock.timeout_seconds,
        )

    def create_backups(self, selected: Iterable[str], label: str) -> ActionOutcome:
        """
        Back up each selected sibling folder as ``<folder>_<label>``.

        Folders whose backup name already exists are skipped with an error
        message; the others are still backed up.

        Args:
            selected: Sibling folder names
            label: Free-text label; must not be blank

        Returns:
            ActionOutcome with one message per folder
        """
        outcome = ActionOutcome()
        selected = list(selected)

        if not selected:
            outcome.add("No folders selected for backup.", is_error=True)
            log_error(logger, ErrorCode.BACKUP_NO_SELECTION, "No folders selected for backup")
            outcome.backups = self.list_backups()
            return outcome

        if not normalize_label(label):
            outcome.add("A backup label is required.", is_error=True)
            log_error(logger, ErrorCode.BACKUP_INVALID_LABEL, "Empty backup label")
            outcome.backups = self.list_backups()
            return outcome

        for folder in selected:
            self._create_one(folder, label, outcome)

        outcome.backups = self.list_backups()
        return outcome

    def _create_one(self, folder: str, label: str, outcome: ActionOutcome) -> None:
        folder_name = derive_destination_name(folder, label)

        if not is_safe_name(folder) or folder == self.backup_root.name:
            outcome.add(f"ERROR: '{folder_name}' is not a valid directory!", is_error=True)
            log_error(
                logger, ErrorCode.BACKUP_INVALID_SOURCE,
                f"Rejected backup source '{folder}'", folder=folder,
            )
            return

        # The label ends up in a path; it must not add path components
        if not is_safe_name(folder_name):
            outcome.add(
                f"ERROR: the label '{label}' cannot be used in a folder name.", is_error=True
            )
            log_error(
                logger, ErrorCode.BACKUP_INVALID_LABEL,
                f"Rejected backup label '{label}'", folder=folder, label=label,
            )
            return

        source = self.config.sources_root / folder
        destination = self.backup_root / folder_name

        if check_collision(destination):
            outcome.add(
                f"The folder '{folder_name}' already exists. Backup cannot be completed.",
                is_error=True,
            )
            log_error(
                logger, ErrorCode.BACKUP_COLLISION,
                f"Backup folder '{folder_name}' already exists", destination=str(destination),
            )
            return

        try:
            with self._lock_for(destination):
                result = self.engine.create_snapshot(source, destination)
        except LockError as e:
            outcome.add(f"A backup into '{folder_name}' is already running.", is_error=True)
            log_error(logger, ErrorCode.LOCK_HELD, str(e), destination=str(destination))
            return

        if result.success:
            outcome.add(
                f"The folder '{folder_name}' has been created with "
                f"{result.items_copied} files/folders."
            )
            outcome.created.append(folder_name)
            logger.info(
                f"Backed up {source} to {destination}: {result.items_copied} items "
                f"in {result.duration_seconds:.2f}s"
            )
        elif result.collision:
            outcome.add(
                f"The folder '{folder_name}' already exists. Backup cannot be completed.",
                is_error=True,
            )
            log_error(
                logger, ErrorCode.BACKUP_COLLISION,
                result.error_message or "Backup collision", destination=str(destination),
            )
        elif result.invalid_source:
            outcome.add(f"ERROR: '{folder_name}' is not a valid directory!", is_error=True)
            log_error(
                logger, ErrorCode.BACKUP_INVALID_SOURCE,
                result.error_message or "Invalid backup source", source=str(source),
            )
        else:
            outcome.add(f"ERROR: {result.error_message}", is_error=True)
            log_error(
                logger, ErrorCode.BACKUP_PARTIAL_COPY,
                result.error_message or "Backup failed", destination=str(destination),
            )

    def delete_backups(self, names: Iterable[str]) -> ActionOutcome:
        """
        Delete each named backup folder under the backup root.

        Args:
            names: Backup folder names

        Returns:
            ActionOutcome with one message per name
        """
        outcome = ActionOutcome()
        names = list(names)

        if not names:
            outcome.add("No folders selected for deletion.", is_error=True)
            outcome.backups = self.list_backups()
            return outcome

        for name in names:
            if is_safe_name(name) and self.engine.delete(self.backup_root / name):
                outcome.add(f"Folder '{name}' has been deleted.")
                outcome.deleted.append(name)
                logger.info(f"Deleted backup {name}")
            else:
                outcome.add(f"Failed to delete folder '{name}'.", is_error=True)
                missing = not is_safe_name(name) or not (self.backup_root / name).exists()
                log_error(
                    logger,
                    ErrorCode.DELETE_TARGET_MISSING if missing else ErrorCode.DELETE_PARTIAL,
                    f"Failed to delete backup '{name}'",
                    name=name,
                )

        outcome.backups = self.list_backups()
        return outcome

    def cleanup_incomplete(self) -> int:
        """
        Remove staging folders left behind by interrupted backups.

        A staging folder whose backup lock is currently held belongs to a
        running backup and is left alone.

        Returns:
            Count of folders removed
        """
        removed = 0
        for staging in self.engine.find_incomplete(self.backup_root):
            lock = LockManager.for_destination(
                self.engine.final_path(staging),
                lock_directory=self.config.lock.lock_directory,
                timeout=0,
            )
            try:
                with lock:
                    if self.engine.delete(staging):
                        removed += 1
                        logger.info(f"Removed incomplete backup: {staging.name}")
            except LockError:
                logger.debug(f"Backup still running, keeping {staging.name}")
        return removed

    def version_info(self, latest: Optional[str] = None) -> VersionInfo:
        """
        Compare the installed version with the latest release.

        Args:
            latest: Latest release tag; fetched from the release feed if None
        """
        updates = self.config.updates
        if latest is None:
            latest = get_latest_release(
                updates.api_url, updates.repository, timeout=updates.timeout_seconds
            )
        return VersionInfo(
            current=CURRENT_VERSION,
            latest=latest,
            status=compare_versions(CURRENT_VERSION, latest),
            message=describe_version_status(CURRENT_VERSION, latest),
            release_url=release_url(updates.release_page_url, latest),
        )

    def update(self) -> Optional[str]:
        """
        Replace the configured update target with the newest release.

        Returns:
            Installed release tag, if reported

        Raises:
            ReleaseError: If updating is disabled or fails
        """
        updates = self.config.updates
        if updates.update_target is None:
            raise ReleaseError("Self-update is disabled: no update_target configured")
        return apply_update(
            updates.api_url,
            updates.repository,
            updates.update_target,
            timeout=updates.timeout_seconds,
        )
