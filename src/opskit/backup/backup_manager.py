"""
Backup Manager for compressed directory snapshots.

Archives are named ``backup_<source>_<YYYYmmdd_HHMMSS>.tar.gz``. After each
new backup the destination is rotated so that only the ``max_backups`` most
recent archives (by modification time) remain.
"""

import logging
import os
import stat
import tarfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from opskit.core.exceptions import PreconditionError, ToolError
from opskit.core.utils import file_timestamp, human_size, path_size

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup"
INCREMENTAL_PREFIX = "incremental"
ARCHIVE_SUFFIX = ".tar.gz"
REFERENCE_FILE = ".last_backup"


class BackupInfo(BaseModel):
    """An archive found in a backup directory."""
    path: Path
    size: int
    modified: datetime

    @property
    def name(self) -> str:
        return self.path.name


class BackupManager:
    """
    Create, verify, restore and rotate tar.gz backups.

    ``audit`` is the tool's audit logger; intermediate steps are written to
    it the same way the CLI prints them.
    """

    def __init__(self, backup_dir: Path, max_backups: int = 5, audit: Optional[logging.Logger] = None):
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups
        self.audit = audit or logger

    def _dest(self, dest_dir: Optional[Path]) -> Path:
        return Path(dest_dir) if dest_dir else self.backup_dir

    @staticmethod
    def archive_name(prefix: str, source: Path, timestamp: Optional[str] = None) -> str:
        return f"{prefix}_{Path(source).name}_{timestamp or file_timestamp()}{ARCHIVE_SUFFIX}"

    @staticmethod
    def verify(archive: Path) -> bool:
        """True when every member of the archive can be listed."""
        try:
            with tarfile.open(archive, "r:gz") as tar:
                tar.getmembers()
            return True
        except (tarfile.TarError, OSError, EOFError):
            return False

    def create_backup(self, source_dir: Path, dest_dir: Optional[Path] = None) -> Path:
        """
        Archive ``source_dir`` into the destination directory.

        Returns:
            Path of the new archive.
        """
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise PreconditionError(f"Source directory '{source_dir}' does not exist")

        dest = self._dest(dest_dir)
        dest.mkdir(parents=True, exist_ok=True)
        archive = dest / self.archive_name(BACKUP_PREFIX, source_dir.resolve())

        self.audit.info(f"Starting backup of '{source_dir}'")
        self.audit.info(f"Backup file: {archive}")
        self.audit.info(f"Source size: {human_size(path_size(source_dir))}")

        resolved = source_dir.resolve()
        try:
            with tarfile.open(archive, "w:gz") as tar:
                tar.add(resolved, arcname=resolved.name)
        except (tarfile.TarError, OSError) as e:
            archive.unlink(missing_ok=True)
            raise ToolError(f"Backup failed: {e}")

        self.audit.info(f"Backup size: {human_size(archive.stat().st_size)}")
        if self.verify(archive):
            self.audit.info("Backup integrity verified")
        else:
            self.audit.warning("Backup integrity check failed")
        return archive

    def restore_backup(self, archive: Path, restore_dir: Path) -> Path:
        archive = Path(archive)
        restore_dir = Path(restore_dir)
        if not archive.is_file():
            raise PreconditionError(f"Backup file '{archive}' does not exist")

        restore_dir.mkdir(parents=True, exist_ok=True)
        self.audit.info(f"Starting restore from '{archive}'")
        self.audit.info(f"Restore location: {restore_dir}")

        if not self.verify(archive):
            raise ToolError("Backup file is corrupted")

        try:
            with tarfile.open(archive, "r:gz") as tar:
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(restore_dir, filter="data")
                else:
                    tar.extractall(restore_dir)
        except (tarfile.TarError, OSError) as e:
            raise ToolError(f"Restore failed: {e}")
        return restore_dir

    def list_backups(self, backup_dir: Optional[Path] = None, prefix: str = BACKUP_PREFIX) -> List[BackupInfo]:
        """Archives in the directory, oldest first (modification time, then name)."""
        directory = self._dest(backup_dir)
        if not directory.is_dir():
            raise PreconditionError(f"No backup directory found at: {directory}")
        infos = []
        for path in directory.glob(f"{prefix}_*{ARCHIVE_SUFFIX}"):
            if not path.is_file():
                continue
            stat = path.stat()
            infos.append(
                BackupInfo(path=path, size=stat.st_size, modified=datetime.fromtimestamp(stat.st_mtime))
            )
        infos.sort(key=lambda info: (info.modified, info.name))
        return infos

    def rotate(self, backup_dir: Optional[Path] = None) -> List[Path]:
        """
        Delete the oldest archives until at most ``max_backups`` remain.

        Returns:
            The deleted paths, oldest first.
        """
        directory = self._dest(backup_dir)
        if not directory.is_dir():
            self.audit.info("No backup directory to cleanup")
            return []

        self.audit.info(f"Cleaning up old backups (keeping {self.max_backups} most recent)")
        backups = self.list_backups(directory)
        if len(backups) <= self.max_backups:
            self.audit.info(f"No cleanup needed ({len(backups)} backups, limit: {self.max_backups})")
            return []

        removed = []
        for info in backups[: len(backups) - self.max_backups]:
            self.audit.info(f"Removing old backup: {info.name}")
            info.path.unlink()
            removed.append(info.path)
        return removed

    def incremental_backup(self, source_dir: Path, dest_dir: Optional[Path] = None) -> Path:
        """
        Archive only files changed since the last run.

        The first run (no reference file yet) makes a full backup instead.
        """
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise PreconditionError(f"Source directory '{source_dir}' does not exist")

        dest = self._dest(dest_dir)
        dest.mkdir(parents=True, exist_ok=True)
        reference = dest / REFERENCE_FILE

        self.audit.info("Creating incremental backup")
        if reference.exists():
            since = reference.stat().st_mtime
            resolved = source_dir.resolve()
            archive = dest / self.archive_name(INCREMENTAL_PREFIX, resolved)
            changed = 0
            try:
                with tarfile.open(archive, "w:gz") as tar:
                    for root, _dirs, files in os.walk(resolved):
                        for name in sorted(files):
                            path = Path(root) / name
                            info = path.lstat()
                            if stat.S_ISREG(info.st_mode) and info.st_mtime > since:
                                tar.add(path, arcname=str(path.relative_to(resolved.parent)))
                                changed += 1
            except (tarfile.TarError, OSError) as e:
                archive.unlink(missing_ok=True)
                raise ToolError(f"Incremental backup failed: {e}")
            self.audit.info(f"Incremental backup created: {archive} ({changed} changed files)")
        else:
            archive = self.create_backup(source_dir, dest)

        reference.touch()
        return archive
