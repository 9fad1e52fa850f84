"""Backup discovery, statistics and retention."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from deadbranch.config import backups_dir, repo_backup_dir
from deadbranch.exceptions import BackupError
from deadbranch.logging_config import get_logger
from deadbranch.manifest import FILENAME_PREFIX, FILENAME_SUFFIX, read_manifest, timestamp_from_filename

logger = get_logger(__name__)

DEFAULT_KEEP = 10


@dataclass
class BackupInfo:
    """A manifest on disk."""

    path: Path
    repo_name: str
    timestamp: datetime
    branch_count: int
    size_bytes: int = 0
    size_known: bool = True

    @property
    def filename(self) -> str:
        """Manifest file name without the directory."""
        return self.path.name

    def format_age(self, now: Optional[datetime] = None) -> str:
        """Format the age of the backup as a human-readable string."""
        now = now or datetime.now(timezone.utc)
        seconds = int((now - self.timestamp).total_seconds())
        for unit, length in (("day", 86400), ("hour", 3600), ("minute", 60)):
            count = seconds // length
            if count > 0:
                return f"{count} {unit}{'' if count == 1 else 's'} ago"
        return "just now"


@dataclass
class RepoBackupStats:
    """Backup totals for one repository."""

    repo_name: str
    count: int
    total_bytes: int


@dataclass
class PruneResult:
    """Outcome of deleting old backups."""

    deleted: list[BackupInfo] = field(default_factory=list)
    failed: list[tuple[BackupInfo, str]] = field(default_factory=list)
    skipped: list[BackupInfo] = field(default_factory=list)

    @property
    def bytes_freed(self) -> int:
        return sum(info.size_bytes for info in self.deleted)


def _file_size(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except OSError as err:
        logger.warning("Could not read size of %s: %s", path, err)
        return None


def load_backup_info(path: Path, repo_name: str) -> BackupInfo:
    """Read a manifest and collect its listing details.

    The creation time comes from the ``# Created`` header, then from the
    file name, then falls back to the current time.

    A manifest without the deadbranch header is still listed so that it
    shows up in stats and can be pruned.

    Raises:
        BackupCorruptedError: If the manifest cannot be read
    """
    parsed = read_manifest(path, strict=False)
    if not parsed.has_header:
        logger.warning("Backup file %s has no deadbranch header", path)
    timestamp = parsed.created_at or timestamp_from_filename(path.name)
    if timestamp is None:
        logger.warning("No timestamp found for %s, using current time", path)
        timestamp = datetime.now(timezone.utc)

    size = _file_size(path)
    return BackupInfo(
        path=path,
        repo_name=repo_name,
        timestamp=timestamp,
        branch_count=len(parsed.entries),
        size_bytes=size or 0,
        size_known=size is not None,
    )


def _is_manifest_name(name: str) -> bool:
    return name.startswith(FILENAME_PREFIX) and name.endswith(FILENAME_SUFFIX)


def list_repo_backups(repo_name: str) -> list[BackupInfo]:
    """List backups for a repository, newest first.

    Manifests that cannot be read are logged and left out.
    """
    directory = repo_backup_dir(repo_name)
    if not directory.is_dir():
        return []

    backups = []
    for path in directory.iterdir():
        if not path.is_file() or not _is_manifest_name(path.name):
            continue
        try:
            backups.append(load_backup_info(path, repo_name))
        except BackupError as err:
            logger.warning("Could not parse backup file: %s", err)

    backups.sort(key=lambda info: (info.timestamp, info.filename), reverse=True)
    return backups


def list_all_backups() -> dict[str, list[BackupInfo]]:
    """List backups of every repository, keyed by repository name in alphabetical order."""
    root = backups_dir()
    if not root.is_dir():
        return {}

    result: dict[str, list[BackupInfo]] = {}
    for directory in sorted(root.iterdir(), key=lambda p: p.name):
        if not directory.is_dir():
            continue
        backups = list_repo_backups(directory.name)
        if backups:
            result[directory.name] = backups
    return result


def backup_stats() -> list[RepoBackupStats]:
    """Per-repository backup count and total size, alphabetically by repository."""
    return [
        RepoBackupStats(repo_name=repo, count=len(backups), total_bytes=sum(b.size_bytes for b in backups))
        for repo, backups in list_all_backups().items()
    ]


def select_backups_to_prune(repo_name: str, keep: int = DEFAULT_KEEP) -> list[BackupInfo]:
    """Pick the backups beyond the newest ``keep`` ones.

    Raises:
        ValueError: If keep is negative
    """
    if keep < 0:
        raise ValueError(f"keep must not be negative, got {keep}")
    return list_repo_backups(repo_name)[keep:]


def delete_backups(backups: Iterable[BackupInfo]) -> PruneResult:
    """Delete backup files one at a time.

    A backup whose size could not be read is left in place and reported
    as skipped.
    """
    result = PruneResult()
    for info in backups:
        if not info.size_known:
            result.skipped.append(info)
            continue
        try:
            info.path.unlink()
        except OSError as err:
            logger.warning("Could not delete %s: %s", info.path, err)
            result.failed.append((info, str(err)))
            continue
        logger.info("Deleted backup %s", info.path)
        result.deleted.append(info)
    return result
