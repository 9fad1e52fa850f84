"""Recreate deleted branches from backup manifests."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from deadbranch.backups import list_repo_backups
from deadbranch.config import repo_backup_dir
from deadbranch.exceptions import (
    BackupNotFoundError,
    BranchExistsError,
    BranchNotInBackupError,
    CommitNotFoundError,
    NoBackupsFoundError,
)
from deadbranch.git import Gateway
from deadbranch.logging_config import get_logger
from deadbranch.manifest import read_manifest

logger = get_logger(__name__)


@dataclass(frozen=True)
class RestoreResult:
    """A branch recreated from a manifest."""

    original_name: str
    restored_name: str
    commit_sha: str
    overwrote_existing: bool
    backup_path: Optional[Path] = None


def resolve_manifest(repo_name: str, selector: Optional[str] = None) -> Path:
    """Find the manifest a restore reads from.

    Args:
        repo_name: Repository whose backup directory is searched
        selector: Absolute path, existing file path, or bare file name inside
            the repository backup directory. None picks the newest manifest.

    Raises:
        NoBackupsFoundError: If no selector is given and the repository has no backups
        BackupNotFoundError: If the selector does not name an existing file
    """
    if selector is None:
        backups = list_repo_backups(repo_name)
        if not backups:
            raise NoBackupsFoundError(repo_name)
        return backups[0].path

    candidate = Path(selector).expanduser()
    if candidate.is_absolute() or candidate.is_file():
        path = candidate
    else:
        path = repo_backup_dir(repo_name) / selector

    if not path.is_file():
        raise BackupNotFoundError(selector, path)
    return path


def restore_branch(
    gateway: Gateway,
    repo_name: str,
    branch_name: str,
    manifest: Optional[str] = None,
    as_name: Optional[str] = None,
    force: bool = False,
) -> RestoreResult:
    """Recreate a branch recorded in a backup manifest.

    Every precondition is checked before the branch is created, so a
    failed restore leaves the repository untouched.

    Args:
        gateway: Git gateway
        repo_name: Repository whose backups are searched
        branch_name: Name the branch has in the manifest
        manifest: Optional manifest selector (see :func:`resolve_manifest`)
        as_name: Create the branch under this name instead
        force: Overwrite an existing branch

    Raises:
        BranchExistsError: Target exists and force is not set
        NoBackupsFoundError: No manifest to restore from
        BackupNotFoundError: The selected manifest does not exist
        BackupCorruptedError: The manifest lacks its header
        BranchNotInBackupError: The manifest has no entry for the branch
        CommitNotFoundError: The recorded commit is gone
        GitError: Creating the branch failed
    """
    target = as_name or branch_name

    branch_existed = gateway.branch_exists(target)
    if branch_existed and not force:
        raise BranchExistsError(target)

    path = resolve_manifest(repo_name, manifest)
    parsed = read_manifest(path)

    entry = parsed.find(branch_name)
    if entry is None:
        raise BranchNotInBackupError(branch_name, parsed.entries, parsed.skipped, path)

    if not gateway.commit_exists(entry.commit_sha):
        raise CommitNotFoundError(branch_name, entry.commit_sha)

    gateway.create_branch(target, entry.commit_sha, force)
    logger.info("Restored %s as %s at %s from %s", branch_name, target, entry.commit_sha, path)

    return RestoreResult(
        original_name=branch_name,
        restored_name=target,
        commit_sha=entry.commit_sha,
        overwrote_existing=branch_existed and force,
        backup_path=path,
    )
