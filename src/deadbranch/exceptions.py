"""Exceptions raised by deadbranch."""

from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from deadbranch.manifest import BackupEntry, SkippedLine


class DeadbranchError(Exception):
    """Base exception for all deadbranch errors."""


class NotARepositoryError(DeadbranchError):
    """The working directory is not inside a git repository."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__("Not a git repository (or any parent up to mount point)")


class GitError(DeadbranchError):
    """A git command exited non-zero."""

    def __init__(self, operation: str, message: str = "", ref: Optional[str] = None) -> None:
        """Initialize error.

        Args:
            operation: Short name of the gateway operation that failed
            message: Diagnostic text reported by git
            ref: Branch or commit the operation was applied to, if any
        """
        self.operation = operation
        self.message = message
        self.ref = ref

        error_msg = f"git {operation} failed"
        if ref:
            error_msg += f" for '{ref}'"
        if message:
            error_msg += f": {message}"
        super().__init__(error_msg)


class UnmergedBranchError(GitError):
    """Safe delete refused because the branch is not fully merged."""

    def __init__(self, branch: str, message: str = "") -> None:
        super().__init__("branch -d", message, branch)

    def __str__(self) -> str:
        return f"Branch '{self.ref}' has unmerged changes. Use --force to delete anyway"


class ConfigError(DeadbranchError):
    """Reading, parsing or writing the configuration failed."""


class BackupError(DeadbranchError):
    """Base class for backup manifest and restore failures."""


class BackupWriteError(BackupError):
    """The backup manifest could not be written."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        # Set when an earlier clean phase already deleted branches
        self.deleted_before = 0
        self.earlier_backup: Optional[Path] = None
        super().__init__(f"Failed to write backup {path}: {message}")


class BackupCorruptedError(BackupError):
    """The manifest does not start with the deadbranch header."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}" if path else message)


class BackupNotFoundError(BackupError):
    """An explicitly selected manifest does not exist."""

    def __init__(self, selector: str, path: Path) -> None:
        self.selector = selector
        self.path = path
        super().__init__(f"Backup file not found: {selector}")


class NoBackupsFoundError(BackupError):
    """The repository has no manifests at all."""

    def __init__(self, repo_name: str) -> None:
        self.repo_name = repo_name
        super().__init__(f"No backups found for repository '{repo_name}'")


class BranchExistsError(BackupError):
    """The restore target already exists and --force was not given."""

    def __init__(self, target: str) -> None:
        self.target = target
        super().__init__(f"Branch '{target}' already exists")


class BranchNotInBackupError(BackupError):
    """The requested branch has no entry in the manifest."""

    def __init__(
        self,
        branch: str,
        available: Sequence["BackupEntry"] = (),
        skipped: Sequence["SkippedLine"] = (),
        path: Optional[Path] = None,
    ) -> None:
        self.branch = branch
        self.available = list(available)
        self.skipped = list(skipped)
        self.path = path
        super().__init__(f"Branch '{branch}' not found in backup")


class CommitNotFoundError(BackupError):
    """The commit recorded in the manifest no longer exists."""

    def __init__(self, branch: str, sha: str) -> None:
        self.branch = branch
        self.sha = sha
        super().__init__(f"Commit {sha[:8]} for branch '{branch}' no longer exists (it may have been garbage collected)")
