"""Git repository operations.

Everything deadbranch asks of git goes through :class:`GitRepo`. Other
modules depend only on the :class:`Gateway` protocol so tests can swap in
an in-memory fake.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Union

from git import Git, GitCommandError, GitCommandNotFound

from deadbranch.exceptions import GitError, UnmergedBranchError
from deadbranch.logging_config import get_logger

logger = get_logger(__name__)

REMOTE_NAME = "origin"
REMOTE_PREFIX = f"{REMOTE_NAME}/"
REMOTE_HEAD = f"{REMOTE_NAME}/HEAD"
FALLBACK_DEFAULT_BRANCHES = ("main", "master")
REF_FORMAT = "--format=%(refname:short)|%(committerdate:unix)|%(objectname:short)"


class RefScope(Enum):
    """Ref namespace to enumerate."""

    LOCAL = "refs/heads/"
    REMOTE = f"refs/remotes/{REMOTE_NAME}/"


@dataclass(frozen=True)
class RefInfo:
    """A ref as reported by git for-each-ref."""

    name: str
    committed_at: int
    short_sha: str


class Gateway(Protocol):
    """Typed view of the git operations deadbranch needs."""

    def is_repository(self) -> bool: ...

    def default_branch(self) -> str: ...

    def current_branch(self) -> str: ...

    def fetch_and_prune(self) -> None: ...

    def list_refs(self, scope: RefScope) -> list[RefInfo]: ...

    def is_merged_into(self, name: str, base: str) -> bool: ...

    def branch_exists(self, name: str) -> bool: ...

    def commit_exists(self, sha: str) -> bool: ...

    def create_branch(self, name: str, sha: str, force: bool = False) -> None: ...

    def delete_local(self, name: str, force: bool = False) -> None: ...

    def delete_remote(self, name: str) -> None: ...

    def resolve_sha(self, name: str) -> str: ...


def strip_remote_prefix(name: str) -> str:
    """Remove a leading ``origin/`` from a ref name."""
    return name[len(REMOTE_PREFIX) :] if name.startswith(REMOTE_PREFIX) else name


def _diagnostic(err: Union[GitCommandError, GitCommandNotFound]) -> str:
    """Extract git's own message from a GitPython command error."""
    stderr = (getattr(err, "stderr", "") or "").strip()
    prefix = "stderr: '"
    if stderr.startswith(prefix) and stderr.endswith("'"):
        stderr = stderr[len(prefix) : -1].strip()
    return stderr or str(err)


class GitRepo:
    """Git repository operations backed by the git binary."""

    def __init__(self, path: Path) -> None:
        """Initialize repository.

        Args:
            path: Working directory git commands run in
        """
        self.path = Path(path)
        self.git = Git(str(self.path))
        # Stable, untranslated messages so refusals can be recognized
        self.git.update_environment(LC_ALL="C")

    def _run(self, operation: str, *args: str, ref: Optional[str] = None) -> str:
        """Run a git command and return its stdout.

        Raises:
            GitError: If git exits non-zero or cannot be started
        """
        command = ["git", operation, *args]
        logger.debug("Running %s", " ".join(command))
        try:
            return self.git.execute(command)
        except (GitCommandError, GitCommandNotFound) as err:
            raise GitError(operation, _diagnostic(err), ref) from err

    def _succeeds(self, operation: str, *args: str) -> bool:
        """Run a git command used as a predicate."""
        try:
            self._run(operation, *args)
        except GitError:
            return False
        return True

    def is_repository(self) -> bool:
        """Check whether the working directory is inside a repository."""
        return self._succeeds("rev-parse", "--git-dir")

    def default_branch(self) -> str:
        """Detect the branch merges are checked against.

        Tries the remote HEAD first, then local ``main`` and ``master``.
        Falls back to ``main``.
        """
        try:
            head = self._run("symbolic-ref", "--short", f"refs/remotes/{REMOTE_HEAD}").strip()
            if head:
                return strip_remote_prefix(head)
        except GitError as err:
            logger.debug("No remote HEAD: %s", err)

        for candidate in FALLBACK_DEFAULT_BRANCHES:
            if self.branch_exists(candidate):
                return candidate
        return FALLBACK_DEFAULT_BRANCHES[0]

    def current_branch(self) -> str:
        """Get current branch name, or an empty string on a detached HEAD."""
        return self._run("branch", "--show-current").strip()

    def fetch_and_prune(self) -> None:
        """Update remote-tracking refs and drop the ones gone upstream."""
        self._run("fetch", REMOTE_NAME, "--prune")

    def list_refs(self, scope: RefScope) -> list[RefInfo]:
        """List refs in a namespace with commit time and short SHA."""
        output = self._run("for-each-ref", REF_FORMAT, scope.value)
        refs = []
        for line in output.splitlines():
            parts = line.rsplit("|", 2)
            if len(parts) != 3:
                logger.debug("Skipping unexpected for-each-ref line: %r", line)
                continue
            name, timestamp, sha = parts
            try:
                committed_at = int(timestamp)
            except ValueError:
                committed_at = 0
            refs.append(RefInfo(name=name, committed_at=committed_at, short_sha=sha))
        return refs

    def is_merged_into(self, name: str, base: str) -> bool:
        """Check whether the tip of name is reachable from base."""
        try:
            self._run("merge-base", "--is-ancestor", name, base, ref=name)
        except GitError as err:
            logger.debug("%s is not merged into %s: %s", name, base, err.message)
            return False
        return True

    def branch_exists(self, name: str) -> bool:
        """Check whether a local branch exists."""
        return self._succeeds("rev-parse", "--verify", "--quiet", f"refs/heads/{name}")

    def commit_exists(self, sha: str) -> bool:
        """Check whether the object database holds this commit."""
        return self._succeeds("cat-file", "-e", f"{sha}^{{commit}}")

    def create_branch(self, name: str, sha: str, force: bool = False) -> None:
        """Create a branch at sha, overwriting an existing one when forced."""
        args = ["-f", name, sha] if force else [name, sha]
        self._run("branch", *args, ref=name)

    def delete_local(self, name: str, force: bool = False) -> None:
        """Delete a local branch.

        Raises:
            UnmergedBranchError: If the safe delete was refused
            GitError: For any other failure
        """
        flag = "-D" if force else "-d"
        try:
            self._run("branch", flag, name, ref=name)
        except GitError as err:
            if not force and "not fully merged" in err.message:
                raise UnmergedBranchError(name, err.message) from err
            raise

    def delete_remote(self, name: str) -> None:
        """Delete a branch on origin."""
        branch = strip_remote_prefix(name)
        self._run("push", REMOTE_NAME, "--delete", branch, ref=name)

    def resolve_sha(self, name: str) -> str:
        """Get the full commit SHA a ref points to."""
        return self._run("rev-parse", "--verify", f"{name}^{{commit}}", ref=name).strip()
