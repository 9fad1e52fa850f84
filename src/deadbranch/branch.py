"""Branch records and the staleness filter."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from deadbranch.git import REMOTE_HEAD, REMOTE_NAME, REMOTE_PREFIX, Gateway, RefInfo, RefScope, strip_remote_prefix
from deadbranch.logging_config import get_logger
from deadbranch.pattern import matches_any

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class Branch:
    """A local or remote-tracking branch and its staleness metadata."""

    name: str
    is_remote: bool
    age_days: int
    is_merged: bool
    last_commit_sha: str
    last_commit_date: datetime

    @property
    def short_name(self) -> str:
        """Branch name without the ``origin/`` prefix for remote branches."""
        return strip_remote_prefix(self.name) if self.is_remote else self.name

    def is_protected(self, protected: Iterable[str]) -> bool:
        """Check whether the short name is listed as protected."""
        return self.short_name in protected

    def format_age(self) -> str:
        """Format age in a human-readable way."""
        return "1 day" if self.age_days == 1 else f"{self.age_days} days"


@dataclass
class BranchFilter:
    """Predicate deciding which branches count as stale."""

    min_age_days: int = 0
    local_only: bool = False
    remote_only: bool = False
    merged_only: bool = False
    protected: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate filter options."""
        if self.local_only and self.remote_only:
            raise ValueError("local_only and remote_only are mutually exclusive")
        if self.min_age_days < 0:
            raise ValueError(f"min_age_days must not be negative, got {self.min_age_days}")

    def matches(self, branch: Branch) -> bool:
        """Check whether a branch passes every filter condition."""
        if branch.age_days < self.min_age_days:
            return False
        if self.local_only and branch.is_remote:
            return False
        if self.remote_only and not branch.is_remote:
            return False
        if self.merged_only and not branch.is_merged:
            return False
        if branch.is_protected(self.protected):
            return False
        return not matches_any(self.exclude_patterns, branch.short_name)

    def apply(self, branches: Iterable[Branch]) -> list[Branch]:
        """Keep the matching branches in display order."""
        return sort_branches(b for b in branches if self.matches(b))


def sort_branches(branches: Iterable[Branch]) -> list[Branch]:
    """Sort unmerged before merged, then newest first, then by name."""
    return sorted(branches, key=lambda b: (b.is_merged, b.age_days, b.name))


def age_in_days(committed_at: datetime, now: datetime) -> int:
    """Whole days elapsed between a commit and now, rounded down."""
    return int((now - committed_at).total_seconds() // SECONDS_PER_DAY)


def _branch_from_ref(
    ref: RefInfo, is_remote: bool, default_branch: str, gateway: Gateway, now: datetime
) -> Branch:
    committed = datetime.fromtimestamp(ref.committed_at, tz=timezone.utc)
    return Branch(
        name=ref.name,
        is_remote=is_remote,
        age_days=age_in_days(committed, now),
        is_merged=gateway.is_merged_into(ref.name, default_branch),
        last_commit_sha=ref.short_sha,
        last_commit_date=committed,
    )


def load_branches(gateway: Gateway, default_branch: str, now: Optional[datetime] = None) -> list[Branch]:
    """Enumerate local and remote branches with age and merge status.

    The checked-out branch, the default branch (local and on origin) and
    ``origin/HEAD`` are left out.

    Args:
        gateway: Git gateway to query
        default_branch: Branch merge status is checked against
        now: Reference instant for ages (defaults to the current time)

    Raises:
        GitError: If a ref listing fails
    """
    now = now or datetime.now(timezone.utc)
    current = gateway.current_branch()
    logger.info("Loading branches (default branch: %s, current: %s)", default_branch, current or "detached")

    branches = []
    for ref in gateway.list_refs(RefScope.LOCAL):
        if ref.name in (current, default_branch):
            continue
        branches.append(_branch_from_ref(ref, False, default_branch, gateway, now))

    skipped_remote = {REMOTE_HEAD, REMOTE_NAME, f"{REMOTE_PREFIX}{default_branch}"}
    for ref in gateway.list_refs(RefScope.REMOTE):
        if ref.name in skipped_remote:
            continue
        branches.append(_branch_from_ref(ref, True, default_branch, gateway, now))

    logger.debug("Loaded %d branches", len(branches))
    return branches


def partition(branches: Iterable[Branch]) -> tuple[list[Branch], list[Branch]]:
    """Split branches into sorted local and remote groups."""
    branches = list(branches)
    local = sort_branches(b for b in branches if not b.is_remote)
    remote = sort_branches(b for b in branches if b.is_remote)
    return local, remote
