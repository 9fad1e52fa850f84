"""Backup manifest format.

A manifest is a UTF-8 text file with one restore command per branch::

    # deadbranch backup
    # Created: 2026-02-01T14:30:22+00:00
    # Repository: my-repo
    # Working directory: /home/me/src/my-repo
    #
    # To restore a branch, run the git command shown
    #

    # origin/feature/old-api
    git branch feature/old-api 1f0c9e...

Lines the parser does not understand are reported, not fatal; only a
missing header is. New metadata goes in ``# Key: value`` header comments.
"""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from deadbranch.branch import Branch
from deadbranch.config import repo_backup_dir
from deadbranch.exceptions import BackupCorruptedError, BackupWriteError, GitError
from deadbranch.git import Gateway
from deadbranch.logging_config import get_logger

logger = get_logger(__name__)

HEADER = "# deadbranch backup"
RESTORE_PREFIX = "git branch "
FILENAME_PREFIX = "backup-"
FILENAME_SUFFIX = ".txt"
FILENAME_TIME_FORMAT = "%Y%m%d-%H%M%S"
FILENAME_RE = re.compile(r"^backup-(\d{8}-\d{6})(?:-\d+)?\.txt$")
METADATA_RE = re.compile(r"^#\s*([A-Za-z][A-Za-z ]*?):\s*(.*)$")


@dataclass(frozen=True)
class BackupEntry:
    """One restorable branch in a manifest."""

    name: str
    commit_sha: str


@dataclass(frozen=True)
class SkippedLine:
    """A manifest line the parser could not interpret."""

    line_number: int
    content: str


@dataclass
class ParsedBackup:
    """Result of parsing a manifest."""

    entries: list[BackupEntry] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    has_header: bool = True

    def find(self, name: str) -> Optional[BackupEntry]:
        """Get the entry for a branch, if present."""
        return next((entry for entry in self.entries if entry.name == name), None)

    @property
    def created_at(self) -> Optional[datetime]:
        """Creation time recorded in the header, if readable."""
        value = self.metadata.get("Created")
        if not value:
            return None
        try:
            created = datetime.fromisoformat(value)
        except ValueError:
            return None
        return created if created.tzinfo else created.replace(tzinfo=timezone.utc)


def render_manifest(entries: Sequence[tuple[str, BackupEntry]], repo_name: str, cwd: Path, created: datetime) -> str:
    """Render manifest text.

    Args:
        entries: Pairs of original branch name and the entry restoring it
        repo_name: Repository the branches belong to
        cwd: Working directory the deletion ran in
        created: Creation instant (UTC)
    """
    lines = [
        HEADER,
        f"# Created: {created.isoformat()}",
        f"# Repository: {repo_name}",
        f"# Working directory: {Path(cwd).resolve()}",
        "#",
        "# To restore a branch, run the git command shown",
        "#",
        "",
    ]
    for original_name, entry in entries:
        lines.append(f"# {original_name}")
        lines.append(f"{RESTORE_PREFIX}{entry.name} {entry.commit_sha}")
        lines.append("")
    return "\n".join(lines) + "\n"


def timestamp_from_filename(filename: str) -> Optional[datetime]:
    """Parse the UTC instant encoded in ``backup-YYYYMMDD-HHMMSS.txt``."""
    match = FILENAME_RE.match(filename)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), FILENAME_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def _entry_for(gateway: Gateway, branch: Branch) -> BackupEntry:
    try:
        sha = gateway.resolve_sha(branch.name)
    except GitError as err:
        logger.warning("Could not resolve full SHA of %s, using %s: %s", branch.name, branch.last_commit_sha, err)
        sha = branch.last_commit_sha
    return BackupEntry(name=branch.short_name, commit_sha=sha)


def _create_exclusive(directory: Path, stem: str, content: str) -> Path:
    """Write content to a new file named after stem, never replacing an existing one."""
    attempt = 0
    while True:
        suffix = f"-{attempt}" if attempt else ""
        path = directory / f"{stem}{suffix}{FILENAME_SUFFIX}"
        try:
            with path.open("x", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            return path
        except FileExistsError:
            attempt += 1


def write_backup(
    gateway: Gateway,
    branches: Sequence[Branch],
    repo_name: str,
    cwd: Path,
    now: Optional[datetime] = None,
    directory: Optional[Path] = None,
) -> Path:
    """Write a restore manifest for branches about to be deleted.

    Remote branches are recorded under their short name so restoring
    always creates a local branch.

    Args:
        gateway: Git gateway used to resolve full SHAs
        branches: Branches in deletion order
        repo_name: Repository name the manifest is filed under
        cwd: Working directory recorded in the header
        now: Creation instant (defaults to the current time)
        directory: Target directory (defaults to the repository backup directory)

    Returns:
        Path of the new manifest, closed and synced to disk

    Raises:
        BackupWriteError: If the manifest cannot be written
    """
    now = now or datetime.now(timezone.utc)
    directory = directory or repo_backup_dir(repo_name)
    entries = [(branch.name, _entry_for(gateway, branch)) for branch in branches]
    content = render_manifest(entries, repo_name, cwd, now)

    try:
        directory.mkdir(parents=True, exist_ok=True)
        path = _create_exclusive(directory, f"{FILENAME_PREFIX}{now.strftime(FILENAME_TIME_FORMAT)}", content)
    except OSError as err:
        raise BackupWriteError(directory, str(err)) from err

    logger.info("Wrote backup of %d branches to %s", len(entries), path)
    return path


def parse_manifest(text: str, path: Optional[Path] = None, strict: bool = True) -> ParsedBackup:
    """Parse manifest text.

    With ``strict=False`` a missing header is tolerated and every line is
    parsed; the result has ``has_header`` set to False.

    Raises:
        BackupCorruptedError: If strict and the first line is not the deadbranch header
    """
    lines = text.splitlines()
    has_header = bool(lines) and lines[0].startswith(HEADER)
    if strict and not has_header:
        raise BackupCorruptedError("missing '# deadbranch backup' header", path)

    parsed = ParsedBackup(has_header=has_header)
    first = 1 if has_header else 0
    for line_number, line in enumerate(lines[first:], start=first + 1):
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("#"):
            match = METADATA_RE.match(stripped)
            if match:
                parsed.metadata.setdefault(match.group(1), match.group(2).strip())
            continue
        if stripped.startswith(RESTORE_PREFIX):
            tokens = stripped.split()
            if len(tokens) >= 4:
                parsed.entries.append(BackupEntry(name=tokens[2], commit_sha=tokens[3]))
                continue
        parsed.skipped.append(SkippedLine(line_number=line_number, content=line))
    return parsed


def read_manifest(path: Path, strict: bool = True) -> ParsedBackup:
    """Read and parse a manifest file.

    Raises:
        BackupCorruptedError: If the file is unreadable, or strict and it lacks the header
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise BackupCorruptedError(f"could not be read: {err}", Path(path)) from err
    return parse_manifest(text, Path(path), strict=strict)
