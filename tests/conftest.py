"""Test configuration and fixtures."""

import hashlib
import time
from pathlib import Path
from typing import Optional

import pytest
from git import Actor, Repo

from deadbranch.exceptions import GitError, UnmergedBranchError
from deadbranch.git import RefInfo, RefScope

DAY = 86400
AUTHOR = Actor("Test User", "test@example.com")


def fake_sha(name: str) -> str:
    """Deterministic 40-hex SHA for a branch name."""
    return hashlib.sha1(name.encode()).hexdigest()


class FakeGateway:
    """In-memory stand-in for GitRepo that records mutating calls."""

    def __init__(self, default: str = "main", current: str = "main") -> None:
        self.default = default
        self.current = current
        self.local: dict[str, tuple[int, str]] = {}
        self.remote: dict[str, tuple[int, str]] = {}
        self.merged: set[str] = set()
        self.commits: set[str] = set()
        self.failing: set[str] = set()
        self.unresolvable: set[str] = set()
        self.fetch_fails = False
        self.calls: list[tuple] = []

    def add_branch(
        self, name: str, days_ago: int, merged: bool = False, remote: bool = False, sha: Optional[str] = None
    ) -> str:
        sha = sha or fake_sha(name)
        committed = int(time.time()) - days_ago * DAY - 60
        (self.remote if remote else self.local)[name] = (committed, sha)
        self.commits.add(sha)
        if merged:
            self.merged.add(name)
        return sha

    def is_repository(self) -> bool:
        return True

    def default_branch(self) -> str:
        return self.default

    def current_branch(self) -> str:
        return self.current

    def fetch_and_prune(self) -> None:
        self.calls.append(("fetch_and_prune",))
        if self.fetch_fails:
            raise GitError("fetch", "could not read from remote repository")

    def list_refs(self, scope: RefScope) -> list[RefInfo]:
        refs = self.local if scope is RefScope.LOCAL else self.remote
        return [RefInfo(name=name, committed_at=ts, short_sha=sha[:7]) for name, (ts, sha) in refs.items()]

    def is_merged_into(self, name: str, base: str) -> bool:
        return name in self.merged

    def branch_exists(self, name: str) -> bool:
        return name in self.local

    def commit_exists(self, sha: str) -> bool:
        return sha in self.commits

    def create_branch(self, name: str, sha: str, force: bool = False) -> None:
        self.calls.append(("create_branch", name, sha, force))
        if name in self.local and not force:
            raise GitError("branch", f"a branch named '{name}' already exists", name)
        self.local[name] = (int(time.time()), sha)

    def delete_local(self, name: str, force: bool = False) -> None:
        self.calls.append(("delete_local", name, force))
        if name in self.failing:
            raise GitError("branch", "simulated failure", name)
        if not force and name not in self.merged:
            raise UnmergedBranchError(name, f"error: the branch '{name}' is not fully merged")
        del self.local[name]

    def delete_remote(self, name: str) -> None:
        self.calls.append(("delete_remote", name))
        if name in self.failing:
            raise GitError("push", "simulated failure", name)
        del self.remote[name]

    def resolve_sha(self, name: str) -> str:
        if name in self.unresolvable:
            raise GitError("rev-parse", "unknown revision", name)
        refs = self.remote if name in self.remote else self.local
        return refs[name][1]

    def mutations(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in ("create_branch", "delete_local", "delete_remote")]


class GitEnv:
    """A local repository with a bare origin and helpers to grow branches of a given age."""

    def __init__(self, local: Path, remote: Path) -> None:
        self.local = local
        self.remote = remote
        self.now = int(time.time())

        bare = Repo.init(remote, bare=True)
        bare.git.symbolic_ref("HEAD", "refs/heads/main")

        self.repo = Repo.init(local)
        self.repo.git.symbolic_ref("HEAD", "refs/heads/main")
        with self.repo.config_writer() as writer:
            writer.set_value("user", "name", AUTHOR.name)
            writer.set_value("user", "email", AUTHOR.email)

        self.commit("README.md", "# Test Repository", days_ago=400)
        self.repo.create_remote("origin", url=str(remote))
        self.repo.git.push("origin", "main")

    def commit(self, filename: str, content: str, days_ago: int) -> str:
        """Commit a file with author and committer dates days_ago in the past."""
        path = self.local / filename
        path.write_text(content)
        self.repo.index.add([filename])
        date = f"{self.now - days_ago * DAY - 60} +0000"
        commit = self.repo.index.commit(
            f"Add {filename}", author=AUTHOR, committer=AUTHOR, author_date=date, commit_date=date
        )
        return commit.hexsha

    def make_branch(self, name: str, days_ago: int, merged: bool = False, push: bool = False) -> str:
        """Create a branch off main with one commit; fast-forward main onto it when merged."""
        main = self.repo.heads.main
        main.checkout()
        branch = self.repo.create_head(name)
        branch.checkout()
        sha = self.commit(name.replace("/", "_") + ".txt", f"content of {name}", days_ago)
        main.checkout()
        if merged:
            self.repo.git.merge(name, "--ff-only")
            self.repo.git.push("origin", "main")
        if push:
            self.repo.git.push("origin", name)
        return sha

    def local_branches(self) -> set[str]:
        return {head.name for head in self.repo.heads}

    def remote_branches(self) -> set[str]:
        bare = Repo(self.remote)
        return {head.name for head in bare.heads}


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a temporary directory so config and backups stay isolated."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    return home_dir


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def git_env(tmp_path: Path, home: Path) -> GitEnv:
    """Create a test environment with local and remote repositories.

    The local repository lives in a directory named ``project``, which is
    also the name its backups are filed under.
    """
    local_path = tmp_path / "project"
    remote_path = tmp_path / "remote.git"
    local_path.mkdir()
    remote_path.mkdir()
    return GitEnv(local_path, remote_path)
