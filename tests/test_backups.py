"""Tests for backup discovery, stats and retention."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from deadbranch.backups import (
    BackupInfo,
    backup_stats,
    delete_backups,
    list_all_backups,
    list_repo_backups,
    select_backups_to_prune,
)
from deadbranch.config import repo_backup_dir
from deadbranch.manifest import HEADER, BackupEntry, render_manifest

BASE = datetime(2026, 1, 10, 9, 0, 0, tzinfo=timezone.utc)


def make_manifest(repo: str, created: datetime, names: tuple[str, ...] = ("feat/a",), filename: str = "") -> Path:
    directory = repo_backup_dir(repo)
    directory.mkdir(parents=True, exist_ok=True)
    entries = [(name, BackupEntry(name, "a" * 40)) for name in names]
    path = directory / (filename or f"backup-{created.strftime('%Y%m%d-%H%M%S')}.txt")
    path.write_text(render_manifest(entries, repo, Path("/work") / repo, created), encoding="utf-8")
    return path


def test_list_repo_backups_newest_first(home: Path) -> None:
    a = make_manifest("project", BASE)
    c = make_manifest("project", BASE + timedelta(days=2))
    b = make_manifest("project", BASE + timedelta(days=1), names=("x", "y"))

    backups = list_repo_backups("project")

    assert [info.path for info in backups] == [c, b, a]
    assert backups[1].branch_count == 2
    assert backups[0].timestamp == BASE + timedelta(days=2)
    assert backups[0].size_bytes == c.stat().st_size


def test_list_repo_backups_missing_directory(home: Path) -> None:
    assert list_repo_backups("nothing-here") == []


def test_timestamp_falls_back_to_filename(home: Path) -> None:
    directory = repo_backup_dir("project")
    directory.mkdir(parents=True)
    path = directory / "backup-20260105-080000.txt"
    path.write_text(f"{HEADER}\n\n# feat/a\ngit branch feat/a {'b' * 40}\n", encoding="utf-8")

    [info] = list_repo_backups("project")

    assert info.timestamp == datetime(2026, 1, 5, 8, 0, 0, tzinfo=timezone.utc)
    assert info.branch_count == 1


def test_headerless_manifest_is_listed(home: Path) -> None:
    good = make_manifest("project", BASE)
    headerless = repo_backup_dir("project") / "backup-20260101-000000.txt"
    headerless.write_text("git branch feat/x " + "b" * 40 + "\ngit branch feat/y " + "c" * 40 + "\n")
    (repo_backup_dir("project") / "notes.txt").write_text("ignored\n")

    backups = list_repo_backups("project")

    assert [info.path for info in backups] == [good, headerless]
    assert backups[1].timestamp == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert backups[1].branch_count == 2
    assert backup_stats()[0].count == 2


def test_headerless_manifest_can_be_pruned(home: Path) -> None:
    good = make_manifest("project", BASE)
    headerless = repo_backup_dir("project") / "backup-20260101-000000.txt"
    headerless.write_text("not a manifest\n")

    result = delete_backups(select_backups_to_prune("project", keep=1))

    assert not headerless.exists()
    assert good.exists()
    assert [info.path for info in result.deleted] == [headerless]


def test_list_all_backups_alphabetical(home: Path) -> None:
    make_manifest("zeta", BASE)
    make_manifest("alpha", BASE)
    make_manifest("alpha", BASE + timedelta(hours=1))
    repo_backup_dir("empty").mkdir(parents=True)

    all_backups = list_all_backups()

    assert list(all_backups) == ["alpha", "zeta"]
    assert len(all_backups["alpha"]) == 2


def test_backup_stats(home: Path) -> None:
    first = make_manifest("beta", BASE)
    second = make_manifest("beta", BASE + timedelta(minutes=5))
    other = make_manifest("alpha", BASE)

    stats = backup_stats()

    assert [(s.repo_name, s.count) for s in stats] == [("alpha", 1), ("beta", 2)]
    assert stats[0].total_bytes == other.stat().st_size
    assert stats[1].total_bytes == first.stat().st_size + second.stat().st_size


def test_prune_keeps_newest(home: Path) -> None:
    a = make_manifest("project", BASE)
    b = make_manifest("project", BASE + timedelta(days=1))
    c = make_manifest("project", BASE + timedelta(days=2))

    candidates = select_backups_to_prune("project", keep=1)
    assert [info.path for info in candidates] == [b, a]

    result = delete_backups(candidates)

    assert [info.path for info in result.deleted] == [b, a]
    assert result.bytes_freed == sum(info.size_bytes for info in candidates)
    assert not a.exists()
    assert not b.exists()
    assert [info.path for info in list_repo_backups("project")] == [c]


def test_prune_with_fewer_backups_than_keep(home: Path) -> None:
    make_manifest("project", BASE)
    assert select_backups_to_prune("project", keep=10) == []


def test_prune_rejects_negative_keep(home: Path) -> None:
    with pytest.raises(ValueError):
        select_backups_to_prune("project", keep=-1)


def test_delete_skips_backup_with_unknown_size(tmp_path: Path) -> None:
    path = tmp_path / "backup-20260101-000000.txt"
    path.write_text(HEADER)
    info = BackupInfo(path=path, repo_name="project", timestamp=BASE, branch_count=0, size_known=False)

    result = delete_backups([info])

    assert result.skipped == [info]
    assert result.deleted == []
    assert path.exists()


def test_delete_reports_failures(tmp_path: Path) -> None:
    info = BackupInfo(path=tmp_path / "gone.txt", repo_name="project", timestamp=BASE, branch_count=0)

    result = delete_backups([info])

    assert [failed for failed, _ in result.failed] == [info]


def test_format_age() -> None:
    info = BackupInfo(path=Path("x"), repo_name="r", timestamp=BASE, branch_count=0)
    assert info.format_age(BASE + timedelta(days=3, hours=2)) == "3 days ago"
    assert info.format_age(BASE + timedelta(hours=1)) == "1 hour ago"
    assert info.format_age(BASE + timedelta(minutes=5)) == "5 minutes ago"
    assert info.format_age(BASE + timedelta(seconds=30)) == "just now"


@pytest.mark.skipif(os.name != "posix", reason="relies on POSIX file modes")
def test_list_survives_unreadable_manifest(home: Path) -> None:
    good = make_manifest("project", BASE + timedelta(days=1))
    bad = make_manifest("project", BASE)
    bad.chmod(0)
    try:
        if os.access(bad, os.R_OK):
            pytest.skip("running with permissions that ignore file modes")
        assert [info.path for info in list_repo_backups("project")] == [good]
    finally:
        bad.chmod(0o644)
