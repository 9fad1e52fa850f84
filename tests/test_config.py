"""Tests for configuration loading and editing."""

from pathlib import Path

import pytest

from deadbranch.config import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_PROTECTED,
    Config,
    backups_dir,
    config_path,
    repo_backup_dir,
    repo_name_for,
)
from deadbranch.exceptions import ConfigError


def test_paths_are_rooted_at_home(home: Path) -> None:
    assert config_path() == home / ".deadbranch" / "config.toml"
    assert backups_dir() == home / ".deadbranch" / "backups"
    assert repo_backup_dir("project") == home / ".deadbranch" / "backups" / "project"


def test_repo_name_is_directory_basename(tmp_path: Path) -> None:
    target = tmp_path / "my-repo"
    target.mkdir()
    assert repo_name_for(target) == "my-repo"


def test_load_creates_defaults(home: Path) -> None:
    config = Config.load()

    assert config_path().exists()
    assert config.default_days == 30
    assert config.default_branch is None
    assert config.protected == DEFAULT_PROTECTED
    assert config.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS
    assert "[general]" in config_path().read_text()


def test_missing_keys_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[branches]\nprotected = ["trunk"]\n')

    config = Config.load(path)

    assert config.default_days == 30
    assert config.protected == ["trunk"]
    assert config.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    Config(default_days=7, default_branch="trunk", protected=["trunk"], exclude_patterns=[]).save(path)

    loaded = Config.load(path)

    assert loaded == Config(default_days=7, default_branch="trunk", protected=["trunk"], exclude_patterns=[])


@pytest.mark.parametrize(
    "content",
    [
        "not = [valid toml",
        '[general]\ndefault_days = "soon"\n',
        "[general]\ndefault_days = -1\n",
        '[branches]\nprotected = "main"\n',
        'general = "flat"\n',
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.toml"
    path.write_text(content)

    with pytest.raises(ConfigError):
        Config.load(path)


@pytest.mark.parametrize("key", ["default-days", "days", "general.default-days", "default_days", "general.default_days"])
def test_set_default_days_keys(key: str) -> None:
    config = Config()
    config.set(key, ["14"])
    assert config.default_days == 14


@pytest.mark.parametrize("key", ["protected", "protected-branches", "branches.protected", "branches.protected_branches"])
def test_set_protected_keys(key: str) -> None:
    config = Config()
    config.set(key, ["main", "release"])
    assert config.protected == ["main", "release"]


def test_set_list_from_comma_separated_value() -> None:
    config = Config()
    config.set("exclude-patterns", ["wip/*, tmp/*,"])
    assert config.exclude_patterns == ["wip/*", "tmp/*"]


def test_set_and_clear_default_branch() -> None:
    config = Config()
    config.set("branches.default-branch", ["trunk"])
    assert config.default_branch == "trunk"
    config.set("default-branch", [""])
    assert config.default_branch is None


@pytest.mark.parametrize(
    ("key", "values"),
    [
        ("colour", ["blue"]),
        ("default-days", ["ten"]),
        ("default-days", ["-3"]),
        ("default-days", ["1", "2"]),
        ("default-branch", ["a", "b"]),
    ],
)
def test_set_rejects_bad_input(key: str, values: list[str]) -> None:
    with pytest.raises(ConfigError):
        Config().set(key, values)


def test_reset_overwrites_file(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    Config(default_days=1).save(path)

    Config.reset(path)

    assert Config.load(path) == Config()
