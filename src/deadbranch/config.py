"""Configuration handling for deadbranch.

Settings live in ``~/.deadbranch/config.toml``::

    [general]
    default_days = 30

    [branches]
    default_branch = "main"      # optional, auto-detected when absent
    protected = ["main", "master", "develop", "staging", "production"]
    exclude_patterns = ["wip/*", "draft/*", "*/wip", "*/draft"]
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import tomli_w

from deadbranch.exceptions import ConfigError
from deadbranch.logging_config import get_logger

logger = get_logger(__name__)

DATA_DIR_NAME = ".deadbranch"
CONFIG_FILE_NAME = "config.toml"
BACKUPS_DIR_NAME = "backups"

DEFAULT_DAYS = 30
DEFAULT_PROTECTED = ["main", "master", "develop", "staging", "production"]
DEFAULT_EXCLUDE_PATTERNS = ["wip/*", "draft/*", "*/wip", "*/draft"]

# Accepted setter keys, normalized to dashes, mapped to (section, field)
KEY_ALIASES: dict[str, tuple[str, str]] = {
    "default-days": ("general", "default_days"),
    "days": ("general", "default_days"),
    "general.default-days": ("general", "default_days"),
    "default-branch": ("branches", "default_branch"),
    "branches.default-branch": ("branches", "default_branch"),
    "protected": ("branches", "protected"),
    "protected-branches": ("branches", "protected"),
    "branches.protected": ("branches", "protected"),
    "branches.protected-branches": ("branches", "protected"),
    "exclude-patterns": ("branches", "exclude_patterns"),
    "branches.exclude-patterns": ("branches", "exclude_patterns"),
}

VALID_KEYS = "default-days, default-branch, protected-branches, exclude-patterns"


def data_dir() -> Path:
    """Directory holding all deadbranch state."""
    return Path.home() / DATA_DIR_NAME


def config_path() -> Path:
    """Path of the config file."""
    return data_dir() / CONFIG_FILE_NAME


def backups_dir() -> Path:
    """Directory holding one backup subdirectory per repository."""
    return data_dir() / BACKUPS_DIR_NAME


def repo_backup_dir(repo_name: str) -> Path:
    """Directory holding the backup manifests of one repository."""
    return backups_dir() / repo_name


def repo_name_for(path: Path) -> str:
    """Repository name used for backups: the basename of the working directory."""
    return Path(path).resolve().name or "unknown"


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{key} must be a list of strings")
    return list(value)


def _split_values(values: Sequence[str]) -> list[str]:
    """Accept either several arguments or one comma-separated argument."""
    items = []
    for value in values:
        items.extend(part.strip() for part in value.split(","))
    return [item for item in items if item]


@dataclass
class Config:
    """User settings with validation."""

    default_days: int = DEFAULT_DAYS
    default_branch: Optional[str] = None
    protected: list[str] = field(default_factory=lambda: list(DEFAULT_PROTECTED))
    exclude_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if isinstance(self.default_days, bool) or not isinstance(self.default_days, int):
            raise ConfigError(f"default_days must be an integer, got {self.default_days!r}")
        if self.default_days < 0:
            raise ConfigError(f"default_days must not be negative, got {self.default_days}")
        if self.default_branch is not None:
            if not isinstance(self.default_branch, str):
                raise ConfigError("default_branch must be a string")
            self.default_branch = self.default_branch.strip() or None
        self.protected = _string_list(self.protected, "protected")
        self.exclude_patterns = _string_list(self.exclude_patterns, "exclude_patterns")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create Config from parsed TOML, falling back to defaults for missing keys."""
        general = data.get("general", {})
        branches = data.get("branches", {})
        if not isinstance(general, dict) or not isinstance(branches, dict):
            raise ConfigError("[general] and [branches] must be tables")
        return cls(
            default_days=general.get("default_days", DEFAULT_DAYS),
            default_branch=branches.get("default_branch"),
            protected=branches.get("protected", list(DEFAULT_PROTECTED)),
            exclude_patterns=branches.get("exclude_patterns", list(DEFAULT_EXCLUDE_PATTERNS)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to its TOML layout."""
        branches: dict[str, Any] = {}
        if self.default_branch:
            branches["default_branch"] = self.default_branch
        branches["protected"] = list(self.protected)
        branches["exclude_patterns"] = list(self.exclude_patterns)
        return {"general": {"default_days": self.default_days}, "branches": branches}

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load config from file, creating it with defaults when missing.

        Raises:
            ConfigError: If the file cannot be read, parsed or written
        """
        path = path or config_path()
        if not path.exists():
            logger.info("Creating default config at %s", path)
            config = cls()
            config.save(path)
            return config

        try:
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        except OSError as err:
            raise ConfigError(f"Failed to read config file {path}: {err}") from err
        except tomllib.TOMLDecodeError as err:
            raise ConfigError(f"Failed to parse config file {path}: {err}") from err
        return cls.from_dict(data)

    def save(self, path: Optional[Path] = None) -> None:
        """Save config to file.

        Raises:
            ConfigError: If the file cannot be written
        """
        path = path or config_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as fh:
                tomli_w.dump(self.to_dict(), fh)
        except OSError as err:
            raise ConfigError(f"Failed to write config file {path}: {err}") from err
        logger.debug("Saved config to %s", path)

    def set(self, key: str, values: Sequence[str]) -> None:
        """Set a configuration value by flat or dotted key.

        Args:
            key: Key such as ``default-days`` or ``branches.protected``
            values: Raw values from the command line

        Raises:
            ConfigError: If the key is unknown or the value invalid
        """
        normalized = key.strip().lower().replace("_", "-")
        if normalized not in KEY_ALIASES:
            raise ConfigError(f"Unknown config key: {key}. Valid keys: {VALID_KEYS}")
        _, name = KEY_ALIASES[normalized]

        if name == "default_days":
            if len(values) != 1:
                raise ConfigError("default-days takes exactly one value")
            try:
                days = int(values[0])
            except ValueError as err:
                raise ConfigError(f"Invalid number: {values[0]}") from err
            if days < 0:
                raise ConfigError(f"default-days must not be negative, got {days}")
            self.default_days = days
        elif name == "default_branch":
            if len(values) > 1:
                raise ConfigError("default-branch takes a single value")
            self.default_branch = values[0].strip() if values and values[0].strip() else None
        else:
            setattr(self, name, _split_values(values))

    @classmethod
    def reset(cls, path: Optional[Path] = None) -> "Config":
        """Overwrite the config file with defaults and return them."""
        config = cls()
        config.save(path)
        return config
