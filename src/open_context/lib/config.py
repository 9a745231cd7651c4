"""Configuration loading: CLI flags → env vars → defaults."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from open_context.lib.filesystem.paths import expand_home
from open_context.lib.filesystem.sandbox import AllowedDirectories

logger = logging.getLogger(__name__)

ConfigValue = str | bool | tuple[str, ...] | None

_TRUTHY = ("1", "true", "yes")
_ALLOWED_DIRECTORIES_ENV = ("OPEN_CONTEXT_ALLOWED_DIRECTORIES", "ALLOWED_DIRECTORIES")


def _program_directory() -> Path:
    """Directory holding the installed ``open_context`` package."""
    return Path(__file__).resolve().parent.parent


def _to_absolute(entry: str) -> str:
    expanded = expand_home(entry)
    if os.path.isabs(expanded):
        return expanded
    return os.path.abspath(expanded)


def parse_allowed_directories(raw: str | None) -> tuple[str, ...]:
    """Parse a JSON array or comma-separated list of directories.

    Relative entries are resolved against the current working directory and
    blank entries are dropped.

    Raises:
        ValueError: If a JSON array contains non-string items.
    """
    if raw is None or not raw.strip():
        return ()

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, list):
        entries: list[str] = []
        for item in parsed:
            if not isinstance(item, str):
                raise ValueError("allowed directories must contain only strings")
            entries.append(item)
    else:
        entries = raw.split(",")

    return tuple(_to_absolute(entry.strip()) for entry in entries if entry.strip())


def _env_flag(name: str, default: bool | None = None) -> bool | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


def _warn_missing_directories(directories: tuple[str, ...]) -> None:
    for directory in directories:
        if not os.path.isdir(expand_home(directory)):
            logger.warning(
                "Allowed directory '%s' does not exist or is not a directory; "
                "paths under it will not validate until it is created",
                directory,
            )


@dataclass(frozen=True)
class Config:
    """Immutable application configuration."""

    allowed_directories: tuple[str, ...] = ()
    include_default_directories: bool = True
    verbose: bool = False

    def __post_init__(self) -> None:
        """Warn about configured directories that are missing on disk."""
        _warn_missing_directories(self.allowed_directories)

    @classmethod
    def from_env(cls, overrides: dict[str, ConfigValue] | None = None) -> Config:
        """Build config from environment variables, then apply overrides.

        Priority: overrides (CLI flags) > env vars > defaults.
        """
        load_dotenv(Path.cwd() / ".env", override=False)

        raw_directories = next(
            (
                os.environ[name]
                for name in _ALLOWED_DIRECTORIES_ENV
                if os.environ.get(name, "").strip()
            ),
            None,
        )
        env_values: dict[str, ConfigValue] = {
            "allowed_directories": parse_allowed_directories(raw_directories),
            "include_default_directories": _env_flag(
                "OPEN_CONTEXT_INCLUDE_DEFAULT_DIRECTORIES"
            ),
            "verbose": _env_flag("OPEN_CONTEXT_VERBOSE", False),
        }

        merged = {k: v for k, v in env_values.items() if v is not None and v != ()}
        if overrides:
            merged.update(
                {k: v for k, v in overrides.items() if v is not None and v != ()}
            )

        raw_override = merged.get("allowed_directories", cls.allowed_directories)
        if isinstance(raw_override, str):
            directories = parse_allowed_directories(raw_override)
        elif isinstance(raw_override, tuple):
            directories = tuple(_to_absolute(entry) for entry in raw_override)
        else:
            directories = ()

        return cls(
            allowed_directories=directories,
            include_default_directories=bool(
                merged.get(
                    "include_default_directories", cls.include_default_directories
                )
            ),
            verbose=bool(merged.get("verbose", cls.verbose)),
        )

    def default_directories(self) -> tuple[str, ...]:
        """The working directory and the program directory, if enabled."""
        if not self.include_default_directories:
            return ()
        return (os.getcwd(), str(_program_directory()))

    def allowed_directory_set(self) -> AllowedDirectories:
        """Normalize and de-duplicate defaults plus configured directories."""
        return AllowedDirectories.from_paths(
            (*self.default_directories(), *self.allowed_directories)
        )
