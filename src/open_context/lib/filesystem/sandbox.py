"""Sandbox gate: every filesystem-touching operation passes through here.

The allowed-directory set is an immutable value built once at startup and
handed to ``PathSandbox``. Validation happens in two stages:

1. A lexical check of the normalized candidate against the allowed set, so a
   path that is plainly outside never reaches the filesystem.
2. A check of the *real* (symlink-resolved) location, which closes the escape
   where an allowed directory contains a link pointing elsewhere.

Allowed directories are stored unresolved; their real paths are computed at
validation time because they may not exist yet when the set is built.
"""

from __future__ import annotations

__all__ = [
    "AllowedDirectories",
    "PathIntent",
    "PathSandbox",
    "ValidatedPath",
]

import logging
import os
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum

from open_context.lib.filesystem.errors import (
    FilesystemError,
    InvalidArgumentError,
    OutsideAllowedDirectoriesError,
    PathNotFoundError,
)
from open_context.lib.filesystem.paths import (
    expand_home,
    is_path_within,
    normalize_path,
)

logger = logging.getLogger(__name__)


class PathIntent(str, Enum):
    """How the caller intends to use a path.

    ``CREATE`` relaxes the existence requirement to the nearest existing
    ancestor (write, move destination, create directory).
    """

    READ = "read"
    CREATE = "create"


@dataclass(frozen=True)
class AllowedDirectories:
    """Ordered, de-duplicated, normalized absolute directory paths."""

    directories: tuple[str, ...] = ()

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> AllowedDirectories:
        """Normalize *paths* and drop blanks and duplicates, keeping order."""
        seen: list[str] = []
        for raw in paths:
            stripped = str(raw).strip()
            if not stripped:
                continue
            normalized = normalize_path(expand_home(stripped))
            if normalized not in seen:
                seen.append(normalized)
        return cls(directories=tuple(seen))

    def contains(self, path: str) -> bool:
        """Lexical membership test; *path* must already be normalized."""
        return any(is_path_within(path, directory) for directory in self.directories)

    def __iter__(self) -> Iterator[str]:
        return iter(self.directories)

    def __len__(self) -> int:
        return len(self.directories)


@dataclass(frozen=True)
class ValidatedPath:
    """A real path proven, at check time, to be inside the sandbox."""

    path: str
    requested: str

    def __fspath__(self) -> str:
        return self.path

    def __str__(self) -> str:
        return self.path


class PathSandbox:
    """Validate candidate paths against an ``AllowedDirectories`` set."""

    def __init__(self, allowed: AllowedDirectories) -> None:
        self._allowed = allowed

    @property
    def allowed(self) -> AllowedDirectories:
        return self._allowed

    def list_allowed(self) -> list[str]:
        """Return the configured directories unchanged."""
        return list(self._allowed.directories)

    def validate(
        self,
        candidate: str,
        *,
        intent: PathIntent = PathIntent.READ,
        resolved_directories: Sequence[str] | None = None,
    ) -> ValidatedPath:
        """Resolve *candidate* and prove it lies inside an allowed directory.

        Args:
            candidate: Raw path string from the caller (``~`` is expanded,
                relative paths resolve against the working directory).
            intent: ``PathIntent.CREATE`` for paths that may not exist yet.
            resolved_directories: Output of ``resolved_directories()`` to
                reuse across many calls (a directory walk); computed on demand
                when omitted.

        Returns:
            The symlink-resolved path wrapped as ``ValidatedPath``.

        Raises:
            InvalidArgumentError: If *candidate* is empty.
            OutsideAllowedDirectoriesError: If the lexical or real location
                falls outside every allowed directory.
            PathNotFoundError: If the path (or, for ``CREATE``, every ancestor
                inside the sandbox) does not exist.
        """
        if not isinstance(candidate, str) or not candidate.strip():
            raise InvalidArgumentError("Path must be a non-empty string")

        requested = normalize_path(expand_home(candidate))
        if not self._allowed.contains(requested):
            logger.warning("Rejected path outside allowed directories")
            logger.debug("Rejected path: %s", requested)
            msg = f"Access denied - path outside allowed directories: {requested}"
            raise OutsideAllowedDirectoriesError(msg, path=requested)

        if os.path.exists(requested):
            real = normalize_path(os.path.realpath(requested))
        elif intent is PathIntent.CREATE:
            real = self._resolve_create_target(requested)
        else:
            raise PathNotFoundError(f"Path does not exist: {requested}", path=requested)

        if not self._is_real_path_allowed(real, resolved_directories):
            logger.warning("Rejected symlink target outside allowed directories")
            logger.debug("Rejected path: %s -> %s", requested, real)
            msg = (
                "Access denied - symlink target outside allowed directories: "
                f"{requested}"
            )
            raise OutsideAllowedDirectoriesError(msg, path=requested)

        return ValidatedPath(path=real, requested=requested)

    def is_allowed(
        self, candidate: str, *, intent: PathIntent = PathIntent.READ
    ) -> bool:
        """Return whether *candidate* validates, without raising."""
        try:
            self.validate(candidate, intent=intent)
        except FilesystemError:
            return False
        return True

    def _resolve_create_target(self, requested: str) -> str:
        """Resolve the nearest existing ancestor and re-append the rest.

        ``os.path.lexists`` stops at dangling symlinks so they are followed by
        ``realpath`` instead of being re-appended as plain names.
        """
        ancestor = requested
        suffix: list[str] = []
        while not os.path.lexists(ancestor):
            parent = os.path.dirname(ancestor)
            if parent == ancestor:
                break
            suffix.append(os.path.basename(ancestor))
            ancestor = parent

        if not self._allowed.contains(ancestor):
            msg = f"Parent directory does not exist: {os.path.dirname(requested)}"
            raise PathNotFoundError(msg, path=requested)

        real_ancestor = normalize_path(os.path.realpath(ancestor))
        if not suffix:
            return real_ancestor
        return "/".join([real_ancestor.rstrip("/"), *reversed(suffix)])

    def resolved_directories(self) -> tuple[str, ...]:
        """Symlink-resolved form of each allowed directory, as of now."""
        return tuple(
            normalize_path(os.path.realpath(directory)) for directory in self._allowed
        )

    def _is_real_path_allowed(
        self, real: str, resolved_directories: Sequence[str] | None
    ) -> bool:
        if self._allowed.contains(real):
            return True
        if resolved_directories is None:
            resolved_directories = self.resolved_directories()
        return any(
            is_path_within(real, directory) for directory in resolved_directories
        )
