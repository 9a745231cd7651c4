"""Best-effort recursive name search confined to the sandbox."""

from __future__ import annotations

__all__ = ["is_excluded", "search_files"]

import fnmatch
import logging
import os
from collections.abc import Sequence

from open_context.lib.filesystem.errors import FilesystemError, InvalidArgumentError
from open_context.lib.filesystem.sandbox import PathSandbox

logger = logging.getLogger(__name__)

_GLOB_CHARS = frozenset("*?[")


def is_excluded(name: str, relative_path: str, exclude_patterns: Sequence[str]) -> bool:
    """Case-insensitive exclusion check.

    Patterns containing glob characters are matched against the entry name
    and its root-relative path; plain patterns match as name substrings.
    """
    lowered_name = name.lower()
    lowered_relative = relative_path.lower()
    for pattern in exclude_patterns:
        lowered = pattern.lower()
        if _GLOB_CHARS.intersection(lowered):
            if fnmatch.fnmatchcase(lowered_name, lowered) or fnmatch.fnmatchcase(
                lowered_relative, lowered
            ):
                return True
        elif lowered in lowered_name:
            return True
    return False


def search_files(
    root: str | os.PathLike[str],
    pattern: str,
    sandbox: PathSandbox,
    *,
    exclude_patterns: Sequence[str] = (),
) -> list[str]:
    """Return paths under *root* whose name contains *pattern* (any case).

    Every entry is re-validated through *sandbox* before it is reported or
    descended into. Unreadable directories, broken links and entries the
    sandbox rejects are skipped; the walk never aborts because of one child.

    Raises:
        InvalidArgumentError: If *pattern* is blank.
    """
    if not pattern or not pattern.strip():
        raise InvalidArgumentError("Search pattern must be a non-empty string")

    needle = pattern.lower()
    excludes = [item for item in exclude_patterns if item and item.strip()]
    root_path = os.fspath(root)
    results: list[str] = []
    visited: set[str] = set()
    pending = [root_path]
    resolved_directories = sandbox.resolved_directories()

    while pending:
        directory = pending.pop()
        real_directory = os.path.realpath(directory)
        if real_directory in visited:
            continue
        visited.add(real_directory)

        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", directory, exc)
            continue

        subdirectories: list[str] = []
        for entry in entries:
            full_path = f"{directory.rstrip('/')}/{entry.name}"
            relative = os.path.relpath(full_path, root_path).replace(os.sep, "/")
            if is_excluded(entry.name, relative, excludes):
                continue
            try:
                sandbox.validate(
                    full_path, resolved_directories=resolved_directories
                )
                is_directory = entry.is_dir()
            except (FilesystemError, OSError) as exc:
                logger.debug("Skipping %s: %s", full_path, exc)
                continue

            if needle in entry.name.lower():
                results.append(full_path)
            if is_directory:
                subdirectories.append(full_path)

        pending.extend(reversed(subdirectories))

    logger.debug(
        "Search for %r under %s matched %d path(s)", pattern, root_path, len(results)
    )
    return results
