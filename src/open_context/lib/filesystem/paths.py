"""Pure path canonicalization helpers.

Nothing in this module touches the filesystem; symlink resolution belongs to
``open_context.lib.filesystem.sandbox``.
"""

from __future__ import annotations

__all__ = ["expand_home", "is_path_within", "normalize_path"]

import os


def expand_home(path: str) -> str:
    """Replace a leading ``~`` (exactly ``~`` or ``~/...``) with the home dir."""
    if path == "~" or path.startswith("~/"):
        return os.path.expanduser("~") + path[1:]
    return path


def normalize_path(path: str) -> str:
    """Return an absolute, ``/``-separated form of *path*.

    Relative inputs are resolved against the current working directory and
    ``.``/``..`` segments are collapsed lexically.
    """
    normalized = os.path.normpath(os.path.abspath(path.replace("\\", "/")))
    normalized = normalized.replace("\\", "/")
    if len(normalized) > 1:
        normalized = normalized.rstrip("/") or "/"
    return normalized


def is_path_within(target: str, directory: str) -> bool:
    """Return whether *target* equals or descends from *directory*.

    Both sides get a trailing separator before the prefix test so that
    ``/home/alice-secret`` is not treated as inside ``/home/alice``.
    """
    if target == directory:
        return True
    directory_with_slash = directory if directory.endswith("/") else directory + "/"
    target_with_slash = target if target.endswith("/") else target + "/"
    return target_with_slash.startswith(directory_with_slash)
