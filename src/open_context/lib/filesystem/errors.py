"""Error taxonomy for the sandboxed filesystem layer.

Every failure raised by ``open_context.lib.filesystem`` carries an
``ErrorKind`` so callers can branch on the kind instead of matching message
text. Native ``OSError`` instances (permission denied, disk full) are not
wrapped and propagate with their ``errno`` intact.
"""

from __future__ import annotations

__all__ = [
    "EditNotFoundError",
    "ErrorKind",
    "FilesystemError",
    "InvalidArgumentError",
    "OutsideAllowedDirectoriesError",
    "PathNotFoundError",
]

from enum import Enum


class ErrorKind(str, Enum):
    """Tag identifying which sandbox/editor rule a failure violated."""

    OUTSIDE_ALLOWED_DIRECTORIES = "outside_allowed_directories"
    NOT_FOUND = "not_found"
    EDIT_NOT_FOUND = "edit_not_found"
    INVALID_ARGUMENT = "invalid_argument"


class FilesystemError(Exception):
    """Base class for sandbox, editor and scanner failures."""

    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


class OutsideAllowedDirectoriesError(FilesystemError):
    """The resolved location is not inside any allowed directory."""

    kind = ErrorKind.OUTSIDE_ALLOWED_DIRECTORIES


class PathNotFoundError(FilesystemError):
    """The path (or its nearest existing ancestor) does not exist."""

    kind = ErrorKind.NOT_FOUND


class InvalidArgumentError(FilesystemError):
    """Malformed pattern, non-positive line count, or existing move target."""

    kind = ErrorKind.INVALID_ARGUMENT


class EditNotFoundError(FilesystemError):
    """An edit's search text matched neither exactly nor whitespace-tolerantly.

    ``partial_content`` holds the working copy with every earlier edit of the
    same batch already applied; it is never written to disk.
    """

    kind = ErrorKind.EDIT_NOT_FOUND

    def __init__(
        self,
        old_text: str,
        *,
        path: str | None = None,
        partial_content: str = "",
    ) -> None:
        super().__init__(f"Could not find exact match for edit:\n{old_text}", path=path)
        self.old_text = old_text
        self.partial_content = partial_content
