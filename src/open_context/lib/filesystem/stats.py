"""Display helpers for raw filesystem metadata."""

from __future__ import annotations

__all__ = ["FileStats", "format_size", "get_file_stats"]

import os
import stat
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from open_context.lib.filesystem.errors import InvalidArgumentError

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")


def format_size(num_bytes: int) -> str:
    """Render *num_bytes* with 1024-based units (``1536`` -> ``"1.5 KB"``)."""
    if num_bytes < 0:
        raise InvalidArgumentError("Size must be a non-negative integer")

    value = float(num_bytes)
    unit_index = 0
    while value >= 1024 and unit_index < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{num_bytes} B"
    rendered = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{rendered} {_SIZE_UNITS[unit_index]}"


@dataclass(frozen=True)
class FileStats:
    """Metadata of a single file or directory."""

    size: int
    created_at: datetime
    modified_at: datetime
    accessed_at: datetime
    is_directory: bool
    is_file: bool
    permissions: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "created": self.created_at.isoformat(),
            "modified": self.modified_at.isoformat(),
            "accessed": self.accessed_at.isoformat(),
            "isDirectory": self.is_directory,
            "isFile": self.is_file,
            "permissions": self.permissions,
        }


def get_file_stats(path: str | os.PathLike[str]) -> FileStats:
    """Read ``os.stat`` for *path*; creation time falls back to ``st_ctime``."""
    info = os.stat(path)
    created = getattr(info, "st_birthtime", info.st_ctime)
    return FileStats(
        size=info.st_size,
        created_at=datetime.fromtimestamp(created),
        modified_at=datetime.fromtimestamp(info.st_mtime),
        accessed_at=datetime.fromtimestamp(info.st_atime),
        is_directory=stat.S_ISDIR(info.st_mode),
        is_file=stat.S_ISREG(info.st_mode),
        permissions=f"{stat.S_IMODE(info.st_mode) & 0o777:03o}",
    )
