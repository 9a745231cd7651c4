"""Sandboxed filesystem access layer.

This package contains the pieces every filesystem tool goes through:
- ``paths`` for pure path normalization and home expansion.
- ``sandbox`` for the allowed-directory set and symlink-aware validation.
- ``editor`` for exact-match edits and unified diffs.
- ``scanner`` for sandbox-confined recursive name search.
- ``stats`` for size formatting and file metadata.
- ``service`` for the async operation surface used by the MCP server.
"""

from open_context.lib.filesystem.editor import (
    DiffResult,
    EditOperation,
    apply_edits,
    apply_file_edits,
    create_unified_diff,
)
from open_context.lib.filesystem.errors import (
    EditNotFoundError,
    ErrorKind,
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
from open_context.lib.filesystem.sandbox import (
    AllowedDirectories,
    PathIntent,
    PathSandbox,
    ValidatedPath,
)
from open_context.lib.filesystem.scanner import search_files
from open_context.lib.filesystem.service import (
    DirectoryEntry,
    FileReadResult,
    SandboxedFilesystem,
)
from open_context.lib.filesystem.stats import FileStats, format_size, get_file_stats

__all__ = [
    "AllowedDirectories",
    "DiffResult",
    "DirectoryEntry",
    "EditNotFoundError",
    "EditOperation",
    "ErrorKind",
    "FileReadResult",
    "FileStats",
    "FilesystemError",
    "InvalidArgumentError",
    "OutsideAllowedDirectoriesError",
    "PathIntent",
    "PathNotFoundError",
    "PathSandbox",
    "SandboxedFilesystem",
    "ValidatedPath",
    "apply_edits",
    "apply_file_edits",
    "create_unified_diff",
    "expand_home",
    "format_size",
    "get_file_stats",
    "is_path_within",
    "normalize_path",
    "search_files",
]
