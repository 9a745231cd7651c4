"""Async operation surface exposed to the tool dispatcher.

Every path-taking method accepts a raw string and validates it through
``PathSandbox`` before any I/O; none accepts a pre-validated path. Blocking
work runs in a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

__all__ = ["DirectoryEntry", "FileReadResult", "SandboxedFilesystem"]

import asyncio
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from open_context.lib.filesystem import content as fs_content
from open_context.lib.filesystem.editor import (
    DiffResult,
    EditOperation,
    apply_file_edits,
)
from open_context.lib.filesystem.errors import FilesystemError, InvalidArgumentError
from open_context.lib.filesystem.sandbox import (
    AllowedDirectories,
    PathIntent,
    PathSandbox,
    ValidatedPath,
)
from open_context.lib.filesystem.scanner import search_files
from open_context.lib.filesystem.stats import FileStats, format_size, get_file_stats

logger = logging.getLogger(__name__)

SortKey = Literal["name", "size"]


@dataclass(frozen=True)
class DirectoryEntry:
    """One child of a listed directory."""

    name: str
    kind: Literal["file", "directory"]
    size_bytes: int | None = None
    formatted_size: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "type": self.kind}
        if self.formatted_size is not None:
            payload["size"] = self.formatted_size
        return payload


@dataclass(frozen=True)
class FileReadResult:
    """Per-path slot of a batch read: either ``content`` or an error."""

    path: str
    content: str | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"path": self.path, "content": self.content}
        return {"path": self.path, "error": self.error, "error_kind": self.error_kind}


def _error_kind(exc: Exception) -> str:
    if isinstance(exc, FilesystemError):
        return exc.kind.value
    return type(exc).__name__


def _list_entries(directory: str, *, with_sizes: bool) -> list[DirectoryEntry]:
    entries: list[DirectoryEntry] = []
    with os.scandir(directory) as iterator:
        for item in iterator:
            is_directory = item.is_dir()
            if not with_sizes or is_directory:
                entries.append(
                    DirectoryEntry(
                        name=item.name,
                        kind="directory" if is_directory else "file",
                    )
                )
                continue
            try:
                size = item.stat().st_size
            except OSError:
                size = 0
            entries.append(
                DirectoryEntry(
                    name=item.name,
                    kind="file",
                    size_bytes=size,
                    formatted_size=format_size(size),
                )
            )
    return entries


def _move(source: str, destination: str) -> None:
    if os.path.lexists(destination):
        msg = f"Destination already exists: {destination}"
        raise InvalidArgumentError(msg, path=destination)
    os.rename(source, destination)


class SandboxedFilesystem:
    """Filesystem operations confined to an immutable allowed-directory set.

    Example:
        fs = SandboxedFilesystem(AllowedDirectories.from_paths(["/data"]))
        await fs.write_file_content("/data/a.txt", "line1\\nline2\\n")
        diff = await fs.apply_file_edits(
            "/data/a.txt", [EditOperation(old_text="line1", new_text="LINE1")]
        )
    """

    def __init__(self, allowed: AllowedDirectories) -> None:
        self._sandbox = PathSandbox(allowed)

    @property
    def sandbox(self) -> PathSandbox:
        return self._sandbox

    @staticmethod
    def format_size(num_bytes: int) -> str:
        return format_size(num_bytes)

    def list_allowed_directories(self) -> list[str]:
        return self._sandbox.list_allowed()

    async def validate_path(
        self,
        path: str,
        *,
        intent: PathIntent = PathIntent.READ,
    ) -> ValidatedPath:
        return await asyncio.to_thread(self._sandbox.validate, path, intent=intent)

    async def get_file_stats(self, path: str) -> FileStats:
        validated = await self.validate_path(path)
        return await asyncio.to_thread(get_file_stats, validated.path)

    async def read_file_content(self, path: str) -> str:
        validated = await self.validate_path(path)
        return await asyncio.to_thread(fs_content.read_text, validated.path)

    async def write_file_content(self, path: str, content: str) -> int:
        """Create or overwrite *path*; returns the number of bytes written."""
        validated = await self.validate_path(path, intent=PathIntent.CREATE)
        written = await asyncio.to_thread(
            fs_content.write_text, validated.path, content
        )
        logger.info("Wrote %d bytes to %s", written, validated.path)
        return written

    async def head_file(self, path: str, count: int) -> str:
        validated = await self.validate_path(path)
        return await asyncio.to_thread(fs_content.head_lines, validated.path, count)

    async def tail_file(self, path: str, count: int) -> str:
        validated = await self.validate_path(path)
        return await asyncio.to_thread(fs_content.tail_lines, validated.path, count)

    async def apply_file_edits(
        self,
        path: str,
        edits: Sequence[EditOperation],
        *,
        dry_run: bool = False,
    ) -> DiffResult:
        validated = await self.validate_path(path)
        return await asyncio.to_thread(
            apply_file_edits, validated.path, list(edits), dry_run=dry_run
        )

    async def search_files_with_validation(
        self,
        path: str,
        pattern: str,
        *,
        exclude_patterns: Sequence[str] = (),
    ) -> list[str]:
        validated = await self.validate_path(path)
        return await asyncio.to_thread(
            search_files,
            validated.path,
            pattern,
            self._sandbox,
            exclude_patterns=tuple(exclude_patterns),
        )

    async def list_directory(self, path: str) -> list[DirectoryEntry]:
        validated = await self.validate_path(path)
        entries = await asyncio.to_thread(
            _list_entries, validated.path, with_sizes=False
        )
        return sorted(entries, key=lambda entry: entry.name)

    async def list_directory_with_sizes(
        self,
        path: str,
        *,
        sort_by: SortKey = "name",
    ) -> list[DirectoryEntry]:
        """List *path* with formatted file sizes.

        ``sort_by="size"`` puts directories first (by name), then files by
        descending size.
        """
        if sort_by not in ("name", "size"):
            msg = f"sort_by must be 'name' or 'size', got {sort_by!r}"
            raise InvalidArgumentError(msg)
        validated = await self.validate_path(path)
        entries = await asyncio.to_thread(
            _list_entries, validated.path, with_sizes=True
        )
        if sort_by == "size":
            return sorted(
                entries,
                key=lambda entry: (
                    entry.kind != "directory",
                    -(entry.size_bytes or 0),
                    entry.name,
                ),
            )
        return sorted(entries, key=lambda entry: entry.name)

    async def read_multiple_files(self, paths: Sequence[str]) -> list[FileReadResult]:
        """Read every path independently; one failure never aborts the rest."""

        async def read_one(raw_path: str) -> FileReadResult:
            try:
                text = await self.read_file_content(raw_path)
            except (FilesystemError, OSError, UnicodeError) as exc:
                logger.debug("Batch read failed for %s: %s", raw_path, exc)
                return FileReadResult(
                    path=raw_path, error=str(exc), error_kind=_error_kind(exc)
                )
            return FileReadResult(path=raw_path, content=text)

        return list(await asyncio.gather(*(read_one(item) for item in paths)))

    async def create_directory(self, path: str) -> ValidatedPath:
        validated = await self.validate_path(path, intent=PathIntent.CREATE)
        await asyncio.to_thread(os.makedirs, validated.path, exist_ok=True)
        logger.info("Created directory %s", validated.path)
        return validated

    async def move_file(
        self, source: str, destination: str
    ) -> tuple[ValidatedPath, ValidatedPath]:
        """Rename *source* to *destination*; fails if the destination exists."""
        validated_source = await self.validate_path(source)
        validated_destination = await self.validate_path(
            destination, intent=PathIntent.CREATE
        )
        await asyncio.to_thread(
            _move, validated_source.path, validated_destination.path
        )
        logger.info("Moved %s to %s", validated_source.path, validated_destination.path)
        return validated_source, validated_destination
