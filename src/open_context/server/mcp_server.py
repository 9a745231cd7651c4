"""MCP server for open_context.

Exposes the sandboxed filesystem layer over the Model Context Protocol so AI
clients (Claude Desktop, Cursor, etc.) can read, search and edit files inside
the configured allowed directories.

Tools:
  - list_allowed_directories: Show the directories this server may touch.
  - list_directory / list_directory_with_sizes: List a directory's entries.
  - get_file_info: Size, timestamps, type and permissions of a path.
  - read_text_file: Read a file, optionally only its first/last N lines.
  - read_multiple_files: Read several files; failures are reported per path.
  - write_file: Create or overwrite a UTF-8 file.
  - edit_file: Apply exact-match edits and return a git-style diff.
  - create_directory: Create a directory (and parents).
  - move_file: Move or rename a file or directory.
  - search_files: Recursive case-insensitive name search.

Resources:
  - fs://allowed-directories: The allowed directory list as text.

Run with:
  open-context-mcp /path/one /path/two          (stdio)
  open-context-mcp --http /path/one             (streamable-http)
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Literal

from mcp.server.fastmcp import FastMCP

from open_context.lib.config import Config
from open_context.lib.filesystem import (
    EditNotFoundError,
    EditOperation,
    InvalidArgumentError,
    OutsideAllowedDirectoriesError,
    PathNotFoundError,
    SandboxedFilesystem,
)

logger = logging.getLogger(__name__)

_INSTRUCTIONS = (
    "open_context MCP server. Call list_allowed_directories first; every "
    "path must resolve inside one of those directories."
)


@contextmanager
def _tool_errors() -> Iterator[None]:
    """Map sandbox error kinds onto the builtin exceptions MCP clients see."""
    try:
        yield
    except OutsideAllowedDirectoriesError as exc:
        raise PermissionError(exc.message) from exc
    except PathNotFoundError as exc:
        raise FileNotFoundError(exc.message) from exc
    except (EditNotFoundError, InvalidArgumentError) as exc:
        raise ValueError(exc.message) from exc


class FilesystemTools:
    """Tool handlers bound to one ``SandboxedFilesystem``."""

    def __init__(self, filesystem: SandboxedFilesystem) -> None:
        self._fs = filesystem

    async def list_allowed_directories(self) -> list[str]:
        """Return the directories this server is allowed to access.

        Use this to understand which directories are available before trying
        to access files.
        """
        return self._fs.list_allowed_directories()

    async def list_directory(self, path: str) -> list[dict[str, Any]]:
        """List files and directories directly inside *path*.

        Args:
            path: Directory to list.

        Returns:
            Entries with ``name`` and ``type`` ("file" or "directory").
        """
        with _tool_errors():
            entries = await self._fs.list_directory(path)
        return [entry.to_dict() for entry in entries]

    async def list_directory_with_sizes(
        self,
        path: str,
        sort_by: Literal["name", "size"] = "name",
    ) -> list[dict[str, Any]]:
        """List a directory including human-readable file sizes.

        Args:
            path: Directory to list.
            sort_by: "name" (default) or "size" (directories first, then
                largest files first).
        """
        with _tool_errors():
            entries = await self._fs.list_directory_with_sizes(path, sort_by=sort_by)
        return [entry.to_dict() for entry in entries]

    async def get_file_info(self, path: str) -> dict[str, Any]:
        """Return size, timestamps, type and permissions for *path*."""
        with _tool_errors():
            stats = await self._fs.get_file_stats(path)
        return stats.to_dict()

    async def read_text_file(
        self,
        path: str,
        head: int | None = None,
        tail: int | None = None,
    ) -> str:
        """Read a UTF-8 text file.

        Args:
            path: File to read.
            head: If provided, return only the first N lines.
            tail: If provided, return only the last N lines.

        Returns:
            The file contents (or the selected lines).
        """
        with _tool_errors():
            if head is not None and tail is not None:
                raise InvalidArgumentError("Cannot specify both head and tail")
            if head is not None:
                return await self._fs.head_file(path, head)
            if tail is not None:
                return await self._fs.tail_file(path, tail)
            return await self._fs.read_file_content(path)

    async def read_multiple_files(self, paths: list[str]) -> list[dict[str, Any]]:
        """Read several files at once.

        Failed reads for individual files are reported in that file's slot
        and do not stop the others.
        """
        results = await self._fs.read_multiple_files(paths)
        return [result.to_dict() for result in results]

    async def write_file(self, path: str, content: str) -> dict[str, Any]:
        """Create a new file or overwrite an existing one with *content*.

        Returns:
            Dict with the written path and byte length.
        """
        with _tool_errors():
            written = await self._fs.write_file_content(path, content)
        return {"path": path, "bytes": written}

    async def edit_file(
        self,
        path: str,
        edits: list[EditOperation],
        dry_run: bool = False,
    ) -> str:
        """Apply line-based exact-match edits to a text file.

        Each edit replaces the first occurrence of ``oldText`` with
        ``newText``; if no verbatim match exists, lines are compared with
        surrounding whitespace ignored.

        Args:
            path: File to edit.
            edits: Ordered edits, each applied to the previous result.
            dry_run: Preview the diff without writing.

        Returns:
            A fenced git-style diff of the changes.
        """
        with _tool_errors():
            result = await self._fs.apply_file_edits(path, edits, dry_run=dry_run)
        return result.formatted()

    async def create_directory(self, path: str) -> dict[str, Any]:
        """Create a directory, including missing parents. Existing is fine."""
        with _tool_errors():
            created = await self._fs.create_directory(path)
        return {"path": created.path}

    async def move_file(self, source: str, destination: str) -> dict[str, Any]:
        """Move or rename a file or directory. Fails if the destination exists."""
        with _tool_errors():
            moved_from, moved_to = await self._fs.move_file(source, destination)
        return {"source": moved_from.path, "destination": moved_to.path}

    async def search_files(
        self,
        path: str,
        pattern: str,
        exclude_patterns: list[str] | None = None,
    ) -> list[str]:
        """Recursively find entries whose name contains *pattern* (any case).

        Args:
            path: Directory to start from.
            pattern: Case-insensitive substring to look for in names.
            exclude_patterns: Names or glob patterns to skip entirely.
        """
        with _tool_errors():
            return await self._fs.search_files_with_validation(
                path, pattern, exclude_patterns=exclude_patterns or ()
            )

    def allowed_directories_resource(self) -> str:
        """List the allowed directories, one per line."""
        directories = self._fs.list_allowed_directories()
        if not directories:
            return "No allowed directories configured."
        return "\n".join(f"- {directory}" for directory in directories)

    def handlers(self) -> list[Any]:
        return [
            self.list_allowed_directories,
            self.list_directory,
            self.list_directory_with_sizes,
            self.get_file_info,
            self.read_text_file,
            self.read_multiple_files,
            self.write_file,
            self.edit_file,
            self.create_directory,
            self.move_file,
            self.search_files,
        ]


def create_server(filesystem: SandboxedFilesystem) -> FastMCP:
    """Build a FastMCP server whose tools are bound to *filesystem*."""
    tools = FilesystemTools(filesystem)
    server = FastMCP("open_context", instructions=_INSTRUCTIONS)
    for handler in tools.handlers():
        server.add_tool(handler)
    server.resource("fs://allowed-directories")(tools.allowed_directories_resource)
    return server


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the MCP entry point."""
    parser = argparse.ArgumentParser(
        prog="open-context-mcp",
        description="Serve sandboxed filesystem tools over MCP.",
    )
    parser.add_argument(
        "directories",
        nargs="*",
        help=(
            "Allowed directories (overrides OPEN_CONTEXT_ALLOWED_DIRECTORIES). "
            "The working directory and program directory are always added "
            "unless OPEN_CONTEXT_INCLUDE_DEFAULT_DIRECTORIES=0."
        ),
    )
    parser.add_argument(
        "--http",
        action="store_true",
        help="Use the streamable-http transport instead of stdio.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Enable debug logging on stderr.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the MCP server."""
    args = build_parser().parse_args(argv)
    config = Config.from_env(
        overrides={
            "allowed_directories": tuple(args.directories) or None,
            "verbose": args.verbose,
        }
    )
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    allowed = config.allowed_directory_set()
    logger.info("Allowed directories: %s", ", ".join(allowed) or "<none>")
    server = create_server(SandboxedFilesystem(allowed))
    transport = "streamable-http" if args.http else "stdio"
    server.run(transport=transport)


if __name__ == "__main__":
    main()
