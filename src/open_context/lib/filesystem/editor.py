"""Exact-match text edits with a whitespace-tolerant fallback and unified diffs.

Edits are applied sequentially: each ``EditOperation`` searches the working
copy produced by the previous one. Content is handled with ``\\n`` line
endings internally; files that used ``\\r\\n`` get it back on write.
"""

from __future__ import annotations

__all__ = [
    "DiffResult",
    "EditOperation",
    "apply_edits",
    "apply_file_edits",
    "create_unified_diff",
    "normalize_line_endings",
]

import difflib
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from open_context.lib.filesystem.errors import EditNotFoundError, InvalidArgumentError

logger = logging.getLogger(__name__)

_NO_NEWLINE_MARKER = "\\ No newline at end of file"


class EditOperation(BaseModel):
    """One search/replace pair. Accepts ``oldText``/``newText`` from tool calls."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    old_text: str = Field(alias="oldText", description="Text to search for")
    new_text: str = Field(alias="newText", description="Text to replace with")


@dataclass(frozen=True)
class DiffResult:
    """Unified diff of an edit batch plus the post-edit content."""

    diff: str
    content: str
    original_content: str

    @property
    def changed(self) -> bool:
        return self.content != self.original_content

    def formatted(self) -> str:
        """Wrap the diff in a fenced block longer than any backtick run inside."""
        fence_len = 3
        while "`" * fence_len in self.diff:
            fence_len += 1
        fence = "`" * fence_len
        return f"{fence}diff\n{self.diff}\n{fence}\n\n"


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n")


def _split_lines_keepends(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping it; the last line may lack one."""
    parts = text.split("\n")
    lines = [f"{part}\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _leading_whitespace(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _replace_whitespace_tolerant(content: str, old: str, new: str) -> str | None:
    """Match *old* against same-length line windows ignoring outer whitespace.

    The replacement lines all take the indentation of the first matched line.
    Returns ``None`` when no window matches.
    """
    old_lines = old.split("\n")
    content_lines = content.split("\n")
    window = len(old_lines)
    stripped_old = [line.strip() for line in old_lines]

    for start in range(len(content_lines) - window + 1):
        candidate = content_lines[start : start + window]
        if [line.strip() for line in candidate] != stripped_old:
            continue
        indent = _leading_whitespace(content_lines[start])
        replacement = [
            indent + line.lstrip() if line.strip() else ""
            for line in new.split("\n")
        ]
        content_lines[start : start + window] = replacement
        return "\n".join(content_lines)
    return None


def apply_edits(
    content: str,
    edits: Sequence[EditOperation],
    *,
    path: str | None = None,
) -> str:
    """Apply *edits* in order to *content* and return the result.

    Raises:
        InvalidArgumentError: If an edit has empty search text.
        EditNotFoundError: If an edit matches neither exactly nor
            whitespace-tolerantly. Earlier edits are kept in
            ``partial_content``.
    """
    modified = content
    for edit in edits:
        old = normalize_line_endings(edit.old_text)
        new = normalize_line_endings(edit.new_text)
        if not old:
            raise InvalidArgumentError("Edit search text must not be empty", path=path)

        if old in modified:
            modified = modified.replace(old, new, 1)
            continue

        replaced = _replace_whitespace_tolerant(modified, old, new)
        if replaced is None:
            raise EditNotFoundError(edit.old_text, path=path, partial_content=modified)
        modified = replaced
    return modified


def create_unified_diff(
    original: str,
    modified: str,
    path: str = "file",
    *,
    context_lines: int = 3,
) -> str:
    """Render a git-style unified diff; empty string when nothing changed.

    A line without a terminating newline is followed by the
    ``\\ No newline at end of file`` marker, so changes that only add or
    remove the final newline still show up and the diff applies back exactly.
    """
    display = path.lstrip("/")
    diff = difflib.unified_diff(
        _split_lines_keepends(normalize_line_endings(original)),
        _split_lines_keepends(normalize_line_endings(modified)),
        fromfile=f"a/{display}",
        tofile=f"b/{display}",
        n=context_lines,
    )
    rendered: list[str] = []
    for line in diff:
        if line.endswith("\n"):
            rendered.append(line)
        else:
            rendered.append(f"{line}\n{_NO_NEWLINE_MARKER}\n")
    return "".join(rendered).removesuffix("\n")


def apply_file_edits(
    path: str | os.PathLike[str],
    edits: Sequence[EditOperation],
    *,
    dry_run: bool = False,
) -> DiffResult:
    """Apply *edits* to the file at an already-validated *path*.

    Nothing is written when ``dry_run`` is set, when any edit fails to match,
    or when the edits leave the content unchanged.
    """
    file_path = os.fspath(path)
    with open(file_path, encoding="utf-8", newline="") as handle:
        raw = handle.read()
    uses_crlf = "\r\n" in raw
    original = normalize_line_endings(raw)

    modified = apply_edits(original, edits, path=file_path)
    result = DiffResult(
        diff=create_unified_diff(original, modified, file_path),
        content=modified,
        original_content=original,
    )

    if dry_run:
        logger.debug("Dry run: %d edit(s) previewed for %s", len(edits), file_path)
        return result
    if result.changed:
        text = modified.replace("\n", "\r\n") if uses_crlf else modified
        with open(file_path, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        logger.info("Applied %d edit(s) to %s", len(edits), file_path)
    return result
