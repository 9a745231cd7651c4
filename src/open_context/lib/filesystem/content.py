"""Blocking text I/O on already-validated paths.

These helpers perform no sandbox checks themselves; callers go through
``SandboxedFilesystem`` which validates first.
"""

from __future__ import annotations

__all__ = ["head_lines", "read_text", "tail_lines", "write_text"]

import os
from pathlib import Path

from open_context.lib.filesystem.errors import InvalidArgumentError

_TAIL_CHUNK_SIZE = 4096


def _require_positive(count: int, *, name: str) -> None:
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidArgumentError(f"{name} must be an integer")
    if count <= 0:
        raise InvalidArgumentError(f"{name} must be > 0")


def read_text(path: str | os.PathLike[str]) -> str:
    """Read a UTF-8 file as stored, raising ``UnicodeError`` for binary content.

    Line endings are returned untranslated.
    """
    try:
        with open(path, encoding="utf-8", newline="") as handle:
            return handle.read()
    except UnicodeDecodeError as exc:
        raise UnicodeError("file is not UTF-8 text") from exc


def write_text(path: str | os.PathLike[str], content: str) -> int:
    """Write UTF-8 *content*, creating parent directories; return byte count."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8")
    target.write_bytes(data)
    return len(data)


def head_lines(path: str | os.PathLike[str], count: int) -> str:
    """Return the first *count* lines joined by ``\\n``."""
    _require_positive(count, name="head")
    lines: list[str] = []
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            lines.append(line.rstrip("\n").rstrip("\r"))
            if len(lines) >= count:
                break
    return "\n".join(lines)


def tail_lines(path: str | os.PathLike[str], count: int) -> str:
    """Return the last *count* lines joined by ``\\n``.

    The file is scanned backwards in fixed-size chunks, so only the tail end
    is loaded even for very large files.
    """
    _require_positive(count, name="tail")
    with open(path, "rb") as handle:
        handle.seek(0, os.SEEK_END)
        position = handle.tell()
        buffer = b""
        while position > 0 and buffer.count(b"\n") <= count:
            read_size = min(_TAIL_CHUNK_SIZE, position)
            position -= read_size
            handle.seek(position)
            buffer = handle.read(read_size) + buffer

    if position > 0:
        # Drop the partial first line so decoding starts on a line boundary.
        buffer = buffer[buffer.index(b"\n") + 1 :]
    try:
        text = buffer.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise UnicodeError("file is not UTF-8 text") from exc

    lines = text.replace("\r\n", "\n").split("\n")
    if text.endswith("\n"):
        lines.pop()
    return "\n".join(lines[-count:])
