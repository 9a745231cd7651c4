"""Shared fixtures: an allowed directory, a sibling outside it, and a filesystem."""

from __future__ import annotations

from pathlib import Path

import pytest

from open_context.lib.filesystem import (
    AllowedDirectories,
    PathSandbox,
    SandboxedFilesystem,
)


@pytest.fixture
def allowed_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "allowed"
    directory.mkdir()
    return directory


@pytest.fixture
def outside_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "outside"
    directory.mkdir()
    (directory / "secret.txt").write_text("secret", encoding="utf-8")
    return directory


@pytest.fixture
def allowed(allowed_dir: Path) -> AllowedDirectories:
    return AllowedDirectories.from_paths([str(allowed_dir)])


@pytest.fixture
def sandbox(allowed: AllowedDirectories) -> PathSandbox:
    return PathSandbox(allowed)


@pytest.fixture
def filesystem(allowed: AllowedDirectories) -> SandboxedFilesystem:
    return SandboxedFilesystem(allowed)
