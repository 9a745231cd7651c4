"""Tests for open_context.lib.filesystem.sandbox path validation."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path

import pytest

from open_context.lib.filesystem.errors import (
    ErrorKind,
    InvalidArgumentError,
    OutsideAllowedDirectoriesError,
    PathNotFoundError,
)
from open_context.lib.filesystem.sandbox import (
    AllowedDirectories,
    PathIntent,
    PathSandbox,
)

# ---------------------------------------------------------------------------
# AllowedDirectories
# ---------------------------------------------------------------------------


class TestAllowedDirectories:
    def test_normalizes_and_deduplicates(self, tmp_path: Path) -> None:
        allowed = AllowedDirectories.from_paths(
            [str(tmp_path), f"{tmp_path}/", f"{tmp_path}/./", f"{tmp_path}/x/.."]
        )
        assert allowed.directories == (str(tmp_path),)

    def test_preserves_first_seen_order(self, tmp_path: Path) -> None:
        first, second = tmp_path / "b", tmp_path / "a"
        allowed = AllowedDirectories.from_paths([str(first), str(second), str(first)])
        assert list(allowed) == [str(first), str(second)]

    def test_drops_blank_entries(self, tmp_path: Path) -> None:
        allowed = AllowedDirectories.from_paths(["", "   ", str(tmp_path)])
        assert len(allowed) == 1

    def test_relative_entries_resolve_against_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        allowed = AllowedDirectories.from_paths(["data"])
        assert allowed.directories == (f"{tmp_path}/data",)

    def test_does_not_resolve_symlinks(self, tmp_path: Path) -> None:
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        link.symlink_to(real)
        allowed = AllowedDirectories.from_paths([str(link)])
        assert allowed.directories == (str(link),)

    def test_is_immutable(self, tmp_path: Path) -> None:
        allowed = AllowedDirectories.from_paths([str(tmp_path)])
        with pytest.raises(dataclasses.FrozenInstanceError):
            allowed.directories = ()  # type: ignore[misc]

    def test_contains_is_lexical(self) -> None:
        allowed = AllowedDirectories.from_paths(["/data"])
        assert allowed.contains("/data/a.txt") is True
        assert allowed.contains("/database") is False


# ---------------------------------------------------------------------------
# PathSandbox.validate with read intent
# ---------------------------------------------------------------------------


class TestValidateRead:
    @pytest.mark.parametrize("suffix", ["a.txt", "sub/b.txt", "sub/deeper/c.txt"])
    def test_descendants_validate_under_allowed_prefix(
        self, sandbox: PathSandbox, allowed_dir: Path, suffix: str
    ) -> None:
        target = allowed_dir / suffix
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("x", encoding="utf-8")

        validated = sandbox.validate(f"{allowed_dir}/{suffix}")

        assert validated.path == str(target.resolve())

    def test_allowed_directory_itself(
        self, sandbox: PathSandbox, allowed_dir: Path
    ) -> None:
        assert sandbox.validate(str(allowed_dir)).path == str(allowed_dir.resolve())

    def test_validated_path_is_path_like(
        self, sandbox: PathSandbox, allowed_dir: Path
    ) -> None:
        (allowed_dir / "f.txt").write_text("x", encoding="utf-8")
        validated = sandbox.validate(str(allowed_dir / "f.txt"))
        assert os.fspath(validated) == validated.path
        assert str(validated) == validated.path

    def test_outside_existing_path_rejected(
        self, sandbox: PathSandbox, outside_dir: Path
    ) -> None:
        with pytest.raises(OutsideAllowedDirectoriesError) as excinfo:
            sandbox.validate(str(outside_dir / "secret.txt"))
        assert excinfo.value.kind is ErrorKind.OUTSIDE_ALLOWED_DIRECTORIES

    def test_outside_missing_path_rejected_before_existence_check(
        self, sandbox: PathSandbox
    ) -> None:
        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate("/definitely/not/here.txt")

    def test_etc_passwd_rejected(self) -> None:
        sandbox = PathSandbox(AllowedDirectories.from_paths(["/data"]))
        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate("/etc/passwd")

    def test_prefix_collision_rejected(self, tmp_path: Path) -> None:
        alice = tmp_path / "alice"
        alice.mkdir()
        secret = tmp_path / "alice-secret"
        secret.mkdir()
        (secret / "file.txt").write_text("secret", encoding="utf-8")
        sandbox = PathSandbox(AllowedDirectories.from_paths([str(alice)]))

        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate(str(secret / "file.txt"))

    def test_parent_traversal_rejected(
        self, sandbox: PathSandbox, allowed_dir: Path, outside_dir: Path
    ) -> None:
        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate(f"{allowed_dir}/../outside/secret.txt")

    def test_traversal_that_lands_inside_is_fine(
        self, sandbox: PathSandbox, allowed_dir: Path
    ) -> None:
        (allowed_dir / "sub").mkdir()
        (allowed_dir / "f.txt").write_text("x", encoding="utf-8")
        validated = sandbox.validate(f"{allowed_dir}/sub/../f.txt")
        assert validated.path == str((allowed_dir / "f.txt").resolve())

    def test_symlink_escape_rejected(
        self, sandbox: PathSandbox, allowed_dir: Path, outside_dir: Path
    ) -> None:
        link = allowed_dir / "sneaky"
        link.symlink_to(outside_dir)
        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate(str(link))
        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate(str(link / "secret.txt"))

    def test_symlink_within_sandbox_resolves_to_target(
        self, sandbox: PathSandbox, allowed_dir: Path
    ) -> None:
        real = allowed_dir / "real.txt"
        real.write_text("content", encoding="utf-8")
        link = allowed_dir / "link.txt"
        link.symlink_to(real)
        assert sandbox.validate(str(link)).path == str(real.resolve())

    def test_allowed_directory_configured_through_symlink(self, tmp_path: Path) -> None:
        real = tmp_path / "real"
        real.mkdir()
        (real / "f.txt").write_text("x", encoding="utf-8")
        link = tmp_path / "link"
        link.symlink_to(real)
        sandbox = PathSandbox(AllowedDirectories.from_paths([str(link)]))

        validated = sandbox.validate(str(link / "f.txt"))

        assert validated.path == str((real / "f.txt").resolve())

    def test_missing_path_raises_not_found(
        self, sandbox: PathSandbox, allowed_dir: Path
    ) -> None:
        with pytest.raises(PathNotFoundError) as excinfo:
            sandbox.validate(str(allowed_dir / "ghost.txt"))
        assert excinfo.value.kind is ErrorKind.NOT_FOUND

    def test_dangling_symlink_is_not_found_for_reads(
        self, sandbox: PathSandbox, allowed_dir: Path
    ) -> None:
        (allowed_dir / "dangling").symlink_to(allowed_dir / "nowhere")
        with pytest.raises(PathNotFoundError):
            sandbox.validate(str(allowed_dir / "dangling"))

    def test_empty_path_rejected(self, sandbox: PathSandbox) -> None:
        with pytest.raises(InvalidArgumentError):
            sandbox.validate("   ")

    def test_home_shorthand_expanded(
        self, allowed_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("HOME", str(allowed_dir))
        (allowed_dir / "notes.txt").write_text("x", encoding="utf-8")
        sandbox = PathSandbox(AllowedDirectories.from_paths(["~"]))
        assert sandbox.validate("~/notes.txt").path == str(
            (allowed_dir / "notes.txt").resolve()
        )


# ---------------------------------------------------------------------------
# PathSandbox.validate with create intent
# ---------------------------------------------------------------------------


class TestValidateCreate:
    def test_new_leaf_allowed(self, sandbox: PathSandbox, allowed_dir: Path) -> None:
        validated = sandbox.validate(
            str(allowed_dir / "new.txt"), intent=PathIntent.CREATE
        )
        assert validated.path == f"{allowed_dir.resolve()}/new.txt"

    def test_nested_missing_directories_allowed(
        self, sandbox: PathSandbox, allowed_dir: Path
    ) -> None:
        validated = sandbox.validate(
            str(allowed_dir / "a" / "b" / "c.txt"), intent=PathIntent.CREATE
        )
        assert validated.path == f"{allowed_dir.resolve()}/a/b/c.txt"

    def test_write_through_escaping_symlink_dir_rejected(
        self, sandbox: PathSandbox, allowed_dir: Path, outside_dir: Path
    ) -> None:
        link = allowed_dir / "escape_dir"
        link.symlink_to(outside_dir)
        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate(str(link / "payload.txt"), intent=PathIntent.CREATE)

    def test_dangling_symlink_leaf_pointing_outside_rejected(
        self, sandbox: PathSandbox, allowed_dir: Path, outside_dir: Path
    ) -> None:
        link = allowed_dir / "trap.txt"
        link.symlink_to(outside_dir / "not-yet.txt")
        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate(str(link), intent=PathIntent.CREATE)

    def test_missing_allowed_directory_is_not_found(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing"
        sandbox = PathSandbox(AllowedDirectories.from_paths([str(missing)]))
        with pytest.raises(PathNotFoundError):
            sandbox.validate(str(missing / "x.txt"), intent=PathIntent.CREATE)

    def test_outside_rejected_regardless_of_intent(
        self, sandbox: PathSandbox, outside_dir: Path
    ) -> None:
        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate(str(outside_dir / "new.txt"), intent=PathIntent.CREATE)


# ---------------------------------------------------------------------------
# Introspection helpers
# ---------------------------------------------------------------------------


class TestIntrospection:
    def test_list_allowed_returns_configured_set(self, tmp_path: Path) -> None:
        first, second = tmp_path / "one", tmp_path / "two"
        sandbox = PathSandbox(AllowedDirectories.from_paths([str(first), str(second)]))
        assert sandbox.list_allowed() == [str(first), str(second)]

    def test_is_allowed(
        self, sandbox: PathSandbox, allowed_dir: Path, outside_dir: Path
    ) -> None:
        (allowed_dir / "ok.txt").write_text("x", encoding="utf-8")
        assert sandbox.is_allowed(str(allowed_dir / "ok.txt")) is True
        assert sandbox.is_allowed(str(outside_dir / "secret.txt")) is False
        assert sandbox.is_allowed(str(allowed_dir / "missing.txt")) is False

    def test_resolved_directories_follow_symlinks(self, tmp_path: Path) -> None:
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        link.symlink_to(real)
        sandbox = PathSandbox(AllowedDirectories.from_paths([str(link)]))

        assert sandbox.resolved_directories() == (str(real.resolve()),)

    def test_precomputed_resolved_directories_are_used(self, tmp_path: Path) -> None:
        real = tmp_path / "real"
        real.mkdir()
        (real / "f.txt").write_text("x", encoding="utf-8")
        link = tmp_path / "link"
        link.symlink_to(real)
        sandbox = PathSandbox(AllowedDirectories.from_paths([str(link)]))

        with pytest.raises(OutsideAllowedDirectoriesError):
            sandbox.validate(str(link / "f.txt"), resolved_directories=())
        validated = sandbox.validate(
            str(link / "f.txt"), resolved_directories=sandbox.resolved_directories()
        )
        assert validated.path == str((real / "f.txt").resolve())
