"""Tests for the Layout Rewriter — pure planning and on-disk execution."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest
from conftest import TARGET_RUNTIME, deny_listing, write

from bundleforge.core.layout_rewriter import plan_rewrite, rewrite
from bundleforge.models.config import BuildConfig
from bundleforge.models.layout import (
    EntryKind,
    LayoutError,
    MakeDir,
    Move,
    Symlink,
    WorkspaceState,
    apply_all,
)
from bundleforge.models.workspace import BuildWorkspace


@pytest.fixture
def staged(tmp_path: Path) -> BuildWorkspace:
    """A workspace as it looks after vendoring."""
    ws = BuildWorkspace(source_root=tmp_path / "src", build_root=tmp_path / "build")
    code = ws.code_root
    write(code / "app.py", "print('hi')\n")
    write(code / "bundled" / "lib" / "python3.12" / "site-packages" / "requests" / "__init__.py", "")
    write(code / "sidecar" / "model.bin", "weights")
    return ws


def _config(**overrides) -> BuildConfig:
    return BuildConfig(runtime_version=TARGET_RUNTIME, **overrides)


class TestPlanRewrite:
    def test_lazy_load_plan(self, staged: BuildWorkspace):
        state = WorkspaceState.scan(staged.stage_root)
        ops = plan_rewrite(staged, True, TARGET_RUNTIME, ["sidecar"], state)
        assert [type(op) for op in ops] == [MakeDir, Move, Symlink, Symlink, Move, Symlink]

        final = apply_all(state, ops)
        code = staged.code_root
        assert final.get(code / "bundled").target == "/opt/bundled"
        assert final.get(code / "vendor" / "lib" / "python3.12").target == "/opt/bundled/lib/python3.12"
        assert final.get(code / "sidecar").target == "/tmp/sidecar"
        assert final.is_dir(staged.bundled_root / "lib" / "python3.12" / "site-packages")
        assert final.exists(staged.scratch_root("sidecar") / "model.bin")

    def test_planning_is_pure(self, staged: BuildWorkspace):
        state = WorkspaceState.scan(staged.stage_root)
        plan_rewrite(staged, True, TARGET_RUNTIME, ["sidecar"], state)
        assert (staged.code_root / "bundled").is_dir()
        assert not (staged.code_root / "bundled").is_symlink()
        assert WorkspaceState.scan(staged.stage_root) == state

    def test_no_lazy_load_keeps_bundled(self, staged: BuildWorkspace):
        state = WorkspaceState.scan(staged.stage_root)
        ops = plan_rewrite(staged, False, TARGET_RUNTIME, ["sidecar"], state)
        assert [type(op) for op in ops] == [Move, Symlink]
        assert apply_all(state, ops).is_dir(staged.code_root / "bundled")

    def test_nothing_vendored(self, staged: BuildWorkspace):
        shutil.rmtree(staged.code_root / "bundled")
        state = WorkspaceState.scan(staged.stage_root)
        assert plan_rewrite(staged, True, TARGET_RUNTIME, [], state) == []

    def test_scratch_already_linked_is_skipped(self, staged: BuildWorkspace):
        shutil.rmtree(staged.code_root / "sidecar")
        os.symlink("/tmp/sidecar", staged.code_root / "sidecar")
        state = WorkspaceState.scan(staged.stage_root)
        assert plan_rewrite(staged, False, TARGET_RUNTIME, ["sidecar"], state) == []

    def test_vendor_dir_conflict_rejected(self, staged: BuildWorkspace):
        (staged.code_root / "vendor" / "lib" / "python3.12").mkdir(parents=True)
        state = WorkspaceState.scan(staged.stage_root)
        with pytest.raises(LayoutError, match="real directory"):
            plan_rewrite(staged, True, TARGET_RUNTIME, [], state)


class TestOperations:
    def test_move_rekeys_subtree(self, tmp_path: Path):
        state = WorkspaceState(entries={})
        state = MakeDir(path=tmp_path / "a" / "b").apply(state)
        state = Move(source=tmp_path / "a", destination=tmp_path / "z").apply(state)
        assert state.is_dir(tmp_path / "z" / "b")
        assert not state.exists(tmp_path / "a")

    def test_move_missing_source(self, tmp_path: Path):
        with pytest.raises(LayoutError, match="does not exist"):
            Move(source=tmp_path / "a", destination=tmp_path / "b").apply(WorkspaceState())

    def test_move_onto_existing(self, tmp_path: Path):
        state = MakeDir(path=tmp_path / "b").apply(MakeDir(path=tmp_path / "a").apply(WorkspaceState()))
        with pytest.raises(LayoutError, match="already exists"):
            Move(source=tmp_path / "a", destination=tmp_path / "b").apply(state)

    def test_scan_records_links_without_following(self, tmp_path: Path):
        write(tmp_path / "root" / "f.txt", "x")
        os.symlink("/nonexistent/target", tmp_path / "root" / "dangling")
        state = WorkspaceState.scan(tmp_path / "root")
        assert state.get(tmp_path / "root" / "f.txt").kind == EntryKind.FILE
        assert state.get(tmp_path / "root" / "dangling").target == "/nonexistent/target"

    def test_scan_unlistable_directory_is_an_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        write(tmp_path / "root" / "secret" / "f.txt", "x")
        deny_listing(monkeypatch, tmp_path / "root" / "secret")
        with pytest.raises(PermissionError):
            WorkspaceState.scan(tmp_path / "root")


class TestRewrite:
    def test_lazy_load_on_disk(self, staged: BuildWorkspace):
        state = rewrite(staged, _config(lazy_load=True))
        code = staged.code_root
        assert os.readlink(code / "bundled") == "/opt/bundled"
        assert os.readlink(code / "vendor" / "lib" / "python3.12") == "/opt/bundled/lib/python3.12"
        assert os.readlink(code / "sidecar") == "/tmp/sidecar"
        assert (staged.bundled_root / "lib" / "python3.12" / "site-packages" / "requests").is_dir()
        assert (staged.scratch_root("sidecar") / "model.bin").read_text() == "weights"
        assert state == WorkspaceState.scan(staged.stage_root)

    def test_lazy_load_off_on_disk(self, staged: BuildWorkspace):
        rewrite(staged, _config(lazy_load=False))
        assert (staged.code_root / "bundled").is_dir()
        assert not (staged.code_root / "bundled").is_symlink()
        assert not staged.deferred_root.exists()
        assert (staged.code_root / "sidecar").is_symlink()
