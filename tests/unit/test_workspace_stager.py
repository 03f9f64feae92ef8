"""Tests for the Workspace Stager — isolated copy, relocation, tree hygiene."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest
from conftest import deny_listing

from bundleforge.core.content_addressor import tree_digest
from bundleforge.core.workspace_stager import (
    WorkspaceError,
    clean_project,
    clean_start,
    relocated,
    stage,
    write_asset_base_url,
)
from bundleforge.models.config import BuildConfig
from bundleforge.models.workspace import BuildWorkspace

DEFAULTS = BuildConfig()


def _stage(source: Path, build_root: Path, **kwargs) -> BuildWorkspace:
    kwargs.setdefault("relocate_dirs", DEFAULTS.relocate_dirs)
    kwargs.setdefault("ignore_patterns", DEFAULTS.ignore_patterns)
    return stage(source, build_root, **kwargs)


class TestStage:
    def test_copies_project(self, sample_project: Path, build_root: Path):
        ws = _stage(sample_project, build_root)
        assert (ws.code_root / "app.py").read_text().startswith("def handler")
        assert (ws.code_root / "config" / "settings.json").is_file()
        assert (ws.code_root / "requirements.txt").is_file()

    def test_source_tree_untouched(self, sample_project: Path, build_root: Path):
        before = sorted(p.relative_to(sample_project) for p in sample_project.rglob("*"))
        _stage(sample_project, build_root)
        after = sorted(p.relative_to(sample_project) for p in sample_project.rglob("*"))
        assert before == after

    def test_relocated_dir_not_copied_and_restored(self, sample_project: Path, build_root: Path):
        ws = _stage(sample_project, build_root)
        assert not (ws.code_root / "node_modules").exists()
        assert (sample_project / "node_modules" / "left-pad" / "index.js").is_file()
        assert not (build_root / "parked" / "node_modules").exists()

    def test_removes_logs_ignored_and_zips(self, sample_project: Path, build_root: Path):
        ws = _stage(sample_project, build_root)
        assert not (ws.code_root / "log" / "development.log").exists()
        assert not (ws.code_root / "tmp" / "cache.txt").exists()
        assert not (ws.code_root / "old-build.zip").exists()

    def test_preserves_symlinks_and_modes(self, sample_project: Path, build_root: Path):
        ws = _stage(sample_project, build_root)
        link = ws.code_root / "main.py"
        assert link.is_symlink()
        assert os.readlink(link) == "app.py"
        assert os.stat(ws.code_root / "bin" / "start").st_mode & 0o111

    def test_idempotent(self, sample_project: Path, build_root: Path):
        first = _stage(sample_project, build_root)
        (first.code_root / "leftover.txt").write_text("from a previous build")
        second = _stage(sample_project, build_root)
        assert not (second.code_root / "leftover.txt").exists()
        assert (second.code_root / "app.py").is_file()

    def test_repeat_stage_same_checksum(self, sample_project: Path, build_root: Path):
        once = tree_digest(_stage(sample_project, build_root).code_root)
        _stage(sample_project, build_root)
        twice = tree_digest(_stage(sample_project, build_root).code_root)
        assert once == twice

    def test_build_root_inside_source_rejected(self, sample_project: Path):
        inside = sample_project / ".build"
        with pytest.raises(WorkspaceError, match="inside the project"):
            _stage(sample_project, inside)
        assert not inside.exists()

    def test_missing_source(self, tmp_path: Path, build_root: Path):
        with pytest.raises(WorkspaceError, match="does not exist"):
            _stage(tmp_path / "nope", build_root)

    def test_asset_base_url_written(self, sample_project: Path, build_root: Path):
        ws = _stage(sample_project, build_root, asset_base_url="https://cdn.example.com/demo")
        recorded = ws.code_root / "config" / "asset_base_url.txt"
        assert recorded.read_text() == "https://cdn.example.com/demo"


class TestRelocated:
    def test_restored_after_failure(self, sample_project: Path, tmp_path: Path):
        park = tmp_path / "park"
        with pytest.raises(RuntimeError, match="copy blew up"):
            with relocated(sample_project, park, ["node_modules"]) as parked:
                assert parked == ["node_modules"]
                assert not (sample_project / "node_modules").exists()
                raise RuntimeError("copy blew up")
        assert (sample_project / "node_modules" / "left-pad" / "index.js").is_file()
        assert not (park / "node_modules").exists()

    def test_missing_dir_skipped(self, sample_project: Path, tmp_path: Path):
        with relocated(sample_project, tmp_path / "park", ["bower_components"]) as parked:
            assert parked == []

    def test_recovers_dir_left_by_interrupted_build(
        self, sample_project: Path, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ):
        park = tmp_path / "park"
        park.mkdir()
        os.rename(sample_project / "node_modules", park / "node_modules")

        with caplog.at_level(logging.WARNING):
            with relocated(sample_project, park, ["node_modules"]) as parked:
                assert parked == ["node_modules"]
        assert (sample_project / "node_modules" / "left-pad" / "index.js").is_file()
        assert "interrupted build" in caplog.text


class TestCleanStart:
    def test_removes_only_code_archives(self, workspace: BuildWorkspace):
        workspace.artifacts_root.mkdir(parents=True)
        (workspace.artifacts_root / "code-abc.zip").write_bytes(b"old")
        (workspace.artifacts_root / "bundled-def.zip").write_bytes(b"keep")
        clean_start(workspace)
        assert not (workspace.artifacts_root / "code-abc.zip").exists()
        assert (workspace.artifacts_root / "bundled-def.zip").exists()

    def test_creates_build_root(self, workspace: BuildWorkspace):
        clean_start(workspace)
        assert workspace.build_root.is_dir()


class TestCleanProject:
    def test_name_and_path_patterns(self, tmp_path: Path):
        root = tmp_path / "code"
        (root / "log").mkdir(parents=True)
        (root / "log" / "keep-me.txt").write_text("x")
        (root / "pkg" / "log").mkdir(parents=True)
        (root / "pkg" / "log" / "nested.txt").write_text("x")
        (root / "pkg" / "error.log").write_text("x")

        removed = clean_project(root, ["*.log", "log/*"])
        # "log/*" is anchored at the code root; "*.log" matches anywhere.
        assert not (root / "log" / "keep-me.txt").exists()
        assert (root / "pkg" / "log" / "nested.txt").exists()
        assert not (root / "pkg" / "error.log").exists()
        assert removed == 2

    def test_removes_directories_whole(self, tmp_path: Path):
        root = tmp_path / "code"
        (root / ".git" / "objects").mkdir(parents=True)
        (root / ".git" / "HEAD").write_text("ref")
        assert clean_project(root, [".git"]) == 1
        assert not (root / ".git").exists()

    def test_unlistable_directory_is_an_error(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        root = tmp_path / "code"
        (root / "pkg").mkdir(parents=True)
        (root / "pkg" / "error.log").write_text("x")
        deny_listing(monkeypatch, root / "pkg")
        with pytest.raises(PermissionError):
            clean_project(root, ["*.log"])


def test_write_asset_base_url_skips_empty(tmp_path: Path):
    assert write_asset_base_url(tmp_path, "") is None
    assert not (tmp_path / "config").exists()
