"""Shared test fixtures for bundleforge."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

from bundleforge.core.artifact_store import LocalArtifactStore
from bundleforge.core.prerequisite_graph import PrerequisiteGraph
from bundleforge.core.stage_machine import StageMachine
from bundleforge.models.artifacts import RemoteExistence
from bundleforge.models.config import BuildConfig
from bundleforge.models.stages import DEFAULT_STAGE_DEFINITIONS
from bundleforge.models.versioning import RuntimeVersion
from bundleforge.models.workspace import BuildWorkspace, vendor_lib_path

TARGET_RUNTIME = RuntimeVersion(major=3, minor=12, patch=0)
MATCHING_RUNTIME = RuntimeVersion(major=3, minor=12, patch=7)


def write(path: Path, content: str = "", *, mode: int | None = None) -> Path:
    """Create *path* (and parents) with *content*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mode is not None:
        os.chmod(path, mode)
    return path


# Latin-1 "caf\xe9", which is not valid UTF-8. Linux accepts it as a filename.
UNDECODABLE_NAME = os.fsdecode(b"caf\xe9.txt")

needs_raw_filenames = pytest.mark.skipif(
    sys.platform in ("darwin", "win32"), reason="filesystem only accepts UTF-8 names"
)


def deny_listing(monkeypatch: pytest.MonkeyPatch, denied: Path) -> None:
    """Make directory listing fail with PermissionError for *denied* only."""
    real_scandir = os.scandir

    def scandir(path: Any = "."):
        if os.fspath(path) == os.fspath(denied):
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)


# ---------------------------------------------------------------------------
# Project trees
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A small project with the usual clutter a build has to deal with."""
    root = tmp_path / "demo"
    write(root / "app.py", "def handler(event, context):\n    return {'ok': True}\n")
    write(root / "bin" / "start", "#!/bin/sh\nexec python app.py\n", mode=0o755)
    write(root / "config" / "settings.json", '{"debug": false}\n')
    write(root / "requirements.txt", "requests==2.31.0\n")
    write(root / "log" / "development.log", "noise\n")
    write(root / "tmp" / "cache.txt", "scratch\n")
    write(root / "old-build.zip", "PK")
    write(root / "node_modules" / "left-pad" / "index.js", "module.exports = 1;\n")
    write(root / "sidecar" / "model.bin", "weights" * 16)
    os.symlink("app.py", root / "main.py")
    return root


@pytest.fixture
def build_root(tmp_path: Path) -> Path:
    """Build area outside the project tree."""
    return tmp_path / "build" / "demo"


@pytest.fixture
def workspace(sample_project: Path, build_root: Path) -> BuildWorkspace:
    return BuildWorkspace(source_root=sample_project, build_root=build_root)


@pytest.fixture
def local_store(tmp_path: Path) -> LocalArtifactStore:
    """Provide a fresh LocalArtifactStore in a temp directory."""
    return LocalArtifactStore(tmp_path / "store")


@pytest.fixture
def make_config(sample_project: Path, build_root: Path) -> Callable[..., BuildConfig]:
    """Factory fixture: a BuildConfig pointed at the sample project."""

    def _factory(**overrides: Any) -> BuildConfig:
        defaults: dict[str, Any] = {
            "run_id": "bf-test-run-001",
            "project_name": "demo",
            "source_root": sample_project,
            "build_root": build_root,
            "runtime_version": TARGET_RUNTIME,
        }
        defaults.update(overrides)
        return BuildConfig(**defaults)

    return _factory


# ---------------------------------------------------------------------------
# Stage machinery
# ---------------------------------------------------------------------------


@pytest.fixture
def graph() -> PrerequisiteGraph:
    """Provide a PrerequisiteGraph with the default build stages."""
    return PrerequisiteGraph(DEFAULT_STAGE_DEFINITIONS)


@pytest.fixture
def stage_machine(graph: PrerequisiteGraph) -> StageMachine:
    return StageMachine(graph)


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class FakeVendor:
    """DependencyVendor that writes a tiny site-packages tree instead of running pip."""

    def __init__(self, payload: str = "VERSION = '2.31.0'\n") -> None:
        self.payload = payload
        self.calls: list[tuple[RuntimeVersion, Path, Path]] = []

    def vendor(
        self,
        target_runtime_version: RuntimeVersion,
        lockfile: Path,
        cache_root: Path,
    ) -> Path:
        self.calls.append((target_runtime_version, lockfile, cache_root))
        root = cache_root / "vendor"
        site_packages = root / vendor_lib_path(target_runtime_version.series) / "site-packages"
        write(site_packages / "requests" / "__init__.py", self.payload)
        return root


@pytest.fixture
def fake_vendor() -> FakeVendor:
    return FakeVendor()


class StubStore:
    """ArtifactStore that answers existence from a table and records puts."""

    def __init__(
        self,
        existence: dict[str, RemoteExistence] | None = None,
        default: RemoteExistence = RemoteExistence.ABSENT,
    ) -> None:
        self.existence = existence or {}
        self.default = default
        self.queries: list[str] = []
        self.puts: list[tuple[str, Path]] = []

    def exists(self, key: str) -> RemoteExistence:
        self.queries.append(key)
        return self.existence.get(key, self.default)

    def put(self, key: str, path: Path) -> None:
        self.puts.append((key, path))


@pytest.fixture
def stub_store() -> StubStore:
    return StubStore()


class FakeS3Client:
    """Just enough of a boto3 S3 client for ``S3ArtifactStore``."""

    def __init__(self, objects: set[str] | None = None) -> None:
        self.objects = set(objects or ())
        self.head_error: Exception | None = None
        self.upload_error: Exception | None = None
        self.uploads: list[tuple[str, str, str]] = []

    def head_object(self, Bucket: str, Key: str) -> dict:
        if self.head_error is not None:
            raise self.head_error
        if Key not in self.objects:
            raise client_error("404", "HeadObject")
        return {"ContentLength": 1}

    def upload_file(self, Filename: str, Bucket: str, Key: str) -> None:
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((Filename, Bucket, Key))
        self.objects.add(Key)


def client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def fake_s3_client() -> FakeS3Client:
    return FakeS3Client()
