"""Tests for environment-driven build settings."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from bundleforge.config import BuildSettings
from bundleforge.models.versioning import RuntimeVersion


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Run each test away from any .env file and BUNDLEFORGE_* variables."""
    for name in list(os.environ):
        if name.startswith("BUNDLEFORGE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


class TestBuildSettings:
    def test_defaults(self):
        settings = BuildSettings()
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.lazy_load is None
        assert settings.runtime_version == "3.12.0"
        assert settings.relocate_dirs == ["node_modules"]
        assert settings.scratch_subtrees == ["sidecar"]
        assert settings.s3_namespace == "bundleforge/code"
        assert settings.local_store_path is None

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BUNDLEFORGE_LAZY_LOAD", "true")
        monkeypatch.setenv("BUNDLEFORGE_S3_BUCKET", "deploy-bucket")
        settings = BuildSettings()
        assert settings.lazy_load is True
        assert settings.s3_bucket == "deploy-bucket"

    def test_project_name_defaults_to_directory(self, tmp_path: Path):
        project = tmp_path / "shop"
        project.mkdir()
        settings = BuildSettings(project_root=project)
        assert settings.resolved_project_name == "shop"
        assert settings.project_build_root == Path("/tmp/bundleforge/shop")

    def test_asset_base_url_from_bucket(self):
        settings = BuildSettings(s3_bucket="deploy-bucket", aws_region="eu-west-1")
        assert (
            settings.asset_base_url()
            == "https://s3-eu-west-1.amazonaws.com/deploy-bucket/bundleforge"
        )

    def test_asset_base_url_override_and_empty(self):
        assert BuildSettings().asset_base_url() == ""
        settings = BuildSettings(s3_bucket="b", assets_base_url="https://cdn.example.com")
        assert settings.asset_base_url() == "https://cdn.example.com"

    def test_to_build_config(self, tmp_path: Path):
        project = tmp_path / "shop"
        project.mkdir()
        settings = BuildSettings(
            project_root=project,
            build_root=tmp_path / "out",
            runtime_version="3.11.2",
            lazy_load=False,
            scratch_subtrees=["models"],
        )
        config = settings.to_build_config()
        assert config.project_name == "shop"
        assert config.source_root == project.resolve()
        assert config.build_root == tmp_path / "out" / "shop"
        assert config.runtime_version == RuntimeVersion(major=3, minor=11, patch=2)
        assert config.lazy_load is False
        assert config.scratch_subtrees == ("models",)
