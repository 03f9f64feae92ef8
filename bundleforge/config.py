"""Environment-driven build settings.

Centralized config using pydantic-settings.  Reads from a .env file and
BUNDLEFORGE_* environment variables, then turns into the immutable
``BuildConfig`` that each pipeline phase receives explicitly.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from bundleforge.models.config import BuildConfig
from bundleforge.models.versioning import RuntimeVersion


class BuildSettings(BaseSettings):
    """Build settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export BUNDLEFORGE_BUILD_ROOT=/var/tmp/bundleforge
        export BUNDLEFORGE_LAZY_LOAD=true
        export BUNDLEFORGE_S3_BUCKET=my-deploy-bucket

    Or via .env file::

        BUNDLEFORGE_SKIP_ASSETS=true
        BUNDLEFORGE_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BUNDLEFORGE_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Project and workspace
    project_root: Path = Path(".")
    build_root: Path = Path("/tmp/bundleforge")
    project_name: str = ""
    runtime_version: str = "3.12.0"

    # Build behavior
    lazy_load: bool | None = None
    skip_assets: bool = False
    asset_command: str = ""
    lockfile: str = "requirements.txt"
    relocate_dirs: list[str] = ["node_modules"]
    ignore_patterns: list[str] = [
        "*.log",
        "log/*",
        "tmp/*",
        ".git",
        "__pycache__",
        "*.pyc",
        "*.zip",
    ]
    scratch_subtrees: list[str] = ["sidecar"]

    # Artifact store
    s3_bucket: str = ""
    s3_namespace: str = "bundleforge/code"
    s3_endpoint_url: str | None = None
    aws_region: str = "us-east-1"
    assets_base_url: str = ""
    # Unset means <project build root>/store, which is never inside the project.
    local_store_path: Path | None = None
    upload: bool = False

    @property
    def resolved_project_name(self) -> str:
        return self.project_name or self.project_root.resolve().name

    @property
    def project_build_root(self) -> Path:
        """Each project builds in its own subdirectory of ``build_root``."""
        return self.build_root / self.resolved_project_name

    def asset_base_url(self) -> str:
        """Base URL the deployed code uses to serve compiled assets.

        ``assets_base_url`` wins; otherwise derived from the bucket.  Empty
        when neither is configured.
        """
        if self.assets_base_url:
            return self.assets_base_url
        if not self.s3_bucket:
            return ""
        root = self.s3_namespace.split("/", 1)[0]
        return f"https://s3-{self.aws_region}.amazonaws.com/{self.s3_bucket}/{root}"

    def to_build_config(self) -> BuildConfig:
        """Freeze the settings into the per-build value."""
        return BuildConfig(
            project_name=self.resolved_project_name,
            source_root=self.project_root.resolve(),
            build_root=self.project_build_root,
            runtime_version=RuntimeVersion.parse(self.runtime_version),
            lazy_load=self.lazy_load,
            skip_assets=self.skip_assets,
            asset_command=self.asset_command,
            lockfile=self.lockfile,
            relocate_dirs=tuple(self.relocate_dirs),
            ignore_patterns=tuple(self.ignore_patterns),
            scratch_subtrees=tuple(self.scratch_subtrees),
            assets_base_url=self.asset_base_url(),
            upload=self.upload,
        )


# Module-level singleton; import as `from bundleforge.config import settings`
settings = BuildSettings()
