"""Per-build configuration threaded through every pipeline phase."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from bundleforge.models.versioning import RuntimeVersion


class BuildConfig(BaseModel):
    """Immutable configuration for a single build.

    The lazy-load decision has two sources: the user's explicit choice
    (``lazy_load``, ``None`` when unset) and the Size Governor's automatic
    override, which returns a new ``BuildConfig`` with ``lazy_load=True`` and
    ``lazy_load_forced=True``.  Nothing flips it back within a build.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(default_factory=lambda: f"bf-{uuid.uuid4().hex[:12]}")
    project_name: str = "app"
    source_root: Path = Path(".")
    build_root: Path = Path("/tmp/bundleforge")
    runtime_version: RuntimeVersion = RuntimeVersion(major=3, minor=12)
    lazy_load: bool | None = None
    lazy_load_forced: bool = False
    skip_assets: bool = False
    asset_command: str = ""
    lockfile: str = "requirements.txt"
    relocate_dirs: tuple[str, ...] = ("node_modules",)
    ignore_patterns: tuple[str, ...] = (
        "*.log",
        "log/*",
        "tmp/*",
        ".git",
        "__pycache__",
        "*.pyc",
        "*.zip",
    )
    scratch_subtrees: tuple[str, ...] = ("sidecar",)
    assets_base_url: str = ""
    upload: bool = False
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def lazy_load_enabled(self) -> bool:
        """The finalized decision: only an explicit or forced ``True`` counts."""
        return bool(self.lazy_load)

    def with_lazy_load_forced(self) -> BuildConfig:
        """Return a copy with the size-driven lazy-load override applied."""
        return self.model_copy(update={"lazy_load": True, "lazy_load_forced": True})
