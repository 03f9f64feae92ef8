"""Stage 0 — Preflight.

Checks the local runtime against the pinned target runtime before anything
touches the filesystem, and reports whether the dependency cache from a
previous build will be reused.
"""

from __future__ import annotations

from typing import Any

from bundleforge.core.version_guard import cache_check_message, check_runtime_version
from bundleforge.models.workspace import BuildWorkspace
from bundleforge.stages.base import BaseStage, BuildContext


class PreflightStage(BaseStage):
    """Stage 0: runtime version precondition."""

    @property
    def stage_id(self) -> str:
        return "preflight"

    @property
    def display_name(self) -> str:
        return "Runtime Version Check"

    def execute(self, context: BuildContext) -> dict[str, Any]:
        config = context.config
        actual = check_runtime_version(config.runtime_version, context.local_runtime)
        workspace = BuildWorkspace(
            source_root=config.source_root, build_root=config.build_root
        )
        return {
            "runtime_version": str(actual),
            "target_series": config.runtime_version.variant,
            "cache_reused": cache_check_message(workspace),
        }
