"""Stage 1 — Workspace Staging.

Compiles front-end assets in the source tree (unless skipped), then copies
the project into a fresh workspace and cleans it.
"""

from __future__ import annotations

from typing import Any

from bundleforge.core.asset_compiler import compile_assets
from bundleforge.core.workspace_stager import stage
from bundleforge.stages.base import BaseStage, BuildContext


class StagingStage(BaseStage):
    """Stage 1: produce the isolated code root."""

    @property
    def stage_id(self) -> str:
        return "stage"

    @property
    def display_name(self) -> str:
        return "Workspace Staging"

    def execute(self, context: BuildContext) -> dict[str, Any]:
        config = context.config
        compiled = compile_assets(
            config.source_root, config.asset_command, skip=config.skip_assets
        )
        workspace = stage(
            config.source_root,
            config.build_root,
            relocate_dirs=config.relocate_dirs,
            ignore_patterns=config.ignore_patterns,
            asset_base_url=config.assets_base_url,
        )
        context.workspace = workspace
        return {
            "assets_compiled": compiled,
            "code_root": str(workspace.code_root),
        }
