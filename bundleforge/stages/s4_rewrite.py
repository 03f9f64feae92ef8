"""Stage 4 — Layout Rewrite."""

from __future__ import annotations

from typing import Any

from bundleforge.core.layout_rewriter import rewrite
from bundleforge.models.workspace import BuildWorkspace
from bundleforge.stages.base import BaseStage, BuildContext


class LayoutRewriteStage(BaseStage):
    """Stage 4: move deferred and scratch sub-trees behind symlinks."""

    @property
    def stage_id(self) -> str:
        return "rewrite"

    @property
    def display_name(self) -> str:
        return "Layout Rewrite"

    def execute(self, context: BuildContext) -> dict[str, Any]:
        workspace: BuildWorkspace = context.require("workspace")
        context.layout = rewrite(workspace, context.config)
        return {
            "lazy_load": context.config.lazy_load_enabled,
            "deferred_layer": workspace.bundled_root.is_dir(),
        }
