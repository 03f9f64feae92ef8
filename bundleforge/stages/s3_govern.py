"""Stage 3 — Size Governor.

Finalizes the lazy-load decision.  Runs after vendoring so the measured size
includes dependencies, and before the layout rewrite introduces symlinks.
"""

from __future__ import annotations

from typing import Any

from bundleforge.core.size_governor import dir_size, evaluate
from bundleforge.models.workspace import BuildWorkspace
from bundleforge.stages.base import BaseStage, BuildContext


class SizeGovernorStage(BaseStage):
    """Stage 3: force lazy loading when the code is too large."""

    @property
    def stage_id(self) -> str:
        return "govern"

    @property
    def display_name(self) -> str:
        return "Size Governor"

    def execute(self, context: BuildContext) -> dict[str, Any]:
        workspace: BuildWorkspace = context.require("workspace")
        context.config = evaluate(
            workspace.code_root, context.config, limit=context.size_limit
        )
        return {
            "code_size_bytes": dir_size(workspace.code_root),
            "limit_bytes": context.size_limit,
            "lazy_load": context.config.lazy_load_enabled,
            "lazy_load_forced": context.config.lazy_load_forced,
        }
