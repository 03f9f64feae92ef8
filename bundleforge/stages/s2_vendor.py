"""Stage 2 — Dependency Vendoring."""

from __future__ import annotations

from typing import Any

from bundleforge.core.dependency_packager import vendor
from bundleforge.models.workspace import BuildWorkspace
from bundleforge.stages.base import BaseStage, BuildContext


class VendorStage(BaseStage):
    """Stage 2: vendor dependencies into ``<code_root>/bundled``."""

    @property
    def stage_id(self) -> str:
        return "vendor"

    @property
    def display_name(self) -> str:
        return "Dependency Vendoring"

    def execute(self, context: BuildContext) -> dict[str, Any]:
        workspace: BuildWorkspace = context.require("workspace")
        vendored = vendor(
            workspace.code_root,
            workspace.cache_root,
            context.config.runtime_version,
            lockfile=context.config.lockfile,
            vendor_impl=context.vendor_impl,
        )
        context.vendored = vendored
        return {"vendored": str(vendored.location) if vendored else None}
