"""Stage 6 — Artifact Packaging.

Creates (or reuses) one archive per staged folder, optionally uploads the new
ones, and writes the build manifest next to the workspace for the template
generators.
"""

from __future__ import annotations

import logging
from typing import Any

from bundleforge.core.artifact_packager import ArtifactPackager
from bundleforge.models.artifacts import BuildManifest, ChecksumSet
from bundleforge.models.workspace import BuildWorkspace
from bundleforge.stages.base import BaseStage, BuildContext

logger = logging.getLogger(__name__)


class PackageStage(BaseStage):
    """Stage 6: content-addressed archives and the build manifest."""

    @property
    def stage_id(self) -> str:
        return "package"

    @property
    def display_name(self) -> str:
        return "Artifact Packaging"

    def execute(self, context: BuildContext) -> dict[str, Any]:
        workspace: BuildWorkspace = context.require("workspace")
        checksums: ChecksumSet = context.require("checksums")
        config = context.config

        packager = ArtifactPackager(
            context.store, workspace.artifacts_root, context.namespace
        )
        context.artifacts = packager.package_all(
            context.folders, checksums, upload=config.upload
        )

        manifest = BuildManifest(
            run_id=config.run_id,
            project_name=config.project_name,
            lazy_load=config.lazy_load_enabled,
            lazy_load_forced=config.lazy_load_forced,
            checksums=checksums.as_dict(),
            artifacts=context.artifacts,
        )
        workspace.manifest_path.write_text(
            manifest.model_dump_json(indent=2), encoding="utf-8"
        )
        context.manifest_path = workspace.manifest_path
        logger.info("Wrote build manifest %s", workspace.manifest_path)

        return {
            "artifacts": [ref.name for ref in context.artifacts],
            "reused": [ref.name for ref in context.artifacts if ref.reused],
            "manifest": str(workspace.manifest_path),
        }
