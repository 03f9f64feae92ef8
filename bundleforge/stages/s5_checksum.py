"""Stage 5 — Content Checksums.

Computes one checksum per staged folder from the final layout.  Anything that
names an artifact reads ``context.checksums`` and therefore runs after this.
"""

from __future__ import annotations

from typing import Any

from bundleforge.core.content_addressor import checksum, staged_folders
from bundleforge.models.workspace import BuildWorkspace
from bundleforge.stages.base import BaseStage, BuildContext


class ChecksumStage(BaseStage):
    """Stage 5: content-address the staged folders."""

    @property
    def stage_id(self) -> str:
        return "checksum"

    @property
    def display_name(self) -> str:
        return "Content Checksums"

    def execute(self, context: BuildContext) -> dict[str, Any]:
        workspace: BuildWorkspace = context.require("workspace")
        context.require("layout")
        folders = staged_folders(workspace, context.config.scratch_subtrees)
        context.folders = folders
        context.checksums = checksum(folders)
        return {"checksums": context.checksums.as_dict()}
