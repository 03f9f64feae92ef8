"""Abstract base stage with an enforced lifecycle.

Every concrete stage inherits from BaseStage and implements only ``execute()``.
The ``run_stage()`` wrapper is **not overridable**:

    execute -> record result -> log

Facts a stage depends on (the workspace, the finalized config, checksums)
are read through ``BuildContext.require()``, which refuses to hand out a
value no earlier stage has produced.
"""

from __future__ import annotations

import abc
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, final

from bundleforge.core.artifact_store import ArtifactStore
from bundleforge.core.dependency_packager import DependencyVendor
from bundleforge.core.size_governor import PLATFORM_CODE_SIZE_LIMIT
from bundleforge.models.artifacts import ArtifactRef, ChecksumSet
from bundleforge.models.config import BuildConfig
from bundleforge.models.layout import WorkspaceState
from bundleforge.models.versioning import RuntimeVersion
from bundleforge.models.workspace import BuildWorkspace, StagedFolder, VendoredTree

logger = logging.getLogger(__name__)


class StagePrerequisiteError(RuntimeError):
    """Raised when a stage needs a fact no earlier stage has produced."""


class StageExecutionError(RuntimeError):
    """Raised when a stage's execute() method fails."""

    def __init__(self, stage_id: str, cause: Exception) -> None:
        self.stage_id = stage_id
        self.cause = cause
        super().__init__(f"Stage {stage_id} failed: {cause}")


@dataclass
class BuildContext:
    """Mutable state carried from stage to stage during one build."""

    config: BuildConfig
    store: ArtifactStore
    namespace: str = "bundleforge/code"
    vendor_impl: DependencyVendor | None = None
    local_runtime: RuntimeVersion | None = None  # None = the running interpreter
    size_limit: int = PLATFORM_CODE_SIZE_LIMIT

    workspace: BuildWorkspace | None = None
    vendored: VendoredTree | None = None
    layout: WorkspaceState | None = None
    folders: list[StagedFolder] = field(default_factory=list)
    checksums: ChecksumSet | None = None
    artifacts: list[ArtifactRef] = field(default_factory=list)
    manifest_path: Path | None = None
    stage_results: dict[str, dict[str, Any]] = field(default_factory=dict)

    def require(self, name: str) -> Any:
        """Return a produced fact, or raise if its stage has not run."""
        value = getattr(self, name)
        if value is None:
            raise StagePrerequisiteError(
                f"{name} is not available yet; the stage producing it has not run"
            )
        return value


class BaseStage(abc.ABC):
    """Abstract base for all build stages.

    Subclasses **must** implement ``stage_id``, ``display_name`` and
    ``execute(context)``.  Subclasses **must not** override ``run_stage()``.
    """

    @property
    @abc.abstractmethod
    def stage_id(self) -> str:
        """Unique stage identifier (e.g. ``'checksum'``)."""
        ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str:
        """Human-readable name shown in build reports."""
        ...

    @abc.abstractmethod
    def execute(self, context: BuildContext) -> dict[str, Any]:
        """Run the stage's logic and return a JSON-friendly summary."""
        ...

    # ------------------------------------------------------------------
    # Lifecycle (not overridable)
    # ------------------------------------------------------------------

    @final
    def run_stage(self, context: BuildContext) -> dict[str, Any]:
        """Execute the stage and record its summary on *context*.  **Do not override.**"""
        logger.info("%s [%s] starting", self.display_name, self.stage_id)
        started = time.perf_counter()
        try:
            result = self.execute(context)
        except Exception as exc:
            logger.error(
                "%s [%s] failed: %s", self.display_name, self.stage_id, exc
            )
            raise StageExecutionError(self.stage_id, exc) from exc

        result["_elapsed_seconds"] = round(time.perf_counter() - started, 3)
        context.stage_results[self.stage_id] = result
        logger.info(
            "%s [%s] done in %.2fs",
            self.display_name,
            self.stage_id,
            result["_elapsed_seconds"],
        )
        return result

    def __repr__(self) -> str:
        return f"<{type(self).__name__} stage_id={self.stage_id!r}>"
