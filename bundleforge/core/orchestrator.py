"""Build orchestrator — sequences the stages under the ordering invariants.

The Orchestrator wires the stage registry, the PrerequisiteGraph and the
StageMachine together.  The graph encodes the invariants:

    preflight -> stage -> vendor -> govern -> rewrite -> checksum -> package

1. The runtime check precedes any staging.
2. Vendoring precedes size evaluation.
3. Size evaluation precedes the layout rewrite.
4. The layout rewrite precedes checksums.
5. Checksums precede packaging.

A failing stage is marked FAILED, its dependents are BLOCKED, and the error
propagates; no later stage runs.  The workspace is left as-is for inspection
and the next build starts from a clean stage root.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from bundleforge.config import BuildSettings
from bundleforge.core.artifact_store import (
    ArtifactStore,
    LocalArtifactStore,
    S3ArtifactStore,
)
from bundleforge.core.dependency_packager import DependencyVendor
from bundleforge.core.prerequisite_graph import PrerequisiteGraph
from bundleforge.core.size_governor import PLATFORM_CODE_SIZE_LIMIT
from bundleforge.core.stage_machine import StageMachine
from bundleforge.models.artifacts import ArtifactRef, ChecksumSet
from bundleforge.models.config import BuildConfig
from bundleforge.models.stages import DEFAULT_STAGE_DEFINITIONS, StageState
from bundleforge.models.versioning import RuntimeVersion
from bundleforge.models.workspace import BuildWorkspace
from bundleforge.stages import STAGE_REGISTRY, BuildContext, StageExecutionError

logger = logging.getLogger(__name__)


class BuildResult(BaseModel):
    """What a completed build hands to deployment."""

    model_config = ConfigDict(frozen=True)

    config: BuildConfig
    checksums: ChecksumSet
    artifacts: list[ArtifactRef]
    manifest_path: Path
    states: dict[str, StageState]


def default_store(settings: BuildSettings, config: BuildConfig) -> ArtifactStore:
    """S3 when a bucket is configured, otherwise the local directory store.

    The local store defaults to ``store/`` under the build root.
    """
    if settings.s3_bucket:
        return S3ArtifactStore(
            settings.s3_bucket,
            region=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    if settings.local_store_path is not None:
        return LocalArtifactStore(settings.local_store_path)
    workspace = BuildWorkspace(source_root=config.source_root, build_root=config.build_root)
    return LocalArtifactStore(workspace.store_root)


class Orchestrator:
    """Central build orchestrator.

    Parameters
    ----------
    config:
        Per-build configuration.  Built from *settings* when not provided.
    settings:
        Environment-driven settings.  Defaults are read from the environment.
    store:
        Artifact store.  Defaults to ``default_store(settings, config)``.
    vendor_impl:
        Dependency vendoring collaborator.  Defaults to pip.
    local_runtime:
        Overrides the detected interpreter version (used by tests).
    size_limit:
        Primary package ceiling in bytes.
    """

    def __init__(
        self,
        config: BuildConfig | None = None,
        *,
        settings: BuildSettings | None = None,
        store: ArtifactStore | None = None,
        vendor_impl: DependencyVendor | None = None,
        local_runtime: RuntimeVersion | None = None,
        size_limit: int = PLATFORM_CODE_SIZE_LIMIT,
    ) -> None:
        self.settings = settings or BuildSettings()
        self.config = config or self.settings.to_build_config()
        self.graph = PrerequisiteGraph(DEFAULT_STAGE_DEFINITIONS)
        self.stage_machine = StageMachine(self.graph)
        self.context = BuildContext(
            config=self.config,
            store=store or default_store(self.settings, self.config),
            namespace=self.settings.s3_namespace,
            vendor_impl=vendor_impl,
            local_runtime=local_runtime,
            size_limit=size_limit,
        )

    @property
    def run_id(self) -> str:
        return self.config.run_id

    # ------------------------------------------------------------------
    # Stage execution
    # ------------------------------------------------------------------

    def execute_stage(self, stage_id: str) -> dict:
        """Run one stage through the state machine.

        Lifecycle:
        1. Transition to RUNNING (prerequisites checked)
        2. Run the stage
        3. Transition to PASSED, or FAILED and re-raise
        """
        stage = STAGE_REGISTRY[stage_id]()
        self.stage_machine.transition(stage_id, StageState.RUNNING)
        try:
            result = stage.run_stage(self.context)
        except StageExecutionError as exc:
            self.stage_machine.transition(
                stage_id, StageState.FAILED, reason=str(exc.cause)
            )
            raise
        self.stage_machine.transition(stage_id, StageState.PASSED)
        return result

    def build(self) -> BuildResult:
        """Run every stage in dependency order and return the build result."""
        logger.info(
            "Building %s (run %s) in %s",
            self.config.project_name,
            self.run_id,
            self.config.build_root,
        )
        for stage_id in self.graph.stage_ids:
            self.execute_stage(stage_id)

        ctx = self.context
        return BuildResult(
            config=ctx.config,
            checksums=ctx.require("checksums"),
            artifacts=ctx.artifacts,
            manifest_path=ctx.require("manifest_path"),
            states=self.get_states(),
        )

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def get_states(self) -> dict[str, StageState]:
        return self.stage_machine.get_all_states()

    def get_stage_state(self, stage_id: str) -> StageState:
        return self.stage_machine.get_current_state(stage_id)
