"""Pipeline phase state machine models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class StageState(str, Enum):
    """Strict state model for each pipeline phase."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    BLOCKED = "blocked"
    FAILED = "failed"
    PASSED = "passed"


# Valid state transitions, enforced by StageMachine.
# FAILED, BLOCKED and PASSED are terminal within a build; a rebuild starts
# a fresh machine.
VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.NOT_STARTED: {StageState.RUNNING, StageState.BLOCKED},
    StageState.RUNNING: {StageState.PASSED, StageState.FAILED},
    StageState.BLOCKED: set(),
    StageState.FAILED: set(),
    StageState.PASSED: set(),
}


class StageDefinition(BaseModel):
    """Defines a pipeline phase and the phases that must pass before it.

    The prerequisite lists encode the build's ordering invariants as a DAG.
    """

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    ordinal: int
    prerequisites: list[str] = []


class StageTransition(BaseModel):
    """Records a single state transition."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    from_state: StageState
    to_state: StageState
    reason: str | None = None
    upstream_ref: str | None = None  # stage_id that caused a block


DEFAULT_STAGE_DEFINITIONS: list[StageDefinition] = [
    StageDefinition(
        stage_id="preflight",
        display_name="Runtime Version Check",
        ordinal=0,
        prerequisites=[],
    ),
    StageDefinition(
        stage_id="stage",
        display_name="Workspace Staging",
        ordinal=1,
        prerequisites=["preflight"],
    ),
    StageDefinition(
        stage_id="vendor",
        display_name="Dependency Vendoring",
        ordinal=2,
        prerequisites=["stage"],
    ),
    StageDefinition(
        stage_id="govern",
        display_name="Size Governor",
        ordinal=3,
        prerequisites=["vendor"],
    ),
    StageDefinition(
        stage_id="rewrite",
        display_name="Layout Rewrite",
        ordinal=4,
        prerequisites=["govern"],
    ),
    StageDefinition(
        stage_id="checksum",
        display_name="Content Checksums",
        ordinal=5,
        prerequisites=["rewrite"],
    ),
    StageDefinition(
        stage_id="package",
        display_name="Artifact Packaging",
        ordinal=6,
        prerequisites=["checksum"],
    ),
]
