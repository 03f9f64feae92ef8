"""Build-phase prerequisite DAG with cascade blocking.

Each phase lists the phases whose output it consumes.  The graph turns the
ordering invariants into data:

- A phase may start only when every prerequisite has PASSED.
- A failed phase BLOCKS everything downstream of it.
"""

from __future__ import annotations

from graphlib import CycleError, TopologicalSorter

from bundleforge.models.stages import StageDefinition, StageState


class PrerequisiteNotMetError(RuntimeError):
    """Raised when a phase is started before its prerequisites passed."""


class CyclicDependencyError(ValueError):
    """Raised when phase prerequisites form a cycle."""


class PrerequisiteGraph:
    """Validated, immutable DAG over a set of stage definitions."""

    def __init__(self, stage_definitions: list[StageDefinition]) -> None:
        self._definitions = {sd.stage_id: sd for sd in stage_definitions}
        self._downstream: dict[str, list[str]] = {sid: [] for sid in self._definitions}

        for sd in stage_definitions:
            for prereq in sd.prerequisites:
                if prereq not in self._definitions:
                    raise ValueError(
                        f"{sd.stage_id} depends on unknown phase {prereq!r}"
                    )
                self._downstream[prereq].append(sd.stage_id)

        self._order = self._topological_order()

    def _topological_order(self) -> list[str]:
        sorter = TopologicalSorter(
            {sid: sd.prerequisites for sid, sd in self._definitions.items()}
        )
        try:
            sorter.prepare()
        except CycleError as exc:
            raise CyclicDependencyError(
                f"Prerequisite graph has a cycle through: {' -> '.join(exc.args[1])}"
            ) from exc

        order: list[str] = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready(), key=lambda s: self._definitions[s].ordinal)
            order.extend(ready)
            sorter.done(*ready)
        return order

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def stage_ids(self) -> list[str]:
        """Phase ids in execution order (topological, ties by ordinal)."""
        return list(self._order)

    def get_prerequisites(self, stage_id: str) -> list[str]:
        """Direct prerequisites of *stage_id*."""
        definition = self._definitions.get(stage_id)
        return list(definition.prerequisites) if definition else []

    def get_dependents(self, stage_id: str) -> list[str]:
        """Every phase downstream of *stage_id*, nearest first."""
        found: list[str] = []
        frontier = list(self._downstream.get(stage_id, []))
        while frontier:
            current = frontier.pop(0)
            if current in found:
                continue
            found.append(current)
            frontier.extend(self._downstream[current])
        return found

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def are_prerequisites_met(
        self, stage_id: str, states: dict[str, StageState]
    ) -> bool:
        return not self.get_blocking_reasons(stage_id, states)

    def get_blocking_reasons(
        self, stage_id: str, states: dict[str, StageState]
    ) -> list[str]:
        """One line per prerequisite that has not passed."""
        reasons = []
        for prereq in self.get_prerequisites(stage_id):
            state = states.get(prereq, StageState.NOT_STARTED)
            if state is not StageState.PASSED:
                name = self._definitions[prereq].display_name
                reasons.append(f"{name} ({prereq}) is {state.value}")
        return reasons

    # ------------------------------------------------------------------
    # Cascade (mutates *states* in place)
    # ------------------------------------------------------------------

    def cascade_block(
        self, failed_stage_id: str, states: dict[str, StageState]
    ) -> list[str]:
        """Block every not-yet-started phase downstream of a failure."""
        blocked = [
            sid
            for sid in self.get_dependents(failed_stage_id)
            if states.get(sid, StageState.NOT_STARTED) is StageState.NOT_STARTED
        ]
        for sid in blocked:
            states[sid] = StageState.BLOCKED
        return blocked
