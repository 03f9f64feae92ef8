"""bundleforge build stages — registry mapping stage_id to stage class.

Usage::

    from bundleforge.stages import STAGE_REGISTRY, get_stage

    stage = get_stage("checksum")
    result = stage.run_stage(context)
"""

from __future__ import annotations

from bundleforge.stages.base import (
    BaseStage,
    BuildContext,
    StageExecutionError,
    StagePrerequisiteError,
)
from bundleforge.stages.s0_preflight import PreflightStage
from bundleforge.stages.s1_staging import StagingStage
from bundleforge.stages.s2_vendor import VendorStage
from bundleforge.stages.s3_govern import SizeGovernorStage
from bundleforge.stages.s4_rewrite import LayoutRewriteStage
from bundleforge.stages.s5_checksum import ChecksumStage
from bundleforge.stages.s6_package import PackageStage

# ---------------------------------------------------------------------------
# Stage registry: stage_id -> stage class
# ---------------------------------------------------------------------------

STAGE_REGISTRY: dict[str, type[BaseStage]] = {
    "preflight": PreflightStage,
    "stage": StagingStage,
    "vendor": VendorStage,
    "govern": SizeGovernorStage,
    "rewrite": LayoutRewriteStage,
    "checksum": ChecksumStage,
    "package": PackageStage,
}


def get_stage(stage_id: str) -> BaseStage:
    """Instantiate and return a stage by its ``stage_id``.

    Raises ``KeyError`` if the stage_id is not registered.
    """
    try:
        cls = STAGE_REGISTRY[stage_id]
    except KeyError:
        raise KeyError(
            f"Unknown stage_id {stage_id!r}. "
            f"Registered stages: {sorted(STAGE_REGISTRY.keys())}"
        ) from None
    return cls()


__all__ = [
    # Base
    "BaseStage",
    "BuildContext",
    "StageExecutionError",
    "StagePrerequisiteError",
    # Registry
    "STAGE_REGISTRY",
    "get_stage",
    # Concrete stages
    "PreflightStage",
    "StagingStage",
    "VendorStage",
    "SizeGovernorStage",
    "LayoutRewriteStage",
    "ChecksumStage",
    "PackageStage",
]
