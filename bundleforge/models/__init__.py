"""bundleforge data models — Pydantic v2, frozen (immutable)."""

from bundleforge.models.artifacts import (
    ArtifactRef,
    BuildManifest,
    ChecksumSet,
    ContentChecksum,
    RemoteExistence,
)
from bundleforge.models.config import BuildConfig
from bundleforge.models.layout import (
    FsOperation,
    LayoutError,
    MakeDir,
    Move,
    Symlink,
    WorkspaceState,
)
from bundleforge.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    VALID_TRANSITIONS,
    StageDefinition,
    StageState,
    StageTransition,
)
from bundleforge.models.versioning import RuntimeVersion
from bundleforge.models.workspace import BuildWorkspace, FolderKind, StagedFolder

__all__ = [
    # versioning
    "RuntimeVersion",
    # config
    "BuildConfig",
    # workspace
    "BuildWorkspace",
    "FolderKind",
    "StagedFolder",
    # layout
    "FsOperation",
    "LayoutError",
    "MakeDir",
    "Move",
    "Symlink",
    "WorkspaceState",
    # artifacts
    "ArtifactRef",
    "BuildManifest",
    "ChecksumSet",
    "ContentChecksum",
    "RemoteExistence",
    # stages
    "StageState",
    "StageDefinition",
    "StageTransition",
    "VALID_TRANSITIONS",
    "DEFAULT_STAGE_DEFINITIONS",
]
