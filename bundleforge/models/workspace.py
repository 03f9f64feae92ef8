"""Workspace models — the disposable build tree and its packaged sub-trees."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

# Where the deferred layer is extracted on the execution platform.
DEFERRED_MOUNT_ROOT = Path("/opt")
# Ephemeral local scratch storage on the execution platform.
SCRATCH_MOUNT_ROOT = Path("/tmp")

BUNDLED_DIRNAME = "bundled"


class FolderKind(str, Enum):
    """How a staged folder is laid out inside its archive."""

    CODE = "code"
    DEFERRED = "deferred"  # parent-wrapped under its own name
    SCRATCH = "scratch"


class BuildWorkspace(BaseModel):
    """The root directories of one build attempt.

    Layout under ``build_root``::

        cache/                      dependency vendoring cache
        stage/code/                 staged copy of the project (code root)
        stage/opt/bundled/          deferred dependency layer
        stage/<scratch>/            sub-trees hydrated from /tmp at runtime
        artifacts/code/*.zip        packaged archives
        store/                      default local artifact store
        manifest.json               checksums and artifact names

    Single writer: two builds must never share a ``build_root``.
    """

    model_config = ConfigDict(frozen=True)

    source_root: Path
    build_root: Path

    @property
    def stage_root(self) -> Path:
        return self.build_root / "stage"

    @property
    def code_root(self) -> Path:
        return self.stage_root / "code"

    @property
    def cache_root(self) -> Path:
        return self.build_root / "cache"

    @property
    def artifacts_root(self) -> Path:
        return self.build_root / "artifacts" / "code"

    @property
    def deferred_root(self) -> Path:
        return self.stage_root / "opt"

    @property
    def bundled_root(self) -> Path:
        return self.deferred_root / BUNDLED_DIRNAME

    @property
    def store_root(self) -> Path:
        return self.build_root / "store"

    @property
    def manifest_path(self) -> Path:
        return self.build_root / "manifest.json"

    def scratch_root(self, name: str) -> Path:
        """Side staging location for a sub-tree restored from /tmp."""
        return self.stage_root / name


class StagedFolder(BaseModel):
    """A sub-tree of the workspace packaged as one independent archive."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    kind: FolderKind = FolderKind.CODE

    @property
    def parent_wrapped(self) -> bool:
        return self.kind == FolderKind.DEFERRED


def vendor_lib_path(series: str) -> Path:
    """Relative path of the interpreter-specific library directory.

    Vendored dependencies live at ``<bundled>/lib/python<series>/site-packages``;
    the runtime resolves them through exactly this directory name.
    """
    return Path("lib") / f"python{series}"


class VendoredTree(BaseModel):
    """Location of the vendored dependency tree inside the code root."""

    model_config = ConfigDict(frozen=True)

    location: Path
    site_packages: Path
