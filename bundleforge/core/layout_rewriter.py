"""Layout Rewriter — symlink indirection for deferred and scratch sub-trees.

The primary package is limited to 250MB unzipped, while the function also
receives a separate deferred layer mounted at ``/opt`` and 512MB of ephemeral
storage at ``/tmp``.  When lazy loading is on, vendored dependencies move to
the deferred layer and the code root keeps symlinks pointing at the mount:

    code/bundled                     -> /opt/bundled
    code/vendor/lib/python3.12       -> /opt/bundled/lib/python3.12

Scratch sub-trees move out of the code root on every build and are restored
from ``/tmp`` at cold start:

    code/sidecar                     -> /tmp/sidecar

Planning is pure (``plan_rewrite``); ``rewrite`` executes the plan.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from bundleforge.core.size_governor import MIB, SCRATCH_SIZE_LIMIT, dir_size
from bundleforge.models.config import BuildConfig
from bundleforge.models.layout import (
    FsOperation,
    MakeDir,
    Move,
    Symlink,
    WorkspaceState,
    apply_all,
)
from bundleforge.models.versioning import RuntimeVersion
from bundleforge.models.workspace import (
    BUNDLED_DIRNAME,
    DEFERRED_MOUNT_ROOT,
    SCRATCH_MOUNT_ROOT,
    BuildWorkspace,
    vendor_lib_path,
)

logger = logging.getLogger(__name__)

# Directory inside the code root where the runtime looks for vendored libraries.
VENDOR_DIRNAME = "vendor"


def deferred_mount_path() -> Path:
    """Absolute path of the deferred dependency layer on the platform."""
    return DEFERRED_MOUNT_ROOT / BUNDLED_DIRNAME


def scratch_mount_path(name: str) -> Path:
    """Absolute path a scratch sub-tree is restored to at cold start."""
    return SCRATCH_MOUNT_ROOT / name


def plan_deferred_layer(
    workspace: BuildWorkspace,
    runtime_version: RuntimeVersion,
    state: WorkspaceState,
) -> list[FsOperation]:
    """Move vendored dependencies to the deferred layer and link them back."""
    bundled = workspace.code_root / BUNDLED_DIRNAME
    if not state.is_dir(bundled):
        return []

    lib = vendor_lib_path(runtime_version.series)
    mount = deferred_mount_path()
    return [
        MakeDir(path=workspace.deferred_root),
        Move(source=bundled, destination=workspace.bundled_root),
        Symlink(target=mount.as_posix(), link=bundled),
        # Must link at the interpreter directory itself: the runtime expects
        # ``site-packages`` and its siblings under this exact name.
        Symlink(
            target=(mount / lib).as_posix(),
            link=workspace.code_root / VENDOR_DIRNAME / lib,
        ),
    ]


def plan_scratch_subtree(
    workspace: BuildWorkspace, name: str, state: WorkspaceState
) -> list[FsOperation]:
    """Move ``code/<name>`` beside the code root and link it to ``/tmp/<name>``."""
    source = workspace.code_root / name
    if not state.exists(source) or state.is_symlink(source):
        return []
    return [
        Move(source=source, destination=workspace.scratch_root(name)),
        Symlink(target=scratch_mount_path(name).as_posix(), link=source),
    ]


def plan_rewrite(
    workspace: BuildWorkspace,
    lazy_load: bool,
    runtime_version: RuntimeVersion,
    scratch_subtrees: Iterable[str],
    state: WorkspaceState,
) -> list[FsOperation]:
    """Compute the operations for the final layout without touching the disk.

    The returned plan is validated against *state* before it is returned.
    """
    operations: list[FsOperation] = []
    if lazy_load:
        operations.extend(plan_deferred_layer(workspace, runtime_version, state))
    for name in scratch_subtrees:
        operations.extend(plan_scratch_subtree(workspace, name, state))
    apply_all(state, operations)
    return operations


def rewrite(workspace: BuildWorkspace, config: BuildConfig) -> WorkspaceState:
    """Rewrite the staged layout for *config* and return the resulting state."""
    state = WorkspaceState.scan(workspace.stage_root)
    operations = plan_rewrite(
        workspace,
        config.lazy_load_enabled,
        config.runtime_version,
        config.scratch_subtrees,
        state,
    )
    for op in operations:
        logger.debug("Layout: %r", op)
        state = op.apply(state)
        op.execute()

    logger.info(
        "Layout rewritten (%d operations, lazy_load=%s)",
        len(operations),
        config.lazy_load_enabled,
    )
    _warn_if_scratch_exceeded(workspace, config.scratch_subtrees)
    return state


def _warn_if_scratch_exceeded(
    workspace: BuildWorkspace, scratch_subtrees: Iterable[str]
) -> None:
    relocated = dir_size(workspace.deferred_root) if workspace.deferred_root.exists() else 0
    for name in scratch_subtrees:
        path = workspace.scratch_root(name)
        if path.is_dir():
            relocated += dir_size(path)
    if relocated > SCRATCH_SIZE_LIMIT:
        logger.warning(
            "Relocated payload is %.1fMB, above the %dMB runtime storage limit. "
            "The function may fail to hydrate it at cold start.",
            relocated / MIB,
            SCRATCH_SIZE_LIMIT // MIB,
        )
