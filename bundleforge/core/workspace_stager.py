"""Workspace Stager — produces an isolated, disposable copy of the project.

Every later phase works on ``workspace.code_root``, never on the source tree.
Staging is safe to repeat: the old stage root is removed before each copy.

Large, regenerable directories such as ``node_modules`` are moved out of the
source tree for the duration of the copy and moved back afterwards.  Moving a
directory entry is far cheaper than copying its contents.  The move back runs
in a ``finally`` block, but a hard kill mid-copy can still leave the directory
parked under the build root; the next build restores it.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import shutil
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from bundleforge.models.workspace import BuildWorkspace

logger = logging.getLogger(__name__)


class WorkspaceError(RuntimeError):
    """Raised when the build workspace cannot be prepared."""


# ---------------------------------------------------------------------------
# Clean start
# ---------------------------------------------------------------------------


def clean_start(workspace: BuildWorkspace) -> None:
    """Remove code archives from a previous build and ensure the build root exists.

    Most files are kept after a build for inspection, so only the stale code
    archives are cleared here.  Dependency and scratch archives are
    content-addressed and reused.
    """
    if workspace.artifacts_root.exists():
        for stale in workspace.artifacts_root.glob("code-*.zip"):
            logger.debug("Removing stale archive %s", stale)
            stale.unlink()
    workspace.build_root.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Copy
# ---------------------------------------------------------------------------


def _ensure_outside_source(workspace: BuildWorkspace) -> None:
    source = workspace.source_root.resolve()
    build = workspace.build_root.resolve()
    if build == source or source in build.parents:
        raise WorkspaceError(
            f"Build root {build} is inside the project {source}. "
            "Choose a build root outside the project tree."
        )


def _remove(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def _reraise(exc: OSError) -> None:
    raise exc


@contextmanager
def relocated(
    source_root: Path, park_root: Path, names: Iterable[str]
) -> Iterator[list[str]]:
    """Park *names* from *source_root* under *park_root* while the block runs.

    Yields the names actually parked.  They are moved back on exit, including
    when the block raises.
    """
    parked: list[str] = []
    try:
        for name in names:
            src = source_root / name
            dest = park_root / name
            if dest.exists() or dest.is_symlink():
                if src.exists():
                    logger.debug("Discarding stale parked copy %s", dest)
                    _remove(dest)
                else:
                    logger.warning(
                        "Found %s left by an interrupted build; restoring it to %s",
                        dest,
                        src,
                    )
                    shutil.move(str(dest), str(src))
            if not src.exists():
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src), str(dest))
            parked.append(name)
        yield parked
    finally:
        for name in reversed(parked):
            shutil.move(str(park_root / name), str(source_root / name))


def copy_project(
    workspace: BuildWorkspace, relocate_dirs: Iterable[str] = ()
) -> Path:
    """Copy the project into ``workspace.code_root``.

    The previous stage root is removed first.  Returns the code root.
    """
    _ensure_outside_source(workspace)
    logger.info(
        "Copying project %s to build area %s",
        workspace.source_root,
        workspace.code_root,
    )

    if workspace.stage_root.exists():
        shutil.rmtree(workspace.stage_root)
    workspace.stage_root.mkdir(parents=True)

    park_root = workspace.build_root / "parked"
    try:
        with relocated(workspace.source_root, park_root, relocate_dirs):
            shutil.copytree(workspace.source_root, workspace.code_root, symlinks=True)
    except (OSError, shutil.Error) as exc:
        raise WorkspaceError(f"Copying {workspace.source_root} failed: {exc}") from exc
    return workspace.code_root


# ---------------------------------------------------------------------------
# Tree hygiene
# ---------------------------------------------------------------------------


def _matches(rel_path: str, name: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if "/" in pattern:
            if fnmatch.fnmatch(rel_path, pattern):
                return True
        elif fnmatch.fnmatch(name, pattern):
            return True
    return False


def clean_project(code_root: Path, patterns: Iterable[str]) -> int:
    """Delete logs, ignored files and zip artifacts from the staged tree.

    Patterns without a slash match entry names anywhere in the tree; patterns
    with a slash match the path relative to *code_root*.  Returns the number
    of entries removed.
    """
    patterns = list(patterns)
    removed = 0
    for dirpath, dirnames, filenames in os.walk(code_root, onerror=_reraise):
        current = Path(dirpath)
        for name in list(dirnames) + filenames:
            path = current / name
            rel = path.relative_to(code_root).as_posix()
            if _matches(rel, name, patterns):
                logger.debug("Removing %s", rel)
                _remove(path)
                removed += 1
                if name in dirnames:
                    dirnames.remove(name)
    logger.info("Removed %d ignored entries from %s", removed, code_root)
    return removed


def write_asset_base_url(code_root: Path, base_url: str) -> Path | None:
    """Record where compiled assets are served from, for the runtime to read."""
    if not base_url:
        return None
    path = code_root / "config" / "asset_base_url.txt"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(base_url, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def stage(
    source_root: Path,
    build_root: Path,
    *,
    relocate_dirs: Iterable[str] = (),
    ignore_patterns: Iterable[str] = (),
    asset_base_url: str = "",
) -> BuildWorkspace:
    """Stage *source_root* into a fresh workspace under *build_root*."""
    source_root = Path(source_root).resolve()
    if not source_root.is_dir():
        raise WorkspaceError(f"Project root does not exist: {source_root}")

    workspace = BuildWorkspace(source_root=source_root, build_root=Path(build_root))
    _ensure_outside_source(workspace)
    clean_start(workspace)
    copy_project(workspace, relocate_dirs)
    clean_project(workspace.code_root, ignore_patterns)
    write_asset_base_url(workspace.code_root, asset_base_url)
    return workspace
