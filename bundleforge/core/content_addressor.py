"""Content Addressor — deterministic checksums over the final staged folders.

Checksums name the artifacts, so they must be computed after the layout
rewrite (they cover the final tree, symlinks included) and before anything
refers to an artifact by name.

The digest covers, for every entry in sorted relative-path order:
    - directories by path
    - symlinks by path and target (never followed)
    - files by path, executable bit and SHA-256 of the contents
Names are hashed as the raw filesystem bytes.
Timestamps and ownership are ignored, so byte-identical trees always produce
the same digest.
"""

from __future__ import annotations

import hashlib
import logging
import os
import stat
from collections.abc import Iterable
from pathlib import Path

from bundleforge.core.hasher import sha256_file
from bundleforge.models.artifacts import ChecksumSet, ContentChecksum
from bundleforge.models.workspace import (
    BUNDLED_DIRNAME,
    BuildWorkspace,
    FolderKind,
    StagedFolder,
)

logger = logging.getLogger(__name__)


class ChecksumError(RuntimeError):
    """Raised when a staged folder cannot be read completely."""


def _reraise(exc: OSError) -> None:
    raise exc


def walk_tree(root: Path) -> list[tuple[str, Path]]:
    """All entries below *root* as ``(relative posix path, path)``, sorted."""
    found: list[tuple[str, Path]] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_reraise):
        current = Path(dirpath)
        for name in dirnames + filenames:
            path = current / name
            found.append((path.relative_to(root).as_posix(), path))
    found.sort(key=lambda item: item[0])
    return found


def tree_digest(root: Path) -> str:
    """SHA-256 hex digest of the tree below *root*."""
    if not root.is_dir():
        raise ChecksumError(f"Not a directory: {root}")

    digest = hashlib.sha256()
    try:
        for rel, path in walk_tree(root):
            name = os.fsencode(rel)
            info = path.lstat()
            if stat.S_ISLNK(info.st_mode):
                target = os.fsencode(os.readlink(path))
                digest.update(b"L\0" + name + b"\0" + target + b"\0")
            elif stat.S_ISDIR(info.st_mode):
                digest.update(b"D\0" + name + b"\0")
            else:
                executable = b"x" if info.st_mode & stat.S_IXUSR else b"-"
                content = sha256_file(path).encode("ascii")
                digest.update(b"F\0" + name + b"\0" + executable + b"\0" + content + b"\0")
    except OSError as exc:
        raise ChecksumError(f"Cannot checksum {root}: {exc}") from exc
    return digest.hexdigest()


def staged_folders(
    workspace: BuildWorkspace, scratch_subtrees: Iterable[str] = ()
) -> list[StagedFolder]:
    """The folders of *workspace* that are packaged independently."""
    folders = [
        StagedFolder(name="code", path=workspace.code_root, kind=FolderKind.CODE)
    ]
    if workspace.bundled_root.is_dir():
        folders.append(
            StagedFolder(
                name=BUNDLED_DIRNAME,
                path=workspace.bundled_root,
                kind=FolderKind.DEFERRED,
            )
        )
    for name in scratch_subtrees:
        path = workspace.scratch_root(name)
        if path.is_dir() and not path.is_symlink():
            folders.append(StagedFolder(name=name, path=path, kind=FolderKind.SCRATCH))
    return folders


def checksum(folders: Iterable[StagedFolder]) -> ChecksumSet:
    """Compute exactly one checksum per staged folder."""
    checksums: dict[str, ContentChecksum] = {}
    for folder in folders:
        if folder.name in checksums:
            raise ValueError(f"Duplicate staged folder name: {folder.name!r}")
        digest = tree_digest(folder.path)
        checksums[folder.name] = ContentChecksum(folder=folder.name, digest=digest)
        logger.info("Checksum %s: %s", folder.name, digest[:12])
    return ChecksumSet(checksums=checksums)
