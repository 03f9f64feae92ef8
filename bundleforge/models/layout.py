"""Pure model of workspace locations and the filesystem operations on them.

``WorkspaceState`` maps absolute POSIX paths to entries.  Every
``FsOperation`` has a pure ``apply(state) -> state`` used for planning and
tests, and a side-effecting ``execute()`` that performs it on disk.  The
executor in ``bundleforge.core.layout_rewriter`` applies both so the plan and
the disk never diverge silently.
"""

from __future__ import annotations

import os
import shutil
from enum import Enum
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict


class LayoutError(RuntimeError):
    """Raised when an operation does not fit the current workspace state."""


class EntryKind(str, Enum):
    DIR = "dir"
    FILE = "file"
    SYMLINK = "symlink"


class Entry(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: EntryKind
    target: str | None = None  # symlinks only


def _key(path: Path | str) -> str:
    return PurePosixPath(Path(path).as_posix()).as_posix()


def _under(key: str, prefix: str) -> bool:
    return key == prefix or key.startswith(prefix + "/")


def _reraise(exc: OSError) -> None:
    # os.walk drops listing errors unless told otherwise
    raise exc


class WorkspaceState(BaseModel):
    """Immutable snapshot of the entries below one or more roots."""

    model_config = ConfigDict(frozen=True)

    entries: dict[str, Entry] = {}

    @classmethod
    def scan(cls, *roots: Path) -> WorkspaceState:
        """Snapshot the real filesystem below *roots* without following links."""
        entries: dict[str, Entry] = {}
        for root in roots:
            if not root.exists() and not root.is_symlink():
                continue
            entries[_key(root)] = Entry(kind=EntryKind.DIR)
            for dirpath, dirnames, filenames in os.walk(root, onerror=_reraise):
                for name in dirnames + filenames:
                    path = Path(dirpath) / name
                    if path.is_symlink():
                        entries[_key(path)] = Entry(
                            kind=EntryKind.SYMLINK, target=os.readlink(path)
                        )
                    elif path.is_dir():
                        entries[_key(path)] = Entry(kind=EntryKind.DIR)
                    else:
                        entries[_key(path)] = Entry(kind=EntryKind.FILE)
        return cls(entries=entries)

    def get(self, path: Path | str) -> Entry | None:
        return self.entries.get(_key(path))

    def exists(self, path: Path | str) -> bool:
        return _key(path) in self.entries

    def is_dir(self, path: Path | str) -> bool:
        entry = self.get(path)
        return entry is not None and entry.kind == EntryKind.DIR

    def is_symlink(self, path: Path | str) -> bool:
        entry = self.get(path)
        return entry is not None and entry.kind == EntryKind.SYMLINK

    def with_entries(self, entries: dict[str, Entry]) -> WorkspaceState:
        return WorkspaceState(entries=entries)


def _with_parents(entries: dict[str, Entry], path: Path) -> None:
    for parent in path.parents:
        key = _key(parent)
        if key in entries:
            break
        entries[key] = Entry(kind=EntryKind.DIR)


class FsOperation(BaseModel):
    """One filesystem step of a layout plan."""

    model_config = ConfigDict(frozen=True)

    def apply(self, state: WorkspaceState) -> WorkspaceState:
        raise NotImplementedError

    def execute(self) -> None:
        raise NotImplementedError


class MakeDir(FsOperation):
    path: Path

    def apply(self, state: WorkspaceState) -> WorkspaceState:
        entry = state.get(self.path)
        if entry is not None and entry.kind != EntryKind.DIR:
            raise LayoutError(f"Cannot create directory over {entry.kind.value}: {self.path}")
        entries = dict(state.entries)
        entries[_key(self.path)] = Entry(kind=EntryKind.DIR)
        _with_parents(entries, self.path)
        return state.with_entries(entries)

    def execute(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)


class Move(FsOperation):
    source: Path
    destination: Path

    def apply(self, state: WorkspaceState) -> WorkspaceState:
        src, dest = _key(self.source), _key(self.destination)
        if src not in state.entries:
            raise LayoutError(f"Move source does not exist: {self.source}")
        if dest in state.entries:
            raise LayoutError(f"Move destination already exists: {self.destination}")
        entries: dict[str, Entry] = {}
        for key, entry in state.entries.items():
            if _under(key, src):
                entries[dest + key[len(src):]] = entry
            else:
                entries[key] = entry
        _with_parents(entries, self.destination)
        return state.with_entries(entries)

    def execute(self) -> None:
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(self.source), str(self.destination))


class Symlink(FsOperation):
    """Create ``link`` pointing at ``target``, replacing an existing link."""

    target: str
    link: Path

    def apply(self, state: WorkspaceState) -> WorkspaceState:
        entry = state.get(self.link)
        if entry is not None and entry.kind == EntryKind.DIR:
            raise LayoutError(f"Refusing to replace a real directory with a symlink: {self.link}")
        entries = dict(state.entries)
        entries[_key(self.link)] = Entry(kind=EntryKind.SYMLINK, target=self.target)
        _with_parents(entries, self.link)
        return state.with_entries(entries)

    def execute(self) -> None:
        self.link.parent.mkdir(parents=True, exist_ok=True)
        if self.link.is_symlink() or self.link.is_file():
            self.link.unlink()
        os.symlink(self.target, self.link)


def apply_all(state: WorkspaceState, operations: list[FsOperation]) -> WorkspaceState:
    """Fold *operations* over *state* without touching the disk."""
    for op in operations:
        state = op.apply(state)
    return state
