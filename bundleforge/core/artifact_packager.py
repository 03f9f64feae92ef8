"""Artifact Packager — one deterministic, content-addressed zip per staged folder.

The archive name is ``<folder>-<checksum>.zip``.  Before creating it the
packager asks the store whether the key already exists:

    PRESENT       skip creation and upload, reuse the stored artifact
    ABSENT        create the archive (and upload it when asked)
    QUERY_FAILED  raise ``RemoteQueryError``; a failed query is not a miss

Archives are byte-for-byte reproducible: entries are sorted, timestamps are
fixed, permissions and symlinks are preserved.  Deferred folders are wrapped
under their own name so that extracting at the mount root (``/opt``)
reproduces ``/opt/bundled/...``.  Other folders are archived flat.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import zipfile
from collections.abc import Iterable
from pathlib import Path

from bundleforge.core.artifact_store import (
    ArtifactIntegrityError,
    ArtifactStore,
    ArtifactUploadError,
)
from bundleforge.core.content_addressor import walk_tree
from bundleforge.models.artifacts import (
    ARCHIVE_EXTENSION,
    ArtifactRef,
    ChecksumSet,
    ContentChecksum,
    RemoteExistence,
)
from bundleforge.models.workspace import StagedFolder

logger = logging.getLogger(__name__)

# Earliest timestamp a zip entry can carry.
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_UNIX = 3


class RemoteQueryError(RuntimeError):
    """Raised when the store cannot say whether an artifact exists.  Retryable."""

    retryable = True


class PackagingError(RuntimeError):
    """Raised after packaging when one or more folders failed.

    Archives of the folders that succeeded are left in place.
    """

    def __init__(self, failures: dict[str, Exception]) -> None:
        self.failures = failures
        details = "; ".join(f"{name}: {exc}" for name, exc in sorted(failures.items()))
        super().__init__(f"Packaging failed for {len(failures)} folder(s): {details}")

    @property
    def retryable(self) -> bool:
        return all(isinstance(exc, RemoteQueryError) for exc in self.failures.values())


class ArchiveNameError(ValueError):
    """Raised when an entry name cannot be stored in a zip archive.

    Zip names are UTF-8; filesystem names that do not decode are rejected
    rather than stored under a mangled name.
    """


def _checked_arcname(arcname: str) -> str:
    try:
        arcname.encode("utf-8")
    except UnicodeEncodeError as exc:
        raw = os.fsencode(arcname)
        raise ArchiveNameError(f"Entry name is not valid UTF-8: {raw!r}") from exc
    return arcname


def artifact_name(folder: StagedFolder, checksum: ContentChecksum) -> str:
    """Canonical archive name for *folder* at *checksum*."""
    return f"{folder.name}-{checksum.digest}.{ARCHIVE_EXTENSION}"


def _zip_info(arcname: str, mode: int) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(arcname, date_time=_FIXED_DATE_TIME)
    info.create_system = _UNIX
    info.external_attr = mode << 16
    return info


def create_archive(folder: StagedFolder, dest: Path) -> Path:
    """Write *folder* to the zip file *dest* deterministically.

    The archive is written beside *dest* and renamed into place, so a failed
    run never leaves a truncated file under the final name.
    """
    prefix = f"{folder.name}/" if folder.parent_wrapped else ""
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".partial")

    try:
        with zipfile.ZipFile(partial, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            if prefix:
                info = _zip_info(prefix, stat.S_IFDIR | 0o755)
                info.external_attr |= 0x10  # MS-DOS directory flag
                zf.writestr(info, b"")
            for rel, path in walk_tree(folder.path):
                arcname = _checked_arcname(prefix + rel)
                st = path.lstat()
                if stat.S_ISLNK(st.st_mode):
                    info = _zip_info(arcname, stat.S_IFLNK | 0o777)
                    zf.writestr(info, os.fsencode(os.readlink(path)))
                elif stat.S_ISDIR(st.st_mode):
                    info = _zip_info(arcname + "/", stat.S_IFDIR | 0o755)
                    info.external_attr |= 0x10
                    zf.writestr(info, b"")
                else:
                    perms = 0o755 if st.st_mode & stat.S_IXUSR else 0o644
                    info = _zip_info(arcname, stat.S_IFREG | perms)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    with open(path, "rb") as src, zf.open(info, "w", force_zip64=True) as out:
                        shutil.copyfileobj(src, out)
        os.replace(partial, dest)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise

    logger.info("Created %s (%d bytes)", dest, dest.stat().st_size)
    return dest


class ArtifactPackager:
    """Packages staged folders into content-addressed archives.

    Parameters
    ----------
    store:
        Remote artifact store used for the existence check and upload.
    artifacts_root:
        Local directory the archives are written to.
    namespace:
        Key prefix inside the store.
    """

    def __init__(
        self,
        store: ArtifactStore,
        artifacts_root: Path,
        namespace: str = "bundleforge/code",
    ) -> None:
        self.store = store
        self.artifacts_root = Path(artifacts_root)
        self.namespace = namespace.strip("/")

    def key_for(self, name: str) -> str:
        return f"{self.namespace}/{name}" if self.namespace else name

    # ------------------------------------------------------------------
    # Single folder
    # ------------------------------------------------------------------

    def package(self, folder: StagedFolder, checksum: ContentChecksum) -> ArtifactRef:
        """Create the archive for *folder* unless the store already has it."""
        if not isinstance(checksum, ContentChecksum) or checksum.folder != folder.name:
            raise ValueError(
                f"Checksum for {getattr(checksum, 'folder', checksum)!r} "
                f"cannot name folder {folder.name!r}"
            )

        name = artifact_name(folder, checksum)
        key = self.key_for(name)
        existence = self.store.exists(key)

        if existence is RemoteExistence.PRESENT:
            logger.info("Already exists: %s", key)
            return ArtifactRef(
                folder=folder.name,
                name=name,
                key=key,
                checksum=checksum.digest,
                reused=True,
            )
        if existence is RemoteExistence.QUERY_FAILED:
            raise RemoteQueryError(
                f"Could not determine whether {key} exists; retry the build"
            )

        path = create_archive(folder, self.artifacts_root / name)
        return ArtifactRef(
            folder=folder.name,
            name=name,
            key=key,
            checksum=checksum.digest,
            path=path,
            size_bytes=path.stat().st_size,
        )

    def upload(self, ref: ArtifactRef) -> ArtifactRef:
        """Put a freshly created archive into the store."""
        if ref.reused or ref.path is None:
            return ref
        self.store.put(ref.key, ref.path)
        return ref.model_copy(update={"uploaded": True})

    # ------------------------------------------------------------------
    # All folders
    # ------------------------------------------------------------------

    def package_all(
        self,
        folders: Iterable[StagedFolder],
        checksums: ChecksumSet,
        *,
        upload: bool = False,
    ) -> list[ArtifactRef]:
        """Package every folder; failures are reported together at the end."""
        folders = list(folders)
        missing = [f.name for f in folders if f.name not in checksums]
        if missing:
            raise ValueError(f"No checksum computed for: {', '.join(missing)}")

        refs: list[ArtifactRef] = []
        failures: dict[str, Exception] = {}
        for folder in folders:
            try:
                ref = self.package(folder, checksums[folder.name])
                if upload:
                    ref = self.upload(ref)
            except (
                RemoteQueryError,
                ArtifactUploadError,
                ArtifactIntegrityError,
                ArchiveNameError,
                OSError,
            ) as exc:
                logger.error("Packaging %s failed: %s", folder.name, exc)
                failures[folder.name] = exc
                continue
            refs.append(ref)

        if failures:
            raise PackagingError(failures)
        return refs
