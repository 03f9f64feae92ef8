"""Dependency Packager Adapter — vendors runtime libraries into the staged tree.

Installation is delegated to a ``DependencyVendor`` collaborator which builds a
platform-target dependency tree inside the cache area.  The adapter copies the
result into ``<code_root>/bundled``.  Any failure here is fatal: the pipeline
stops before size or checksum work begins.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Protocol, runtime_checkable

from bundleforge.core.hasher import sha256_file
from bundleforge.models.versioning import RuntimeVersion
from bundleforge.models.workspace import BUNDLED_DIRNAME, VendoredTree, vendor_lib_path

logger = logging.getLogger(__name__)


class VendoringError(RuntimeError):
    """Raised when dependencies cannot be vendored for the target runtime."""


@runtime_checkable
class DependencyVendor(Protocol):
    """Builds a dependency tree for the target platform.

    Returns the root of a tree laid out as ``lib/python<X.Y>/site-packages``.
    """

    def vendor(
        self,
        target_runtime_version: RuntimeVersion,
        lockfile: Path,
        cache_root: Path,
    ) -> Path: ...


class PipVendor:
    """Installs binary wheels for the target platform with ``pip --target``.

    ``--only-binary=:all:`` ensures nothing is compiled for the build host's
    architecture.  The installed tree is reused while the lockfile digest is
    unchanged.

    Parameters
    ----------
    python:
        Interpreter used to run pip.
    platform_tag:
        Wheel platform of the execution environment.
    """

    _MARKER = "vendor.lockfile-sha256"

    def __init__(
        self,
        python: str = sys.executable,
        platform_tag: str = "manylinux2014_x86_64",
    ) -> None:
        self.python = python
        self.platform_tag = platform_tag

    def command(self, target: Path, lockfile: Path, version: RuntimeVersion) -> list[str]:
        return [
            self.python, "-m", "pip", "install",
            "--target", str(target),
            "--requirement", str(lockfile),
            "--platform", self.platform_tag,
            "--implementation", "cp",
            "--python-version", version.series,
            "--only-binary=:all:",
            "--upgrade",
            "--quiet",
        ]

    def vendor(
        self,
        target_runtime_version: RuntimeVersion,
        lockfile: Path,
        cache_root: Path,
    ) -> Path:
        root = cache_root / "vendor"
        site_packages = root / vendor_lib_path(target_runtime_version.series) / "site-packages"
        marker = cache_root / self._MARKER
        lock_digest = sha256_file(lockfile)

        if marker.exists() and marker.read_text(encoding="utf-8") == lock_digest:
            logger.info("Reusing vendored dependencies in %s", root)
            return root

        marker.unlink(missing_ok=True)
        if root.exists():
            shutil.rmtree(root)
        site_packages.mkdir(parents=True)

        cmd = self.command(site_packages, lockfile, target_runtime_version)
        logger.info("Vendoring dependencies: %s", " ".join(cmd))
        try:
            subprocess.run(cmd, check=True)
        except subprocess.CalledProcessError as exc:
            raise VendoringError(
                f"pip could not vendor {lockfile.name} for python "
                f"{target_runtime_version.variant} (exit status {exc.returncode})"
            ) from exc
        marker.write_text(lock_digest, encoding="utf-8")
        return root


def vendor(
    code_root: Path,
    cache_root: Path,
    runtime_version: RuntimeVersion,
    *,
    lockfile: str = "requirements.txt",
    vendor_impl: DependencyVendor | None = None,
) -> VendoredTree | None:
    """Vendor the project's dependencies into ``<code_root>/bundled``.

    Returns None when the project has no lockfile.
    """
    lockfile_path = code_root / lockfile
    if not lockfile_path.is_file():
        logger.info("No %s in project; nothing to vendor", lockfile)
        return None

    vendor_impl = vendor_impl or PipVendor()
    cache_root.mkdir(parents=True, exist_ok=True)
    try:
        tree = vendor_impl.vendor(runtime_version, lockfile_path, cache_root)
    except OSError as exc:
        raise VendoringError(f"Vendoring dependencies failed: {exc}") from exc
    if not tree.is_dir():
        raise VendoringError(f"Vendored tree was not produced at {tree}")

    dest = code_root / BUNDLED_DIRNAME
    if dest.exists() or dest.is_symlink():
        raise VendoringError(
            f"{dest} already exists in the project; it is reserved for vendored dependencies"
        )
    shutil.copytree(tree, dest, symlinks=True)
    logger.info("Copied vendored dependencies to %s", dest)

    return VendoredTree(
        location=dest,
        site_packages=dest / vendor_lib_path(runtime_version.series) / "site-packages",
    )
