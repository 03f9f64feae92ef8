"""Front-end asset compilation — invoked in the source tree before staging.

The compiler itself is an external tool.  The pipeline only decides whether
to run it and checks its exit status; compiled assets are expected to land
inside the source tree so the copy picks them up.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

SKIP_ASSETS_ENV = "BUNDLEFORGE_SKIP_ASSETS"


class AssetCompilationError(RuntimeError):
    """Raised when the asset compiler exits non-zero or cannot be started."""


def assets_skipped(skip: bool = False) -> bool:
    """True when an explicit flag or the environment toggle disables compilation."""
    return skip or bool(os.environ.get(SKIP_ASSETS_ENV))


def compile_assets(source_root: Path, command: str, *, skip: bool = False) -> bool:
    """Run *command* in *source_root*.  Returns False when compilation was skipped."""
    if assets_skipped(skip):
        logger.info("Skip compiling assets")
        return False
    if not command:
        logger.debug("No asset command configured; nothing to compile")
        return False

    logger.info("Compiling assets in %s: %s", source_root, command)
    try:
        result = subprocess.run(shlex.split(command), cwd=source_root, check=False)
    except OSError as exc:
        raise AssetCompilationError(f"Could not run {command!r}: {exc}") from exc
    if result.returncode != 0:
        raise AssetCompilationError(
            f"Asset compilation {command!r} exited with status {result.returncode}"
        )
    return True
