"""Size Governor — enables lazy loading when the code nears the platform limit.

Must run after vendoring (the size has to include dependencies) and before
the layout rewrite (symlinks would make the measurement meaningless).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from bundleforge.models.config import BuildConfig

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

# Maximum unzipped size of the primary deployment package.
PLATFORM_CODE_SIZE_LIMIT = 250 * MIB  # 250MB
# Ephemeral local storage available to the function at runtime.
SCRATCH_SIZE_LIMIT = 512 * MIB  # 512MB


def _reraise(exc: OSError) -> None:
    raise exc


def dir_size(folder: Path) -> int:
    """Sum the sizes of all regular files below *folder*.

    Symlinks are never followed or counted.
    """
    total = 0
    for dirpath, _dirnames, filenames in os.walk(folder, onerror=_reraise):
        for name in filenames:
            path = os.path.join(dirpath, name)
            if os.path.islink(path):
                continue
            total += os.stat(path).st_size
    return total


def evaluate(
    code_root: Path,
    config: BuildConfig,
    *,
    limit: int = PLATFORM_CODE_SIZE_LIMIT,
) -> BuildConfig:
    """Return the config with the finalized lazy-load decision.

    If the staged code exceeds *limit* and lazy loading was not already on,
    the returned config has it forced on.  Under the limit the user's setting
    is returned unchanged.
    """
    code_size = dir_size(code_root)
    logger.info(
        "Staged code size: %.1fMB (limit %dMB)", code_size / MIB, limit // MIB
    )
    if code_size > limit and not config.lazy_load_enabled:
        logger.warning(
            "Code size close to the platform code size limit of %dMB. "
            "Lazy loading automatically enabled. "
            "Set BUNDLEFORGE_LAZY_LOAD=true to make this explicit.",
            limit // MIB,
        )
        return config.with_lazy_load_forced()
    return config
