"""Runtime version precondition — fails fast before any staging.

The deployed code runs on a fixed interpreter series on the target platform.
Building with a different major.minor produces vendored extensions and
bytecode the platform cannot load, so the build aborts before the staging
root is touched.
"""

from __future__ import annotations

import logging
import platform

from bundleforge.models.versioning import RuntimeVersion
from bundleforge.models.workspace import BuildWorkspace

logger = logging.getLogger(__name__)


class RuntimeVersionError(RuntimeError):
    """Raised when the local runtime does not match the pinned target runtime."""

    def __init__(self, required: RuntimeVersion, actual: RuntimeVersion) -> None:
        self.required = required
        self.actual = actual
        super().__init__(
            f"You are using python {actual} which is not supported. "
            f"bundleforge targets python {required}. "
            f"You should use a variant of python {required.variant}."
        )


def local_runtime_version() -> RuntimeVersion:
    """The version of the interpreter running the build."""
    return RuntimeVersion.parse(platform.python_version())


def check_runtime_version(
    required: RuntimeVersion | str,
    actual: RuntimeVersion | str | None = None,
) -> RuntimeVersion:
    """Abort unless *actual* shares major and minor with *required*.

    Returns the actual version on success.
    """
    if isinstance(required, str):
        required = RuntimeVersion.parse(required)
    if actual is None:
        actual = local_runtime_version()
    elif isinstance(actual, str):
        actual = RuntimeVersion.parse(actual)

    if not actual.is_compatible(required):
        error = RuntimeVersionError(required, actual)
        logger.error("%s", error)
        raise error

    logger.debug("Runtime %s matches target series %s", actual, required.variant)
    return actual


def cache_check_message(workspace: BuildWorkspace) -> bool:
    """Tell the operator when an incremental build reuses the cache."""
    if not workspace.cache_root.exists():
        return False
    logger.info(
        "The %s folder exists. Incrementally re-building using the cache. "
        "To clear the cache: rm -rf %s",
        workspace.cache_root,
        workspace.cache_root,
    )
    return True
