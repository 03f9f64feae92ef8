"""bundleforge: size-constrained, content-addressed deployment artifacts.

Turns a project tree plus its vendored dependencies into immutable archives for
a function-as-a-service platform:
  - Runtime version guard before any filesystem mutation
  - Isolated staging copy with relocate-around-copy for heavy directories
  - Platform-target dependency vendoring
  - Size governor that forces lazy loading past the 250MB code limit
  - Layout rewrite into code, deferred and scratch folders with symlinks
  - Content checksums and checksum-named, deterministic zip archives
  - Existence-checked uploads to S3 or a local store
"""

__version__ = "0.1.0"
__description__ = "Size-constrained, content-addressed deployment artifact builder"

from bundleforge.core.orchestrator import Orchestrator
from bundleforge.config import BuildSettings
from bundleforge.cli.app import app as cli

__all__ = ["Orchestrator", "BuildSettings", "cli", "__version__"]
