"""Content-addressed artifact models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

ARCHIVE_EXTENSION = "zip"


class RemoteExistence(str, Enum):
    """Outcome of asking the artifact store whether a key exists.

    ``QUERY_FAILED`` is not a cache miss and must never be read as ``ABSENT``.
    """

    PRESENT = "present"
    ABSENT = "absent"
    QUERY_FAILED = "query_failed"


class ContentChecksum(BaseModel):
    """Digest of a staged folder's final contents.

    Built by the Content Addressor; everything downstream only reads it.
    """

    model_config = ConfigDict(frozen=True)

    folder: str
    digest: str  # sha256 hex

    def __str__(self) -> str:
        return self.digest


class ChecksumSet(BaseModel):
    """Checksums for every staged folder of one build, keyed by folder name."""

    model_config = ConfigDict(frozen=True)

    checksums: dict[str, ContentChecksum] = {}

    def __getitem__(self, folder: str) -> ContentChecksum:
        return self.checksums[folder]

    def __contains__(self, folder: object) -> bool:
        return folder in self.checksums

    def __len__(self) -> int:
        return len(self.checksums)

    def names(self) -> list[str]:
        return sorted(self.checksums)

    def as_dict(self) -> dict[str, str]:
        """Plain ``{folder: digest}`` mapping for template generators."""
        return {name: c.digest for name, c in sorted(self.checksums.items())}


class ArtifactRef(BaseModel):
    """A reference to one packaged, content-addressed archive."""

    model_config = ConfigDict(frozen=True)

    folder: str
    name: str  # "<folder>-<digest>.zip"
    key: str  # "<namespace>/<name>"
    checksum: str
    path: Path | None = None  # None when reused from the store
    size_bytes: int = 0
    reused: bool = False
    uploaded: bool = False


class BuildManifest(BaseModel):
    """What a build produced — read by the template generation collaborator."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    project_name: str
    lazy_load: bool
    lazy_load_forced: bool = False
    checksums: dict[str, str]
    artifacts: list[ArtifactRef]
    built_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
