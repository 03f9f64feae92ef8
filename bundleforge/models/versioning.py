"""Runtime version pin — the interpreter the deployed code will run on."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

_VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


class RuntimeVersion(BaseModel):
    """A parsed ``major.minor[.patch]`` runtime version."""

    model_config = ConfigDict(frozen=True)

    major: int
    minor: int
    patch: int = 0

    @classmethod
    def parse(cls, text: str) -> RuntimeVersion:
        """Parse the first ``X.Y[.Z]`` occurrence in *text*."""
        match = _VERSION_PATTERN.search(text)
        if match is None:
            raise ValueError(f"Not a runtime version: {text!r}")
        major, minor, patch = match.groups()
        return cls(major=int(major), minor=int(minor), patch=int(patch or 0))

    @property
    def series(self) -> str:
        """``major.minor`` — the part that must match the target platform."""
        return f"{self.major}.{self.minor}"

    @property
    def variant(self) -> str:
        """Human-readable accepted variant, e.g. ``3.12.x``."""
        return f"{self.series}.x"

    def is_compatible(self, other: RuntimeVersion) -> bool:
        return self.major == other.major and self.minor == other.minor

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"
