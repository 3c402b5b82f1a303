"""
Package content models.

A PackageManifest is the complete, conflict-free description of the final APK
before it is written: every relative path maps to exactly one physical source.
"""

from __future__ import annotations

import zipfile
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class SigningState(str, Enum):
    """Signing state of the final package."""

    UNSIGNED = "unsigned"
    DEBUG = "debug"
    RELEASE = "release"


class Contribution(BaseModel):
    """One physical copy of a relative path.

    ``location`` is the file itself for directory sources, or the archive for
    jar sources, in which case ``member`` names the archive entry.
    """

    model_config = ConfigDict(frozen=True)

    source: str = Field(description="Identity of the contributing source")
    location: Path
    member: str | None = None

    def read_bytes(self) -> bytes:
        if self.member is None:
            return self.location.read_bytes()
        with zipfile.ZipFile(self.location) as zf:
            return zf.read(self.member)

    def __str__(self) -> str:
        if self.member:
            return f"{self.source} ({self.location}!{self.member})"
        return f"{self.source} ({self.location})"


class ResourceEntry(BaseModel):
    """A relative path and every source contributing it, in precedence order."""

    relative_path: str
    contributors: list[Contribution] = Field(default_factory=list)

    @property
    def is_conflict(self) -> bool:
        return len({c.source for c in self.contributors}) > 1

    @property
    def sources(self) -> list[str]:
        return [c.source for c in self.contributors]


class PackageManifest(BaseModel):
    """Everything that goes into the final package."""

    dex_files: list[Path] = Field(default_factory=list, description="Primary dex first")
    entries: dict[str, Contribution] = Field(default_factory=dict)
    generated: dict[str, bytes] = Field(
        default_factory=dict, description="Entries produced by resource transformers"
    )
    meta_inf: dict[str, Contribution] = Field(default_factory=dict)
    native_libraries: dict[str, dict[str, Path]] = Field(
        default_factory=dict, description="Architecture to library file name to source"
    )
    duplicates: list[ResourceEntry] = Field(
        default_factory=list, description="Conflicts resolved by precedence"
    )
    signing: SigningState = Field(default=SigningState.UNSIGNED)

    def paths(self) -> list[str]:
        """All package paths in write order."""
        result = [dex.name for dex in self.dex_files]
        result.extend(sorted({*self.entries, *self.generated, *self.meta_inf}))
        for arch in sorted(self.native_libraries):
            result.extend(f"lib/{arch}/{name}" for name in sorted(self.native_libraries[arch]))
        return result

    @property
    def entry_count(self) -> int:
        return len(self.paths())
