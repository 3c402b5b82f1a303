"""
Dependency artifact models.

These models describe resolved build dependencies and their exploded, staged
form. Artifacts are identified by the coordinate string
``group:artifact:version[:classifier]``, which is the join key used throughout
unpacking and classification.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ArtifactKind(str, Enum):
    """Packaging category of a dependency."""

    AAR = "aar"
    APKLIB = "apklib"
    APK = "apk"
    JAR = "jar"
    NATIVE_SHARED = "so"
    NATIVE_STATIC = "a"
    UNKNOWN = "unknown"

    @property
    def requires_manifest(self) -> bool:
        """Library kinds must ship an AndroidManifest.xml."""
        return self in (ArtifactKind.AAR, ArtifactKind.APKLIB)

    @property
    def is_android_library(self) -> bool:
        return self in (ArtifactKind.AAR, ArtifactKind.APKLIB)

    @property
    def is_native(self) -> bool:
        return self in (ArtifactKind.NATIVE_SHARED, ArtifactKind.NATIVE_STATIC)


class Scope(str, Enum):
    """Dependency scope."""

    COMPILE = "compile"
    PROVIDED = "provided"
    RUNTIME = "runtime"
    TEST = "test"
    SYSTEM = "system"


NATIVE_ARCHITECTURES: tuple[str, ...] = (
    "armeabi",
    "armeabi-v7a",
    "arm64-v8a",
    "mips",
    "mips64",
    "x86",
    "x86_64",
)
DEFAULT_ARCHITECTURE = "armeabi"


def architecture_from_classifier(
    classifier: str | None, default: str = DEFAULT_ARCHITECTURE
) -> str:
    """Map a classifier such as ``armeabi-v7a-debug`` to its architecture.

    Longer names are tried first so ``x86_64`` never matches as ``x86``.

    Args:
        classifier: Artifact classifier, possibly None.
        default: Architecture returned when nothing matches.

    Returns:
        The matching architecture name.
    """
    if classifier:
        for arch in sorted(NATIVE_ARCHITECTURES, key=len, reverse=True):
            if classifier.startswith(arch):
                return arch
    return default


class ArtifactCoordinate(BaseModel):
    """Identity of an artifact: ``group:artifact:version[:classifier]``."""

    model_config = ConfigDict(frozen=True)

    group: str = Field(min_length=1)
    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    classifier: str | None = Field(default=None)

    @classmethod
    def parse(cls, value: str) -> ArtifactCoordinate:
        """Parse a coordinate string.

        Raises:
            ValueError: If the string has fewer than 3 or more than 4 parts,
                or any part is empty.
        """
        parts = value.strip().split(":")
        if len(parts) not in (3, 4) or not all(parts):
            raise ValueError(
                f"Invalid artifact coordinate '{value}', "
                "expected group:artifact:version[:classifier]"
            )
        return cls(
            group=parts[0],
            name=parts[1],
            version=parts[2],
            classifier=parts[3] if len(parts) == 4 else None,
        )

    def __str__(self) -> str:
        base = f"{self.group}:{self.name}:{self.version}"
        return f"{base}:{self.classifier}" if self.classifier else base

    @property
    def staging_name(self) -> str:
        """Directory name of the staging area for this coordinate."""
        parts = [self.group, self.name, self.version]
        if self.classifier:
            parts.append(self.classifier)
        return "_".join(parts)


class DependencyArtifact(BaseModel):
    """One resolved build dependency. Never mutated after resolution."""

    model_config = ConfigDict(frozen=True)

    coordinate: ArtifactCoordinate
    type: str | None = Field(default=None, description="Declared packaging type")
    scope: Scope | None = Field(default=Scope.COMPILE)
    file: Path = Field(description="Resolved binary or exploded directory")

    @field_validator("coordinate", mode="before")
    @classmethod
    def _parse_coordinate(cls, value: object) -> object:
        if isinstance(value, str):
            return ArtifactCoordinate.parse(value)
        return value

    @property
    def id(self) -> str:
        return str(self.coordinate)

    @property
    def group_id(self) -> str:
        return self.coordinate.group

    @property
    def artifact_id(self) -> str:
        return self.coordinate.name

    @property
    def version(self) -> str:
        return self.coordinate.version

    @property
    def classifier(self) -> str | None:
        return self.coordinate.classifier

    def __str__(self) -> str:
        return f"{self.coordinate}@{self.type}" if self.type else str(self.coordinate)


class UnpackedArtifact(BaseModel):
    """The staged, exploded form of a dependency.

    The staging directory is owned by the unpacker that created it and is
    recreated rather than edited when the source artifact changes.
    """

    model_config = ConfigDict(frozen=True)

    coordinate: ArtifactCoordinate
    kind: ArtifactKind
    root: Path
    classes_root: Path
    resources_root: Path | None = None
    assets_root: Path | None = None
    native_libs: dict[str, Path] = Field(
        default_factory=dict, description="Architecture to native library directory"
    )
    manifest_file: Path | None = None
    proguard_file: Path | None = None
    symbol_file: Path | None = Field(default=None, description="R.txt shipped by an AAR")
    sources_root: Path | None = Field(default=None, description="APKLIB sources")

    @property
    def id(self) -> str:
        return str(self.coordinate)
