"""Data models for apkforge."""

from .artifact import (
    DEFAULT_ARCHITECTURE,
    NATIVE_ARCHITECTURES,
    ArtifactCoordinate,
    ArtifactKind,
    DependencyArtifact,
    Scope,
    UnpackedArtifact,
    architecture_from_classifier,
)
from .invocation import CommandResult, ToolDialect, ToolInvocation
from .package import Contribution, PackageManifest, ResourceEntry, SigningState

__all__ = [
    "DEFAULT_ARCHITECTURE",
    "NATIVE_ARCHITECTURES",
    "ArtifactCoordinate",
    "ArtifactKind",
    "DependencyArtifact",
    "Scope",
    "UnpackedArtifact",
    "architecture_from_classifier",
    "CommandResult",
    "ToolDialect",
    "ToolInvocation",
    "Contribution",
    "PackageManifest",
    "ResourceEntry",
    "SigningState",
]
