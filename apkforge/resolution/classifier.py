"""
Artifact classification.

Maps a resolved dependency to its ArtifactKind from the declared packaging type,
falling back to the file extension. Classification is a pure function of the
artifact; UNKNOWN means "pass through unmodified", never an error.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..models.artifact import (
    DEFAULT_ARCHITECTURE,
    NATIVE_ARCHITECTURES,
    ArtifactKind,
    DependencyArtifact,
    architecture_from_classifier,
)

_TYPE_KINDS: dict[str, ArtifactKind] = {
    "aar": ArtifactKind.AAR,
    "apklib": ArtifactKind.APKLIB,
    "apk": ArtifactKind.APK,
    "jar": ArtifactKind.JAR,
    "bundle": ArtifactKind.JAR,
    "so": ArtifactKind.NATIVE_SHARED,
    "a": ArtifactKind.NATIVE_STATIC,
}


def classify(artifact: DependencyArtifact) -> ArtifactKind:
    """Categorize a dependency.

    Args:
        artifact: The resolved dependency.

    Returns:
        The artifact's kind, or ArtifactKind.UNKNOWN.
    """
    kind = _TYPE_KINDS.get((artifact.type or "").lower())
    if kind is not None:
        return kind

    suffix = artifact.file.suffix.lower().lstrip(".")
    return _TYPE_KINDS.get(suffix, ArtifactKind.UNKNOWN)


def native_architecture(
    artifact: DependencyArtifact, default: str = DEFAULT_ARCHITECTURE
) -> str:
    """Architecture of a native artifact.

    An architecture-named parent directory (``armeabi-v7a/libfoo.so``) wins,
    then the classifier prefix, then ``default``.
    """
    parent = artifact.file.parent.name
    if parent in NATIVE_ARCHITECTURES:
        return parent
    return architecture_from_classifier(artifact.classifier, default)


def native_library_name(artifact: DependencyArtifact) -> str:
    """File name a native artifact is staged under: ``lib<artifactId>.<ext>``."""
    extension = "a" if classify(artifact) == ArtifactKind.NATIVE_STATIC else "so"
    name = artifact.artifact_id
    if not name.startswith("lib"):
        name = f"lib{name}"
    return f"{name}.{extension}"


def select(
    artifacts: Iterable[DependencyArtifact], *kinds: ArtifactKind
) -> list[DependencyArtifact]:
    """Artifacts of the given kinds, preserving order."""
    wanted = set(kinds)
    return [a for a in artifacts if classify(a) in wanted]
