"""AndroidManifest.xml merging, rewriting and version codes."""

from .merger import (
    BuiltinManifestMerger,
    ExternalManifestMerger,
    ManifestMerger,
    select_manifest_merger,
    update_manifest,
)
from .versioning import VersionGenerator

__all__ = [
    "BuiltinManifestMerger",
    "ExternalManifestMerger",
    "ManifestMerger",
    "select_manifest_merger",
    "update_manifest",
    "VersionGenerator",
]
