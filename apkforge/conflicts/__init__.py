"""Conflict detection, resolution and reporting."""

from .checks import find_conflicting_layouts, find_duplicate_packages, read_manifest_package
from .detector import (
    ConflictDetector,
    ConflictResolution,
    ConflictSource,
    side_artifact_name,
    write_duplicates,
)
from .merge import MergeResult, merge_trees
from .transformers import (
    AppendingTransformer,
    ResourceTransformer,
    ServicesResourceTransformer,
    build_transformers,
    first_claim,
)

__all__ = [
    "find_conflicting_layouts",
    "find_duplicate_packages",
    "read_manifest_package",
    "ConflictDetector",
    "ConflictResolution",
    "ConflictSource",
    "side_artifact_name",
    "write_duplicates",
    "MergeResult",
    "merge_trees",
    "AppendingTransformer",
    "ResourceTransformer",
    "ServicesResourceTransformer",
    "build_transformers",
    "first_claim",
]
