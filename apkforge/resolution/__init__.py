"""Dependency classification, filtering and unpacking."""

from .classifier import classify, native_architecture, native_library_name, select
from .filters import IncludeExcludeSet, filter_artifacts, qualifier_matches
from .unpacker import DependencyUnpacker

__all__ = [
    "classify",
    "native_architecture",
    "native_library_name",
    "select",
    "IncludeExcludeSet",
    "filter_artifacts",
    "qualifier_matches",
    "DependencyUnpacker",
]
