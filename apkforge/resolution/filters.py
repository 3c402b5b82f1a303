"""
Dependency include/exclude rules.

Each pipeline stage narrows the dependency list through the same allow/deny
policy: explicit includes (by type or coordinate) always win, then
``skip_dependencies`` and explicit excludes remove artifacts, and everything
else passes.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field

from ..models.artifact import DependencyArtifact
from .classifier import classify


class IncludeExcludeSet(BaseModel):
    """A pair of include and exclude lists."""

    includes: list[str] = Field(default_factory=list)
    excludes: list[str] = Field(default_factory=list)


def qualifier_matches(qualifier: str, artifact: DependencyArtifact) -> bool:
    """Match ``group[:artifact[:version]]`` against an artifact.

    An empty qualifier matches nothing. Omitted trailing parts match anything.

    Raises:
        ValueError: If the qualifier has more than three parts.
    """
    if not qualifier:
        return False
    parts = qualifier.split(":")
    if len(parts) > 3:
        raise ValueError(
            f"Invalid qualifier '{qualifier}', expected group[:artifact[:version]]"
        )
    actual = (artifact.group_id, artifact.artifact_id, artifact.version)
    return all(expected == value for expected, value in zip(parts, actual))


def _type_of(artifact: DependencyArtifact) -> str:
    return (artifact.type or classify(artifact).value).lower()


def is_included(
    artifact: DependencyArtifact,
    skip_dependencies: bool = False,
    types: IncludeExcludeSet | None = None,
    artifacts: IncludeExcludeSet | None = None,
) -> bool:
    types = types or IncludeExcludeSet()
    artifacts = artifacts or IncludeExcludeSet()
    artifact_type = _type_of(artifact)

    if artifact_type in {t.lower() for t in types.includes}:
        return True
    if any(qualifier_matches(q, artifact) for q in artifacts.includes):
        return True

    if skip_dependencies:
        return False
    if artifact_type in {t.lower() for t in types.excludes}:
        return False
    if any(qualifier_matches(q, artifact) for q in artifacts.excludes):
        return False
    return True


def filter_artifacts(
    candidates: Iterable[DependencyArtifact],
    skip_dependencies: bool = False,
    types: IncludeExcludeSet | None = None,
    artifacts: IncludeExcludeSet | None = None,
) -> list[DependencyArtifact]:
    """Apply the include/exclude policy, preserving resolution order.

    Args:
        candidates: Dependencies in resolution order.
        skip_dependencies: Exclude everything not explicitly included.
        types: Include/exclude lists of packaging types.
        artifacts: Include/exclude lists of coordinate qualifiers.

    Returns:
        The retained dependencies.
    """
    return [
        a
        for a in candidates
        if is_included(a, skip_dependencies, types, artifacts)
    ]
