"""
Cross-library consistency checks run while generating sources.

Two Android libraries declaring the same manifest package would generate
clashing R classes, and two libraries shipping the same layout file silently
shadow one another. Both are reported here; whether they fail the build is the
caller's choice.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path

from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger

logger = get_logger(__name__)


def read_manifest_package(manifest: Path) -> str:
    """The ``package`` attribute of an AndroidManifest.xml.

    Raises:
        ConfigurationError: If the manifest cannot be parsed or has no package.
    """
    try:
        root = ET.parse(manifest).getroot()
    except (ET.ParseError, OSError) as e:
        raise ConfigurationError(
            message=f"Cannot parse manifest {manifest}",
            setting="manifest",
            cause=e,
        ) from e
    package = root.get("package", "").strip()
    if not package:
        raise ConfigurationError(
            message=f"Manifest {manifest} declares no package",
            setting="manifest",
        )
    return package


def find_duplicate_packages(manifests: Iterable[tuple[str, Path]]) -> dict[str, list[str]]:
    """Packages declared by more than one manifest.

    Args:
        manifests: (identity, manifest path) pairs.

    Returns:
        Package name to the identities declaring it, for duplicated packages only.
    """
    owners: dict[str, list[str]] = {}
    for identity, manifest in manifests:
        owners.setdefault(read_manifest_package(manifest), []).append(identity)
    return {package: ids for package, ids in sorted(owners.items()) if len(ids) > 1}


def find_conflicting_layouts(
    resource_roots: Iterable[tuple[str, Path]],
) -> dict[str, list[str]]:
    """Layout files (``layout*/<name>.xml``) shipped by more than one package.

    Args:
        resource_roots: (identity, res directory) pairs.

    Returns:
        Relative layout path to the identities shipping it, for conflicts only.
    """
    owners: dict[str, list[str]] = {}
    for identity, root in resource_roots:
        if not root.is_dir():
            continue
        for layout in sorted(root.glob("layout*/*.xml")):
            relative = layout.relative_to(root).as_posix()
            owners.setdefault(relative, []).append(identity)
    return {path: ids for path, ids in sorted(owners.items()) if len(ids) > 1}


def report(kind: str, findings: dict[str, list[str]], fail: bool) -> None:
    """Log findings and raise when configured to fail.

    Raises:
        ConfigurationError: If ``fail`` is set and there are findings.
    """
    for key, identities in findings.items():
        logger.warning(f"{kind} found", key=key, sources=identities)
    if findings and fail:
        raise ConfigurationError(
            message=f"{kind}: {', '.join(findings)}",
            context={"findings": findings},
        )
