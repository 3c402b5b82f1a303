"""First-writer-wins merging of directory trees."""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..core.logging import get_logger
from ..models.package import ResourceEntry
from .detector import ConflictDetector, ConflictSource, write_duplicates

logger = get_logger(__name__)


@dataclass
class MergeResult:
    destination: Path
    copied: int = 0
    duplicates: list[ResourceEntry] = field(default_factory=list)
    side_artifact: Path | None = None


def merge_trees(
    sources: Sequence[ConflictSource],
    destination: Path,
    side_artifact: Path | None = None,
) -> MergeResult:
    """Copy sources into one tree, highest precedence first.

    Every relative path is written once, from its first contributor. Losing
    copies are written to ``side_artifact`` when one is given.

    Args:
        sources: Directories or archives in precedence order.
        destination: Directory to populate; recreated from scratch.
        side_artifact: Where to keep losing duplicates.

    Returns:
        What was copied and which paths were duplicated.
    """
    if destination.exists():
        shutil.rmtree(destination)
    destination.mkdir(parents=True)

    resolution = ConflictDetector(always_merged=()).resolve(sources)
    result = MergeResult(destination=destination)

    for path, winner in sorted(resolution.winners.items()):
        target = destination / path
        target.parent.mkdir(parents=True, exist_ok=True)
        if winner.member is None:
            shutil.copy2(winner.location, target)
        else:
            target.write_bytes(winner.read_bytes())
        result.copied += 1

    result.duplicates = [resolution.entries[p] for p in sorted(resolution.conflicts)]
    for entry in result.duplicates:
        logger.warning(
            "Duplicate file, keeping first",
            path=entry.relative_path,
            kept=entry.sources[0],
            dropped=entry.sources[1:],
        )
    if side_artifact is not None:
        result.side_artifact = write_duplicates(side_artifact, result.duplicates)
    return result
