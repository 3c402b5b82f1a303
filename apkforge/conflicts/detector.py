"""
Duplicate path detection across staging areas and jars.

Sources are scanned in precedence order into one index of relative path to
contributors. Which paths conflict does not depend on scan order; the chosen
copy of a conflicting path is always the first contributor in precedence order.
"""

from __future__ import annotations

import zipfile
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..core.archive import iter_archive_files, iter_directory_files, write_entry
from ..core.exceptions import ResolutionError
from ..core.logging import get_logger
from ..models.package import Contribution, ResourceEntry

logger = get_logger(__name__)

ALWAYS_MERGED_PREFIXES: tuple[str, ...] = ("META-INF/",)

EntryFilter = Callable[[str], bool]


@dataclass(frozen=True)
class ConflictSource:
    """A named directory or archive contributing files."""

    identity: str
    location: Path

    @property
    def is_archive(self) -> bool:
        return self.location.is_file()

    def contributions(self) -> Iterator[tuple[str, Contribution]]:
        """Every file in the source as (relative path, contribution)."""
        if self.is_archive:
            try:
                for name in iter_archive_files(self.location):
                    yield name, Contribution(
                        source=self.identity, location=self.location, member=name
                    )
            except zipfile.BadZipFile as e:
                raise ResolutionError(
                    message=f"Corrupt archive {self.location}",
                    artifact=self.identity,
                    cause=e,
                ) from e
        elif self.location.is_dir():
            for relative, path in iter_directory_files(self.location):
                yield relative, Contribution(source=self.identity, location=path)


@dataclass
class ConflictResolution:
    """Index of every scanned path with its contributors in precedence order."""

    entries: dict[str, ResourceEntry] = field(default_factory=dict)

    @property
    def winners(self) -> dict[str, Contribution]:
        return {path: entry.contributors[0] for path, entry in self.entries.items()}

    @property
    def conflicts(self) -> dict[str, ResourceEntry]:
        return {path: entry for path, entry in self.entries.items() if entry.is_conflict}

    def losers(self, path: str) -> list[Contribution]:
        return self.entries[path].contributors[1:]


class ConflictDetector:
    """Finds relative paths contributed by more than one source.

    Args:
        always_merged: Path prefixes that are never indexed, because another
            step merges them.
        entry_filter: Optional predicate; paths it rejects are not indexed.
    """

    def __init__(
        self,
        always_merged: Sequence[str] = ALWAYS_MERGED_PREFIXES,
        entry_filter: EntryFilter | None = None,
    ) -> None:
        self.always_merged = tuple(always_merged)
        self.entry_filter = entry_filter

    def _indexed(self, path: str) -> bool:
        if any(path.startswith(prefix) or f"/{prefix}" in path for prefix in self.always_merged):
            return False
        return self.entry_filter is None or self.entry_filter(path)

    def index(self, sources: Iterable[ConflictSource]) -> ConflictResolution:
        """Scan sources in precedence order."""
        entries: dict[str, ResourceEntry] = {}
        for source in sources:
            for path, contribution in source.contributions():
                if not self._indexed(path):
                    continue
                entry = entries.setdefault(path, ResourceEntry(relative_path=path))
                # An archive can list the same name twice; keep its first copy
                if source.identity not in entry.sources:
                    entry.contributors.append(contribution)
        return ConflictResolution(entries=entries)

    def find_conflicts(self, sources: Iterable[ConflictSource]) -> dict[str, list[str]]:
        """Map each conflicting relative path to its contributing identities.

        Returns:
            Conflicting paths, sorted, each with identities in precedence order.
        """
        resolution = self.index(sources)
        return {
            path: resolution.entries[path].sources
            for path in sorted(resolution.conflicts)
        }

    def resolve(self, sources: Iterable[ConflictSource]) -> ConflictResolution:
        """Index sources and log each conflict with its first-writer winner."""
        resolution = self.index(sources)
        for path in sorted(resolution.conflicts):
            entry = resolution.entries[path]
            logger.debug(
                "Duplicate path resolved by precedence",
                path=path,
                winner=entry.contributors[0].source,
                losers=entry.sources[1:],
            )
        return resolution


def side_artifact_name(identity: str, path: str) -> str:
    """Entry name of a losing copy inside the duplicate-resources artifact."""
    return f"{identity.replace(':', '_')}/{path}"


def write_duplicates(destination: Path, entries: Iterable[ResourceEntry]) -> Path | None:
    """Write every losing copy into the duplicate-resources side artifact.

    Each loser is stored under ``<identity>/<relative path>`` so copies of the
    same path from different sources stay distinguishable.

    Returns:
        The artifact path, or None when there was nothing to write.
    """
    losers = [
        (side_artifact_name(c.source, entry.relative_path), c)
        for entry in entries
        for c in entry.contributors[1:]
    ]
    if not losers:
        return None

    destination.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(destination, "w") as zf:
        for name, contribution in sorted(losers, key=lambda item: item[0]):
            write_entry(zf, name, contribution.read_bytes())
    logger.warning(
        "Duplicate files kept in side artifact",
        artifact=str(destination),
        count=len(losers),
    )
    return destination
