"""
Native library collection for the final package.

Libraries are gathered per architecture from several roots in precedence order;
the first root providing a given file name for an architecture wins.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from ..core.logging import get_logger
from ..models.artifact import UnpackedArtifact

logger = get_logger(__name__)

NATIVE_SUFFIXES = (".so",)


class NativeLibrarySet:
    """Native libraries keyed by architecture, then file name."""

    def __init__(self) -> None:
        self._libraries: dict[str, dict[str, Path]] = {}
        self._origins: dict[tuple[str, str], str] = {}

    def add(self, architecture: str, library: Path, origin: str) -> bool:
        """Add one library unless a higher-precedence origin already did.

        Returns:
            True when the library was added.
        """
        key = (architecture, library.name)
        if key in self._origins:
            logger.info(
                "Native library shadowed by higher precedence copy",
                architecture=architecture,
                library=library.name,
                kept=self._origins[key],
                ignored=origin,
            )
            return False
        self._libraries.setdefault(architecture, {})[library.name] = library
        self._origins[key] = origin
        return True

    def add_architecture_directory(self, architecture: str, directory: Path, origin: str) -> None:
        for library in sorted(directory.iterdir()):
            if library.is_file() and library.name.endswith(NATIVE_SUFFIXES):
                self.add(architecture, library, origin)

    def add_root(self, root: Path | None, origin: str) -> None:
        """Add every ``<root>/<arch>/*.so``."""
        if root is None or not root.is_dir():
            return
        for arch_dir in sorted(root.iterdir()):
            if arch_dir.is_dir():
                self.add_architecture_directory(arch_dir.name, arch_dir, origin)

    @property
    def architectures(self) -> list[str]:
        return sorted(self._libraries)

    def origin(self, architecture: str, name: str) -> str | None:
        return self._origins.get((architecture, name))

    def as_mapping(self) -> dict[str, dict[str, Path]]:
        return {arch: dict(libs) for arch, libs in sorted(self._libraries.items())}

    def __len__(self) -> int:
        return len(self._origins)


def collect_native_libraries(
    prebuilt_root: Path | None,
    ndk_output_root: Path | None,
    unpacked: Iterable[UnpackedArtifact] = (),
    project: str = "project",
) -> NativeLibrarySet:
    """Gather native libraries by precedence.

    Project prebuilt libraries win over ndk-build output of the same name,
    which wins over libraries shipped by dependencies in declaration order.
    """
    libraries = NativeLibrarySet()
    libraries.add_root(prebuilt_root, f"{project}:prebuilt")
    libraries.add_root(ndk_output_root, f"{project}:ndk-build")
    for artifact in unpacked:
        for arch, directory in artifact.native_libs.items():
            libraries.add_architecture_directory(arch, directory, artifact.id)
    return libraries
