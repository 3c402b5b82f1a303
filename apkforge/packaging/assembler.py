"""
Final package assembly.

Merges the linked resource package, the project's Java resources, dependency
jar resources, dex files and native libraries into one PackageManifest, then
writes it as a zip. Conflicts are resolved by source precedence; only paths the
package format requires to be unique are fatal.
"""

from __future__ import annotations

import fnmatch
import re
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from ..conflicts.detector import ConflictDetector, ConflictSource, write_duplicates
from ..conflicts.transformers import ResourceTransformer, first_claim
from ..core.archive import write_entry
from ..core.exceptions import ConflictError, DuplicateFileError
from ..core.logging import get_logger
from ..models.package import Contribution, PackageManifest, SigningState
from .native import NativeLibrarySet

logger = get_logger(__name__)

PRIMARY_DEX = "classes.dex"
META_INF = "META-INF/"
PACKAGE_UNIQUE = re.compile(r"^(AndroidManifest\.xml|resources\.arsc|classes\d*\.dex)$")

# Regenerated when the package is signed
_SIGNATURE_FILES = re.compile(r"^META-INF/(MANIFEST\.MF|[^/]+\.(SF|RSA|DSA|EC))$", re.IGNORECASE)


def discover_dex_files(directory: Path) -> list[Path]:
    """``classes.dex`` followed by ``classes2.dex``, ``classes3.dex``... until one is missing."""
    primary = directory / PRIMARY_DEX
    if not primary.is_file():
        return []
    found = [primary]
    index = 2
    while (candidate := directory / f"classes{index}.dex").is_file():
        found.append(candidate)
        index += 1
    return found


@dataclass(frozen=True)
class ProjectOutput:
    """What the project itself contributes to the package."""

    identity: str
    resource_package: Path | None = None
    classes_directory: Path | None = None


class PackageAssembler:
    """Builds and writes the final package.

    Args:
        duplicates_artifact: Where losing duplicates are written, or None to
            not keep them.
        transformers: Ordered transformers consulted for conflicting paths.
        meta_inf_includes: Glob patterns of jar META-INF entries to package.
        exclude_jar_resources: Regexes; jars whose file name matches one
            contribute no resources.
        strict: Fail on any conflict no transformer claimed.
        signing: Signing state recorded on the manifest.
    """

    def __init__(
        self,
        duplicates_artifact: Path | None = None,
        transformers: Sequence[ResourceTransformer] = (),
        meta_inf_includes: Sequence[str] = (),
        exclude_jar_resources: Sequence[str] = (),
        strict: bool = False,
        signing: SigningState = SigningState.UNSIGNED,
    ) -> None:
        self.duplicates_artifact = duplicates_artifact
        self.transformers = list(transformers)
        self.meta_inf_includes = list(meta_inf_includes)
        self.exclude_jar_resources = [re.compile(p) for p in exclude_jar_resources]
        self.strict = strict
        self.signing = signing

    def _jar_sources(self, jars: Sequence[ConflictSource]) -> list[ConflictSource]:
        kept = []
        for jar in jars:
            if any(p.search(jar.location.name) for p in self.exclude_jar_resources):
                logger.debug("Skipping resources of excluded jar", jar=jar.identity)
                continue
            kept.append(jar)
        return kept

    def assemble(
        self,
        project_output: ProjectOutput,
        dependency_jars: Sequence[ConflictSource],
        native_libraries: NativeLibrarySet,
        dex_directory: Path,
    ) -> PackageManifest:
        """Describe the package without writing it.

        Args:
            project_output: Resource package and Java resources of the project.
            dependency_jars: Dependency jars in resolution order.
            native_libraries: Native libraries already resolved by precedence.
            dex_directory: Directory holding ``classes*.dex``.

        Returns:
            The conflict-free package description.

        Raises:
            DuplicateFileError: A package-unique path has two contributors.
            ConflictError: In strict mode, any unclaimed conflict.
        """
        jars = self._jar_sources(dependency_jars)
        sources: list[ConflictSource] = []
        if project_output.resource_package is not None:
            sources.append(
                ConflictSource(f"{project_output.identity}:resources", project_output.resource_package)
            )
        if project_output.classes_directory is not None:
            sources.append(ConflictSource(project_output.identity, project_output.classes_directory))
        sources.extend(jars)

        manifest = PackageManifest(signing=self.signing)
        manifest.dex_files = discover_dex_files(dex_directory)
        dex_names = {dex.name for dex in manifest.dex_files}
        dex_source = f"{project_output.identity}:dex"

        detector = ConflictDetector(
            always_merged=(META_INF,), entry_filter=lambda path: not path.endswith(".class")
        )
        resolution = detector.resolve(sources)

        for path in sorted(resolution.entries):
            entry = resolution.entries[path]
            if path in dex_names:
                raise DuplicateFileError(
                    message="dex files are produced by the dex stage only",
                    path=path,
                    first_source=dex_source,
                    second_source=entry.sources[0],
                )
            if not entry.is_conflict:
                manifest.entries[path] = entry.contributors[0]
                continue

            if PACKAGE_UNIQUE.match(path):
                raise DuplicateFileError(
                    message="the package format allows a single copy",
                    path=path,
                    first_source=entry.sources[0],
                    second_source=entry.sources[1],
                )

            transformer = first_claim(self.transformers, path)
            if transformer is not None:
                manifest.generated[path] = transformer.transform(path, entry.contributors)
                logger.info(
                    "Conflicting entry merged by transformer",
                    path=path,
                    transformer=transformer.name,
                    sources=entry.sources,
                )
                continue

            if self.strict:
                raise ConflictError(
                    message="unresolved duplicate in strict mode",
                    path=path,
                    sources=entry.sources,
                )
            manifest.entries[path] = entry.contributors[0]
            manifest.duplicates.append(entry)
            logger.warning(
                "Duplicate entry, keeping first by precedence",
                path=path,
                kept=entry.sources[0],
                dropped=entry.sources[1:],
            )

        self._merge_meta_inf(manifest, jars)
        manifest.native_libraries = native_libraries.as_mapping()

        logger.info(
            "Assembled package manifest",
            dex_files=len(manifest.dex_files),
            entries=manifest.entry_count,
            duplicates=len(manifest.duplicates),
        )
        return manifest

    def _merge_meta_inf(self, manifest: PackageManifest, jars: Sequence[ConflictSource]) -> None:
        if not self.meta_inf_includes:
            return
        collected: dict[str, list[Contribution]] = {}
        for jar in jars:
            for path, contribution in jar.contributions():
                if not path.startswith(META_INF) or _SIGNATURE_FILES.match(path):
                    continue
                if not any(fnmatch.fnmatchcase(path, p) for p in self.meta_inf_includes):
                    continue
                copies = collected.setdefault(path, [])
                if all(c.source != contribution.source for c in copies):
                    copies.append(contribution)

        for path in sorted(collected):
            copies = collected[path]
            transformer = first_claim(self.transformers, path) if len(copies) > 1 else None
            if transformer is not None:
                manifest.generated[path] = transformer.transform(path, copies)
            else:
                manifest.meta_inf[path] = copies[0]

    def write(self, manifest: PackageManifest, destination: Path) -> Path:
        """Write the package and, when configured, the duplicate-resources artifact.

        Entries are written in a fixed order with fixed timestamps.

        Returns:
            The written package path.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(destination, "w") as zf:
            for dex in manifest.dex_files:
                write_entry(zf, dex.name, dex.read_bytes())

            named: dict[str, bytes | Contribution] = {}
            named.update(manifest.entries)
            named.update(manifest.meta_inf)
            named.update(manifest.generated)
            for path in sorted(named):
                content = named[path]
                data = content if isinstance(content, bytes) else content.read_bytes()
                write_entry(zf, path, data)

            for arch, libraries in sorted(manifest.native_libraries.items()):
                for name, library in sorted(libraries.items()):
                    write_entry(zf, f"lib/{arch}/{name}", library.read_bytes())

        if self.duplicates_artifact is not None and manifest.duplicates:
            write_duplicates(self.duplicates_artifact, manifest.duplicates)

        logger.info("Wrote package", package=str(destination), entries=manifest.entry_count)
        return destination
