"""
generate-sources: stage libraries, merge manifests and assets, generate R and AIDL sources.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from ..conflicts.checks import (
    find_conflicting_layouts,
    find_duplicate_packages,
    read_manifest_package,
    report,
)
from ..conflicts.detector import ConflictSource
from ..conflicts.merge import merge_trees
from ..core.exceptions import MissingManifestError
from ..core.logging import get_logger
from ..manifest.merger import update_manifest
from ..manifest.versioning import VersionGenerator
from ..models.artifact import ArtifactKind, UnpackedArtifact
from ..tools.aidl import AidlCommandBuilder
from ..tools.sdk import require_tool
from .resources import compile_resources, link_command
from .stage import PipelineStage

logger = get_logger(__name__)

_AIDL_PACKAGE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)


def aidl_output_path(source: Path, output_root: Path) -> Path:
    """``<output_root>/<package path>/<Name>.java`` for an .aidl file."""
    match = _AIDL_PACKAGE.search(source.read_text(encoding="utf-8"))
    package_dir = Path(*match.group(1).split(".")) if match else Path()
    return output_root / package_dir / f"{source.stem}.java"


class GenerateSourcesStage(PipelineStage):
    """Prepares everything the Java compiler needs besides the project sources."""

    name = "generate-sources"
    phase = "generate-sources"

    def execute(self) -> list[Path]:
        libraries = self.context.unpacked_libraries()
        self._check_libraries()

        produced = [self._prepare_manifest()]
        assets = self._combine_assets()
        if assets is not None:
            produced.append(assets)
        produced.extend(self._generate_r())
        produced.extend(self._generate_aidl())

        logger.info("Generated sources", libraries=len(libraries), outputs=len(produced))
        return produced

    def expected_outputs(self) -> list[Path]:
        return [self.layout.merged_manifest]

    def _project_manifest(self) -> Path:
        manifest = self.config.resolve(self.config.resources.manifest_file)
        if not manifest.is_file():
            raise MissingManifestError(
                message=f"Project manifest not found: {manifest}",
                setting="resources.manifest_file",
                artifact=self.context.identity,
            )
        return manifest

    def _android_libraries(self) -> list[UnpackedArtifact]:
        return [u for u in self.context.unpacked_libraries() if u.kind.is_android_library]

    def _check_libraries(self) -> None:
        resources = self.config.resources
        manifests = [(self.context.identity, self._project_manifest())]
        manifests += [(u.id, u.manifest_file) for u in self._android_libraries() if u.manifest_file]
        report(
            "Duplicate package",
            find_duplicate_packages(manifests),
            resources.fail_on_duplicate_packages,
        )
        report(
            "Conflicting layout",
            find_conflicting_layouts(self.context.resource_directories()),
            resources.fail_on_conflicting_layouts,
        )

    def _version_code(self) -> int | None:
        manifest_config = self.config.manifest
        if manifest_config.version_code is not None:
            return manifest_config.version_code
        if not manifest_config.version_code_from_version:
            return None
        generator = VersionGenerator(
            manifest_config.version_digits, manifest_config.version_naming_pattern
        )
        return generator.generate(self.config.project.version)

    def _prepare_manifest(self) -> Path:
        manifest_config = self.config.manifest
        # Version settings are validated before any tool runs
        version_code = self._version_code()

        merged = self.layout.merged_manifest
        merged.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self._project_manifest(), merged)

        if manifest_config.merge_libraries and not self.config.project.is_library:
            library_manifests = [
                u.manifest_file for u in self._android_libraries() if u.manifest_file
            ]
            self.context.manifest_merger.merge(merged, library_manifests)

        update_manifest(
            merged,
            version_code=version_code,
            version_name=self.config.project.version if version_code is not None else None,
            debuggable=manifest_config.debuggable,
        )
        self.context.outputs.merged_manifest = merged
        return merged

    def _combine_assets(self) -> Path | None:
        sources = [
            ConflictSource(
                self.context.identity,
                self.config.resolve(self.config.resources.assets_directory),
            )
        ]
        sources += [
            ConflictSource(u.id, u.assets_root)
            for u in self.context.unpacked_libraries()
            if u.assets_root is not None
        ]
        sources = [s for s in sources if s.location.is_dir()]
        if not sources:
            return None

        side_artifact = self.layout.duplicate_assets if self.config.apk.extract_duplicates else None
        result = merge_trees(sources, self.layout.combined_assets, side_artifact)
        logger.debug("Combined assets", files=result.copied, duplicates=len(result.duplicates))
        self.context.outputs.combined_assets = result.destination
        return result.destination

    def _generate_r(self) -> list[Path]:
        r_directory = self.layout.r_sources
        r_directory.mkdir(parents=True, exist_ok=True)
        self.layout.proguard.mkdir(parents=True, exist_ok=True)
        compile_resources(self.context)

        project_package = read_manifest_package(self.context.manifest())
        extra_packages: list[str] = []
        for library in self._android_libraries():
            if library.kind != ArtifactKind.AAR or library.manifest_file is None:
                continue
            package = read_manifest_package(library.manifest_file)
            if package != project_package and package not in extra_packages:
                extra_packages.append(package)

        builder = (
            link_command(self.context, r_directory, extra_packages)
            .generate_symbols(r_directory)
            .set_proguard_output(self.layout.aapt_rules)
        )
        if builder.modern:
            # aapt2 link always writes a package; keep it apart from the real one
            builder.set_output_apk(self.layout.compiled_resources / "r-only.ap_")

        self.context.executor.execute(builder.to_invocation())
        self.context.outputs.r_sources = r_directory
        return [r_directory]

    def _generate_aidl(self) -> list[Path]:
        source_root = self.config.resolve(self.config.resources.aidl_source_directory)
        if not source_root.is_dir():
            return []
        sources = sorted(source_root.rglob("*.aidl"))
        if not sources:
            return []

        sdk = self.context.sdk
        aidl = require_tool(sdk.aidl, "aidl")
        import_directories = [source_root] + [
            u.sources_root
            for u in self.context.unpacked_libraries()
            if u.sources_root is not None
        ]

        generated: list[Path] = []
        for source in sources:
            output = aidl_output_path(source, self.layout.aidl_sources)
            output.parent.mkdir(parents=True, exist_ok=True)
            builder = (
                AidlCommandBuilder(aidl)
                .set_framework(sdk.framework_aidl)
                .add_import_directories(import_directories)
                .set_input_output(source, output)
            )
            self.context.executor.execute(builder.to_invocation())
            generated.append(output)

        logger.info("Generated AIDL sources", count=len(generated))
        self.context.outputs.aidl_sources = generated
        return generated
