"""
Per-build context shared by every pipeline stage.

A BuildContext is created once per build and passed to each stage by
reference. Collaborators that are expensive or environment dependent (SDK,
NDK, resource tool dialect, manifest merger) are resolved on first use and
then reused for the rest of the build.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..core.config import Config
from ..core.logging import get_logger
from ..manifest.merger import ManifestMerger, select_manifest_merger
from ..models.artifact import ArtifactKind, DependencyArtifact, Scope, UnpackedArtifact
from ..models.invocation import ToolDialect
from ..resolution.classifier import select
from ..resolution.filters import filter_artifacts
from ..resolution.unpacker import DependencyUnpacker
from ..tools.executor import CommandExecutor
from ..tools.ndk import AndroidNdk
from ..tools.sdk import AndroidSdk, java_executable

logger = get_logger(__name__)

LIBRARY_KINDS = (ArtifactKind.AAR, ArtifactKind.APKLIB, ArtifactKind.APK)
PACKAGED_SCOPES = (Scope.COMPILE, Scope.RUNTIME)


class BuildLayout:
    """Paths of everything a build writes under the build directory."""

    def __init__(self, build_directory: Path, final_name: str) -> None:
        self.root = build_directory
        self.final_name = final_name

    @property
    def unpacked_libs(self) -> Path:
        return self.root / "unpacked-libs"

    @property
    def r_sources(self) -> Path:
        return self.root / "generated-sources" / "r"

    @property
    def aidl_sources(self) -> Path:
        return self.root / "generated-sources" / "aidl"

    @property
    def combined_assets(self) -> Path:
        return self.root / "combined-assets"

    @property
    def compiled_resources(self) -> Path:
        return self.root / "compiled-res"

    @property
    def merged_manifest(self) -> Path:
        return self.root / "AndroidManifest.xml"

    @property
    def classes(self) -> Path:
        return self.root / "classes"

    @property
    def proguard(self) -> Path:
        return self.root / "proguard"

    @property
    def proguard_config(self) -> Path:
        return self.proguard / "temp_config.cfg"

    @property
    def obfuscated_jar(self) -> Path:
        return self.proguard / f"{self.final_name}-obfuscated.jar"

    @property
    def aapt_rules(self) -> Path:
        return self.proguard / "aapt_rules.txt"

    @property
    def dex(self) -> Path:
        return self.root / "dex"

    @property
    def pre_dexed(self) -> Path:
        return self.dex / "pre-dexed"

    @property
    def main_dex_list(self) -> Path:
        return self.dex / "maindexlist.txt"

    @property
    def ndk_libs(self) -> Path:
        return self.root / "ndk-libs"

    @property
    def ndk_objects(self) -> Path:
        return self.root / "ndk-obj"

    @property
    def embedded_jars(self) -> Path:
        return self.root / "unpacked-embedded-jars"

    @property
    def duplicate_resources(self) -> Path:
        return self.embedded_jars / "duplicate-resources.jar"

    @property
    def duplicate_assets(self) -> Path:
        return self.embedded_jars / "duplicate-assets.jar"

    @property
    def resource_package(self) -> Path:
        return self.root / f"{self.final_name}.ap_"

    @property
    def package(self) -> Path:
        return self.root / f"{self.final_name}.apk"

    @property
    def unsigned_package(self) -> Path:
        return self.root / f"{self.final_name}-unsigned.apk"

    @property
    def aligned_package(self) -> Path:
        return self.root / f"{self.final_name}-aligned.apk"

    @property
    def run_record(self) -> Path:
        return self.root / "apkforge-run.json"


@dataclass
class StageOutputs:
    """Files published by stages for the stages after them."""

    unpacked: list[UnpackedArtifact] = field(default_factory=list)
    merged_manifest: Path | None = None
    combined_assets: Path | None = None
    compiled_resources: list[Path] = field(default_factory=list)
    r_sources: Path | None = None
    aidl_sources: list[Path] = field(default_factory=list)
    native_libraries: Path | None = None
    obfuscated_jar: Path | None = None
    dex_directory: Path | None = None
    package: Path | None = None


class BuildContext:
    """Everything one build shares across its stages.

    Args:
        config: Build configuration.
        executor: Runs external tools; defaults to one rooted at the project
            base directory.
        sdk: Pre-resolved SDK, otherwise resolved from ``config.sdk`` on first use.
        ndk: Pre-resolved NDK, otherwise resolved from ``config.ndk`` on first use.
    """

    def __init__(
        self,
        config: Config,
        executor: CommandExecutor | None = None,
        sdk: AndroidSdk | None = None,
        ndk: AndroidNdk | None = None,
    ) -> None:
        self.config = config
        project = config.project
        self.project_directory = project.base_directory
        self.layout = BuildLayout(
            config.resolve(config.build_directory),
            project.final_name or f"{project.artifact_id}-{project.version}",
        )
        self.executor = executor or CommandExecutor(self.project_directory)
        self.unpacker = DependencyUnpacker(self.layout.unpacked_libs)
        self.outputs = StageOutputs()
        self._sdk = sdk
        self._ndk = ndk
        self._dialect: ToolDialect | None = None
        self._java: Path | None = None
        self._manifest_merger: ManifestMerger | None = None

        filters = config.filters
        self.dependencies: list[DependencyArtifact] = filter_artifacts(
            (d for d in config.dependencies if d.scope != Scope.TEST),
            skip_dependencies=filters.skip_dependencies,
            types=filters.types,
            artifacts=filters.artifacts,
        )
        logger.debug(
            "Build context created",
            project=project.coordinate,
            build_directory=str(self.layout.root),
            dependencies=len(self.dependencies),
        )

    @property
    def identity(self) -> str:
        return self.config.project.coordinate

    @property
    def sdk(self) -> AndroidSdk:
        if self._sdk is None:
            sdk_config = self.config.sdk
            path = self.config.resolve(sdk_config.path) if sdk_config.path else None
            self._sdk = AndroidSdk(path, sdk_config.platform, sdk_config.build_tools)
        return self._sdk

    @property
    def ndk(self) -> AndroidNdk:
        if self._ndk is None:
            path = self.config.ndk.path
            self._ndk = AndroidNdk(self.config.resolve(path) if path else None)
        return self._ndk

    @property
    def dialect(self) -> ToolDialect:
        """Resource tool dialect, probed once unless configured explicitly."""
        if self._dialect is None:
            configured = self.config.resources.dialect
            if configured == "auto":
                self._dialect = self.sdk.tool_dialect()
            else:
                self._dialect = ToolDialect(configured)
            logger.info("Resource tool dialect", dialect=self._dialect.value)
        return self._dialect

    @property
    def java(self) -> Path:
        if self._java is None:
            self._java = java_executable()
        return self._java

    @property
    def manifest_merger(self) -> ManifestMerger:
        if self._manifest_merger is None:
            self._manifest_merger = select_manifest_merger(
                self.config.manifest, self.java, self.executor
            )
        return self._manifest_merger

    def dependencies_of(self, *kinds: ArtifactKind) -> list[DependencyArtifact]:
        """Filtered dependencies of the given kinds, in resolution order."""
        return select(self.dependencies, *kinds)

    def packaged_jars(self) -> list[DependencyArtifact]:
        """Jar dependencies that end up in the package."""
        return [
            d for d in self.dependencies_of(ArtifactKind.JAR) if d.scope in PACKAGED_SCOPES
        ]

    def unpacked_libraries(self) -> list[UnpackedArtifact]:
        """Staged AAR, APKLIB and APK dependencies, unpacking on first use."""
        if not self.outputs.unpacked:
            self.outputs.unpacked = self.unpacker.unpack_all(self.dependencies_of(*LIBRARY_KINDS))
        return self.outputs.unpacked

    def unpacked_natives(self) -> list[UnpackedArtifact]:
        """Staged native shared library dependencies."""
        natives = [
            d
            for d in self.dependencies_of(ArtifactKind.NATIVE_SHARED)
            if d.scope in PACKAGED_SCOPES
        ]
        return self.unpacker.unpack_all(natives)

    def resource_directories(self) -> list[tuple[str, Path]]:
        """Existing resource directories with their owners, highest precedence first.

        Overlays come first, then the project's own resources, then library
        resources in resolution order.
        """
        resources = self.config.resources
        directories: list[tuple[str, Path]] = []
        for overlay in resources.resource_overlay_directories:
            directories.append((f"{self.identity}:overlay", self.config.resolve(overlay)))
        directories.append((self.identity, self.config.resolve(resources.resource_directory)))
        for library in self.unpacked_libraries():
            if library.resources_root is not None:
                directories.append((library.id, library.resources_root))
        return [(owner, path) for owner, path in directories if path.is_dir()]

    def manifest(self) -> Path:
        """The merged manifest when generated, else the project manifest."""
        if self.outputs.merged_manifest is not None:
            return self.outputs.merged_manifest
        return self.config.resolve(self.config.resources.manifest_file)
