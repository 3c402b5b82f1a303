"""
Configuration management for apkforge.

Provides typed, per-stage configuration sections with environment variable
overrides and defaults matching the conventional Android project layout. A
JSON project descriptor can be overlaid on top of the environment defaults.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from ..models.artifact import DependencyArtifact
from ..resolution.filters import IncludeExcludeSet
from .exceptions import ConfigurationError

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


def _env_path(*names: str) -> Path | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return Path(value).expanduser()
    return None


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes")


class ProjectConfig(BaseModel):
    """Identity and layout of the project being built."""

    group_id: str = Field(default="com.example", description="Project group id")
    artifact_id: str = Field(default="app", description="Project artifact id")
    version: str = Field(default="1.0.0", description="Project version")
    packaging: Literal["apk", "aar", "apklib"] = Field(
        default="apk", description="Packaging type of the project output"
    )
    base_directory: Path = Field(default=Path("."), description="Project root directory")
    final_name: str | None = Field(default=None, description="Base name of the final package")

    @property
    def coordinate(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    @property
    def is_library(self) -> bool:
        return self.packaging in ("aar", "apklib")


class SdkConfig(BaseModel):
    """Android SDK location and version selection."""

    path: Path | None = Field(
        default_factory=lambda: _env_path("ANDROID_HOME", "ANDROID_SDK_ROOT"),
        description="Android SDK root path",
    )
    platform: str = Field(default="33", description="Platform API level to compile against")
    build_tools: str | None = Field(
        default=None, description="Build tools version; latest installed when unset"
    )


class NdkConfig(BaseModel):
    """Native build configuration."""

    path: Path | None = Field(
        default_factory=lambda: _env_path("ANDROID_NDK_HOME", "ANDROID_NDK_ROOT"),
        description="Android NDK root path",
    )
    skip: bool = Field(default=False, description="Skip the native build")
    jni_directory: Path = Field(default=Path("src/main/jni"), description="JNI sources")
    makefile: str = Field(default="Android.mk", description="Makefile inside the JNI directory")
    application_makefile: str = Field(
        default="Application.mk", description="Application makefile inside the JNI directory"
    )
    architectures: list[str] | None = Field(
        default=None, description="Target ABIs; read from APP_ABI when unset"
    )
    toolchain: str | None = Field(default=None, description="NDK_TOOLCHAIN value")
    additional_arguments: str | None = Field(
        default=None, description="Extra ndk-build arguments, whitespace separated"
    )
    target: str | None = Field(default=None, description="ndk-build target; artifact id when unset")
    environment: dict[str, str] = Field(
        default_factory=dict, description="Extra environment variables for ndk-build"
    )


class ResourcesConfig(BaseModel):
    """Resource, asset, AIDL and R generation configuration."""

    resource_directory: Path = Field(default=Path("src/main/res"))
    resource_overlay_directories: list[Path] = Field(
        default_factory=list, description="Overlays taking precedence over resource_directory"
    )
    assets_directory: Path = Field(default=Path("src/main/assets"))
    manifest_file: Path = Field(default=Path("src/main/AndroidManifest.xml"))
    aidl_source_directory: Path = Field(default=Path("src/main/aidl"))
    native_libraries_directory: Path = Field(
        default=Path("src/main/libs"), description="Prebuilt native libraries per ABI"
    )
    custom_package: str | None = Field(default=None, description="Package for generated R")
    configurations: str | None = Field(default=None, description="aapt -c resource configs")
    extra_arguments: list[str] = Field(default_factory=list)
    dialect: Literal["auto", "legacy", "modern"] = Field(
        default="auto", description="Resource tool dialect; probed from the SDK when auto"
    )
    no_crunch: bool = Field(default=False, description="Disable PNG crunching")
    verbose: bool = Field(default=False, description="Verbose resource tool output")
    fail_on_conflicting_layouts: bool = Field(default=False)
    fail_on_duplicate_packages: bool = Field(default=True)
    rename_manifest_package: str | None = Field(default=None)
    rename_instrumentation_target_package: str | None = Field(default=None)


class ManifestConfig(BaseModel):
    """Manifest merging and version rewriting."""

    merger: Literal["auto", "builtin", "external"] = Field(
        default="auto", description="Manifest merger implementation"
    )
    merger_jar: Path | None = Field(default=None, description="External manifest-merger jar")
    merge_libraries: bool = Field(default=True, description="Merge library manifests")
    version_code: int | None = Field(default=None, description="Explicit android:versionCode")
    version_code_from_version: bool = Field(
        default=False, description="Derive android:versionCode from the project version"
    )
    version_digits: str = Field(default="4,3,3", description="Digits per version element")
    version_naming_pattern: str | None = Field(
        default=None, description="Regex whose groups are the version elements"
    )
    debuggable: bool | None = Field(default=None, description="Rewrite android:debuggable")


class DexConfig(BaseModel):
    """Dex conversion configuration."""

    compiler: str = Field(default="dex", description="Dexer id: 'dex' or 'd8'")
    jvm_arguments: list[str] = Field(default_factory=lambda: ["-Xmx1024M"])
    core_library: bool = Field(default=False)
    no_locals: bool = Field(default=False)
    optimize: bool = Field(default=True)
    incremental: bool = Field(default=False)
    force_jumbo: bool = Field(default=False)
    multi_dex: bool = Field(default=False)
    main_dex_list: Path | None = Field(default=None)
    minimal_main_dex: bool = Field(default=False)
    pre_dex: bool = Field(default=False, description="Dex each jar separately and cache it")
    extra_arguments: list[str] = Field(default_factory=list)
    intermediate: bool = Field(default=False, description="d8 --intermediate")
    release: bool = Field(default=False, description="d8 --release")
    min_api: int | None = Field(default=None, ge=1, description="d8 --min-api")


class ProguardConfig(BaseModel):
    """ProGuard obfuscation and shrinking configuration."""

    skip: bool = Field(default=True, description="Skip ProGuard")
    config: Path = Field(default=Path("proguard.cfg"), description="Main configuration file")
    configs: list[Path] = Field(default_factory=list, description="Additional configuration files")
    jvm_arguments: list[str] = Field(default_factory=lambda: ["-Xmx512M"])
    proguard_jar: Path | None = Field(default=None, description="Defaults to the SDK copy")
    filter_manifest: bool = Field(default=True)
    filter_maven_descriptor: bool = Field(default=True)
    custom_filter: str | None = Field(default=None)
    include_aar_configs: bool = Field(default=True, description="Add each AAR's proguard.txt")
    options: list[str] = Field(default_factory=list)


class ZipalignConfig(BaseModel):
    """APK alignment, run before signing."""

    skip: bool = Field(default=True, description="Leave the package unaligned")
    verbose: bool = Field(default=False)


class ApkConfig(BaseModel):
    """Final package assembly and signing."""

    signing: Literal["debug", "release", "unsigned"] = Field(default="debug")
    create_unsigned_copy: bool = Field(default=False, description="Also keep an -unsigned.apk")
    keystore: Path | None = Field(default=None)
    keystore_password: str | None = Field(default=None)
    key_alias: str | None = Field(default=None)
    key_password: str | None = Field(default=None)
    debug: bool = Field(default=False, description="Pass --debug-mode to the resource linker")
    extract_duplicates: bool = Field(
        default=True, description="Write losing duplicates to duplicate-resources.jar"
    )
    strict_conflicts: bool = Field(default=False, description="Fail on any unresolved conflict")
    meta_inf_includes: list[str] = Field(
        default_factory=list, description="Glob patterns of META-INF entries to merge from jars"
    )
    exclude_jar_resources: list[str] = Field(
        default_factory=list, description="Regexes of jar names whose resources are skipped"
    )
    transformers: list[str] = Field(
        default_factory=lambda: ["services"], description="Ordered resource transformer names"
    )
    zipalign: ZipalignConfig = Field(default_factory=ZipalignConfig)


class FilterConfig(BaseModel):
    """Dependency include/exclude rules applied per stage."""

    skip_dependencies: bool = Field(default=False)
    types: IncludeExcludeSet = Field(default_factory=IncludeExcludeSet)
    artifacts: IncludeExcludeSet = Field(default_factory=IncludeExcludeSet)


class Config(BaseModel):
    """Root configuration for one apkforge build."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["auto", "console", "json"] = Field(
        default="auto", description="Log renderer; auto uses JSON when stderr is not a terminal"
    )
    build_directory: Path = Field(default=Path("target"), description="Build output directory")
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    sdk: SdkConfig = Field(default_factory=SdkConfig)
    ndk: NdkConfig = Field(default_factory=NdkConfig)
    resources: ResourcesConfig = Field(default_factory=ResourcesConfig)
    manifest: ManifestConfig = Field(default_factory=ManifestConfig)
    dex: DexConfig = Field(default_factory=DexConfig)
    proguard: ProguardConfig = Field(default_factory=ProguardConfig)
    apk: ApkConfig = Field(default_factory=ApkConfig)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    dependencies: list[DependencyArtifact] = Field(
        default_factory=list, description="Resolved dependencies in resolution order"
    )

    model_config = {"extra": "ignore"}

    def resolve(self, path: Path) -> Path:
        """Resolve a configured path against the project base directory."""
        path = Path(path).expanduser()
        if path.is_absolute():
            return path
        return self.project.base_directory / path

    def with_resolved_paths(self) -> Config:
        """Anchor dependency files, the merger jar and the keystore at the project root.

        Other paths are resolved where they are used; these are handed to
        collaborators that know nothing about the project directory.
        """
        manifest = self.manifest
        if manifest.merger_jar is not None:
            manifest = manifest.model_copy(update={"merger_jar": self.resolve(manifest.merger_jar)})
        apk = self.apk
        if apk.keystore is not None:
            apk = apk.model_copy(update={"keystore": self.resolve(apk.keystore)})
        dependencies = [
            d.model_copy(update={"file": self.resolve(d.file)}) for d in self.dependencies
        ]
        return self.model_copy(
            update={"manifest": manifest, "apk": apk, "dependencies": dependencies}
        )

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        return cls(
            log_level=os.environ.get("APKFORGE_LOG_LEVEL", "INFO"),  # type: ignore
            log_format=os.environ.get("APKFORGE_LOG_FORMAT", "auto"),  # type: ignore
            build_directory=Path(os.environ.get("APKFORGE_BUILD_DIR", "target")),
            sdk=SdkConfig(
                platform=os.environ.get("APKFORGE_SDK_PLATFORM", "33"),
                build_tools=os.environ.get("APKFORGE_BUILD_TOOLS") or None,
            ),
            ndk=NdkConfig(skip=_env_bool("APKFORGE_NDK_SKIP", False)),
            dex=DexConfig(compiler=os.environ.get("APKFORGE_DEX_COMPILER", "dex")),
            proguard=ProguardConfig(skip=_env_bool("APKFORGE_PROGUARD_SKIP", True)),
            apk=ApkConfig(
                signing=os.environ.get("APKFORGE_SIGNING", "debug"),  # type: ignore
                strict_conflicts=_env_bool("APKFORGE_STRICT_CONFLICTS", False),
            ),
        )

    @classmethod
    def from_file(cls, path: Path) -> Config:
        """Load a JSON project descriptor over the environment defaults.

        Relative paths inside the descriptor resolve against the descriptor's
        directory unless it sets ``project.base_directory`` explicitly.

        Raises:
            ConfigurationError: If the file cannot be read or does not validate.
        """
        try:
            raw: dict[str, Any] = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                message=f"Cannot read project descriptor {path}",
                setting="descriptor",
                cause=e,
            ) from e

        merged = _deep_merge(cls.from_env().model_dump(mode="json"), raw)
        project = merged.setdefault("project", {})
        if "base_directory" not in raw.get("project", {}):
            project["base_directory"] = str(Path(path).resolve().parent)

        try:
            config = cls.model_validate(merged)
        except ValidationError as e:
            raise ConfigurationError(
                message=f"Invalid project descriptor {path}",
                setting=str(e.errors()[0]["loc"]) if e.errors() else "descriptor",
                cause=e,
            ) from e
        return config.with_resolved_paths()


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
