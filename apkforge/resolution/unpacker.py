"""
Dependency unpacking.

Explodes library dependencies into per-artifact staging directories under the
build tree. The staging path is derived from the artifact coordinate and acts
as the cache key: a staging directory at least as new as its source artifact is
reused as is, anything older is deleted and extracted again.
"""

from __future__ import annotations

import os
import shutil
import zipfile
from collections.abc import Iterable
from pathlib import Path

from ..core.exceptions import MissingManifestError, ResolutionError
from ..core.logging import get_logger
from ..models.artifact import ArtifactKind, DependencyArtifact, UnpackedArtifact
from .classifier import classify, native_architecture, native_library_name

logger = get_logger(__name__)

METADATA_PREFIX = "META-INF/"
MANIFEST_NAME = "AndroidManifest.xml"
CLASSES_JAR = "classes.jar"
CLASSES_DIR = "classes"

# Where each kind keeps its per-architecture native libraries
NATIVE_FOLDERS: dict[ArtifactKind, str] = {
    ArtifactKind.AAR: "jni",
    ArtifactKind.APKLIB: "libs",
    ArtifactKind.APK: "lib",
    ArtifactKind.NATIVE_SHARED: "libs",
    ArtifactKind.NATIVE_STATIC: "libs",
}


def _mtime(path: Path) -> float:
    return path.stat().st_mtime


def _newest_mtime(path: Path) -> float:
    """Modification time of a file, or of the newest entry under a directory."""
    if not path.is_dir():
        return _mtime(path)
    return max((_mtime(p) for p in path.rglob("*")), default=_mtime(path))


class DependencyUnpacker:
    """Extracts dependencies into staging directories, memoized per coordinate.

    Args:
        staging_root: Directory holding one staging directory per artifact,
            usually ``<build>/unpacked-libs``.
        metadata_prefix: Archive entries starting with this prefix are not
            extracted.
    """

    def __init__(self, staging_root: Path, metadata_prefix: str = METADATA_PREFIX) -> None:
        self.staging_root = staging_root
        self.metadata_prefix = metadata_prefix
        self._memo: dict[str, UnpackedArtifact] = {}

    def staging_path(self, artifact: DependencyArtifact) -> Path:
        """Deterministic staging directory for an artifact."""
        return self.staging_root / artifact.coordinate.staging_name

    def is_fresh(self, artifact: DependencyArtifact) -> bool:
        """Whether the staging directory exists and is not older than the artifact."""
        staging = self.staging_path(artifact)
        return staging.is_dir() and _mtime(staging) >= _newest_mtime(artifact.file)

    def unpack(self, artifact: DependencyArtifact) -> UnpackedArtifact:
        """Stage an artifact, reusing a fresh staging directory.

        Args:
            artifact: The dependency to stage.

        Returns:
            The staged artifact.

        Raises:
            ResolutionError: The artifact is missing, corrupt, or the staging
                area cannot be written.
            MissingManifestError: A library artifact has no AndroidManifest.xml.
        """
        if not artifact.file.exists():
            raise ResolutionError(
                message=f"Artifact file does not exist: {artifact.file}",
                artifact=artifact.id,
            )

        kind = classify(artifact)
        staging = self.staging_path(artifact)

        if self.is_fresh(artifact):
            cached = self._memo.get(artifact.id)
            if cached is None:
                cached = self._describe(artifact, kind, staging)
                self._memo[artifact.id] = cached
            logger.debug("Reusing staged artifact", artifact=artifact.id, staging=str(staging))
            return cached

        self._memo.pop(artifact.id, None)
        logger.info(
            "Unpacking dependency",
            artifact=artifact.id,
            kind=kind.value,
            staging=str(staging),
        )
        try:
            if staging.exists():
                shutil.rmtree(staging)
            staging.mkdir(parents=True)
            self._extract(artifact, kind, staging)
            os.utime(staging)
        except ResolutionError:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        except (zipfile.BadZipFile, OSError) as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise ResolutionError(
                message=f"Cannot unpack {artifact.file}",
                artifact=artifact.id,
                context={"staging": str(staging)},
                cause=e,
            ) from e

        unpacked = self._describe(artifact, kind, staging)
        self._memo[artifact.id] = unpacked
        return unpacked

    def unpack_all(self, artifacts: Iterable[DependencyArtifact]) -> list[UnpackedArtifact]:
        """Stage several artifacts, preserving their order."""
        return [self.unpack(a) for a in artifacts]

    def _extract(self, artifact: DependencyArtifact, kind: ArtifactKind, staging: Path) -> None:
        classes_root = staging / CLASSES_DIR
        classes_root.mkdir(parents=True, exist_ok=True)

        if kind.is_native:
            arch = native_architecture(artifact)
            target = staging / NATIVE_FOLDERS[kind] / arch / native_library_name(artifact)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(artifact.file, target)
            return

        if artifact.file.is_dir():
            self._copy_directory(artifact.file, staging)
        else:
            self._extract_archive(artifact.file, staging, artifact.id)

        if kind == ArtifactKind.AAR:
            embedded = staging / CLASSES_JAR
            if embedded.is_file():
                self._extract_archive(embedded, classes_root, artifact.id, classes_only=True)
            self._move_legacy_natives(staging)
        elif kind == ArtifactKind.APK:
            companion = artifact.file.with_suffix(".jar")
            if companion.is_file():
                self._extract_archive(companion, classes_root, artifact.id, classes_only=True)

        for class_file in staging.rglob("*.class"):
            if classes_root in class_file.parents:
                continue
            target = classes_root / class_file.relative_to(staging)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(class_file, target)

    def _extract_archive(
        self,
        archive: Path,
        destination: Path,
        artifact_id: str,
        classes_only: bool = False,
    ) -> None:
        root = destination.resolve()
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                name = info.filename
                if info.is_dir() or name.startswith(self.metadata_prefix):
                    continue
                if classes_only and not name.endswith(".class"):
                    continue
                target = (destination / name).resolve()
                if root not in target.parents:
                    raise ResolutionError(
                        message=f"Archive entry escapes the staging directory: {name}",
                        artifact=artifact_id,
                    )
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)

    def _copy_directory(self, source: Path, destination: Path) -> None:
        metadata_dir = self.metadata_prefix.rstrip("/")
        for path in sorted(source.rglob("*")):
            relative = path.relative_to(source)
            if relative.parts and relative.parts[0] == metadata_dir:
                continue
            if path.is_file():
                target = destination / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, target)

    def _move_legacy_natives(self, staging: Path) -> None:
        """Older AARs ship natives under libs/ instead of jni/."""
        jni = staging / NATIVE_FOLDERS[ArtifactKind.AAR]
        libs = staging / "libs"
        if jni.exists() or not libs.is_dir():
            return
        natives = [p for p in libs.rglob("*") if p.is_file() and p.suffix.lower() != ".jar"]
        if natives:
            logger.debug("Moving AAR native libraries from libs to jni", staging=str(staging))
        for native in natives:
            target = jni / native.relative_to(libs)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(native), target)

    def _describe(
        self, artifact: DependencyArtifact, kind: ArtifactKind, staging: Path
    ) -> UnpackedArtifact:
        def optional(name: str) -> Path | None:
            path = staging / name
            return path if path.exists() else None

        manifest = optional(MANIFEST_NAME)
        if kind.requires_manifest and manifest is None:
            raise MissingManifestError(
                message=f"{kind.value} artifact has no {MANIFEST_NAME} after extraction",
                setting="dependencies",
                artifact=artifact.id,
                context={"staging": str(staging)},
            )

        native_libs: dict[str, Path] = {}
        folder = NATIVE_FOLDERS.get(kind)
        if folder and (staging / folder).is_dir():
            for arch_dir in sorted((staging / folder).iterdir()):
                if arch_dir.is_dir() and (any(arch_dir.glob("*.so")) or any(arch_dir.glob("*.a"))):
                    native_libs[arch_dir.name] = arch_dir

        return UnpackedArtifact(
            coordinate=artifact.coordinate,
            kind=kind,
            root=staging,
            classes_root=staging / CLASSES_DIR,
            resources_root=optional("res"),
            assets_root=optional("assets"),
            native_libs=native_libs,
            manifest_file=manifest,
            proguard_file=optional("proguard.txt"),
            symbol_file=optional("R.txt"),
            sources_root=optional("src") if kind == ArtifactKind.APKLIB else None,
        )
