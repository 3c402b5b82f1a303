"""
Manifest merging.

Library manifests are merged into the application manifest through the
ManifestMerger interface. The implementation is chosen once per build: the
external manifest-merger tool when configured and present, otherwise an
in-process merge of permissions, features and application components.
"""

from __future__ import annotations

import copy
import os
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from ..core.config import ManifestConfig
from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger
from ..models.invocation import ToolInvocation
from ..tools.executor import CommandExecutor

logger = get_logger(__name__)

ANDROID_NS = "http://schemas.android.com/apk/res/android"
TOOLS_NS = "http://schemas.android.com/tools"
ANDROID_NAME = f"{{{ANDROID_NS}}}name"

ET.register_namespace("android", ANDROID_NS)
ET.register_namespace("tools", TOOLS_NS)

MANIFEST_ELEMENTS = ("permission", "uses-permission", "uses-permission-sdk-23", "uses-feature")
APPLICATION_ELEMENTS = (
    "activity",
    "activity-alias",
    "service",
    "receiver",
    "provider",
    "meta-data",
    "uses-library",
)
CLASS_ELEMENTS = ("activity", "activity-alias", "service", "receiver", "provider")

MERGER_MAIN_CLASS = "com.android.manifmerger.Merger"


class ManifestMerger(Protocol):
    """Merges library manifests into a target manifest in place."""

    def merge(self, target: Path, library_manifests: Sequence[Path]) -> bool:
        """Returns True when the target was rewritten."""
        ...


def _parse(path: Path) -> ET.ElementTree:
    try:
        return ET.parse(path)
    except (ET.ParseError, OSError) as e:
        raise ConfigurationError(
            message=f"Cannot parse manifest {path}",
            setting="manifest",
            cause=e,
        ) from e


def _qualify(name: str, package: str | None) -> str:
    if package and name.startswith("."):
        return f"{package}{name}"
    if package and "." not in name:
        return f"{package}.{name}"
    return name


class BuiltinManifestMerger:
    """In-process merge: adds elements the target lacks, matched by android:name.

    Elements already present in the target always win. Relative component class
    names in a library are qualified with the library's package.
    """

    def merge(self, target: Path, library_manifests: Sequence[Path]) -> bool:
        if not library_manifests:
            return False

        tree = _parse(target)
        root = tree.getroot()
        application = root.find("application")
        if application is None:
            application = ET.SubElement(root, "application")

        present = {(child.tag, child.get(ANDROID_NAME)) for child in root}
        present |= {(child.tag, child.get(ANDROID_NAME)) for child in application}
        added = 0

        for library in library_manifests:
            library_root = _parse(library).getroot()
            package = library_root.get("package")

            for element in library_root:
                key = (element.tag, element.get(ANDROID_NAME))
                if element.tag in MANIFEST_ELEMENTS and key[1] and key not in present:
                    root.insert(list(root).index(application), copy.deepcopy(element))
                    present.add(key)
                    added += 1

            library_application = library_root.find("application")
            if library_application is None:
                continue
            for element in library_application:
                name = element.get(ANDROID_NAME)
                if element.tag not in APPLICATION_ELEMENTS or not name:
                    continue
                if element.tag in CLASS_ELEMENTS:
                    name = _qualify(name, package)
                key = (element.tag, name)
                if key in present:
                    continue
                merged = copy.deepcopy(element)
                merged.set(ANDROID_NAME, name)
                application.append(merged)
                present.add(key)
                added += 1

        tree.write(target, encoding="utf-8", xml_declaration=True)
        logger.info(
            "Merged library manifests",
            target=str(target),
            libraries=len(library_manifests),
            added=added,
        )
        return True


class ExternalManifestMerger:
    """Runs the manifest-merger tool from a jar."""

    def __init__(self, java: Path, merger_jar: Path, executor: CommandExecutor) -> None:
        self.java = java
        self.merger_jar = merger_jar
        self.executor = executor

    def invocation(self, target: Path, library_manifests: Sequence[Path]) -> ToolInvocation:
        return ToolInvocation(
            executable=self.java,
            arguments=(
                "-cp",
                str(self.merger_jar),
                MERGER_MAIN_CLASS,
                "--main",
                str(target),
                "--libs",
                os.pathsep.join(str(m) for m in library_manifests),
                "--out",
                str(target),
            ),
        )

    def merge(self, target: Path, library_manifests: Sequence[Path]) -> bool:
        if not library_manifests:
            return False
        self.executor.execute(self.invocation(target, library_manifests))
        return True


def select_manifest_merger(
    config: ManifestConfig, java: Path, executor: CommandExecutor
) -> ManifestMerger:
    """Pick the merger implementation once for the whole build.

    Raises:
        ConfigurationError: If the external merger is requested without a jar.
    """
    jar = config.merger_jar
    available = jar is not None and jar.is_file()

    if config.merger == "external" and not available:
        raise ConfigurationError(
            message=f"External manifest merger requested but jar not found: {jar}",
            setting="manifest.merger_jar",
        )
    if config.merger != "builtin" and available:
        logger.debug("Using external manifest merger", jar=str(jar))
        return ExternalManifestMerger(java, jar, executor)  # type: ignore[arg-type]
    logger.debug("Using builtin manifest merger")
    return BuiltinManifestMerger()


def update_manifest(
    manifest: Path,
    version_code: int | None = None,
    version_name: str | None = None,
    debuggable: bool | None = None,
) -> bool:
    """Rewrite version and debuggable attributes in place.

    Returns:
        True when any attribute changed.
    """
    tree = _parse(manifest)
    root = tree.getroot()
    changed = False

    def set_attribute(element: ET.Element, name: str, value: str) -> None:
        nonlocal changed
        key = f"{{{ANDROID_NS}}}{name}"
        if element.get(key) != value:
            element.set(key, value)
            changed = True

    if version_code is not None:
        set_attribute(root, "versionCode", str(version_code))
    if version_name is not None:
        set_attribute(root, "versionName", version_name)
    if debuggable is not None:
        application = root.find("application")
        if application is None:
            application = ET.SubElement(root, "application")
        set_attribute(application, "debuggable", "true" if debuggable else "false")

    if changed:
        tree.write(manifest, encoding="utf-8", xml_declaration=True)
        logger.info("Updated manifest", manifest=str(manifest), version_code=version_code)
    return changed
