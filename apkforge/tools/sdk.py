"""
Android SDK layout resolution.

Locates platform jars and build-tools executables under an SDK root and probes
which resource tool dialect the selected build-tools directory supports.
"""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path

from ..core.exceptions import InvalidSdkError, ToolNotFoundError
from ..core.logging import get_logger
from ..models.invocation import ToolDialect

logger = get_logger(__name__)

IS_WINDOWS = os.name == "nt"


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version))


def executable_name(name: str, script: bool = False) -> str:
    """Platform-specific file name of an SDK tool."""
    if not IS_WINDOWS:
        return name
    return f"{name}.bat" if script else f"{name}.exe"


def require_tool(path: Path, tool_name: str, hint: str = "") -> Path:
    """Return ``path`` if it exists.

    Raises:
        ToolNotFoundError: If the file is missing.
    """
    if not path.exists():
        raise ToolNotFoundError(
            message=f"Tool not found: {tool_name}",
            tool_name=tool_name,
            expected_path=str(path),
            install_hint=hint,
        )
    return path


def java_executable() -> Path:
    """The java launcher: ``$JAVA_HOME/bin/java``, then PATH, then bare ``java``."""
    java_home = os.environ.get("JAVA_HOME")
    if java_home:
        candidate = Path(java_home) / "bin" / ("java.exe" if IS_WINDOWS else "java")
        if candidate.exists():
            return candidate
    found = shutil.which("java")
    return Path(found) if found else Path("java")


class AndroidSdk:
    """A validated Android SDK installation.

    Args:
        path: SDK root directory.
        platform: Platform API level, e.g. ``"33"``.
        build_tools_version: Explicit build-tools version; the highest
            installed version when None.

    Raises:
        InvalidSdkError: If the root, build-tools or requested version is missing.
    """

    def __init__(
        self,
        path: Path | None,
        platform: str,
        build_tools_version: str | None = None,
    ) -> None:
        if path is None:
            raise InvalidSdkError(
                message="No Android SDK configured; set ANDROID_HOME or sdk.path",
                setting="sdk.path",
            )
        if not path.is_dir():
            raise InvalidSdkError(
                message=f"Android SDK directory does not exist: {path}",
                setting="sdk.path",
                sdk_path=str(path),
            )
        self.path = path
        self.platform = platform
        self.build_tools_dir = self._select_build_tools(build_tools_version)
        logger.debug(
            "Resolved Android SDK",
            sdk=str(path),
            platform=platform,
            build_tools=self.build_tools_dir.name,
        )

    def _select_build_tools(self, version: str | None) -> Path:
        root = self.path / "build-tools"
        if version:
            selected = root / version
            if not selected.is_dir():
                raise InvalidSdkError(
                    message=f"Build tools {version} are not installed",
                    setting="sdk.build_tools",
                    sdk_path=str(self.path),
                )
            return selected

        installed = [p for p in root.iterdir() if p.is_dir()] if root.is_dir() else []
        if not installed:
            raise InvalidSdkError(
                message=f"No build tools installed under {root}",
                setting="sdk.path",
                sdk_path=str(self.path),
            )
        return max(installed, key=lambda p: _version_key(p.name))

    @property
    def build_tools_version(self) -> str:
        return self.build_tools_dir.name

    @property
    def platform_dir(self) -> Path:
        return self.path / "platforms" / f"android-{self.platform}"

    @property
    def android_jar(self) -> Path:
        jar = self.platform_dir / "android.jar"
        if not jar.is_file():
            raise InvalidSdkError(
                message=f"Platform android-{self.platform} is not installed",
                setting="sdk.platform",
                sdk_path=str(self.path),
            )
        return jar

    @property
    def framework_aidl(self) -> Path:
        return self.platform_dir / "framework.aidl"

    @property
    def aapt(self) -> Path:
        return self.build_tools_dir / executable_name("aapt")

    @property
    def aapt2(self) -> Path:
        return self.build_tools_dir / executable_name("aapt2")

    @property
    def aidl(self) -> Path:
        return self.build_tools_dir / executable_name("aidl")

    @property
    def zipalign(self) -> Path:
        return self.build_tools_dir / executable_name("zipalign")

    @property
    def apksigner(self) -> Path:
        return self.build_tools_dir / executable_name("apksigner", script=True)

    @property
    def main_dex_classes(self) -> Path:
        return self.build_tools_dir / executable_name("mainDexClasses", script=True)

    @property
    def dx_jar(self) -> Path:
        return self.build_tools_dir / "lib" / "dx.jar"

    @property
    def d8_jar(self) -> Path:
        return self.build_tools_dir / "lib" / "d8.jar"

    @property
    def proguard_jar(self) -> Path:
        return self.path / "tools" / "proguard" / "lib" / "proguard.jar"

    def resource_tool(self, dialect: ToolDialect) -> Path:
        return self.aapt2 if dialect == ToolDialect.MODERN else self.aapt

    def tool_dialect(self) -> ToolDialect:
        return probe_resource_dialect(self)


def probe_resource_dialect(sdk: AndroidSdk) -> ToolDialect:
    """MODERN when the selected build tools ship aapt2, LEGACY otherwise."""
    dialect = ToolDialect.MODERN if sdk.aapt2.is_file() else ToolDialect.LEGACY
    logger.debug("Probed resource tool dialect", dialect=dialect.value, aapt2=str(sdk.aapt2))
    return dialect
