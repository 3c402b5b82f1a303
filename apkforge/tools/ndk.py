"""
Android NDK resolution and ndk-build command construction.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Self

from ..core.exceptions import InvalidSdkError
from ..core.logging import get_logger
from ..models.artifact import DEFAULT_ARCHITECTURE, NATIVE_ARCHITECTURES
from .builder import ToolCommandBuilder
from .sdk import IS_WINDOWS

logger = get_logger(__name__)

MINIMUM_NDK_VERSION = 7

_RELEASE_PATTERN = re.compile(r"r(\d{1,3})[a-z]?.*")
_REVISION_PATTERN = re.compile(r"^\s*Pkg\.Revision\s*=\s*(\d+)", re.MULTILINE)


class AndroidNdk:
    """A validated Android NDK installation.

    Raises:
        InvalidSdkError: If the NDK directory is missing.
    """

    def __init__(self, path: Path | None) -> None:
        if path is None or not path.is_dir():
            raise InvalidSdkError(
                message=f"Android NDK directory does not exist: {path}; set ANDROID_NDK_HOME",
                setting="ndk.path",
                sdk_path=str(path or ""),
            )
        self.path = path

    @property
    def ndk_build(self) -> Path:
        return self.path / ("ndk-build.cmd" if IS_WINDOWS else "ndk-build")

    def version(self) -> int:
        """Major NDK release number.

        Read from ``source.properties`` (``Pkg.Revision = 21.4.x``) on current
        NDKs and ``RELEASE.TXT`` (``r10e``) on old ones.

        Raises:
            InvalidSdkError: If neither file yields a version.
        """
        properties = self.path / "source.properties"
        if properties.is_file():
            match = _REVISION_PATTERN.search(properties.read_text(encoding="utf-8"))
            if match:
                return int(match.group(1))

        release = self.path / "RELEASE.TXT"
        if release.is_file():
            match = _RELEASE_PATTERN.match(release.read_text(encoding="utf-8").strip())
            if match:
                return int(match.group(1))

        raise InvalidSdkError(
            message=f"Cannot determine the NDK version under {self.path}",
            setting="ndk.path",
            sdk_path=str(self.path),
        )

    def validate(self, minimum: int = MINIMUM_NDK_VERSION) -> int:
        """Check the NDK is at least release ``minimum``.

        Raises:
            InvalidSdkError: If the NDK is older.
        """
        version = self.version()
        if version < minimum:
            raise InvalidSdkError(
                message=f"NDK r{version} is too old, r{minimum} or later is required",
                setting="ndk.path",
                sdk_path=str(self.path),
            )
        logger.debug("Validated NDK", ndk=str(self.path), version=version)
        return version


def application_architectures(application_makefile: Path | None) -> list[str]:
    """Architectures listed by ``APP_ABI`` in an Application.mk.

    ``all`` expands to every known architecture. Without a makefile or an
    ``APP_ABI`` line the default architecture is returned.
    """
    if application_makefile is not None and application_makefile.is_file():
        for line in application_makefile.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line.startswith("APP_ABI"):
                _, _, value = line.partition("=")
                abis = value.split()
                if "all" in abis:
                    return list(NATIVE_ARCHITECTURES)
                if abis:
                    return abis
    return [DEFAULT_ARCHITECTURE]


class NdkBuildCommandBuilder(ToolCommandBuilder):
    """``ndk-build -C <dir> -f <makefile> [NDK_TOOLCHAIN=..] [args] <target>``."""

    def set_directory(self, directory: Path) -> Self:
        return self.add("-C", directory)

    def set_makefile(self, makefile: Path) -> Self:
        return self.add("-f", makefile)

    def set_toolchain(self, toolchain: str | None) -> Self:
        return self.add_if(toolchain, f"NDK_TOOLCHAIN={toolchain}")

    def add_variable(self, name: str, value: object) -> Self:
        return self.add(f"{name}={value}")

    def add_additional_arguments(self, arguments: str | None) -> Self:
        if arguments:
            self.add(*arguments.split())
        return self

    def set_target(self, target: str) -> Self:
        return self.add(target)
