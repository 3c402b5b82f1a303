"""
compile-native: run ndk-build over the project's JNI sources.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from ..core.exceptions import ExecutionError
from ..core.logging import get_logger
from ..tools.ndk import NdkBuildCommandBuilder, application_architectures
from ..tools.sdk import require_tool
from .stage import PipelineStage

logger = get_logger(__name__)


class CompileNativeStage(PipelineStage):
    """Builds native libraries into ``<build>/ndk-libs/<arch>``."""

    name = "compile-native"
    phase = "compile"

    @property
    def jni_directory(self) -> Path:
        return self.config.resolve(self.config.ndk.jni_directory)

    @property
    def makefile(self) -> Path:
        return self.jni_directory / self.config.ndk.makefile

    def architectures(self) -> list[str]:
        configured = self.config.ndk.architectures
        if configured:
            return list(configured)
        return application_architectures(self.jni_directory / self.config.ndk.application_makefile)

    def should_skip(self) -> str | None:
        if self.config.ndk.skip:
            return "ndk.skip is set"
        if not self.makefile.is_file():
            return f"no native makefile at {self.makefile}"
        return None

    def execute(self) -> list[Path]:
        ndk_config = self.config.ndk
        ndk = self.context.ndk
        ndk.validate()
        ndk_build = require_tool(ndk.ndk_build, "ndk-build", "Set ANDROID_NDK_HOME to an NDK r7 or later")

        architectures = self.architectures()
        libs_out = self.layout.ndk_libs
        libs_out.mkdir(parents=True, exist_ok=True)

        builder = (
            NdkBuildCommandBuilder(ndk_build)
            .set_directory(self.context.project_directory)
            .set_makefile(self.makefile)
            .add_variable("APP_ABI", " ".join(architectures))
            .add_variable("NDK_LIBS_OUT", libs_out)
            .add_variable("NDK_OUT", self.layout.ndk_objects)
        )
        application_makefile = self.jni_directory / ndk_config.application_makefile
        if application_makefile.is_file():
            builder.add_variable("NDK_APPLICATION_MK", application_makefile)
        builder.set_toolchain(ndk_config.toolchain)
        builder.add_additional_arguments(ndk_config.additional_arguments)
        builder.set_target(ndk_config.target or self.config.project.artifact_id)

        env = {"NDK_PROJECT_PATH": str(self.context.project_directory), **ndk_config.environment}
        self.context.executor.execute(builder.to_invocation(), env=env)

        libraries = self._collect(architectures)
        self._stage_dependencies(architectures)
        self.context.outputs.native_libraries = libs_out
        return libraries

    def _collect(self, architectures: list[str]) -> list[Path]:
        libraries: list[Path] = []
        for arch in architectures:
            built = sorted((self.layout.ndk_libs / arch).glob("*.so"))
            if not built:
                raise ExecutionError(
                    message=f"ndk-build produced no shared library for {arch}",
                    tool="ndk-build",
                    exit_code=0,
                    context={"directory": str(self.layout.ndk_libs / arch)},
                )
            libraries.extend(built)
        logger.info("Built native libraries", architectures=architectures, count=len(libraries))
        return libraries

    def _stage_dependencies(self, architectures: list[str]) -> None:
        """Copy native dependencies for the built architectures next to the ndk-build output."""
        for native in self.context.unpacked_natives():
            for arch, directory in native.native_libs.items():
                if arch not in architectures:
                    continue
                for library in sorted(directory.glob("*.so")):
                    target = self.layout.ndk_libs / arch / library.name
                    if not target.exists():
                        shutil.copy2(library, target)
                        logger.debug("Staged native dependency", library=library.name, arch=arch)
