"""
prepare-package: convert class files to dex.
"""

from __future__ import annotations

from pathlib import Path

from ..core.exceptions import ExecutionError
from ..core.logging import get_logger
from ..models.artifact import ArtifactKind, Scope
from ..tools.builder import JavaToolCommandBuilder
from ..tools.dex import D8CommandBuilder, DexCompiler, DxCommandBuilder, MainDexListCommandBuilder
from ..tools.sdk import require_tool
from .stage import PipelineStage

logger = get_logger(__name__)

PRIMARY_DEX = "classes.dex"


def _has_classes(directory: Path) -> bool:
    return directory.is_dir() and any(directory.rglob("*.class"))


class DexStage(PipelineStage):
    """Runs dx or d8 over the project classes and packaged dependencies."""

    name = "dex"
    phase = "prepare-package"

    def should_skip(self) -> str | None:
        if self.config.project.is_library:
            return f"{self.config.project.packaging} projects are not dexed"
        return None

    def expected_outputs(self) -> list[Path]:
        return [self.layout.dex / PRIMARY_DEX]

    def inputs(self) -> list[Path]:
        """Class inputs: the obfuscated jar alone when ProGuard ran."""
        obfuscated = self.context.outputs.obfuscated_jar
        if obfuscated is not None and obfuscated.is_file():
            return [obfuscated]

        inputs: list[Path] = []
        if self.layout.classes.is_dir():
            inputs.append(self.layout.classes)
        inputs.extend(d.file for d in self.context.packaged_jars())
        for library in self.context.unpacked_libraries():
            if library.kind in (ArtifactKind.AAR, ArtifactKind.APK) and _has_classes(
                library.classes_root
            ):
                inputs.append(library.classes_root)
        return inputs

    def _dexer(self, compiler: DexCompiler) -> JavaToolCommandBuilder:
        sdk = self.context.sdk
        dex = self.config.dex
        if compiler == DexCompiler.D8:
            jar = require_tool(sdk.d8_jar, "d8.jar")
            return D8CommandBuilder(self.context.java, jar, dex.jvm_arguments)
        jar = require_tool(sdk.dx_jar, "dx.jar")
        return (
            DxCommandBuilder(self.context.java, jar, dex.jvm_arguments)
            .optimize(dex.optimize)
            .core_library(dex.core_library)
            .incremental(dex.incremental)
            .no_locals(dex.no_locals)
            .force_jumbo(dex.force_jumbo)
        )

    def pre_dex(self, compiler: DexCompiler, inputs: list[Path]) -> list[Path]:
        """Dex each jar on its own, reusing outputs newer than their jar."""
        self.layout.pre_dexed.mkdir(parents=True, exist_ok=True)
        result: list[Path] = []
        for source in inputs:
            if source.suffix != ".jar":
                result.append(source)
                continue
            target = self.layout.pre_dexed / f"{source.stem}.dex.jar"
            result.append(target)
            if target.is_file() and target.stat().st_mtime >= source.stat().st_mtime:
                logger.debug("Pre-dexed jar is up to date", jar=source.name)
                continue

            logger.info("Pre-dexing jar", jar=str(source))
            builder = self._dexer(compiler)
            if isinstance(builder, D8CommandBuilder):
                builder.intermediate().set_output(target)
            else:
                builder.set_output(target)
            builder.add_inputs([source])
            self.context.executor.execute(builder.to_invocation())
        return result

    def generate_main_dex_list(self, inputs: list[Path]) -> Path:
        """Run the main-dex-list helper ahead of a multi-dex conversion.

        Raises:
            ExecutionError: If the helper fails.
        """
        output = self.layout.main_dex_list
        helper = require_tool(self.context.sdk.main_dex_classes, "mainDexClasses")
        command = MainDexListCommandBuilder(helper).set_output(output).add_inputs(inputs)
        try:
            self.context.executor.execute(command.to_invocation())
        except ExecutionError as e:
            raise ExecutionError(
                message="Main dex list generation failed",
                tool=e.tool,
                exit_code=e.exit_code,
                stdout=e.stdout,
                stderr=e.stderr,
                cause=e,
            ) from e
        logger.info("Generated main dex list", output=str(output))
        return output

    def execute(self) -> list[Path]:
        dex = self.config.dex
        compiler = DexCompiler.from_id(dex.compiler)

        output_dir = self.layout.dex
        if output_dir.exists():
            for stale in output_dir.glob("classes*.dex"):
                stale.unlink()
        output_dir.mkdir(parents=True, exist_ok=True)

        class_inputs = self.inputs()
        inputs = self.pre_dex(compiler, class_inputs) if dex.pre_dex else class_inputs

        main_dex_list = self.config.resolve(dex.main_dex_list) if dex.main_dex_list else None
        minimal_main_dex = dex.minimal_main_dex
        if dex.multi_dex and main_dex_list is None:
            main_dex_list = self.generate_main_dex_list(class_inputs)
            minimal_main_dex = True

        builder = self._dexer(compiler)
        if isinstance(builder, D8CommandBuilder):
            builder.intermediate(dex.intermediate)
            builder.main_dex_list(main_dex_list if dex.multi_dex else None)
            builder.add_extra(dex.extra_arguments)
            builder.release(dex.release)
            builder.min_api(dex.min_api)
            builder.set_output(output_dir)
            builder.add_library(self.context.sdk.android_jar)
            builder.add_classpath(
                [
                    d.file
                    for d in self.context.dependencies_of(ArtifactKind.JAR)
                    if d.scope == Scope.PROVIDED
                ]
            )
        else:
            if dex.multi_dex:
                builder.multi_dex(main_dex_list, minimal_main_dex)
            builder.add_extra(dex.extra_arguments)
            builder.set_output(output_dir if dex.multi_dex else output_dir / PRIMARY_DEX)
        builder.add_inputs(inputs)

        logger.info("Converting classes to dex", compiler=compiler.value, inputs=len(inputs))
        self.context.executor.execute(builder.to_invocation())
        self.context.outputs.dex_directory = output_dir
        return sorted(output_dir.glob("classes*.dex"))
