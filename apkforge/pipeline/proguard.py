"""
process-classes: shrink and obfuscate with ProGuard.
"""

from __future__ import annotations

from pathlib import Path

from ..core.logging import get_logger
from ..models.artifact import ArtifactKind, Scope
from ..tools.proguard import (
    ANDROID_LIBRARY_FILTER,
    SHIFTED_TO_LIBRARIES,
    ProguardCommandBuilder,
    ProguardConfigBuilder,
    ProguardJar,
    input_filters,
)
from ..tools.sdk import require_tool
from .stage import PipelineStage

logger = get_logger(__name__)


class ProguardStage(PipelineStage):
    """Writes ``proguard/temp_config.cfg`` and runs ProGuard with it."""

    name = "proguard"
    phase = "process-classes"

    @property
    def config_file(self) -> Path:
        return self.config.resolve(self.config.proguard.config)

    def should_skip(self) -> str | None:
        if self.config.proguard.skip:
            return "proguard.skip is set"
        if not self.config_file.is_file():
            return f"ProGuard configuration {self.config_file} not found"
        return None

    def expected_outputs(self) -> list[Path]:
        return [self.layout.obfuscated_jar]

    def build_configuration(self) -> ProguardConfigBuilder:
        proguard = self.config.proguard
        project = self.config.project
        filters = input_filters(
            proguard.filter_manifest, proguard.filter_maven_descriptor, proguard.custom_filter
        )

        builder = ProguardConfigBuilder().include(self.config_file)
        builder.include_all([self.config.resolve(c) for c in proguard.configs])
        libraries = self.context.unpacked_libraries()
        if proguard.include_aar_configs:
            builder.include_all(
                [u.proguard_file for u in libraries if u.proguard_file is not None]
            )
        if self.layout.aapt_rules.is_file():
            builder.include(self.layout.aapt_rules)

        if self.layout.classes.is_dir():
            builder.add_input_jar(ProguardJar(self.layout.classes, filters))

        library_jars: list[ProguardJar] = []
        for library in libraries:
            if library.kind == ArtifactKind.AAR and any(library.classes_root.rglob("*.class")):
                jar = ProguardJar(library.classes_root, filters)
                if project.is_library:
                    library_jars.append(jar)
                else:
                    builder.add_input_jar(jar)

        for dependency in self.context.dependencies_of(ArtifactKind.JAR):
            shifted = (dependency.group_id, dependency.artifact_id) in SHIFTED_TO_LIBRARIES
            if project.is_library or shifted or dependency.scope == Scope.PROVIDED:
                library_jars.append(ProguardJar(dependency.file))
            else:
                builder.add_input_jar(ProguardJar(dependency.file, filters))

        builder.add_library_jar(ProguardJar(self.context.sdk.android_jar, ANDROID_LIBRARY_FILTER))
        for jar in library_jars:
            builder.add_library_jar(jar)

        builder.set_output_jar(self.layout.obfuscated_jar)
        builder.add_reports(self.layout.proguard)
        builder.add_options(proguard.options)
        return builder

    def execute(self) -> list[Path]:
        proguard = self.config.proguard
        jar = proguard.proguard_jar or self.context.sdk.proguard_jar
        jar = require_tool(self.config.resolve(jar), "proguard.jar")

        config = self.build_configuration().write(self.layout.proguard_config)
        command = ProguardCommandBuilder(
            self.context.java, jar, proguard.jvm_arguments
        ).use_configuration(config)
        self.context.executor.execute(command.to_invocation())

        self.context.outputs.obfuscated_jar = self.layout.obfuscated_jar
        logger.info("Obfuscated classes", output=str(self.layout.obfuscated_jar))
        return [self.layout.obfuscated_jar, config]
