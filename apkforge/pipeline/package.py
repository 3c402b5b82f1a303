"""
package: link resources and produce the aligned, signed APK.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from ..conflicts.detector import ConflictSource
from ..conflicts.transformers import build_transformers
from ..core.exceptions import ExecutionError
from ..core.logging import get_logger
from ..models.package import SigningState
from ..packaging.assembler import PackageAssembler, ProjectOutput
from ..packaging.native import collect_native_libraries
from ..packaging.signing import ApkSigner, check_release_signing
from ..tools.sdk import require_tool
from ..tools.zipalign import ZipalignCommandBuilder
from .resources import link_command
from .stage import PipelineStage

logger = get_logger(__name__)


class PackageStage(PipelineStage):
    """Produces ``<build>/<final name>.apk``."""

    name = "package"
    phase = "package"

    def should_skip(self) -> str | None:
        if self.config.project.is_library:
            return f"{self.config.project.packaging} projects produce no APK"
        return None

    def expected_outputs(self) -> list[Path]:
        return [self.layout.package]

    def link_resources(self) -> Path:
        """Package resources and the manifest into the ``.ap_`` file."""
        resources = self.config.resources
        output = self.layout.resource_package
        output.parent.mkdir(parents=True, exist_ok=True)
        builder = (
            link_command(self.context)
            .set_debug_mode(self.config.apk.debug)
            .rename_manifest_package(resources.rename_manifest_package)
            .rename_instrumentation_target_package(
                resources.rename_instrumentation_target_package
            )
            .set_output_apk(output)
        )
        self.context.executor.execute(builder.to_invocation())
        return output

    def align(self, package: Path) -> bool:
        """Zipalign the package in place. Must run before signing.

        Returns:
            False when alignment is skipped.
        """
        zipalign = self.config.apk.zipalign
        if zipalign.skip:
            logger.info("Skipping zipalign", reason="apk.zipalign.skip is set")
            return False

        aligned = self.layout.aligned_package
        tool = require_tool(self.context.sdk.zipalign, "zipalign")
        builder = (
            ZipalignCommandBuilder(tool)
            .verbose(zipalign.verbose)
            .set_input_output(package, aligned)
        )
        self.context.executor.execute(builder.to_invocation())
        if not aligned.is_file():
            raise ExecutionError(
                message=f"zipalign reported success but wrote no {aligned.name}",
                tool="zipalign",
                exit_code=0,
            )
        os.replace(aligned, package)
        logger.info("Aligned package", apk=str(package))
        return True

    def assembler(self, signing: SigningState) -> PackageAssembler:
        apk = self.config.apk
        return PackageAssembler(
            duplicates_artifact=self.layout.duplicate_resources if apk.extract_duplicates else None,
            transformers=build_transformers(apk.transformers),
            meta_inf_includes=apk.meta_inf_includes,
            exclude_jar_resources=apk.exclude_jar_resources,
            strict=apk.strict_conflicts,
            signing=signing,
        )

    def execute(self) -> list[Path]:
        apk = self.config.apk
        signing = SigningState(apk.signing)
        # Configuration problems surface before any tool runs
        assembler = self.assembler(signing)
        if signing == SigningState.RELEASE:
            check_release_signing(apk)

        resource_package = self.link_resources()
        natives = collect_native_libraries(
            self.config.resolve(self.config.resources.native_libraries_directory),
            self.context.outputs.native_libraries,
            [*self.context.unpacked_libraries(), *self.context.unpacked_natives()],
            project=self.context.identity,
        )
        jars = [ConflictSource(d.id, d.file) for d in self.context.packaged_jars()]
        project_output = ProjectOutput(
            identity=self.context.identity,
            resource_package=resource_package,
            classes_directory=self.layout.classes if self.layout.classes.is_dir() else None,
        )

        manifest = assembler.assemble(
            project_output,
            jars,
            natives,
            self.context.outputs.dex_directory or self.layout.dex,
        )
        package = assembler.write(manifest, self.layout.package)
        produced = [package]

        if apk.create_unsigned_copy:
            shutil.copy2(package, self.layout.unsigned_package)
            produced.append(self.layout.unsigned_package)
        self.align(package)
        if signing != SigningState.UNSIGNED:
            apksigner = require_tool(self.context.sdk.apksigner, "apksigner")
            ApkSigner(apksigner, self.context.executor, apk).sign(package, signing)
        if manifest.duplicates and assembler.duplicates_artifact is not None:
            produced.append(assembler.duplicates_artifact)

        self.context.outputs.package = package
        logger.info("Packaged application", package=str(package), signing=signing.value)
        return produced
