"""
Resource tool steps shared by R generation and resource packaging.

Under the LEGACY dialect aapt reads resource directories directly. Under MODERN
each directory is first compiled into an archive with ``aapt2 compile`` and the
archives are linked with the highest-precedence one overlaying the rest.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from ..core.logging import get_logger
from ..models.invocation import ToolDialect
from ..tools.aapt import ResourceCompileCommandBuilder, ResourceLinkCommandBuilder
from ..tools.sdk import require_tool
from .context import BuildContext

logger = get_logger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def compiled_archive_name(index: int, owner: str) -> str:
    return f"{index:03d}-{_UNSAFE.sub('_', owner)}.zip"


def compile_resources(context: BuildContext) -> list[Path]:
    """Compile every resource directory, highest precedence first.

    Returns:
        The compiled archives in the same order, or nothing under LEGACY.
    """
    if context.dialect != ToolDialect.MODERN:
        return []

    sdk = context.sdk
    resources = context.config.resources
    output_root = context.layout.compiled_resources
    if output_root.exists():
        shutil.rmtree(output_root)
    output_root.mkdir(parents=True)

    aapt2 = require_tool(sdk.aapt2, "aapt2", "Install a build-tools revision that ships aapt2")
    archives: list[Path] = []
    for index, (owner, directory) in enumerate(context.resource_directories()):
        archive = output_root / compiled_archive_name(index, owner)
        builder = (
            ResourceCompileCommandBuilder(aapt2, ToolDialect.MODERN)
            .set_output(archive)
            .add_resource_directory_if_exists(directory)
            .set_verbose(resources.verbose)
            .disable_png_crunching(resources.no_crunch)
            .legacy_mode()
        )
        context.executor.execute(builder.to_invocation())
        archives.append(archive)

    logger.debug("Compiled resources", archives=len(archives))
    context.outputs.compiled_resources = archives
    return archives


def link_command(
    context: BuildContext,
    r_directory: Path | None = None,
    extra_packages: list[str] | None = None,
) -> ResourceLinkCommandBuilder:
    """A link/package command with the inputs common to every use.

    Args:
        context: The build context.
        r_directory: Generate R.java here when given.
        extra_packages: Library packages that also get R classes.

    The caller appends its own outputs after the returned builder's arguments.
    """
    sdk = context.sdk
    dialect = context.dialect
    resources = context.config.resources
    executable = require_tool(sdk.resource_tool(dialect), sdk.resource_tool(dialect).name)

    builder = ResourceLinkCommandBuilder(executable, dialect)
    if r_directory is not None:
        builder.generate_r_java(r_directory)
    builder.force_overwrite()
    builder.disable_png_crunching(resources.no_crunch)
    builder.make_resources_non_constant(context.config.project.is_library)
    builder.set_custom_package(resources.custom_package)
    builder.add_extra_packages(extra_packages or [])
    builder.set_manifest(context.manifest())
    builder.add_resource_directories_if_exist([d for _, d in context.resource_directories()])
    builder.add_compiled_resources(context.outputs.compiled_resources)
    builder.auto_add_overlay()
    builder.add_assets_directory_if_exists(context.outputs.combined_assets)
    builder.add_android_jar(sdk.android_jar)
    builder.set_resource_configurations(resources.configurations)
    builder.add_extra_arguments(resources.extra_arguments)
    builder.set_verbose(resources.verbose)
    return builder
