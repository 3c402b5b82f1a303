"""
Resource tool command builders.

One builder per logical operation, branching on ToolDialect: LEGACY drives
``aapt package``, MODERN drives ``aapt2 compile`` / ``aapt2 link``. A method
whose flag has no equivalent in the active dialect appends nothing.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Self

from ..models.invocation import ToolDialect
from .builder import ToolCommandBuilder


class ResourceCompileCommandBuilder(ToolCommandBuilder):
    """``aapt2 compile`` for one resource directory.

    aapt has no separate compile step, so under LEGACY nothing is appended and
    ``required`` is False.
    """

    def __init__(self, executable: Path, dialect: ToolDialect) -> None:
        super().__init__(executable)
        self.dialect = dialect
        self.add_if(self.required, "compile")

    @property
    def required(self) -> bool:
        return self.dialect == ToolDialect.MODERN

    def set_output(self, output: Path) -> Self:
        return self.add_if(self.required, "-o", output)

    def add_resource_directory_if_exists(self, directory: Path | None) -> Self:
        return self.add_if(
            self.required and directory is not None and directory.is_dir(), "--dir", directory
        )

    def set_verbose(self, verbose: bool = True) -> Self:
        return self.add_if(self.required and verbose, "-v")

    def disable_png_crunching(self, disable: bool = True) -> Self:
        return self.add_if(self.required and disable, "--no-crunch")

    def legacy_mode(self, enable: bool = True) -> Self:
        """Tolerate resources written for aapt."""
        return self.add_if(self.required and enable, "--legacy")


class ResourceLinkCommandBuilder(ToolCommandBuilder):
    """``aapt package`` / ``aapt2 link``: R generation and resource packaging."""

    def __init__(self, executable: Path, dialect: ToolDialect) -> None:
        super().__init__(executable)
        self.dialect = dialect
        self.add("link" if self.modern else "package")

    @property
    def modern(self) -> bool:
        return self.dialect == ToolDialect.MODERN

    def generate_r_java(self, gen_directory: Path) -> Self:
        """Write R.java under ``gen_directory``."""
        if self.modern:
            return self.add("--java", gen_directory)
        return self.add("-m", "-J", gen_directory)

    def force_overwrite(self) -> Self:
        return self.add_if(not self.modern, "-f")

    def disable_png_crunching(self, disable: bool = True) -> Self:
        # aapt2 crunches during compile, not link
        return self.add_if(not self.modern and disable, "--no-crunch")

    def make_resources_non_constant(self, enable: bool = True) -> Self:
        """Non-final resource ids, required when building a library."""
        if not enable:
            return self
        return self.add("--non-final-ids" if self.modern else "--non-constant-id")

    def set_custom_package(self, package: str | None) -> Self:
        return self.add_if(package and package.strip(), "--custom-package", package)

    def add_extra_packages(self, packages: Sequence[str]) -> Self:
        """Also generate R classes for library packages."""
        return self.add_if(packages, "--extra-packages", ":".join(packages))

    def set_manifest(self, manifest: Path) -> Self:
        return self.add("--manifest" if self.modern else "-M", manifest)

    def add_resource_directory_if_exists(self, directory: Path | None) -> Self:
        """Raw resource directory; aapt2 links compiled archives instead."""
        return self.add_if(
            not self.modern and directory is not None and directory.is_dir(), "-S", directory
        )

    def add_resource_directories_if_exist(self, directories: Sequence[Path]) -> Self:
        """Directories in precedence order, highest first."""
        for directory in directories:
            self.add_resource_directory_if_exists(directory)
        return self

    def add_compiled_resources(self, archives: Sequence[Path]) -> Self:
        """Compiled resource archives in precedence order, highest first.

        The lowest-precedence archive is the base input and the others overlay
        it in rising precedence, so the first archive wins.
        """
        if not self.modern or not archives:
            return self
        ordered = list(reversed(archives))
        self.add(ordered[0])
        for overlay in ordered[1:]:
            self.add("-R", overlay)
        return self

    def auto_add_overlay(self) -> Self:
        return self.add("--auto-add-overlay")

    def add_assets_directory_if_exists(self, directory: Path | None) -> Self:
        return self.add_if(directory is not None and directory.is_dir(), "-A", directory)

    def add_android_jar(self, android_jar: Path) -> Self:
        return self.add("-I", android_jar)

    def set_resource_configurations(self, configurations: str | None) -> Self:
        return self.add_if(
            configurations and configurations.strip(), "-c", configurations
        )

    def add_extra_arguments(self, arguments: Sequence[str] | None) -> Self:
        return self.add_extra(list(arguments) if arguments else None)

    def set_verbose(self, verbose: bool = True) -> Self:
        return self.add_if(verbose, "-v")

    def generate_symbols(self, directory: Path) -> Self:
        """Write the R.txt symbol table into ``directory``."""
        if self.modern:
            return self.add("--output-text-symbols", directory / "R.txt")
        return self.add("--output-text-symbols", directory)

    def set_proguard_output(self, rules: Path | None) -> Self:
        return self.add_if(rules is not None, "--proguard" if self.modern else "-G", rules)

    def set_debug_mode(self, debug: bool = True) -> Self:
        return self.add_if(debug, "--debug-mode")

    def rename_manifest_package(self, package: str | None) -> Self:
        return self.add_if(package, "--rename-manifest-package", package)

    def rename_instrumentation_target_package(self, package: str | None) -> Self:
        return self.add_if(package, "--rename-instrumentation-target-package", package)

    def set_output_apk(self, output: Path) -> Self:
        return self.add("-o" if self.modern else "-F", output)
