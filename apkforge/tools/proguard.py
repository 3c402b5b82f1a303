"""
ProGuard command and configuration builders.

ProGuard is launched with a single ``@<config>`` argument; everything else goes
into a generated configuration file, one directive per line, so long jar lists
never hit command-line length limits.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Self

from .builder import JavaToolCommandBuilder

MANIFEST_FILTER = "META-INF/MANIFEST.MF"
MAVEN_DESCRIPTOR_FILTER = "META-INF/maven/**"
ANDROID_LIBRARY_FILTER: tuple[str, ...] = ("org/xml/**", "org/w3c/**", "java/**", "javax/**")

# Runtime-provided on Android; always passed as library jars
SHIFTED_TO_LIBRARIES: frozenset[tuple[str, str]] = frozenset(
    {("commons-logging", "commons-logging")}
)


def _quote(path: Path) -> str:
    text = str(path)
    return f"'{text}'" if any(c.isspace() for c in text) else text


@dataclass(frozen=True)
class ProguardJar:
    """A jar entry with an optional ProGuard file filter."""

    path: Path
    filters: tuple[str, ...] = ()

    def render(self) -> str:
        if not self.filters:
            return _quote(self.path)
        return f"{_quote(self.path)}({','.join(self.filters)})"


def input_filters(
    filter_manifest: bool, filter_maven_descriptor: bool, custom_filter: str | None = None
) -> tuple[str, ...]:
    """Negated filters applied to every input jar."""
    excluded: list[str] = []
    if filter_manifest:
        excluded.append(MANIFEST_FILTER)
    if filter_maven_descriptor:
        excluded.append(MAVEN_DESCRIPTOR_FILTER)
    filters = [f"!{e}" for e in excluded]
    if custom_filter and custom_filter.strip():
        filters.append(custom_filter.strip())
    return tuple(filters)


class ProguardConfigBuilder:
    """Append-only builder for the generated ProGuard configuration."""

    def __init__(self) -> None:
        self._lines: list[str] = []

    def include(self, config: Path) -> Self:
        self._lines.append(f"@{_quote(config)}")
        return self

    def include_all(self, configs: Sequence[Path]) -> Self:
        for config in configs:
            self.include(config)
        return self

    def add_input_jar(self, jar: ProguardJar) -> Self:
        self._lines.append(f"-injars {jar.render()}")
        return self

    def add_library_jar(self, jar: ProguardJar) -> Self:
        self._lines.append(f"-libraryjars {jar.render()}")
        return self

    def set_output_jar(self, jar: Path) -> Self:
        self._lines.append(f"-outjars {_quote(jar)}")
        return self

    def add_reports(self, directory: Path) -> Self:
        self._lines.extend(
            [
                f"-dump {_quote(directory / 'dump.txt')}",
                f"-printseeds {_quote(directory / 'seeds.txt')}",
                f"-printusage {_quote(directory / 'usage.txt')}",
                f"-printmapping {_quote(directory / 'mapping.txt')}",
            ]
        )
        return self

    def add_options(self, options: Sequence[str]) -> Self:
        self._lines.extend(options)
        return self

    def build(self) -> list[str]:
        return list(self._lines)

    def write(self, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text("\n".join(self._lines) + "\n", encoding="utf-8")
        return destination


class ProguardCommandBuilder(JavaToolCommandBuilder):
    """``java -jar proguard.jar @<config>``."""

    def use_configuration(self, config: Path) -> Self:
        return self.add(f"@{config}")
