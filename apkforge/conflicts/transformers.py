"""
Resource transformers.

A transformer claims conflicting paths it knows how to merge. Transformers are
consulted in registration order and the first one whose ``can_transform``
accepts a path receives every contributor's copy, in precedence order, and
returns the single merged entry written to the package. Nothing for a claimed
path goes to the duplicate-resources side artifact.
"""

from __future__ import annotations

import fnmatch
from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..core.exceptions import ConfigurationError
from ..models.package import Contribution


class ResourceTransformer(ABC):
    """Merges every copy of a conflicting path into one entry."""

    name: str = ""

    @abstractmethod
    def can_transform(self, path: str) -> bool:
        """Whether this transformer claims the path."""

    @abstractmethod
    def transform(self, path: str, contributions: Sequence[Contribution]) -> bytes:
        """Merged content for the path."""


class ServicesResourceTransformer(ResourceTransformer):
    """Concatenates ``META-INF/services`` provider files, dropping repeated lines."""

    name = "services"

    def can_transform(self, path: str) -> bool:
        return path.startswith("META-INF/services/") and not path.endswith("/")

    def transform(self, path: str, contributions: Sequence[Contribution]) -> bytes:
        seen: set[str] = set()
        lines: list[str] = []
        for contribution in contributions:
            for line in contribution.read_bytes().decode("utf-8").splitlines():
                provider = line.split("#", 1)[0].strip()
                if provider and provider not in seen:
                    seen.add(provider)
                    lines.append(provider)
        return ("\n".join(lines) + "\n").encode("utf-8")


class AppendingTransformer(ResourceTransformer):
    """Appends every copy of paths matching a glob, separated by newlines."""

    name = "append"

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern

    def can_transform(self, path: str) -> bool:
        return fnmatch.fnmatchcase(path, self.pattern)

    def transform(self, path: str, contributions: Sequence[Contribution]) -> bytes:
        parts = [c.read_bytes().rstrip(b"\n") for c in contributions]
        return b"\n".join(parts) + b"\n"


def build_transformers(names: Sequence[str]) -> list[ResourceTransformer]:
    """Instantiate transformers from configuration names.

    ``services`` maps to ServicesResourceTransformer and ``append:<glob>`` to an
    AppendingTransformer for that glob.

    Raises:
        ConfigurationError: If a name is not recognized.
    """
    transformers: list[ResourceTransformer] = []
    for name in names:
        kind, _, argument = name.partition(":")
        if kind == ServicesResourceTransformer.name and not argument:
            transformers.append(ServicesResourceTransformer())
        elif kind == AppendingTransformer.name and argument:
            transformers.append(AppendingTransformer(argument))
        else:
            raise ConfigurationError(
                message=f"Unknown resource transformer '{name}'",
                setting="apk.transformers",
            )
    return transformers


def first_claim(
    transformers: Sequence[ResourceTransformer], path: str
) -> ResourceTransformer | None:
    """The first transformer claiming a path, if any."""
    for transformer in transformers:
        if transformer.can_transform(path):
            return transformer
    return None
