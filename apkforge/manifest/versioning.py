"""
Android version code generation from a version name.

Each version element gets a fixed number of decimal digits, so with the default
``4,3,3`` layout the version ``1.2.3`` becomes ``1002003``.
"""

from __future__ import annotations

import re

from ..core.exceptions import ConfigurationError

MAX_VERSION_CODE = 2**31 - 1


def parse_simple(version_name: str) -> list[int]:
    """Split on dots after dropping everything except digits and dots.

    Raises:
        ConfigurationError: If an element is empty.
    """
    elements = re.sub(r"[^0-9.]", "", version_name).split(".")
    try:
        return [int(e) for e in elements]
    except ValueError as e:
        raise ConfigurationError(
            message=f"Cannot parse version elements from '{version_name}'",
            setting="manifest.version_naming_pattern",
            cause=e,
        ) from e


def parse_with_pattern(pattern: re.Pattern[str], version_name: str) -> list[int]:
    """Capturing groups of the first match, with absent or non-numeric groups as 0.

    Raises:
        ConfigurationError: If the pattern does not match.
    """
    match = pattern.search(version_name)
    if match is None:
        raise ConfigurationError(
            message=f"Version naming pattern {pattern.pattern!r} does not match '{version_name}'",
            setting="manifest.version_naming_pattern",
        )
    elements = []
    for group in match.groups():
        try:
            elements.append(int(group))
        except (TypeError, ValueError):
            elements.append(0)
    return elements


class VersionGenerator:
    """Computes version codes from version names.

    Args:
        digits: Digits per element separated by ``,`` or ``;``; 1 to 10 in total.
        naming_pattern: Optional regex whose groups are the version elements.

    Raises:
        ConfigurationError: If the digit layout or the pattern is invalid.
    """

    def __init__(self, digits: str = "4,3,3", naming_pattern: str | None = None) -> None:
        try:
            counts = [int(d.strip()) for d in re.split(r"[,;]", digits)]
        except ValueError as e:
            raise ConfigurationError(
                message=f"Invalid version digits '{digits}'",
                setting="manifest.version_digits",
                cause=e,
            ) from e

        total = sum(counts)
        if total < 1 or total > 10:
            raise ConfigurationError(
                message=f"Invalid number of digits, got {total}",
                setting="manifest.version_digits",
            )
        self.multipliers = [10**c for c in counts]

        self.pattern: re.Pattern[str] | None = None
        if naming_pattern:
            try:
                self.pattern = re.compile(naming_pattern)
            except re.error as e:
                raise ConfigurationError(
                    message=f"Invalid version naming pattern {naming_pattern!r}",
                    setting="manifest.version_naming_pattern",
                    cause=e,
                ) from e

    def parse(self, version_name: str) -> list[int]:
        if self.pattern is not None:
            return parse_with_pattern(self.pattern, version_name)
        return parse_simple(version_name)

    def generate(self, version_name: str) -> int:
        """Version code for ``version_name``.

        Elements beyond the configured layout are ignored and missing ones
        count as 0.

        Raises:
            ConfigurationError: If an element does not fit its digits or the
                code exceeds the largest Android version code.
        """
        elements = self.parse(version_name)
        code = 0
        for index, multiplier in enumerate(self.multipliers):
            code *= multiplier
            if index < len(elements):
                value = elements[index]
                if value >= multiplier:
                    raise ConfigurationError(
                        message=f"The version element is too large: {value}, max {multiplier - 1}",
                        setting="manifest.version_digits",
                    )
                code += value

        if code > MAX_VERSION_CODE:
            raise ConfigurationError(
                message=f"The version code is too large: {code}",
                setting="manifest.version_digits",
            )
        return code
