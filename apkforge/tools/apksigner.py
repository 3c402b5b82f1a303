"""apksigner command builder."""

from __future__ import annotations

from pathlib import Path
from typing import Self

from .builder import ToolCommandBuilder


class ApkSignerCommandBuilder(ToolCommandBuilder):
    """``apksigner sign --ks <keystore> --ks-key-alias <alias> ... <apk>``."""

    def __init__(self, executable: Path) -> None:
        super().__init__(executable)
        self.add("sign")

    def set_keystore(self, keystore: Path, alias: str, password: str) -> Self:
        return self.add("--ks", keystore, "--ks-key-alias", alias, "--ks-pass", f"pass:{password}")

    def set_key_password(self, password: str | None) -> Self:
        return self.add_if(password, "--key-pass", f"pass:{password}")

    def set_apk(self, apk: Path) -> Self:
        return self.add(apk)
