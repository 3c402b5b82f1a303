"""
Package signing with apksigner.

Debug builds are signed with the conventional debug keystore; release builds
need an explicitly configured keystore and alias.
"""

from __future__ import annotations

from pathlib import Path

from ..core.config import ApkConfig
from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger
from ..models.package import SigningState
from ..tools.apksigner import ApkSignerCommandBuilder
from ..tools.executor import CommandExecutor

logger = get_logger(__name__)

DEBUG_KEYSTORE = Path("~/.android/debug.keystore")
DEBUG_KEY_ALIAS = "androiddebugkey"
DEBUG_PASSWORD = "android"


def check_release_signing(config: ApkConfig) -> tuple[Path, str]:
    """The release keystore and key alias.

    Raises:
        ConfigurationError: If either is not configured.
    """
    if config.keystore is None or config.key_alias is None:
        raise ConfigurationError(
            message="Release signing needs apk.keystore and apk.key_alias",
            setting="apk.keystore",
        )
    return config.keystore, config.key_alias


class ApkSigner:
    """Signs written packages.

    Args:
        apksigner: Path of the apksigner executable.
        executor: Runs the signing command.
        config: Keystore settings for release signing.
    """

    def __init__(self, apksigner: Path, executor: CommandExecutor, config: ApkConfig) -> None:
        self.apksigner = apksigner
        self.executor = executor
        self.config = config

    def _builder(self, state: SigningState) -> ApkSignerCommandBuilder:
        builder = ApkSignerCommandBuilder(self.apksigner)
        if state == SigningState.DEBUG:
            return builder.set_keystore(
                DEBUG_KEYSTORE.expanduser(), DEBUG_KEY_ALIAS, DEBUG_PASSWORD
            ).set_key_password(DEBUG_PASSWORD)

        keystore, alias = check_release_signing(self.config)
        return builder.set_keystore(
            keystore,
            alias,
            self.config.keystore_password or "",
        ).set_key_password(self.config.key_password)

    def sign(self, apk: Path, state: SigningState) -> bool:
        """Sign ``apk`` in place.

        Returns:
            False for UNSIGNED, True once the package has been signed.

        Raises:
            ConfigurationError: If release signing is not configured.
            ExecutionError: If apksigner fails.
        """
        if state == SigningState.UNSIGNED:
            logger.info("Package left unsigned", apk=str(apk))
            return False

        invocation = self._builder(state).set_apk(apk).to_invocation()
        self.executor.execute(invocation)
        logger.info("Signed package", apk=str(apk), signing=state.value)
        return True
