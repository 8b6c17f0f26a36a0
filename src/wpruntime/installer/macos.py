"""Homebrew-based installer for macOS."""

import logging
from collections.abc import Sequence

from wpruntime.installer.base import Dependency, DependencyInstaller, InstallOutcome
from wpruntime.installer.prompt import InstallPrompt

logger = logging.getLogger(__name__)

BREW_PACKAGES = {
    Dependency.PHP: "php",
    Dependency.MYSQL: "mysql",
    Dependency.CLI_TOOL: "wp-cli",
}


class MacOSInstaller(DependencyInstaller):
    platform = "darwin"

    async def install(
        self,
        missing: Sequence[Dependency],
        prompt: InstallPrompt | None = None,
    ) -> InstallOutcome:
        outcome = InstallOutcome()
        logger.info("Installing WordPress dependencies on macOS...")

        if not self.command_exists("brew") and not await self._install_homebrew(outcome):
            return outcome

        for dependency in missing:
            ok = await self.package_install(
                outcome, dependency, ["brew", "install", BREW_PACKAGES[dependency]]
            )
            if ok and dependency is Dependency.MYSQL:
                await self._start_mysql_service()
        return outcome

    async def _install_homebrew(self, outcome: InstallOutcome) -> bool:
        logger.info("Installing Homebrew package manager...")
        script = f'/bin/bash -c "$(curl -fsSL {self._config.homebrew_install_url})"'
        try:
            result = await self.run_command(["/bin/bash", "-c", script])
        except (OSError, TimeoutError) as e:
            logger.error("Failed to install Homebrew: %s", e)
            outcome.errors.append("Failed to install Homebrew package manager")
            return False
        if not result.ok:
            logger.error("Homebrew installation failed with code %d", result.exit_code)
            outcome.errors.append("Failed to install Homebrew package manager")
            return False
        logger.info("Homebrew installed successfully")
        return True

    async def _start_mysql_service(self) -> None:
        # Non-critical: the supervisor runs its own mysqld per app
        try:
            result = await self.run_command(["brew", "services", "start", "mysql"])
        except (OSError, TimeoutError) as e:
            logger.warning("brew services start mysql failed (non-critical): %s", e)
            return
        if not result.ok:
            logger.warning(
                "brew services start mysql failed (non-critical): %s",
                result.output.strip(),
            )
