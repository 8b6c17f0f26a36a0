"""Windows installer: portable installs first, Chocolatey on request."""

import asyncio
import logging
import zipfile
from collections.abc import Sequence
from pathlib import Path

import httpx

from wpruntime.core.binaries import BinaryKind
from wpruntime.infra.download import download_file
from wpruntime.installer.base import Dependency, DependencyInstaller, InstallOutcome
from wpruntime.installer.prompt import InstallChoice, InstallPrompt, check_elevation
from wpruntime.logging_schema import LogEvent

logger = logging.getLogger(__name__)

CHOCO_PACKAGES = {
    Dependency.PHP: "php",
    Dependency.MYSQL: "mysql",
    Dependency.CLI_TOOL: "wp-cli",
}


def _extract(archive: Path, target: Path) -> None:
    target.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive) as zf:
        zf.extractall(target)


class WindowsInstaller(DependencyInstaller):
    platform = "win32"

    async def install(
        self,
        missing: Sequence[Dependency],
        prompt: InstallPrompt | None = None,
    ) -> InstallOutcome:
        outcome = InstallOutcome()
        logger.info("Installing portable WordPress dependencies on Windows...")

        remaining = []
        for dependency in missing:
            if not await self._install_portable(outcome, dependency):
                remaining.append(dependency)

        if not remaining:
            return outcome

        names = [dep.value for dep in remaining]
        choice = await prompt.choose(names) if prompt is not None else InstallChoice.CANCEL
        if choice is InstallChoice.CANCEL:
            self.record_declined(outcome, remaining)
            return outcome

        if not await check_elevation(self._launcher, self.platform):
            outcome.errors.append(
                "Administrator privileges required: restart as administrator to install "
                f"{', '.join(names)} system-wide"
            )
            return outcome

        if not self.command_exists("choco") and not await self._install_chocolatey(outcome):
            return outcome

        for dependency in remaining:
            await self.package_install(
                outcome, dependency, ["choco", "install", CHOCO_PACKAGES[dependency], "-y"]
            )
        return outcome

    # =========================================================================
    # Portable
    # =========================================================================

    @property
    def _portable_dir(self) -> Path:
        return self._locator.portable_dir

    async def _install_portable(self, outcome: InstallOutcome, dependency: Dependency) -> bool:
        logger.info(
            "Installing portable %s",
            dependency.value,
            extra={"event": LogEvent.INSTALL_STARTED, "dependency": dependency.value},
        )
        try:
            if dependency is Dependency.PHP:
                await self._install_archive(self._config.windows_php_url, self._portable_dir / "php")
            elif dependency is Dependency.MYSQL:
                await self._install_archive(self._config.windows_mysql_url, self._portable_dir / "mysql")
            else:
                await self._install_cli_tool()
        except (httpx.HTTPError, OSError, zipfile.BadZipFile) as e:
            self.record(outcome, dependency, False, f"Portable {dependency.value} install failed: {e}")
            return False

        self.record(outcome, dependency, True)
        return True

    async def _install_archive(self, url: str, target: Path) -> None:
        archive = target.with_suffix(".zip")
        await download_file(
            url,
            archive,
            timeout=self._config.download_timeout,
            client=self._http_client,
        )
        try:
            await asyncio.to_thread(_extract, archive, target)
        finally:
            archive.unlink(missing_ok=True)

    async def _install_cli_tool(self) -> None:
        target_dir = self._portable_dir / "wp-cli"
        phar = target_dir / "wp-cli.phar"
        await download_file(
            self._config.cli_tool_url,
            phar,
            timeout=self._config.download_timeout,
            client=self._http_client,
        )
        php = self._locator.resolve(BinaryKind.INTERPRETER, platform=self.platform)
        interpreter = str(php) if php is not None else "php"
        (target_dir / "wp.bat").write_text(f'@echo off\n"{interpreter}" "{phar}" %*\n')

    # =========================================================================
    # System-wide
    # =========================================================================

    async def _install_chocolatey(self, outcome: InstallOutcome) -> bool:
        logger.info("Installing Chocolatey package manager...")
        script = (
            "Set-ExecutionPolicy Bypass -Scope Process -Force; "
            "[System.Net.ServicePointManager]::SecurityProtocol = "
            "[System.Net.ServicePointManager]::SecurityProtocol -bor 3072; "
            "iex ((New-Object System.Net.WebClient).DownloadString("
            f"'{self._config.chocolatey_install_url}'))"
        )
        try:
            result = await self.run_command(["powershell", "-Command", script])
        except (OSError, TimeoutError) as e:
            logger.error("Failed to install Chocolatey: %s", e)
            outcome.errors.append("Failed to install Chocolatey package manager")
            return False
        if not result.ok:
            logger.error("Chocolatey installation failed with code %d", result.exit_code)
            outcome.errors.append("Failed to install Chocolatey package manager")
            return False
        logger.info("Chocolatey installed successfully")
        return True
