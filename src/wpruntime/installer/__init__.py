"""Dependency probing and installation."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx

from wpruntime.core.binaries import BinaryLocator, current_platform
from wpruntime.infra.process import ProcessLauncher
from wpruntime.installer.base import (
    Dependency,
    DependencyInstaller,
    DependencyStatus,
    InstallationResult,
    InstallationStatus,
    InstallOutcome,
)
from wpruntime.installer.guidance import (
    InstallationGuidance,
    get_installation_guidance,
    log_installation_guidance,
)
from wpruntime.installer.linux import LinuxInstaller
from wpruntime.installer.macos import MacOSInstaller
from wpruntime.installer.prompt import InstallChoice, InstallPrompt, StaticPrompt
from wpruntime.installer.windows import WindowsInstaller

if TYPE_CHECKING:
    from wpruntime.config import InstallerConfig

logger = logging.getLogger(__name__)

INSTALLERS: dict[str, type[DependencyInstaller]] = {
    "win32": WindowsInstaller,
    "darwin": MacOSInstaller,
    "linux": LinuxInstaller,
}


def select_installer(platform: str) -> type[DependencyInstaller]:
    """Installer class for a platform; unknown platforms get Linux behavior."""
    return INSTALLERS.get(platform, LinuxInstaller)


class DependencyManager:
    """Checks and installs the runtime's external dependencies."""

    def __init__(
        self,
        config: InstallerConfig,
        locator: BinaryLocator,
        launcher: ProcessLauncher | None = None,
        platform: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._platform = platform or current_platform()
        installer_cls = select_installer(self._platform)
        self._installer = installer_cls(
            config,
            locator,
            launcher or ProcessLauncher(),
            http_client=http_client,
        )

    @property
    def platform(self) -> str:
        return self._platform

    async def check_status(self) -> InstallationStatus:
        return await self._installer.probe()

    def guidance(self, missing: Sequence[str]) -> InstallationGuidance:
        return get_installation_guidance(self._platform, list(missing))

    async def ensure_installed(
        self,
        missing: Sequence[Dependency] | None = None,
        prompt: InstallPrompt | None = None,
    ) -> InstallationResult:
        """Install missing dependencies and re-probe.

        Args:
            missing: Dependencies to install; defaults to what probe() reports missing
            prompt: Asked before any system-wide install; None means decline
        """
        status = await self._installer.probe()
        if missing is None:
            missing = status.missing
        else:
            missing = [dep for dep in missing if not status.get(dep).installed]

        if not missing:
            logger.info("All WordPress dependencies are already installed")
            return InstallationResult(success=True, status=status)

        names = [dep.value for dep in missing]
        logger.info("Missing dependencies: %s", ", ".join(names))

        try:
            outcome = await self._installer.install(missing, prompt=prompt)
        except Exception as e:
            logger.exception("Auto-installation failed")
            outcome = InstallOutcome(errors=[f"Auto-installation failed: {e}"])

        final = await self._installer.probe()
        success = all(final.get(dep).installed for dep in missing)
        still_missing = [dep.value for dep in final.missing]

        guidance = None
        if still_missing:
            guidance = self.guidance(still_missing)
            log_installation_guidance(guidance)

        if success:
            logger.info("WordPress dependencies installed successfully")
        else:
            logger.warning("WordPress dependencies installation completed with issues")

        return InstallationResult(
            success=success,
            installed=outcome.installed,
            errors=outcome.errors,
            declined=outcome.declined,
            status=final,
            guidance=guidance,
        )


__all__ = [
    "Dependency",
    "DependencyInstaller",
    "DependencyManager",
    "DependencyStatus",
    "InstallChoice",
    "InstallationGuidance",
    "InstallationResult",
    "InstallationStatus",
    "InstallOutcome",
    "InstallPrompt",
    "LinuxInstaller",
    "MacOSInstaller",
    "StaticPrompt",
    "WindowsInstaller",
    "get_installation_guidance",
    "select_installer",
]
