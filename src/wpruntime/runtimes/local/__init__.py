"""Local process runtime for WordPress apps."""

import logging

import httpx

from wpruntime.config import RuntimeSettings, get_settings
from wpruntime.core.binaries import BinaryLocator
from wpruntime.core.ports import PortAllocator
from wpruntime.core.provision import Provisioner
from wpruntime.infra.process import ProcessLauncher
from wpruntime.installer import DependencyManager
from wpruntime.registry import REGISTRY_FILE, FileAppRegistry
from wpruntime.runtimes.local.database import DatabaseClient
from wpruntime.runtimes.local.instance import InstanceState
from wpruntime.runtimes.local.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class LocalRuntime:
    """Local runtime combining supervisor, dependency manager, and app registry."""

    def __init__(self, settings: RuntimeSettings | None = None) -> None:
        self._settings = settings or get_settings()
        self._http = httpx.AsyncClient(
            timeout=self._settings.installer.download_timeout,
            follow_redirects=True,
        )

        launcher = ProcessLauncher()
        locator = BinaryLocator(self._settings.binaries)

        self.dependencies = DependencyManager(
            self._settings.installer,
            locator,
            launcher,
            http_client=self._http,
        )
        self.supervisor = ProcessSupervisor(
            self._settings,
            launcher=launcher,
            locator=locator,
            ports=PortAllocator(self._settings.ports),
            provisioner=Provisioner(
                self._settings.layout,
                self._settings.database,
                self._settings.interpreter,
            ),
            database=DatabaseClient(self._settings.database, launcher),
            dependencies=self.dependencies,
        )
        self.apps = FileAppRegistry(self._settings.binaries.user_data_dir / REGISTRY_FILE)

    @property
    def settings(self) -> RuntimeSettings:
        return self._settings

    async def init(self) -> None:
        """Probe dependencies and optionally install what is missing. Never raises."""
        logger.info("Performing WordPress dependencies startup check...")
        try:
            status = await self.dependencies.check_status()
            if status.ready:
                logger.info("All WordPress dependencies are available at startup")
                return
            if not self._settings.installer.install_on_startup:
                missing = [dep.value for dep in status.missing]
                logger.warning("WordPress dependencies missing at startup: %s", ", ".join(missing))
                return
            result = await self.dependencies.ensure_installed()
            if not result.success:
                logger.warning("WordPress features may require manual installation of missing dependencies")
        except Exception:
            logger.exception("Error during WordPress startup check")

    async def close(self) -> None:
        try:
            await self.supervisor.stop_all()
        finally:
            await self._http.aclose()


__all__ = [
    "DatabaseClient",
    "InstanceState",
    "LocalRuntime",
    "ProcessSupervisor",
]
