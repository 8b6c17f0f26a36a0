"""Installer types and the platform installer base class."""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

import httpx
from pydantic import BaseModel, Field

from wpruntime.core.binaries import BinaryKind, BinaryLocator
from wpruntime.infra.process import CommandResult, ProcessLauncher
from wpruntime.installer.guidance import InstallationGuidance
from wpruntime.logging_schema import LogEvent
from wpruntime.metrics import WPRT_INSTALL_ATTEMPTS

if TYPE_CHECKING:
    from wpruntime.config import InstallerConfig
    from wpruntime.installer.prompt import InstallPrompt

logger = logging.getLogger(__name__)


class Dependency(str, Enum):
    """Installable packages; MySQL ships both server and client."""

    PHP = "php"
    MYSQL = "mysql"
    CLI_TOOL = "wp-cli"


DEPENDENCY_KINDS: dict[Dependency, tuple[BinaryKind, ...]] = {
    Dependency.PHP: (BinaryKind.INTERPRETER,),
    Dependency.MYSQL: (BinaryKind.DATABASE_SERVER, BinaryKind.DATABASE_CLIENT),
    Dependency.CLI_TOOL: (BinaryKind.CLI_TOOL,),
}


class DependencyStatus(BaseModel):
    installed: bool
    version: str | None = None
    path: str | None = None


class InstallationStatus(BaseModel):
    """Probe result for every dependency."""

    php: DependencyStatus
    mysql: DependencyStatus
    wp_cli: DependencyStatus

    def get(self, dependency: Dependency) -> DependencyStatus:
        if dependency is Dependency.CLI_TOOL:
            return self.wp_cli
        return getattr(self, dependency.value)

    @property
    def missing(self) -> list[Dependency]:
        return [dep for dep in Dependency if not self.get(dep).installed]

    @property
    def ready(self) -> bool:
        return not self.missing


class InstallOutcome(BaseModel):
    """What one installer run did."""

    installed: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    declined: bool = False


class InstallationResult(BaseModel):
    """Result of ensure_installed().

    success is true only when every dependency missing beforehand is present
    on the final probe. A declined prompt is reported here, never raised.
    """

    success: bool
    installed: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    declined: bool = False
    status: InstallationStatus
    guidance: InstallationGuidance | None = None


class DependencyInstaller(ABC):
    """Probes and installs dependencies on one platform.

    One dependency's failure is recorded in the outcome and never stops the
    remaining ones.
    """

    platform: ClassVar[str]

    def __init__(
        self,
        config: InstallerConfig,
        locator: BinaryLocator,
        launcher: ProcessLauncher,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._locator = locator
        self._launcher = launcher
        self._http_client = http_client

    async def probe(self) -> InstallationStatus:
        """Locate each dependency and read its version. Never raises."""
        statuses = {}
        for dependency, kinds in DEPENDENCY_KINDS.items():
            paths = [self._locator.resolve(kind, platform=self.platform) for kind in kinds]
            if any(path is None for path in paths):
                statuses[dependency] = DependencyStatus(installed=False)
                continue
            statuses[dependency] = DependencyStatus(
                installed=True,
                path=str(paths[0]),
                version=await self._read_version(paths[0]),
            )
        status = InstallationStatus(
            php=statuses[Dependency.PHP],
            mysql=statuses[Dependency.MYSQL],
            wp_cli=statuses[Dependency.CLI_TOOL],
        )
        logger.info(
            "Dependency status - PHP: %s, MySQL: %s, WP-CLI: %s",
            _describe(status.php),
            _describe(status.mysql),
            _describe(status.wp_cli),
        )
        return status

    async def _read_version(self, path: Path) -> str | None:
        try:
            result = await self._launcher.run([path, "--version"], timeout=15.0)
        except (OSError, TimeoutError):
            return None
        if not result.ok:
            return None
        first = result.stdout.strip().splitlines()
        return first[0] if first else None

    @abstractmethod
    async def install(
        self,
        missing: Sequence[Dependency],
        prompt: InstallPrompt | None = None,
    ) -> InstallOutcome:
        """Install what is missing."""

    # Helpers shared by platform installers

    def command_exists(self, name: str) -> bool:
        return shutil.which(name) is not None

    async def run_command(self, argv: Sequence[str | Path]) -> CommandResult:
        return await self._launcher.run(argv, timeout=self._config.command_timeout)

    def record(self, outcome: InstallOutcome, dependency: Dependency, ok: bool, error: str = "") -> None:
        """Add one dependency's result to outcome and emit log + metric."""
        if ok:
            outcome.installed.append(dependency.value)
            logger.info(
                "%s installed successfully",
                dependency.value,
                extra={"event": LogEvent.INSTALL_COMPLETED, "dependency": dependency.value},
            )
        else:
            outcome.errors.append(error)
            logger.error(
                error,
                extra={"event": LogEvent.INSTALL_FAILED, "dependency": dependency.value},
            )
        WPRT_INSTALL_ATTEMPTS.labels(
            dependency=dependency.value,
            outcome="success" if ok else "failure",
        ).inc()

    def record_declined(self, outcome: InstallOutcome, dependencies: Sequence[Dependency]) -> None:
        """Mark outcome declined; each dependency counts as a declined attempt."""
        names = [dep.value for dep in dependencies]
        logger.info(
            "System-wide installation declined for %s",
            ", ".join(names),
            extra={"event": LogEvent.INSTALL_DECLINED, "missing": names},
        )
        outcome.declined = True
        outcome.errors.append(f"Installation declined; still missing: {', '.join(names)}")
        for dependency in dependencies:
            WPRT_INSTALL_ATTEMPTS.labels(dependency=dependency.value, outcome="declined").inc()

    async def package_install(
        self,
        outcome: InstallOutcome,
        dependency: Dependency,
        argv: Sequence[str | Path],
    ) -> bool:
        logger.info(
            "Installing %s: %s",
            dependency.value,
            " ".join(str(a) for a in argv),
            extra={"event": LogEvent.INSTALL_STARTED, "dependency": dependency.value},
        )
        try:
            result = await self.run_command(argv)
        except (OSError, TimeoutError) as e:
            self.record(outcome, dependency, False, f"Error installing {dependency.value}: {e}")
            return False
        if not result.ok:
            self.record(
                outcome,
                dependency,
                False,
                f"Failed to install {dependency.value}: {result.output.strip()}",
            )
            return False
        self.record(outcome, dependency, True)
        return True


def _describe(status: DependencyStatus) -> str:
    if not status.installed:
        return "not installed"
    return status.version or "installed"
