"""Linux installer: only the CLI tool is installed automatically."""

import logging
import stat
from collections.abc import Sequence

import httpx

from wpruntime.infra.download import download_file
from wpruntime.installer.base import Dependency, DependencyInstaller, InstallOutcome
from wpruntime.installer.guidance import manual_instructions
from wpruntime.installer.prompt import InstallPrompt
from wpruntime.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class LinuxInstaller(DependencyInstaller):
    platform = "linux"

    async def install(
        self,
        missing: Sequence[Dependency],
        prompt: InstallPrompt | None = None,
    ) -> InstallOutcome:
        outcome = InstallOutcome()

        if Dependency.CLI_TOOL in missing:
            await self._install_cli_tool(outcome)

        manual = [dep for dep in missing if dep is not Dependency.CLI_TOOL]
        for dependency in manual:
            commands = "; ".join(manual_instructions(self.platform, dependency.value))
            self.record(
                outcome,
                dependency,
                False,
                f"Please install {dependency.value} manually using your package manager: {commands}",
            )
        return outcome

    async def _install_cli_tool(self, outcome: InstallOutcome) -> None:
        target = self._config.linux_bin_dir / "wp"
        logger.info(
            "Installing WP-CLI to %s",
            target,
            extra={"event": LogEvent.INSTALL_STARTED, "dependency": Dependency.CLI_TOOL.value},
        )
        try:
            await download_file(
                self._config.cli_tool_url,
                target,
                timeout=self._config.download_timeout,
                client=self._http_client,
            )
            target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except (httpx.HTTPError, OSError) as e:
            self.record(outcome, Dependency.CLI_TOOL, False, f"Failed to install WP-CLI on Linux: {e}")
            return
        self.record(outcome, Dependency.CLI_TOOL, True)
