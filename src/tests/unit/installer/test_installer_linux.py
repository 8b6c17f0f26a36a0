"""Tests for LinuxInstaller."""

import os
from unittest.mock import AsyncMock

import httpx
import pytest

from wpruntime.config import InstallerConfig
from wpruntime.core.binaries import BinaryLocator
from wpruntime.installer import Dependency, LinuxInstaller


@pytest.fixture
def installer(
    installer_config: InstallerConfig,
    locator: BinaryLocator,
    mock_launcher: AsyncMock,
    http_client: httpx.AsyncClient,
) -> LinuxInstaller:
    return LinuxInstaller(installer_config, locator, mock_launcher, http_client=http_client)


class TestLinuxInstaller:
    async def test_installs_cli_tool(
        self, installer: LinuxInstaller, installer_config: InstallerConfig
    ) -> None:
        outcome = await installer.install([Dependency.CLI_TOOL])

        target = installer_config.linux_bin_dir / "wp"
        assert outcome.installed == ["wp-cli"]
        assert outcome.errors == []
        assert target.read_bytes().startswith(b"#!/usr/bin/env php")
        assert os.access(target, os.X_OK)

    async def test_php_and_mysql_get_manual_instructions(
        self, installer: LinuxInstaller
    ) -> None:
        outcome = await installer.install([Dependency.PHP, Dependency.MYSQL])

        assert outcome.installed == []
        assert len(outcome.errors) == 2
        assert "sudo apt install php" in outcome.errors[0]
        assert "sudo apt install mysql-server" in outcome.errors[1]

    async def test_download_failure_does_not_abort_others(
        self,
        installer: LinuxInstaller,
        installer_config: InstallerConfig,
        downloads: dict[str, bytes],
    ) -> None:
        del downloads[installer_config.cli_tool_url]

        outcome = await installer.install([Dependency.PHP, Dependency.CLI_TOOL])

        assert outcome.installed == []
        assert any("Failed to install WP-CLI on Linux" in e for e in outcome.errors)
        assert any("php" in e for e in outcome.errors)
        assert not (installer_config.linux_bin_dir / "wp").exists()

    async def test_prompt_is_never_consulted(self, installer: LinuxInstaller) -> None:
        prompt = AsyncMock()

        await installer.install([Dependency.PHP], prompt=prompt)

        prompt.choose.assert_not_called()
