"""Unit tests for LocalRuntime startup check and shutdown."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from wpruntime.config import BinaryConfig, InstallerConfig, RuntimeSettings
from wpruntime.installer import DependencyStatus, InstallationResult, InstallationStatus
from wpruntime.runtimes import LocalRuntime


def status(ready: bool) -> InstallationStatus:
    return InstallationStatus(
        php=DependencyStatus(installed=True),
        mysql=DependencyStatus(installed=ready),
        wp_cli=DependencyStatus(installed=True),
    )


@pytest.fixture
def make_runtime(tmp_path: Path):
    def factory(install_on_startup: bool = False) -> LocalRuntime:
        settings = RuntimeSettings(
            binaries=BinaryConfig(
                resources_dir=tmp_path / "resources",
                user_data_dir=tmp_path / "user-data",
            ),
            installer=InstallerConfig(install_on_startup=install_on_startup),
        )
        runtime = LocalRuntime(settings)
        runtime.dependencies.check_status = AsyncMock()
        runtime.dependencies.ensure_installed = AsyncMock()
        return runtime

    return factory


class TestLocalRuntime:
    async def test_registry_in_user_data_dir(self, make_runtime, tmp_path: Path) -> None:
        runtime = make_runtime()

        assert runtime.apps.path == tmp_path / "user-data" / "apps.json"
        await runtime.close()

    async def test_init_when_ready(self, make_runtime) -> None:
        runtime = make_runtime(install_on_startup=True)
        runtime.dependencies.check_status.return_value = status(ready=True)

        await runtime.init()

        runtime.dependencies.ensure_installed.assert_not_called()
        await runtime.close()

    async def test_init_reports_missing_without_installing(self, make_runtime) -> None:
        runtime = make_runtime()
        runtime.dependencies.check_status.return_value = status(ready=False)

        await runtime.init()

        runtime.dependencies.ensure_installed.assert_not_called()
        await runtime.close()

    async def test_init_installs_when_enabled(self, make_runtime) -> None:
        runtime = make_runtime(install_on_startup=True)
        runtime.dependencies.check_status.return_value = status(ready=False)
        runtime.dependencies.ensure_installed.return_value = InstallationResult(
            success=False, status=status(ready=False)
        )

        await runtime.init()

        runtime.dependencies.ensure_installed.assert_awaited_once()
        await runtime.close()

    async def test_init_never_raises(self, make_runtime) -> None:
        runtime = make_runtime()
        runtime.dependencies.check_status.side_effect = OSError("probe failed")

        await runtime.init()

        await runtime.close()
