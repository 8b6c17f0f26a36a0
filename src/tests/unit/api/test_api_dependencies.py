"""Unit tests for dependency endpoints, health, metrics and API key auth."""

import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import wpruntime.main
from wpruntime.config import RuntimeSettings, ServerConfig
from wpruntime.core.binaries import BinaryCheck
from wpruntime.installer import (
    DependencyStatus,
    InstallationGuidance,
    InstallationResult,
    InstallationStatus,
)
from wpruntime.installer.prompt import InstallChoice


def status(php: bool) -> InstallationStatus:
    return InstallationStatus(
        php=DependencyStatus(installed=php, version="PHP 8.2.13 (cli)" if php else None),
        mysql=DependencyStatus(installed=True),
        wp_cli=DependencyStatus(installed=True),
    )


class TestDependenciesAPI:
    def test_binaries(self, client: TestClient, mock_runtime: MagicMock) -> None:
        mock_runtime.supervisor.check_binaries.return_value = BinaryCheck(
            available=False, missing=["mysqld", "mysql"]
        )

        response = client.get("/api/v1/dependencies/binaries")

        assert response.status_code == 200
        assert response.json() == {"available": False, "missing": ["mysqld", "mysql"]}

    def test_status(self, client: TestClient, mock_runtime: MagicMock) -> None:
        mock_runtime.dependencies.check_status.return_value = status(php=True)

        response = client.get("/api/v1/dependencies/status")

        assert response.status_code == 200
        assert response.json()["php"]["version"] == "PHP 8.2.13 (cli)"

    @pytest.mark.parametrize(
        ("allow", "choice"),
        [(True, InstallChoice.SYSTEM), (False, InstallChoice.CANCEL)],
    )
    def test_install_passes_prompt(
        self,
        client: TestClient,
        mock_runtime: MagicMock,
        allow: bool,
        choice: InstallChoice,
    ) -> None:
        mock_runtime.supervisor.install_dependencies.return_value = InstallationResult(
            success=False,
            errors=["Please install php manually"],
            status=status(php=False),
        )

        response = client.post(
            "/api/v1/dependencies/install", json={"allow_system_install": allow}
        )

        assert response.status_code == 200
        assert response.json()["success"] is False
        prompt = mock_runtime.supervisor.install_dependencies.await_args.kwargs["prompt"]
        assert asyncio.run(prompt.choose(["php"])) is choice

    def test_guidance(self, client: TestClient, mock_runtime: MagicMock) -> None:
        mock_runtime.supervisor.check_binaries.return_value = BinaryCheck(
            available=False, missing=["php"]
        )
        mock_runtime.dependencies.guidance.return_value = InstallationGuidance(
            platform="Linux",
            missing=["php"],
            manual_instructions=["PHP: Ubuntu/Debian: sudo apt install php php-cli php-mysql"],
        )

        response = client.get("/api/v1/dependencies/guidance")

        assert response.status_code == 200
        assert response.json()["platform"] == "Linux"
        mock_runtime.dependencies.guidance.assert_called_once_with(["php"])


class TestServiceEndpoints:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_metrics(self, client: TestClient) -> None:
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "wprt_instances_running" in response.text


class TestApiKey:
    @pytest.fixture(autouse=True)
    def api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        settings = RuntimeSettings(server=ServerConfig(api_key="s3cret"))
        monkeypatch.setattr(wpruntime.main, "get_settings", lambda: settings)

    def test_rejects_missing_key(self, client: TestClient) -> None:
        response = client.get("/api/v1/apps")

        assert response.status_code == 401

    def test_accepts_bearer_key(self, client: TestClient) -> None:
        response = client.get(
            "/api/v1/apps", headers={"Authorization": "Bearer s3cret"}
        )

        assert response.status_code == 200

    def test_health_is_open(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
