"""Fixtures for API endpoint tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import wpruntime.main
from wpruntime.api.dependencies import get_runtime, reset_runtime
from wpruntime.core.binaries import BinaryCheck
from wpruntime.main import app
from wpruntime.runtimes.local.instance import InstanceState


@pytest.fixture
def mock_runtime() -> MagicMock:
    """Create mock runtime."""
    runtime = MagicMock()

    runtime.supervisor = MagicMock()
    runtime.supervisor.start = AsyncMock()
    runtime.supervisor.stop = AsyncMock()
    runtime.supervisor.run_cli = AsyncMock()
    runtime.supervisor.run_query = AsyncMock()
    runtime.supervisor.install_dependencies = AsyncMock()
    runtime.supervisor.get_running_processes = MagicMock(return_value={})
    runtime.supervisor.get_state = MagicMock(return_value=InstanceState.ABSENT)
    runtime.supervisor.check_binaries = MagicMock(
        return_value=BinaryCheck(available=True, missing=[])
    )

    runtime.apps = MagicMock()
    runtime.apps.list_apps = AsyncMock(return_value=[])
    runtime.apps.find_app = AsyncMock(return_value=None)
    runtime.apps.register_app = AsyncMock()
    runtime.apps.update_app_ports = AsyncMock()

    runtime.dependencies = MagicMock()
    runtime.dependencies.check_status = AsyncMock()
    return runtime


@pytest.fixture
def client(mock_runtime: MagicMock, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Create test client with mocked runtime."""
    # Lifespan would build a real LocalRuntime
    monkeypatch.setattr(wpruntime.main, "init_runtime", AsyncMock())
    monkeypatch.setattr(wpruntime.main, "close_runtime", AsyncMock())
    app.dependency_overrides[get_runtime] = lambda: mock_runtime

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    reset_runtime()
