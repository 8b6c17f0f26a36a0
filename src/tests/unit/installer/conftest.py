"""Fixtures for installer unit tests."""

import io
import zipfile
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

from wpruntime.config import BinaryConfig, InstallerConfig
from wpruntime.core.binaries import BinaryLocator
from wpruntime.infra.process import CommandResult, ProcessLauncher

PHP_URL = "https://downloads.test/php.zip"
MYSQL_URL = "https://downloads.test/mysql.zip"
CLI_URL = "https://downloads.test/wp-cli.phar"


def make_zip(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def installer_config(tmp_path: Path) -> InstallerConfig:
    return InstallerConfig(
        windows_php_url=PHP_URL,
        windows_mysql_url=MYSQL_URL,
        cli_tool_url=CLI_URL,
        linux_bin_dir=tmp_path / "bin",
        download_timeout=5.0,
        command_timeout=5.0,
    )


@pytest.fixture
def locator(tmp_path: Path) -> BinaryLocator:
    return BinaryLocator(
        BinaryConfig(
            packaged=True,
            resources_dir=tmp_path / "resources",
            user_data_dir=tmp_path / "userdata",
        )
    )


@pytest.fixture
def mock_launcher() -> AsyncMock:
    """ProcessLauncher whose commands all succeed unless overridden."""
    launcher = AsyncMock(spec=ProcessLauncher)
    launcher.run = AsyncMock(return_value=CommandResult(exit_code=0))
    return launcher


@pytest.fixture
def downloads() -> dict[str, bytes]:
    """URL -> body served with 200; unknown URLs 404."""
    return {
        PHP_URL: make_zip({"php.exe": b"MZ", "ext/php_mysqli.dll": b"MZ"}),
        MYSQL_URL: make_zip(
            {
                "mysql-8.0.35-winx64/bin/mysqld.exe": b"MZ",
                "mysql-8.0.35-winx64/bin/mysql.exe": b"MZ",
            }
        ),
        CLI_URL: b"#!/usr/bin/env php\n<?php",
    }


@pytest.fixture
async def http_client(downloads: dict[str, bytes]):
    def handler(request: httpx.Request) -> httpx.Response:
        body = downloads.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        yield client
