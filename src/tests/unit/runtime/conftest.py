"""Fixtures for supervisor unit tests.

Child processes are replaced by FakeProcess objects whose lifetime is driven
by the test; no mysqld or php is ever executed.
"""

import itertools
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from wpruntime.config import (
    DatabaseConfig,
    InstallerConfig,
    InterpreterConfig,
    RuntimeSettings,
)
from wpruntime.core.binaries import BinaryKind, BinaryLocator
from wpruntime.core.compat import ProcessIdentity
from wpruntime.core.ports import InstancePorts, PortAllocator
from wpruntime.core.provision import Provisioner
from wpruntime.infra.process import CommandResult, ProcessLauncher
from wpruntime.runtimes.local.database import DatabaseClient
from wpruntime.runtimes.local.supervisor import ProcessSupervisor

from fakes import FakeProcess, ProcessTable


@pytest.fixture
def processes() -> ProcessTable:
    return ProcessTable()


@pytest.fixture
def mock_launcher(processes: ProcessTable) -> AsyncMock:
    """ProcessLauncher whose children are FakeProcess objects."""
    launcher = AsyncMock(spec=ProcessLauncher)

    async def run(argv, *, cwd=None, env=None, timeout=None):
        args = [str(a) for a in argv]
        if args[1:] == ["--version"]:
            return CommandResult(exit_code=0, stdout=processes.version_output)
        if "--initialize-insecure" in args:
            processes.init_calls += 1
            if processes.init_results:
                return processes.init_results.pop(0)
            return CommandResult(exit_code=0)
        return CommandResult(exit_code=0, stdout="ok\n")

    async def spawn(name, argv, *, cwd=None, env=None, on_line=None):
        process = FakeProcess(name)
        processes.spawned.append(process)
        processes.spawn_calls.append(
            {"name": name, "argv": [str(a) for a in argv], "cwd": cwd, "on_line": on_line}
        )
        if name in processes.exit_on_spawn:
            process.exit(processes.exit_on_spawn[name])
        return process

    async def terminate(process, timeout):
        process.exit(0)
        process.detach_output()
        return True

    async def kill_tree(process, timeout=5.0):
        process.exit(-9)
        process.detach_output()

    launcher.run.side_effect = run
    launcher.spawn.side_effect = spawn
    launcher.terminate.side_effect = terminate
    launcher.kill_tree.side_effect = kill_tree
    return launcher


@pytest.fixture
def binary_paths(tmp_path: Path) -> dict[BinaryKind, Path | None]:
    bin_dir = tmp_path / "bin"
    return {kind: bin_dir / kind.value for kind in BinaryKind}


@pytest.fixture
def mock_locator(binary_paths: dict[BinaryKind, Path | None]) -> MagicMock:
    """BinaryLocator backed by the mutable binary_paths dict."""
    locator = MagicMock(spec=BinaryLocator)
    locator.resolve.side_effect = lambda kind, platform=None, arch=None: binary_paths[kind]
    locator.resolve_all.side_effect = lambda kinds=tuple(BinaryKind): {
        kind: binary_paths[kind] for kind in kinds
    }
    return locator


@pytest.fixture
def mock_ports() -> MagicMock:
    """PortAllocator handing out 8080/3306, 8081/3307, ..."""
    allocator = MagicMock(spec=PortAllocator)
    counter = itertools.count()

    def allocate_pair(interpreter_preferred=None, database_preferred=None):
        n = next(counter)
        return InstancePorts(interpreter_port=8080 + n, database_port=3306 + n)

    allocator.allocate_pair.side_effect = allocate_pair
    return allocator


@pytest.fixture
def mock_database(processes: ProcessTable) -> AsyncMock:
    """DatabaseClient whose SHUTDOWN ends the mysqld listening on that port."""
    database = AsyncMock(spec=DatabaseClient)

    async def shutdown(client_path, port):
        for process, call in zip(processes.spawned, processes.spawn_calls):
            if process.name == "mysqld" and f"--port={port}" in call["argv"]:
                process.exit(0)
        return True

    database.ping.return_value = True
    database.shutdown.side_effect = shutdown
    database.execute.return_value = CommandResult(exit_code=0, stdout="1\n")
    return database


@pytest.fixture
def settings(tmp_path: Path) -> RuntimeSettings:
    return RuntimeSettings(
        database=DatabaseConfig(
            ready_timeout=0.2,
            poll_interval=0.01,
            shutdown_timeout=0.1,
        ),
        interpreter=InterpreterConfig(startup_grace=0.0),
        installer=InstallerConfig(linux_bin_dir=tmp_path / "local-bin"),
    )


@pytest.fixture
def app_path(tmp_path: Path) -> Path:
    path = tmp_path / "apps" / "blog"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_supervisor(
    settings: RuntimeSettings,
    mock_launcher: AsyncMock,
    mock_locator: MagicMock,
    mock_ports: MagicMock,
    mock_database: AsyncMock,
):
    """Factory so tests can vary platform, identity and dependencies."""

    def factory(
        platform: str = "linux",
        identity: ProcessIdentity | None = None,
        **kwargs,
    ) -> ProcessSupervisor:
        return ProcessSupervisor(
            settings,
            launcher=mock_launcher,
            locator=mock_locator,
            ports=mock_ports,
            provisioner=Provisioner(settings.layout, settings.database, settings.interpreter),
            database=mock_database,
            platform=platform,
            identity=identity or ProcessIdentity(username="dev", superuser=False),
            **kwargs,
        )

    return factory


@pytest.fixture
def supervisor(make_supervisor) -> ProcessSupervisor:
    return make_supervisor()
