"""Tests for ProcessLauncher against real child processes."""

import asyncio
import logging
import sys
from pathlib import Path

import psutil
import pytest

from wpruntime.infra.process import ProcessLauncher
from wpruntime.logging_schema import LogEvent

PY = sys.executable


@pytest.fixture
def launcher() -> ProcessLauncher:
    return ProcessLauncher()


class TestRun:
    async def test_captures_output(self, launcher: ProcessLauncher) -> None:
        result = await launcher.run(
            [PY, "-c", "import sys; print('out'); print('err', file=sys.stderr)"]
        )

        assert result.ok
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"
        assert "out" in result.output and "err" in result.output

    async def test_non_zero_exit(self, launcher: ProcessLauncher) -> None:
        result = await launcher.run([PY, "-c", "raise SystemExit(3)"])

        assert result.exit_code == 3
        assert not result.ok

    async def test_env_is_merged(self, launcher: ProcessLauncher) -> None:
        result = await launcher.run(
            [PY, "-c", "import os; print(os.environ['WP_CLI_PHP'])"],
            env={"WP_CLI_PHP": "/opt/php"},
        )

        assert result.stdout.strip() == "/opt/php"

    async def test_timeout_kills(self, launcher: ProcessLauncher) -> None:
        with pytest.raises(TimeoutError):
            await launcher.run([PY, "-c", "import time; time.sleep(30)"], timeout=0.5)

    async def test_cancellation_kills_child(
        self, launcher: ProcessLauncher, tmp_path: Path
    ) -> None:
        pid_file = tmp_path / "pid"
        script = (
            "import os, pathlib, sys, time\n"
            "pathlib.Path(sys.argv[1]).write_text(str(os.getpid()))\n"
            "time.sleep(30)\n"
        )
        task = asyncio.create_task(launcher.run([PY, "-c", script, str(pid_file)]))
        for _ in range(200):
            if pid_file.exists() and pid_file.read_text():
                break
            await asyncio.sleep(0.05)
        pid = int(pid_file.read_text())

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not psutil.pid_exists(pid)

    async def test_missing_executable(self, launcher: ProcessLauncher) -> None:
        with pytest.raises(FileNotFoundError):
            await launcher.run(["/nonexistent/mysqld", "--version"])


class TestSpawn:
    async def test_output_relayed_to_hook(self, launcher: ProcessLauncher) -> None:
        lines: list[str] = []
        process = await launcher.spawn(
            "echo",
            [PY, "-c", "import sys; print('ready'); print('Permission denied', file=sys.stderr)"],
            on_line=lines.append,
        )

        await process.wait()
        # Let the pumps drain
        for _ in range(20):
            if len(lines) == 2:
                break
            await asyncio.sleep(0.05)

        assert sorted(lines) == ["Permission denied", "ready"]
        assert process.running is False
        process.detach_output()

    async def test_terminate_graceful(self, launcher: ProcessLauncher) -> None:
        process = await launcher.spawn("sleeper", [PY, "-c", "import time; time.sleep(30)"])
        assert process.running

        graceful = await launcher.terminate(process, timeout=5.0)

        assert graceful is True
        assert process.running is False

    @pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM handlers are POSIX-only")
    async def test_terminate_escalates_to_kill(self, launcher: ProcessLauncher) -> None:
        script = (
            "import signal, sys, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "print('armed', flush=True)\n"
            "time.sleep(30)\n"
        )
        armed = asyncio.Event()
        process = await launcher.spawn(
            "stubborn",
            [PY, "-c", script],
            on_line=lambda line: armed.set() if line == "armed" else None,
        )
        await asyncio.wait_for(armed.wait(), timeout=10)

        graceful = await launcher.terminate(process, timeout=0.5)

        assert graceful is False
        assert process.running is False

    async def test_kill_tree(self, launcher: ProcessLauncher) -> None:
        process = await launcher.spawn("sleeper", [PY, "-c", "import time; time.sleep(30)"])

        await launcher.kill_tree(process, timeout=5.0)

        assert process.running is False

    async def test_terminate_exited_process_is_graceful(
        self, launcher: ProcessLauncher
    ) -> None:
        process = await launcher.spawn("quick", [PY, "-c", "pass"])
        await process.wait()

        assert await launcher.terminate(process, timeout=1.0) is True


class TestLifecycleLogging:
    """Spawn, relay and kill with every launcher log call enabled."""

    async def test_records_carry_process_fields(
        self, launcher: ProcessLauncher, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.DEBUG, logger="wpruntime.infra.process")
        script = "import time; print('mysqld: ready for connections', flush=True); time.sleep(30)"
        ready = asyncio.Event()
        process = await launcher.spawn(
            "mysqld",
            [PY, "-c", script],
            on_line=lambda line: ready.set(),
        )
        await asyncio.wait_for(ready.wait(), timeout=10)

        await launcher.kill_tree(process, timeout=5.0)

        assert process.running is False
        events = {getattr(r, "event", None): r for r in caplog.records}
        assert {
            LogEvent.PROCESS_SPAWNED,
            LogEvent.PROCESS_OUTPUT,
            LogEvent.PROCESS_KILLED,
            LogEvent.PROCESS_EXITED,
        } <= set(events)
        assert events[LogEvent.PROCESS_SPAWNED].process_name == "mysqld"
        assert events[LogEvent.PROCESS_OUTPUT].child_pid == process.pid
