"""Async subprocess access for the runtime.

All child processes (mysqld, mysql, php, wp, package managers) go through
ProcessLauncher so the supervisor and installers can be tested with a
mocked launcher.
"""

import asyncio
import logging
import os
import signal
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import psutil
from pydantic import BaseModel

from wpruntime.logging_schema import LogEvent

logger = logging.getLogger(__name__)

OutputHook = Callable[[str], None]


class CommandResult(BaseModel):
    """Outcome of a finished command."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        return f"{self.stdout}{self.stderr}"


class ManagedProcess:
    """A long-running child process with its output relayed to logging."""

    def __init__(self, name: str, process: asyncio.subprocess.Process) -> None:
        self.name = name
        self._process = process
        self._pumps: list[asyncio.Task[None]] = []

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    async def wait(self) -> int:
        return await self._process.wait()

    def attach_output(self, on_line: OutputHook | None = None) -> None:
        """Drain stdout/stderr so the child never blocks on a full pipe."""
        for stream in (self._process.stdout, self._process.stderr):
            if stream is not None:
                self._pumps.append(asyncio.create_task(self._pump(stream, on_line)))

    async def _pump(self, stream: asyncio.StreamReader, on_line: OutputHook | None) -> None:
        while True:
            raw = await stream.readline()
            if not raw:
                return
            line = raw.decode(errors="replace").rstrip()
            if not line:
                continue
            logger.debug(
                "%s: %s",
                self.name,
                line,
                extra={
                    "event": LogEvent.PROCESS_OUTPUT,
                    "process_name": self.name,
                    "child_pid": self.pid,
                },
            )
            if on_line is not None:
                on_line(line)

    def detach_output(self) -> None:
        for task in self._pumps:
            task.cancel()
        self._pumps.clear()


def _signal_tree(pid: int, force: bool) -> list[psutil.Process]:
    """Signal a process and all its descendants; return those signalled."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return []
    try:
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    signalled = []
    for proc in [*children, parent]:
        try:
            if force:
                proc.kill()
            else:
                proc.terminate()
            signalled.append(proc)
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.warning("Access denied signalling PID %d", proc.pid)
    return signalled


def _terminate_tree_blocking(pid: int, timeout: float) -> bool:
    """SIGTERM the tree, wait, then SIGKILL survivors. Returns True if graceful."""
    procs = _signal_tree(pid, force=False)
    if not procs:
        return True
    _, alive = psutil.wait_procs(procs, timeout=timeout)
    if not alive:
        return True
    for proc in alive:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            continue
    psutil.wait_procs(alive, timeout=timeout)
    return False


def _kill_tree_blocking(pid: int, timeout: float) -> None:
    procs = _signal_tree(pid, force=True)
    if procs:
        psutil.wait_procs(procs, timeout=timeout)


class ProcessLauncher:
    """Spawns and reaps child processes."""

    def __init__(self, base_env: Mapping[str, str] | None = None) -> None:
        self._base_env = dict(base_env) if base_env is not None else None

    def _env(self, env: Mapping[str, str] | None) -> dict[str, str]:
        merged = dict(self._base_env if self._base_env is not None else os.environ)
        if env:
            merged.update(env)
        return merged

    async def run(
        self,
        argv: Sequence[str | Path],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command to completion and capture its output.

        The child is killed and reaped if the command times out or the
        caller is cancelled.

        Raises:
            FileNotFoundError / PermissionError: The executable cannot be spawned.
            TimeoutError: The command exceeded timeout.
        """
        args = [str(a) for a in argv]
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd else None,
            env=self._env(env),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError:
            await self._discard(process)
            raise TimeoutError(f"Command timed out after {timeout}s: {args[0]}") from None
        except BaseException:
            await asyncio.shield(self._discard(process))
            raise

        return CommandResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

    @staticmethod
    async def _discard(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    async def spawn(
        self,
        name: str,
        argv: Sequence[str | Path],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        on_line: OutputHook | None = None,
    ) -> ManagedProcess:
        """Start a long-running process and relay its output to logging."""
        args = [str(a) for a in argv]
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd else None,
            env=self._env(env),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        managed = ManagedProcess(name, process)
        managed.attach_output(on_line)
        logger.info(
            "Spawned %s (pid %d)",
            name,
            process.pid,
            extra={
                "event": LogEvent.PROCESS_SPAWNED,
                "process_name": name,
                "child_pid": process.pid,
            },
        )
        return managed

    async def terminate(self, process: ManagedProcess, timeout: float) -> bool:
        """Gracefully terminate a process tree, escalating to kill.

        Returns:
            True if the tree exited after SIGTERM, False if it had to be killed.
        """
        if not process.running:
            process.detach_output()
            return True
        graceful = await asyncio.to_thread(_terminate_tree_blocking, process.pid, timeout)
        await self._reap(process, timeout)
        return graceful

    async def kill_tree(self, process: ManagedProcess, timeout: float = 5.0) -> None:
        """Forcefully kill a process and all of its descendants."""
        if process.running:
            await asyncio.to_thread(_kill_tree_blocking, process.pid, timeout)
            logger.warning(
                "Killed %s process tree (pid %d)",
                process.name,
                process.pid,
                extra={
                    "event": LogEvent.PROCESS_KILLED,
                    "process_name": process.name,
                    "child_pid": process.pid,
                },
            )
        await self._reap(process, timeout)

    async def _reap(self, process: ManagedProcess, timeout: float) -> None:
        try:
            code = await asyncio.wait_for(process.wait(), timeout=timeout)
        except TimeoutError:
            # psutil could not see the process (e.g. permissions); last resort.
            try:
                os.kill(process.pid, signal.SIGKILL if hasattr(signal, "SIGKILL") else signal.SIGTERM)
            except ProcessLookupError:
                pass
            code = await process.wait()
        finally:
            process.detach_output()
        logger.info(
            "%s exited with code %s",
            process.name,
            code,
            extra={
                "event": LogEvent.PROCESS_EXITED,
                "process_name": process.name,
                "exit_code": code,
            },
        )
