"""Process supervisor: one PHP + MySQL process pair per app."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from wpruntime.core.binaries import BinaryCheck, BinaryKind, BinaryLocator, current_platform
from wpruntime.core.compat import CompatibilityProfile, ProcessIdentity
from wpruntime.core.ports import InstancePorts, PortAllocator
from wpruntime.core.provision import AppLayout, Provisioner
from wpruntime.core.retry import with_cleanup_retry
from wpruntime.core.version import detect_version
from wpruntime.errors import (
    AuthAdjustmentError,
    BinaryMissingError,
    CommandFailedError,
    InitializationError,
    InstanceNotRunningError,
    PortExhaustionError,
    ShutdownTimeoutError,
    StartupTimeoutError,
    WPRuntimeError,
)
from wpruntime.infra.process import CommandResult, ProcessLauncher
from wpruntime.logging_schema import LogEvent
from wpruntime.metrics import (
    WPRT_FORCED_KILLS,
    WPRT_INSTANCES_RUNNING,
    WPRT_START_DURATION,
    WPRT_START_FAILURES,
)
from wpruntime.runtimes.local.database import DatabaseClient
from wpruntime.runtimes.local.instance import (
    InstanceRegistry,
    InstanceState,
    ManagedInstance,
    ResolvedBinaries,
)
from wpruntime.runtimes.local.lock import AppLocks

if TYPE_CHECKING:
    from wpruntime.config import RuntimeSettings
    from wpruntime.installer import DependencyManager, InstallationResult
    from wpruntime.installer.prompt import InstallPrompt

logger = logging.getLogger(__name__)

ContentProvisioner = Callable[[Path], Awaitable[None]]

REQUIRED_KINDS: tuple[BinaryKind, ...] = (
    BinaryKind.INTERPRETER,
    BinaryKind.DATABASE_SERVER,
    BinaryKind.DATABASE_CLIENT,
)

# mysqld stderr fragments worth surfacing above DEBUG
_DATABASE_DIAGNOSTICS = (
    ("Permission denied", "MySQL permission error - check file permissions in: %(data_dir)s"),
    ("Another process with pid", "MySQL already running - port conflict on: %(port)s"),
    ("Can't create/write to file", "MySQL cannot write to data directory: %(data_dir)s"),
)


class ProcessSupervisor:
    """Starts, tracks and stops WordPress instances.

    Operations for one app_id are serialized by a per-app lock; different
    apps proceed concurrently. Bring-up is all-or-nothing: any failure before
    RUNNING kills whatever was spawned and leaves no registry entry.
    """

    def __init__(
        self,
        settings: RuntimeSettings,
        launcher: ProcessLauncher | None = None,
        locator: BinaryLocator | None = None,
        ports: PortAllocator | None = None,
        provisioner: Provisioner | None = None,
        database: DatabaseClient | None = None,
        dependencies: DependencyManager | None = None,
        content_provisioner: ContentProvisioner | None = None,
        platform: str | None = None,
        identity: ProcessIdentity | None = None,
    ) -> None:
        self._settings = settings
        self._launcher = launcher or ProcessLauncher()
        self._locator = locator or BinaryLocator(settings.binaries)
        self._ports = ports or PortAllocator(settings.ports)
        self._provisioner = provisioner or Provisioner(
            settings.layout, settings.database, settings.interpreter
        )
        self._database = database or DatabaseClient(settings.database, self._launcher)
        self._dependencies = dependencies
        self._content_provisioner = content_provisioner
        self._platform = platform or current_platform()
        self._identity = identity

        self._registry = InstanceRegistry()
        self._locks = AppLocks()
        self._states: dict[str, InstanceState] = {}

    # =========================================================================
    # Read accessors
    # =========================================================================

    def is_running(self, app_id: str) -> bool:
        return app_id in self._registry

    def get_running_processes(self) -> dict[str, InstancePorts]:
        return self._registry.ports()

    def get_state(self, app_id: str) -> InstanceState:
        return self._states.get(app_id, InstanceState.ABSENT)

    def check_binaries(self) -> BinaryCheck:
        return self._locator.check()

    # =========================================================================
    # start
    # =========================================================================

    async def start(self, app_id: str, app_path: Path | str) -> InstancePorts:
        """Bring up MySQL and PHP for an app and return their ports.

        Idempotent: a running app returns its existing ports.

        Raises:
            BinaryMissingError, PortExhaustionError, InitializationError,
            SuperuserRefusedError, StartupTimeoutError, DatabaseCreationError
        """
        async with self._locks.hold(app_id):
            existing = self._registry.get(app_id)
            if existing is not None and existing.ports is not None:
                if existing.alive:
                    logger.info(
                        "WordPress already running for %s on ports PHP:%d, MySQL:%d",
                        app_id,
                        existing.ports.interpreter_port,
                        existing.ports.database_port,
                        extra={"event": LogEvent.INSTANCE_STARTED, "app_id": app_id, "status": "already_running"},
                    )
                    return existing.ports
                logger.warning("Registered processes for %s have exited, restarting", app_id)
                await self._stop_locked(app_id)

            layout = self._provisioner.layout(Path(app_path))
            instance = ManagedInstance(app_id, layout)
            logger.info("Starting WordPress for app %s at %s", app_id, layout.root)
            started = time.monotonic()

            try:
                ports = await self._bring_up(instance)
            except BaseException as exc:
                code = exc.code.value if isinstance(exc, WPRuntimeError) else "unexpected"
                WPRT_START_FAILURES.labels(error_code=code).inc()
                logger.error(
                    "Failed to start WordPress for %s: %s",
                    app_id,
                    exc,
                    extra={"event": LogEvent.INSTANCE_START_FAILED, "app_id": app_id, "error_code": code},
                )
                await self._rollback(instance)
                raise

            WPRT_START_DURATION.observe(time.monotonic() - started)
            return ports

    async def _bring_up(self, instance: ManagedInstance) -> InstancePorts:
        app_id = instance.app_id
        layout = instance.layout
        self._set_state(app_id, InstanceState.INITIALIZING)

        binaries = await self._ensure_binaries()
        instance.binaries = binaries

        ports = self._ports.allocate_pair()
        instance.ports = ports
        for port in (ports.interpreter_port, ports.database_port):
            if not self._ports.is_free(port):
                raise PortExhaustionError(f"Port {port} was taken before it could be used")

        version = await detect_version(
            self._launcher,
            binaries.database_server,
            timeout=self._settings.database.version_timeout,
        )
        profile = CompatibilityProfile.build(
            self._platform, version, self._identity or ProcessIdentity.current()
        )
        logger.info(profile.description)
        profile.ensure_permitted()

        if not layout.data_dir.exists():
            logger.info("MySQL data directory does not exist at %s. Initializing...", layout.data_dir)
            self._provisioner.initialize_data_directory(layout.root)
            try:
                await with_cleanup_retry(
                    lambda: self._initialize_database(binaries.database_server, layout, profile),
                    cleanup=lambda: self._provisioner.reset_data_directory(layout.root),
                    retries=1 if profile.retry_initialization else 0,
                    retry_on=(InitializationError,),
                )
            except BaseException:
                # Next start skips initialization whenever the directory exists
                self._provisioner.remove_data_directory(layout.root)
                raise

        self._set_state(app_id, InstanceState.DATABASE_STARTING)
        instance.database_process = await self._launcher.spawn(
            "mysqld",
            [binaries.database_server, *profile.server_args(layout.data_dir, ports.database_port)],
            cwd=layout.root,
            on_line=self._database_diagnostics(layout, ports.database_port),
        )
        await self._wait_for_database(instance)
        self._set_state(app_id, InstanceState.DATABASE_READY)

        await self._database.create_database(binaries.database_client, ports.database_port)
        try:
            await self._database.adjust_auth(binaries.database_client, ports.database_port, profile)
        except AuthAdjustmentError as e:
            logger.warning(
                "%s; WordPress may still work with default authentication",
                e.message,
                extra={"event": LogEvent.DATABASE_AUTH_FAILED, "app_id": app_id},
            )

        self._set_state(app_id, InstanceState.CONFIGURING_APP)
        self._provisioner.write_app_config(layout.root, ports.database_port)
        self._provisioner.write_interpreter_config(
            layout.root, ports.interpreter_port, binaries.interpreter
        )
        await self._prepare_content_root(layout)

        self._set_state(app_id, InstanceState.INTERPRETER_STARTING)
        await self._start_interpreter(instance)

        self._registry.insert(instance)
        self._set_state(app_id, InstanceState.RUNNING)
        WPRT_INSTANCES_RUNNING.set(len(self._registry))
        logger.info(
            "WordPress started successfully for %s - PHP:%d, MySQL:%d",
            app_id,
            ports.interpreter_port,
            ports.database_port,
            extra={
                "event": LogEvent.INSTANCE_STARTED,
                "app_id": app_id,
                "interpreter_port": ports.interpreter_port,
                "database_port": ports.database_port,
            },
        )
        return ports

    async def _ensure_binaries(self) -> ResolvedBinaries:
        resolved = self._locator.resolve_all(REQUIRED_KINDS)
        missing = [kind for kind, path in resolved.items() if path is None]

        if missing and self._dependencies is not None and self._settings.installer.auto_install:
            logger.info("Attempting to auto-install missing WordPress dependencies...")
            await self._dependencies.ensure_installed()
            resolved = self._locator.resolve_all(REQUIRED_KINDS)
            missing = [kind for kind, path in resolved.items() if path is None]

        if missing:
            raise BinaryMissingError([kind.value for kind in missing])

        return ResolvedBinaries(
            interpreter=resolved[BinaryKind.INTERPRETER],
            database_server=resolved[BinaryKind.DATABASE_SERVER],
            database_client=resolved[BinaryKind.DATABASE_CLIENT],
        )

    async def _initialize_database(
        self,
        server: Path,
        layout: AppLayout,
        profile: CompatibilityProfile,
    ) -> None:
        timeout = self._settings.database.init_timeout
        try:
            result = await self._launcher.run(
                [server, *profile.initialize_args(layout.data_dir)],
                cwd=layout.root,
                timeout=timeout,
            )
        except TimeoutError as e:
            raise InitializationError(
                f"MySQL initialization timed out after {timeout:g} seconds"
            ) from e
        except OSError as e:
            raise InitializationError(f"Failed to start MySQL initialization: {e}") from e

        if not result.ok:
            logger.error("MySQL init output: %s", result.stdout.strip())
            raise InitializationError(
                f"MySQL initialization failed with code {result.exit_code}: {result.stderr.strip()}"
            )
        logger.info(
            "MySQL initialized successfully",
            extra={"event": LogEvent.DATABASE_INITIALIZED, "data_dir": str(layout.data_dir)},
        )

    def _database_diagnostics(self, layout: AppLayout, port: int) -> Callable[[str], None]:
        context = {"data_dir": layout.data_dir, "port": port}

        def on_line(line: str) -> None:
            for fragment, message in _DATABASE_DIAGNOSTICS:
                if fragment in line:
                    logger.error(message, context)

        return on_line

    async def _wait_for_database(self, instance: ManagedInstance) -> None:
        config = self._settings.database
        port = instance.ports.database_port
        client = instance.binaries.database_client

        logger.info(
            "Waiting for MySQL to start on port %d (up to %g seconds)...",
            port,
            config.ready_timeout,
        )
        try:
            await asyncio.wait_for(
                self._poll_database(instance, client, port), timeout=config.ready_timeout
            )
        except TimeoutError:
            raise StartupTimeoutError(
                f"MySQL failed to start within {config.ready_timeout:g} seconds on port {port}"
            ) from None

    async def _poll_database(self, instance: ManagedInstance, client: Path, port: int) -> None:
        process = instance.database_process
        attempt = 0
        while True:
            if not process.running:
                raise StartupTimeoutError(
                    f"MySQL exited with code {process.returncode} before accepting "
                    f"connections on port {port}"
                )
            if await self._database.ping(client, port):
                logger.info(
                    "MySQL is ready",
                    extra={"event": LogEvent.DATABASE_READY, "app_id": instance.app_id, "port": port},
                )
                return

            attempt += 1
            if attempt % 5 == 0:
                logger.info("Still waiting for MySQL... (%d attempts)", attempt)
            await asyncio.sleep(self._settings.database.poll_interval)

    async def _prepare_content_root(self, layout: AppLayout) -> None:
        self._provisioner.ensure_content_root(layout.root)
        if self._content_provisioner is None:
            return
        try:
            await self._content_provisioner(layout.root)
        except Exception:
            # Directory presence is the only gate for serving.
            logger.exception("Content provisioning failed for %s", layout.root)

    async def _start_interpreter(self, instance: ManagedInstance) -> None:
        layout = instance.layout
        port = instance.ports.interpreter_port
        logger.info("Starting PHP server on port %d...", port)

        instance.interpreter_process = await self._launcher.spawn(
            "php",
            [
                instance.binaries.interpreter,
                "-c",
                layout.interpreter_ini,
                "-S",
                f"127.0.0.1:{port}",
                "-t",
                layout.content_root,
            ],
            cwd=layout.content_root,
        )

        # The built-in server has no readiness probe
        await asyncio.sleep(self._settings.interpreter.startup_grace)
        process = instance.interpreter_process
        if not process.running:
            raise StartupTimeoutError(
                f"PHP server exited with code {process.returncode} during startup on port {port}"
            )

    async def _rollback(self, instance: ManagedInstance) -> None:
        try:
            await self._teardown(instance)
        finally:
            if instance.ports is not None:
                self._ports.release(instance.ports.interpreter_port, instance.ports.database_port)
            self._set_state(instance.app_id, InstanceState.ABSENT)
            logger.info(
                "Rolled back WordPress start for %s",
                instance.app_id,
                extra={"event": LogEvent.INSTANCE_ROLLED_BACK, "app_id": instance.app_id},
            )

    # =========================================================================
    # stop
    # =========================================================================

    async def stop(self, app_id: str) -> None:
        """Stop an app's processes. No-op for unknown apps; never raises."""
        async with self._locks.hold(app_id):
            await self._stop_locked(app_id)

    async def _stop_locked(self, app_id: str) -> None:
        instance = self._registry.get(app_id)
        if instance is None:
            logger.info("No WordPress processes found for app %s", app_id)
            return

        logger.info("Stopping WordPress for app %s", app_id)
        self._set_state(app_id, InstanceState.STOPPING)
        try:
            await self._teardown(instance)
        except Exception:
            logger.exception("Error stopping WordPress for %s", app_id)
        finally:
            self._registry.remove(app_id)
            if instance.ports is not None:
                self._ports.release(instance.ports.interpreter_port, instance.ports.database_port)
            self._set_state(app_id, InstanceState.ABSENT)
            WPRT_INSTANCES_RUNNING.set(len(self._registry))
            logger.info(
                "WordPress stopped for %s",
                app_id,
                extra={"event": LogEvent.INSTANCE_STOPPED, "app_id": app_id},
            )

    async def stop_all(self) -> None:
        """Stop every instance concurrently; one failure never blocks the rest."""
        logger.info("Stopping all WordPress processes...")
        app_ids = self._registry.app_ids()
        results = await asyncio.gather(
            *(self.stop(app_id) for app_id in app_ids),
            return_exceptions=True,
        )
        for app_id, result in zip(app_ids, results):
            if isinstance(result, BaseException):
                logger.error("Error stopping WordPress for %s: %s", app_id, result)
        self._registry.clear()
        WPRT_INSTANCES_RUNNING.set(0)

    async def _teardown(self, instance: ManagedInstance) -> None:
        """Stop PHP, then MySQL. Each path is attempted even if the other fails."""
        if instance.interpreter_process is not None:
            try:
                graceful = await self._launcher.terminate(
                    instance.interpreter_process,
                    timeout=self._settings.interpreter.stop_timeout,
                )
                if not graceful:
                    WPRT_FORCED_KILLS.labels(process="interpreter").inc()
                logger.info("PHP server stopped")
            except Exception:
                logger.exception("Error stopping PHP")

        if instance.database_process is not None:
            try:
                await self._stop_database(instance)
                logger.info("MySQL server stopped")
            except Exception:
                logger.exception("Error stopping MySQL")

    async def _stop_database(self, instance: ManagedInstance) -> None:
        process = instance.database_process
        if not process.running:
            await self._launcher.kill_tree(process)
            return

        timeout = self._settings.database.shutdown_timeout
        try:
            await asyncio.wait_for(self._graceful_database_shutdown(instance), timeout=timeout)
        except (TimeoutError, ShutdownTimeoutError) as e:
            logger.warning(
                "MySQL did not shut down gracefully (%s), killing process tree",
                str(e) or f"timed out after {timeout:g}s",
                extra={"event": LogEvent.DATABASE_SHUTDOWN_TIMEOUT, "app_id": instance.app_id},
            )
            WPRT_FORCED_KILLS.labels(process="database").inc()
            await self._launcher.kill_tree(process)

    async def _graceful_database_shutdown(self, instance: ManagedInstance) -> None:
        process = instance.database_process
        client = instance.binaries.database_client if instance.binaries else None
        if client is None or instance.ports is None:
            raise ShutdownTimeoutError("No client available for graceful shutdown")
        accepted = await self._database.shutdown(client, instance.ports.database_port)
        if not accepted:
            raise ShutdownTimeoutError("MySQL rejected the SHUTDOWN command")
        await process.wait()
        process.detach_output()

    # =========================================================================
    # Relayed commands
    # =========================================================================

    async def run_cli(self, app_id: str, args: Sequence[str]) -> CommandResult:
        """Run WP-CLI in the app's content root and relay its result."""
        instance = self._require_running(app_id)
        cli = self._locator.resolve(BinaryKind.CLI_TOOL)
        if cli is None:
            raise BinaryMissingError([BinaryKind.CLI_TOOL.value])

        logger.info("Executing WP-CLI command for app %s: %s", app_id, " ".join(args))
        try:
            return await self._launcher.run(
                [cli, *args],
                cwd=instance.layout.content_root,
                env={"WP_CLI_PHP": str(instance.binaries.interpreter)},
                timeout=self._settings.interpreter.cli_timeout,
            )
        except (OSError, TimeoutError) as e:
            raise CommandFailedError(f"Failed to execute WP-CLI: {e}") from e

    async def run_query(self, app_id: str, sql: str) -> CommandResult:
        """Run SQL against the app's database and relay the client result."""
        instance = self._require_running(app_id)
        logger.info("Executing MySQL query for app %s", app_id)
        try:
            return await self._database.execute(
                instance.binaries.database_client,
                instance.ports.database_port,
                sql,
                database=self._settings.database.name,
            )
        except (OSError, TimeoutError) as e:
            raise CommandFailedError(f"Failed to execute MySQL: {e}") from e

    def _require_running(self, app_id: str) -> ManagedInstance:
        instance = self._registry.get(app_id)
        if instance is None:
            raise InstanceNotRunningError()
        return instance

    # =========================================================================
    # Dependencies
    # =========================================================================

    async def install_dependencies(self, prompt: InstallPrompt | None = None) -> InstallationResult:
        if self._dependencies is None:
            raise RuntimeError("No dependency manager configured")
        return await self._dependencies.ensure_installed(prompt=prompt)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _set_state(self, app_id: str, state: InstanceState) -> None:
        if state is InstanceState.ABSENT:
            self._states.pop(app_id, None)
        else:
            self._states[app_id] = state
        logger.debug(
            "%s -> %s",
            app_id,
            state.value,
            extra={"event": LogEvent.INSTANCE_STATE, "app_id": app_id, "state": state.value},
        )


__all__ = ["ContentProvisioner", "ProcessSupervisor", "REQUIRED_KINDS"]
