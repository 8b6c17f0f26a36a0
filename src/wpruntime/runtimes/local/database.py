"""MySQL client operations against a local mysqld."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from wpruntime.errors import AuthAdjustmentError, DatabaseCreationError
from wpruntime.infra.process import CommandResult, ProcessLauncher
from wpruntime.logging_schema import LogEvent

if TYPE_CHECKING:
    from wpruntime.config import DatabaseConfig
    from wpruntime.core.compat import CompatibilityProfile

logger = logging.getLogger(__name__)

HOST = "127.0.0.1"


class DatabaseClient:
    """Runs statements through the mysql command-line client."""

    def __init__(
        self,
        config: DatabaseConfig,
        launcher: ProcessLauncher,
    ) -> None:
        self._config = config
        self._launcher = launcher

    def _argv(self, client_path: Path, port: int, sql: str, database: str | None = None) -> list:
        argv: list = [client_path, "-h", HOST, "-P", str(port), "-u", self._config.user]
        if self._config.password:
            argv.append(f"--password={self._config.password}")
        if database:
            argv.append(database)
        argv.extend(["-e", sql])
        return argv

    async def execute(
        self,
        client_path: Path,
        port: int,
        sql: str,
        database: str | None = None,
    ) -> CommandResult:
        return await self._launcher.run(
            self._argv(client_path, port, sql, database),
            timeout=self._config.command_timeout,
        )

    async def ping(self, client_path: Path, port: int) -> bool:
        """True if the server answers a trivial query."""
        try:
            result = await self.execute(client_path, port, "SELECT 1")
        except (OSError, TimeoutError):
            return False
        return result.ok

    async def create_database(self, client_path: Path, port: int) -> None:
        name = self._config.name
        sql = (
            f"CREATE DATABASE IF NOT EXISTS `{name}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        try:
            result = await self.execute(client_path, port, sql)
        except (OSError, TimeoutError) as e:
            raise DatabaseCreationError(f"Failed to create WordPress database: {e}") from e
        if not result.ok:
            raise DatabaseCreationError(
                f"Failed to create WordPress database: {result.stderr.strip()}"
            )
        logger.info(
            "WordPress database created successfully",
            extra={"event": LogEvent.DATABASE_CREATED, "database": name, "port": port},
        )

    async def adjust_auth(
        self,
        client_path: Path,
        port: int,
        profile: CompatibilityProfile,
    ) -> None:
        """Switch the default account to mysql_native_password.

        Servers newer than 8.0 may lack the plugin; a dedicated account is
        tried before giving up.

        Raises:
            AuthAdjustmentError: Neither adjustment succeeded.
        """
        version = profile.version
        if version is None or not profile.adjust_auth:
            logger.info("No authentication adjustments needed (%s)", profile.description)
            return

        user = self._config.user
        password = self._config.password
        alter = (
            f"ALTER USER '{user}'@'localhost' IDENTIFIED WITH mysql_native_password "
            f"BY '{password}'; FLUSH PRIVILEGES;"
        )
        result = await self._try(client_path, port, alter)
        if result:
            logger.info(
                "MySQL %d.%d root user authentication method updated for WordPress compatibility",
                version.major,
                version.minor,
                extra={"event": LogEvent.DATABASE_AUTH_ADJUSTED, "account": user},
            )
            return

        if not version.at_least(8, 1):
            raise AuthAdjustmentError("Failed to update MySQL root user authentication method")

        logger.info("Trying alternative authentication setup for newer MySQL version")
        fallback = self._config.fallback_user
        create = (
            f"CREATE USER IF NOT EXISTS '{fallback}'@'localhost' IDENTIFIED WITH "
            f"mysql_native_password BY '{password}'; "
            f"GRANT ALL PRIVILEGES ON `{self._config.name}`.* TO '{fallback}'@'localhost'; "
            "FLUSH PRIVILEGES;"
        )
        if await self._try(client_path, port, create):
            logger.info(
                "Created dedicated WordPress user with mysql_native_password authentication",
                extra={"event": LogEvent.DATABASE_AUTH_ADJUSTED, "account": fallback},
            )
            return

        raise AuthAdjustmentError("Failed to create WordPress user, continuing with root user")

    async def _try(self, client_path: Path, port: int, sql: str) -> bool:
        try:
            result = await self.execute(client_path, port, sql)
        except (OSError, TimeoutError) as e:
            logger.debug("Statement failed: %s", e)
            return False
        if not result.ok:
            logger.debug("Statement failed: %s", result.stderr.strip())
        return result.ok

    async def shutdown(self, client_path: Path, port: int) -> bool:
        """Ask the server to shut down; True if the command was accepted."""
        try:
            result = await self.execute(client_path, port, "SHUTDOWN;")
        except (OSError, TimeoutError) as e:
            logger.warning("MySQL shutdown command failed: %s", e)
            return False
        return result.ok
