"""Per-app data directory and configuration files."""

import logging
import secrets
import shutil
from pathlib import Path

from wpruntime.config import DatabaseConfig, InterpreterConfig, LayoutConfig
from wpruntime.logging_schema import LogEvent

logger = logging.getLogger(__name__)

SALT_ALPHABET = (
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    "!@#$%^&*()-_=+[]{}|;:,.<>?"
)
SALT_LENGTH = 64
SALT_NAMES = (
    "AUTH_KEY",
    "SECURE_AUTH_KEY",
    "LOGGED_IN_KEY",
    "NONCE_KEY",
    "AUTH_SALT",
    "SECURE_AUTH_SALT",
    "LOGGED_IN_SALT",
    "NONCE_SALT",
)


def generate_salt(length: int = SALT_LENGTH) -> str:
    return "".join(secrets.choice(SALT_ALPHABET) for _ in range(length))


class AppLayout:
    """Paths of one app's runtime files."""

    def __init__(self, app_path: Path, config: LayoutConfig) -> None:
        self.root = Path(app_path)
        self._config = config

    @property
    def runtime_dir(self) -> Path:
        return self.root / self._config.runtime_dir

    @property
    def data_dir(self) -> Path:
        return self.runtime_dir / self._config.database_dir

    @property
    def interpreter_ini(self) -> Path:
        return self.runtime_dir / self._config.interpreter_ini

    @property
    def error_log(self) -> Path:
        return self.runtime_dir / self._config.error_log

    @property
    def sessions_dir(self) -> Path:
        return self.runtime_dir / self._config.sessions_dir

    @property
    def content_root(self) -> Path:
        return self.root / self._config.content_dir

    @property
    def app_config(self) -> Path:
        return self.root / self._config.app_config


class Provisioner:
    """Creates data directories and writes wp-config.php / php.ini."""

    def __init__(
        self,
        layout: LayoutConfig,
        database: DatabaseConfig,
        interpreter: InterpreterConfig,
    ) -> None:
        self._layout = layout
        self._database = database
        self._interpreter = interpreter

    def layout(self, app_path: Path) -> AppLayout:
        return AppLayout(app_path, self._layout)

    def initialize_data_directory(self, app_path: Path) -> bool:
        """Create the MySQL data directory if absent.

        Returns:
            True if the directory was created, False if it already existed.
            Existing directories are never touched.
        """
        data_dir = self.layout(app_path).data_dir
        if data_dir.exists():
            return False
        data_dir.mkdir(parents=True)
        logger.info("Initialized MySQL data directory at %s", data_dir)
        return True

    def reset_data_directory(self, app_path: Path) -> None:
        """Wipe a partially initialized data directory and recreate it empty."""
        data_dir = self.layout(app_path).data_dir
        shutil.rmtree(data_dir, ignore_errors=True)
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Reset MySQL data directory at %s", data_dir)

    def remove_data_directory(self, app_path: Path) -> None:
        """Remove a data directory whose initialization never completed."""
        data_dir = self.layout(app_path).data_dir
        shutil.rmtree(data_dir, ignore_errors=True)
        logger.info("Removed MySQL data directory at %s", data_dir)

    def write_app_config(self, app_path: Path, database_port: int) -> bool:
        """Write wp-config.php unless one exists.

        Returns:
            True if written, False if an existing file was left untouched.
        """
        layout = self.layout(app_path)
        target = layout.app_config
        if target.exists():
            return False

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.render_app_config(database_port), encoding="utf-8")
        logger.info(
            "Created wp-config.php at %s",
            target,
            extra={"event": LogEvent.CONFIG_WRITTEN, "path": str(target)},
        )
        return True

    def render_app_config(self, database_port: int) -> str:
        db = self._database
        salts = "\n".join(
            f"define( '{name}', {' ' * (16 - len(name))}'{generate_salt()}' );"
            for name in SALT_NAMES
        )
        return f"""<?php
/**
 * WordPress configuration file generated by wp-runtime
 */

// Database settings
define( 'DB_NAME', '{db.name}' );
define( 'DB_USER', '{db.user}' );
define( 'DB_PASSWORD', '{db.password}' );
define( 'DB_HOST', '127.0.0.1:{database_port}' );
define( 'DB_CHARSET', 'utf8mb4' );
define( 'DB_COLLATE', '' );

// Authentication keys and salts
{salts}

// WordPress database table prefix
$table_prefix = '{self._layout.table_prefix}';

// WordPress debugging
define( 'WP_DEBUG', true );
define( 'WP_DEBUG_LOG', true );
define( 'WP_DEBUG_DISPLAY', false );

// Absolute path to the WordPress directory
if ( ! defined( 'ABSPATH' ) ) {{
    define( 'ABSPATH', __DIR__ . '/{self._layout.content_dir}/' );
}}

// Sets up WordPress vars and included files
require_once ABSPATH . 'wp-settings.php';
"""

    def write_interpreter_config(
        self,
        app_path: Path,
        interpreter_port: int,
        interpreter_path: Path,
    ) -> Path:
        """Always (re)write php.ini and make sure the sessions dir exists."""
        layout = self.layout(app_path)
        layout.runtime_dir.mkdir(parents=True, exist_ok=True)
        layout.sessions_dir.mkdir(parents=True, exist_ok=True)

        ini = self.render_interpreter_config(layout, interpreter_port, interpreter_path)
        layout.interpreter_ini.write_text(ini, encoding="utf-8")
        logger.info(
            "Created PHP configuration at %s",
            layout.interpreter_ini,
            extra={"event": LogEvent.CONFIG_WRITTEN, "path": str(layout.interpreter_ini)},
        )
        return layout.interpreter_ini

    def render_interpreter_config(
        self,
        layout: AppLayout,
        interpreter_port: int,
        interpreter_path: Path,
    ) -> str:
        php = self._interpreter
        extensions = "\n".join(f"extension={ext}" for ext in php.extensions)
        extension_dir = Path(interpreter_path).parent / "ext"
        return f"""[PHP]
; wp-runtime PHP configuration (regenerated on every start)

; Basic settings
max_execution_time = {php.max_execution_time}
max_input_time = {php.max_execution_time}
memory_limit = {php.memory_limit}
post_max_size = {php.post_max_size}
upload_max_filesize = {php.upload_max_filesize}

; Error reporting
error_reporting = E_ALL
display_errors = On
display_startup_errors = On
log_errors = On
error_log = {layout.error_log}

; Extensions
extension_dir = "{extension_dir}"
{extensions}

; Session settings
session.save_path = "{layout.sessions_dir}"

; Date settings
date.timezone = "{php.timezone}"

; Development server settings
cli_server.host = 127.0.0.1
cli_server.port = {interpreter_port}
"""

    def ensure_content_root(self, app_path: Path) -> Path:
        content_root = self.layout(app_path).content_root
        content_root.mkdir(parents=True, exist_ok=True)
        return content_root
