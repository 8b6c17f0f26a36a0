"""Runtime configuration using pydantic-settings.

Configuration hierarchy:
- PortConfig: Port allocation defaults and attempt budget
- DatabaseConfig: MySQL credentials, timeouts and readiness polling
- InterpreterConfig: PHP built-in server and php.ini settings
- LayoutConfig: Per-app on-disk layout
- BinaryConfig: Binary resolution (portable, PATH, bundled)
- InstallerConfig: Dependency installation sources and policy
- LoggingConfig: Logging behavior
- ServerConfig: HTTP service settings
- RuntimeSettings: Main config aggregating all sub-configs

Environment variable prefix: WPRT_
Example: WPRT_DATABASE_READY_TIMEOUT=90
"""

import os
import sys
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR_NAME = "wpruntime"


def default_user_data_dir() -> Path:
    """Per-user application data directory for the current platform."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(base) / APP_DIR_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    base = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / APP_DIR_NAME


class PortConfig(BaseSettings):
    """Port allocation configuration."""

    model_config = SettingsConfigDict(env_prefix="WPRT_PORTS_")

    host: str = Field(default="127.0.0.1", description="Loopback address used for bind probes")
    interpreter_default: int = Field(default=8080, description="Preferred PHP server port")
    database_default: int = Field(default=3306, description="Preferred MySQL port")
    window: int = Field(default=1000, description="Random search window above the preferred port")
    attempts: int = Field(default=3, description="Random candidates tried before giving up")


class DatabaseConfig(BaseSettings):
    """MySQL server configuration.

    Timeouts are ceilings, not expectations: a cold mysqld on a laptop
    commonly needs 5-20s before it accepts connections.
    """

    model_config = SettingsConfigDict(env_prefix="WPRT_DATABASE_")

    name: str = Field(default="wordpress", description="Database created for each app")
    user: str = Field(default="root", description="Account used by WordPress and the client")
    password: str = Field(default="", description="Account password (empty, see DESIGN.md)")
    fallback_user: str = Field(
        default="wordpress",
        description="Dedicated account created when root cannot be adjusted",
    )

    init_timeout: float = Field(default=60.0, description="--initialize-insecure timeout (seconds)")
    ready_timeout: float = Field(default=60.0, description="Readiness polling ceiling (seconds)")
    poll_interval: float = Field(default=1.0, description="Readiness probe interval (seconds)")
    shutdown_timeout: float = Field(default=5.0, description="Graceful SHUTDOWN wait (seconds)")
    command_timeout: float = Field(default=30.0, description="Client command timeout (seconds)")
    version_timeout: float = Field(default=10.0, description="mysqld --version timeout (seconds)")


class InterpreterConfig(BaseSettings):
    """PHP built-in server configuration."""

    model_config = SettingsConfigDict(env_prefix="WPRT_INTERPRETER_")

    startup_grace: float = Field(default=1.0, description="Delay before PHP is considered started")
    cli_timeout: float = Field(default=300.0, description="WP-CLI command timeout (seconds)")
    stop_timeout: float = Field(default=5.0, description="SIGTERM wait before kill (seconds)")

    memory_limit: str = "256M"
    max_execution_time: int = 300
    upload_max_filesize: str = "64M"
    post_max_size: str = "64M"
    timezone: str = "UTC"
    extensions: list[str] = Field(
        default=[
            "curl",
            "fileinfo",
            "gd",
            "mbstring",
            "mysqli",
            "openssl",
            "pdo",
            "pdo_mysql",
            "zip",
        ],
        description="Extensions enabled in the generated php.ini",
    )


class LayoutConfig(BaseSettings):
    """Per-app on-disk layout.

    <app>/wp-config.php
    <app>/.wordpress-data/mysql/
    <app>/.wordpress-data/php.ini
    <app>/.wordpress-data/sessions/
    <app>/wordpress/
    """

    model_config = SettingsConfigDict(env_prefix="WPRT_LAYOUT_")

    runtime_dir: str = ".wordpress-data"
    database_dir: str = "mysql"
    interpreter_ini: str = "php.ini"
    error_log: str = "php-error.log"
    sessions_dir: str = "sessions"
    content_dir: str = "wordpress"
    app_config: str = "wp-config.php"
    table_prefix: str = "wp_"


class BinaryConfig(BaseSettings):
    """Binary resolution configuration."""

    model_config = SettingsConfigDict(env_prefix="WPRT_BINARIES_")

    packaged: bool = Field(
        default=False,
        description="Packaged build: skip the system PATH tier",
    )
    resources_dir: Path = Field(
        default=Path(__file__).resolve().parent.parent.parent / "extraResources",
        description="Directory holding wordpress-runtime/<platform>-<arch>/",
    )
    user_data_dir: Path = Field(
        default_factory=default_user_data_dir,
        description="Per-user directory for portable installs and app registry",
    )


class InstallerConfig(BaseSettings):
    """Dependency installer configuration."""

    model_config = SettingsConfigDict(env_prefix="WPRT_INSTALLER_")

    auto_install: bool = Field(
        default=False,
        description="Attempt installation from start() when binaries are missing",
    )
    install_on_startup: bool = Field(
        default=False,
        description="Attempt installation when the service starts",
    )
    download_timeout: float = Field(default=300.0, description="Download timeout (seconds)")
    command_timeout: float = Field(
        default=1800.0,
        description="Package manager command timeout (seconds)",
    )

    windows_php_url: str = (
        "https://windows.php.net/downloads/releases/php-8.2.13-nts-Win32-vs16-x64.zip"
    )
    windows_mysql_url: str = (
        "https://dev.mysql.com/get/Downloads/MySQL-8.0/mysql-8.0.35-winx64.zip"
    )
    cli_tool_url: str = (
        "https://github.com/wp-cli/wp-cli/releases/download/v2.10.0/wp-cli-2.10.0.phar"
    )
    homebrew_install_url: str = (
        "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
    )
    chocolatey_install_url: str = "https://community.chocolatey.org/install.ps1"

    linux_bin_dir: Path = Field(
        default=Path.home() / ".local" / "bin",
        description="Where the CLI tool is placed on Linux",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Supports both text and JSON formats for different environments:
    - text: Human-readable for local development
    - json: Structured logging for production (log aggregation)
    """

    model_config = SettingsConfigDict(env_prefix="WPRT_LOGGING_")

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="text", description="Log format (text, json)")
    service_name: str = Field(default="wp-runtime", description="Service identifier in logs")
    rate_limit_seconds: float = Field(
        default=5.0, description="Window in which identical records are dropped"
    )
    max_cache_size: int = Field(
        default=1000, description="Distinct records tracked by the rate limiter"
    )
    relay_child_output: bool = Field(
        default=False,
        description="Emit mysqld/php/wp output lines even when level is above DEBUG",
    )


class ServerConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="WPRT_SERVER_")

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8091, description="Server port")
    api_key: str = Field(default="", description="API key for authentication")
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )


class RuntimeSettings(BaseSettings):
    """Main configuration aggregating all sub-configs.

    Environment variable prefix: WPRT_
    Sub-configs use their own prefixes (WPRT_PORTS_, WPRT_DATABASE_, etc.)
    """

    model_config = SettingsConfigDict(
        env_prefix="WPRT_",
        env_nested_delimiter="__",
    )

    ports: PortConfig = Field(default_factory=PortConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    interpreter: InterpreterConfig = Field(default_factory=InterpreterConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    binaries: BinaryConfig = Field(default_factory=BinaryConfig)
    installer: InstallerConfig = Field(default_factory=InstallerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


@lru_cache
def get_settings() -> RuntimeSettings:
    """Get cached runtime configuration singleton."""
    return RuntimeSettings()
