"""Log event types for structured logging."""

from enum import StrEnum


class LogEvent(StrEnum):
    """Log event types for the runtime.

    Used with logger.info/warning/error extra dict:
        logger.info("message", extra={"event": LogEvent.INSTANCE_STARTED, ...})
    """

    # Application lifecycle
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"

    # Instance lifecycle
    INSTANCE_STATE = "instance_state"
    INSTANCE_STARTED = "instance_started"
    INSTANCE_STOPPED = "instance_stopped"
    INSTANCE_START_FAILED = "instance_start_failed"
    INSTANCE_ROLLED_BACK = "instance_rolled_back"

    # Ports
    PORT_ALLOCATED = "port_allocated"
    PORT_RELEASED = "port_released"

    # Database
    DATABASE_VERSION = "database_version"
    DATABASE_INITIALIZED = "database_initialized"
    DATABASE_READY = "database_ready"
    DATABASE_CREATED = "database_created"
    DATABASE_AUTH_ADJUSTED = "database_auth_adjusted"
    DATABASE_AUTH_FAILED = "database_auth_failed"
    DATABASE_SHUTDOWN_TIMEOUT = "database_shutdown_timeout"

    # Processes
    PROCESS_SPAWNED = "process_spawned"
    PROCESS_EXITED = "process_exited"
    PROCESS_OUTPUT = "process_output"
    PROCESS_KILLED = "process_killed"

    # Files
    CONFIG_WRITTEN = "config_written"

    # Dependencies
    BINARY_RESOLVED = "binary_resolved"
    BINARY_MISSING = "binary_missing"
    INSTALL_STARTED = "install_started"
    INSTALL_COMPLETED = "install_completed"
    INSTALL_FAILED = "install_failed"
    INSTALL_DECLINED = "install_declined"
    DOWNLOAD_COMPLETED = "download_completed"

    # Error events
    UNHANDLED_EXCEPTION = "unhandled_exception"
    RUNTIME_ERROR = "runtime_error"
