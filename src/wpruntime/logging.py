"""Logging configuration for wp-runtime.

Records come from two sources: the runtime itself, and output lines
relayed from supervised children (mysqld, php, wp). Relayed lines carry
``process_name`` and ``child_pid`` extras and are tagged
``LogEvent.PROCESS_OUTPUT``.

Formats:
- text: ``[mysqld:4242]`` prefix on relayed lines, for local development
- json: one object per record, for log aggregation
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import json as jsonlogger

from wpruntime.config import LoggingConfig
from wpruntime.logging_schema import LogEvent

CHILD_OUTPUT_LOGGER = "wpruntime.infra.process"


def is_child_output(record: logging.LogRecord) -> bool:
    return getattr(record, "event", None) == LogEvent.PROCESS_OUTPUT


class RateLimitFilter(logging.Filter):
    """Drop identical records repeated within a window.

    Runtime records are keyed by call site and message. Relayed child
    output is keyed per child, so a burst of identical mysqld lines is
    collapsed for that mysqld only and never hides another app's output.
    ERROR and above always pass.
    """

    def __init__(self, rate_limit_seconds: float = 5.0, max_cache_size: int = 1000) -> None:
        super().__init__()
        self._window = rate_limit_seconds
        self._max_cache = max_cache_size
        self._seen: dict[str, float] = {}

    @staticmethod
    def key(record: logging.LogRecord) -> str:
        if is_child_output(record):
            name = getattr(record, "process_name", "?")
            pid = getattr(record, "child_pid", "?")
            return f"output:{name}:{pid}:{record.getMessage()}"
        return f"{record.name}:{record.lineno}:{record.getMessage()}"

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        key = self.key(record)
        now = time.monotonic()
        last = self._seen.get(key)
        if last is not None and now - last < self._window:
            return False
        self._seen[key] = now

        if len(self._seen) > self._max_cache:
            self._evict()
        return True

    def _evict(self) -> None:
        """Forget the oldest quarter of tracked keys."""
        by_age = sorted(self._seen, key=self._seen.__getitem__)
        for key in by_age[: max(1, len(by_age) // 4)]:
            del self._seen[key]


class ChildOutputTextFormatter(logging.Formatter):
    """Plain formatter that tags relayed lines with their child process."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        if not is_child_output(record):
            return super().format(record)
        tag = f"[{getattr(record, 'process_name', '?')}:{getattr(record, 'child_pid', '?')}]"
        return f"{self.formatTime(record)} - {tag} {record.getMessage()}"


class RuntimeJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with the fields the runtime's log pipeline indexes on.

    ``pid`` is the runtime's own pid; relayed lines keep theirs in
    ``child_pid``.
    """

    def __init__(self, config: LoggingConfig, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self._service
        log_record["pid"] = record.process
        if is_child_output(record):
            log_record["source"] = "child"
        else:
            log_record["source"] = "runtime"
            log_record["filename"] = record.filename
            log_record["lineno"] = record.lineno

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        log_record.pop("color_message", None)


def build_handler(config: LoggingConfig) -> logging.Handler:
    if config.format == "json":
        formatter: logging.Formatter = RuntimeJsonFormatter(config)
    else:
        formatter = ChildOutputTextFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(
        RateLimitFilter(
            rate_limit_seconds=config.rate_limit_seconds,
            max_cache_size=config.max_cache_size,
        )
    )
    return handler


def setup_logging(config: LoggingConfig) -> None:
    """Configure root, uvicorn and child-output logging.

    Args:
        config: Logging configuration settings.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    handler = build_handler(config)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Relayed lines are logged at DEBUG by the launcher
    child_logger = logging.getLogger(CHILD_OUTPUT_LOGGER)
    child_logger.setLevel(logging.DEBUG if config.relay_child_output else logging.NOTSET)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = False
        uv_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").disabled = True

    # Installer downloads
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
