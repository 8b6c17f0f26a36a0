"""MySQL server version detection."""

import logging
import re
from pathlib import Path

from pydantic import BaseModel

from wpruntime.infra.process import ProcessLauncher
from wpruntime.logging_schema import LogEvent

logger = logging.getLogger(__name__)

# "mysqld  Ver 8.0.33 for Linux on x86_64 (MySQL Community Server - GPL)"
# "mysqld  Ver 9.2.0 for osx10.19 on x86_64 (Homebrew)"
_VERSION_RE = re.compile(r"Ver\s+(\d+)\.(\d+)\.(\d+)")


class DetectedVersion(BaseModel):
    """Parsed mysqld version."""

    major: int
    minor: int
    patch: int

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def at_least(self, major: int, minor: int = 0) -> bool:
        return (self.major, self.minor) >= (major, minor)


def parse_version(output: str) -> DetectedVersion | None:
    """Extract the version from `mysqld --version` output, or None."""
    match = _VERSION_RE.search(output)
    if not match:
        return None
    major, minor, patch = (int(g) for g in match.groups())
    return DetectedVersion(major=major, minor=minor, patch=patch)


async def detect_version(
    launcher: ProcessLauncher,
    server_path: Path,
    timeout: float = 10.0,
) -> DetectedVersion | None:
    """Run `<mysqld> --version` and parse it.

    Never raises: any failure returns None, which callers treat as the
    newest, strictest server.
    """
    try:
        result = await launcher.run([server_path, "--version"], timeout=timeout)
    except (OSError, TimeoutError) as e:
        logger.error("Error detecting MySQL version: %s", e)
        return None

    if not result.ok:
        logger.error("Failed to get MySQL version: %s", result.stderr.strip())
        return None

    version = parse_version(result.output)
    if version is None:
        logger.warning("Could not parse MySQL version from output: %s", result.output.strip())
        return None

    logger.info(
        "Detected MySQL version: %s",
        version,
        extra={"event": LogEvent.DATABASE_VERSION, "version": str(version)},
    )
    return version
