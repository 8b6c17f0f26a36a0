"""Platform-specific executable resolution.

Resolution order, first match wins:
1. Portable install under <user_data>/portable (Windows only)
2. System PATH (development only, i.e. not packaged)
3. Bundled resources: <resources>/wordpress-runtime/<platform>-<arch>/<dir>/bin/<name>
"""

import logging
import platform as _platform
import shutil
import sys
from enum import Enum
from pathlib import Path

from pydantic import BaseModel

from wpruntime.config import BinaryConfig
from wpruntime.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class BinaryKind(str, Enum):
    """Executables the runtime depends on."""

    INTERPRETER = "php"
    DATABASE_SERVER = "mysqld"
    DATABASE_CLIENT = "mysql"
    CLI_TOOL = "wp-cli"


# PATH command names
SYSTEM_COMMANDS: dict[BinaryKind, str] = {
    BinaryKind.INTERPRETER: "php",
    BinaryKind.DATABASE_SERVER: "mysqld",
    BinaryKind.DATABASE_CLIENT: "mysql",
    BinaryKind.CLI_TOOL: "wp",
}

# Bundled resource subdirectory per kind; server and client ship together
BUNDLE_DIRS: dict[BinaryKind, str] = {
    BinaryKind.INTERPRETER: "php",
    BinaryKind.DATABASE_SERVER: "mysql",
    BinaryKind.DATABASE_CLIENT: "mysql",
    BinaryKind.CLI_TOOL: "wp-cli",
}

ALL_KINDS: tuple[BinaryKind, ...] = tuple(BinaryKind)

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
}


def current_platform() -> str:
    """Platform name as used in bundle directories: win32, darwin, linux."""
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def current_arch() -> str:
    machine = _platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def executable_name(kind: BinaryKind, platform: str) -> str:
    if kind is BinaryKind.CLI_TOOL:
        return "wp.bat" if platform == "win32" else "wp"
    name = kind.value
    return f"{name}.exe" if platform == "win32" else name


class BinaryCheck(BaseModel):
    """Result of checking every binary kind."""

    available: bool
    missing: list[str]


class BinaryLocator:
    """Resolves filesystem paths for runtime executables."""

    def __init__(self, config: BinaryConfig) -> None:
        self._config = config

    @property
    def portable_dir(self) -> Path:
        return self._config.user_data_dir / "portable"

    def portable_path(self, kind: BinaryKind, platform: str) -> Path | None:
        """Expected portable install location; None where portable is unsupported."""
        if platform != "win32":
            return None

        root = self.portable_dir
        if kind is BinaryKind.INTERPRETER:
            return root / "php" / "php.exe"
        if kind is BinaryKind.CLI_TOOL:
            return root / "wp-cli" / "wp.bat"

        # MySQL archives extract into a versioned directory (mysql-8.0.35-winx64)
        mysql_root = root / "mysql"
        if not mysql_root.is_dir():
            return None
        for entry in sorted(mysql_root.iterdir()):
            if entry.is_dir() and entry.name.startswith("mysql-"):
                return entry / "bin" / executable_name(kind, platform)
        return None

    def bundled_path(self, kind: BinaryKind, platform: str, arch: str) -> Path:
        return (
            self._config.resources_dir
            / "wordpress-runtime"
            / f"{platform}-{arch}"
            / BUNDLE_DIRS[kind]
            / "bin"
            / executable_name(kind, platform)
        )

    def resolve(
        self,
        kind: BinaryKind,
        platform: str | None = None,
        arch: str | None = None,
    ) -> Path | None:
        """Return the first existing path for kind, or None if not found."""
        platform = platform or current_platform()
        arch = arch or current_arch()

        portable = self.portable_path(kind, platform)
        if portable is not None and portable.is_file():
            logger.debug(
                "Using portable %s: %s",
                kind.value,
                portable,
                extra={"event": LogEvent.BINARY_RESOLVED, "binary": kind.value, "tier": "portable"},
            )
            return portable

        if not self._config.packaged:
            found = shutil.which(SYSTEM_COMMANDS[kind])
            if found:
                logger.debug(
                    "Using system %s: %s",
                    kind.value,
                    found,
                    extra={"event": LogEvent.BINARY_RESOLVED, "binary": kind.value, "tier": "system"},
                )
                return Path(found)

        bundled = self.bundled_path(kind, platform, arch)
        if bundled.is_file():
            logger.debug(
                "Using bundled %s: %s",
                kind.value,
                bundled,
                extra={"event": LogEvent.BINARY_RESOLVED, "binary": kind.value, "tier": "bundled"},
            )
            return bundled

        logger.debug(
            "%s not found",
            kind.value,
            extra={"event": LogEvent.BINARY_MISSING, "binary": kind.value, "expected": str(bundled)},
        )
        return None

    def resolve_all(self, kinds: tuple[BinaryKind, ...] = ALL_KINDS) -> dict[BinaryKind, Path | None]:
        return {kind: self.resolve(kind) for kind in kinds}

    def check(self, kinds: tuple[BinaryKind, ...] = ALL_KINDS) -> BinaryCheck:
        missing = [kind.value for kind, path in self.resolve_all(kinds).items() if path is None]
        if missing:
            logger.warning(
                "Missing binaries: %s",
                ", ".join(missing),
                extra={"event": LogEvent.BINARY_MISSING, "missing": missing},
            )
        return BinaryCheck(available=not missing, missing=missing)
