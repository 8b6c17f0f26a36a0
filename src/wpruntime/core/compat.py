"""MySQL compatibility profile.

The single place where (platform, server version, process identity) turns
into command-line flags and behavioral adjustments:

| Version           | --user=<name>                    | --default-authentication-plugin |
|-------------------|----------------------------------|---------------------------------|
| >= 9 on macOS     | omit; refuse to run as superuser | omit                            |
| >= 9 elsewhere    | omit                             | omit                            |
| 8.1 - 8.x         | when not superuser (POSIX)       | omit                            |
| 8.0.x             | when not superuser (POSIX)       | include                         |
| < 8               | when not superuser (POSIX)       | omit                            |
| undetected        | treated as >= 9                  | omit                            |

Passing a flag the server no longer knows is a fatal startup error, so
omission is the default.
"""

import getpass
import os
from pathlib import Path

from pydantic import BaseModel

from wpruntime.core.version import DetectedVersion
from wpruntime.errors import SuperuserRefusedError

# Platform whose MySQL 9.x builds mis-detect root and refuse --user
ROOT_DEFECT_PLATFORM = "darwin"

LEGACY_AUTH_FLAG = "--default-authentication-plugin=mysql_native_password"
USER_FLAG_PREFIX = "--user="


class ProcessIdentity(BaseModel):
    """Who the runtime is running as."""

    username: str | None
    superuser: bool

    model_config = {"frozen": True}

    @classmethod
    def current(cls) -> "ProcessIdentity":
        try:
            username = getpass.getuser()
        except (KeyError, OSError):
            username = os.environ.get("USER") or os.environ.get("USERNAME")
        geteuid = getattr(os, "geteuid", None)
        superuser = geteuid() == 0 if geteuid is not None else False
        return cls(username=username, superuser=superuser)


class CompatibilityProfile(BaseModel):
    """Derived flags for one (platform, version, identity) combination."""

    platform: str
    version: DetectedVersion | None
    identity: ProcessIdentity

    include_user_flag: bool
    include_legacy_auth: bool
    refuse_superuser: bool
    adjust_auth: bool
    retry_initialization: bool

    model_config = {"frozen": True}

    @classmethod
    def build(
        cls,
        platform: str,
        version: DetectedVersion | None,
        identity: ProcessIdentity,
    ) -> "CompatibilityProfile":
        modern = version is None or version.major >= 9
        posix = platform != "win32"

        include_user_flag = (
            posix
            and not modern
            and not identity.superuser
            and bool(identity.username)
        )
        include_legacy_auth = (
            version is not None and version.major == 8 and version.minor == 0
        )
        refuse_superuser = (
            platform == ROOT_DEFECT_PLATFORM
            and version is not None
            and version.major >= 9
        )

        return cls(
            platform=platform,
            version=version,
            identity=identity,
            include_user_flag=include_user_flag,
            include_legacy_auth=include_legacy_auth,
            refuse_superuser=refuse_superuser,
            adjust_auth=version is not None and version.major >= 8,
            retry_initialization=platform == ROOT_DEFECT_PLATFORM,
        )

    @property
    def description(self) -> str:
        if self.version is None:
            return "MySQL version unknown - assuming 9.x and avoiding deprecated parameters"
        v = self.version
        if v.major >= 9:
            return f"MySQL {v.major}.{v.minor} - no default-authentication-plugin support"
        if v.major == 8 and v.minor >= 1:
            return f"MySQL 8.{v.minor} - avoiding deprecated authentication parameters"
        if v.major == 8:
            return "MySQL 8.0.x - using default-authentication-plugin"
        return f"MySQL {v.major}.{v.minor} - using legacy configuration"

    def ensure_permitted(self) -> None:
        """Raise if this server version cannot run under the current identity."""
        if self.refuse_superuser and self.identity.superuser:
            raise SuperuserRefusedError()

    def _optional_flags(self) -> list[str]:
        flags = []
        if self.include_user_flag:
            flags.append(f"{USER_FLAG_PREFIX}{self.identity.username}")
        if self.include_legacy_auth:
            flags.append(LEGACY_AUTH_FLAG)
        return flags

    def initialize_args(self, data_dir: Path) -> list[str]:
        """Arguments for the one-time `mysqld --initialize-insecure` run."""
        return [
            "--initialize-insecure",
            f"--datadir={data_dir}",
            "--explicit_defaults_for_timestamp",
            "--log-error-verbosity=3",
            *self._optional_flags(),
        ]

    def server_args(self, data_dir: Path, port: int, host: str = "127.0.0.1") -> list[str]:
        """Arguments for the steady-state mysqld process."""
        return [
            f"--datadir={data_dir}",
            f"--port={port}",
            f"--bind-address={host}",
            "--skip-networking=0",
            "--console",
            "--log-error-verbosity=3",
            *self._optional_flags(),
        ]
