"""Install-choice prompt and elevation check.

The runtime has no UI of its own: the choice between a system-wide install
and cancelling is delegated to an InstallPrompt supplied by the caller.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from wpruntime.infra.process import ProcessLauncher

logger = logging.getLogger(__name__)


class InstallChoice(str, Enum):
    SYSTEM = "system"
    CANCEL = "cancel"


class InstallPrompt(Protocol):
    """Asks whoever is driving the runtime how to proceed."""

    async def choose(self, missing: list[str]) -> InstallChoice: ...


class StaticPrompt:
    """Prompt answered up front, e.g. from an API request flag."""

    def __init__(self, allow_system_install: bool = False) -> None:
        self._choice = InstallChoice.SYSTEM if allow_system_install else InstallChoice.CANCEL

    async def choose(self, missing: list[str]) -> InstallChoice:
        logger.info(
            "Install choice for %s: %s",
            ", ".join(missing),
            self._choice.value,
        )
        return self._choice


ELEVATION_PROBES: dict[str, list[str]] = {
    "win32": ["net", "session"],
    "darwin": ["sudo", "-n", "true"],
    "linux": ["sudo", "-n", "true"],
}


async def check_elevation(launcher: ProcessLauncher, platform: str) -> bool:
    """True if system-wide installs can run without an interactive password."""
    probe = ELEVATION_PROBES.get(platform)
    if probe is None:
        return False
    try:
        result = await launcher.run(probe, timeout=15.0)
    except (OSError, TimeoutError) as e:
        logger.warning("Elevation check failed: %s", e)
        return False
    return result.ok
