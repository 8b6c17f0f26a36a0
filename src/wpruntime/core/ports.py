"""Loopback port allocation.

Ports handed out are leased in-process until release() so that concurrent
start() calls never receive the same port before either child has bound it.
Nothing is reserved at the OS level: another program can still take a port
between allocation and use.
"""

import logging
import random
import socket

from pydantic import BaseModel

from wpruntime.config import PortConfig
from wpruntime.errors import PortExhaustionError
from wpruntime.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class InstancePorts(BaseModel):
    """Ports bound by one instance's two processes."""

    interpreter_port: int
    database_port: int

    model_config = {"frozen": True}


class PortAllocator:
    """Finds free TCP ports on the loopback interface."""

    def __init__(self, config: PortConfig, rng: random.Random | None = None) -> None:
        self._config = config
        self._rng = rng or random.Random()
        self._leased: set[int] = set()

    @property
    def leased(self) -> frozenset[int]:
        return frozenset(self._leased)

    def is_free(self, port: int) -> bool:
        """Live bind-probe: True if port can be bound right now."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((self._config.host, port))
            except OSError:
                return False
        return True

    def _available(self, port: int) -> bool:
        return port not in self._leased and self.is_free(port)

    def allocate(self, preferred: int) -> int:
        """Lease preferred if free, otherwise a random port above it.

        Raises:
            PortExhaustionError: No candidate bound within the attempt budget.
        """
        if self._available(preferred):
            return self._lease(preferred)

        low = preferred + 1
        high = min(preferred + self._config.window, 65535)
        if low > high:
            raise PortExhaustionError(f"No ports above {preferred} to fall back to.")
        for _ in range(self._config.attempts):
            candidate = self._rng.randint(low, high)
            if self._available(candidate):
                return self._lease(candidate)
            logger.debug("Port %d is in use, trying another", candidate)

        raise PortExhaustionError(
            f"Failed to find an available port after {self._config.attempts} attempts "
            f"(preferred {preferred})."
        )

    def allocate_pair(
        self,
        interpreter_preferred: int | None = None,
        database_preferred: int | None = None,
    ) -> InstancePorts:
        """Allocate distinct interpreter and database ports."""
        interpreter_port = self.allocate(
            interpreter_preferred or self._config.interpreter_default
        )
        try:
            # Leasing the first port makes a collision impossible for the second.
            database_port = self.allocate(database_preferred or self._config.database_default)
        except PortExhaustionError:
            self.release(interpreter_port)
            raise

        logger.info(
            "Allocated ports - PHP: %d, MySQL: %d",
            interpreter_port,
            database_port,
            extra={
                "event": LogEvent.PORT_ALLOCATED,
                "interpreter_port": interpreter_port,
                "database_port": database_port,
            },
        )
        return InstancePorts(interpreter_port=interpreter_port, database_port=database_port)

    def release(self, *ports: int) -> None:
        for port in ports:
            self._leased.discard(port)
        if ports:
            logger.debug(
                "Released ports %s",
                ", ".join(str(p) for p in ports),
                extra={"event": LogEvent.PORT_RELEASED},
            )

    def _lease(self, port: int) -> int:
        self._leased.add(port)
        return port
