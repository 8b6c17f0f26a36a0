"""Instance state and the in-memory instance registry."""

from enum import Enum
from pathlib import Path

from wpruntime.core.ports import InstancePorts
from wpruntime.core.provision import AppLayout
from wpruntime.infra.process import ManagedProcess


class InstanceState(str, Enum):
    """Bring-up / teardown states of one app's process pair."""

    ABSENT = "absent"
    INITIALIZING = "initializing"
    DATABASE_STARTING = "database_starting"
    DATABASE_READY = "database_ready"
    CONFIGURING_APP = "configuring_app"
    INTERPRETER_STARTING = "interpreter_starting"
    RUNNING = "running"
    STOPPING = "stopping"


class ResolvedBinaries:
    """Executables used by one instance."""

    def __init__(self, interpreter: Path, database_server: Path, database_client: Path) -> None:
        self.interpreter = interpreter
        self.database_server = database_server
        self.database_client = database_client


class ManagedInstance:
    """One app's database + interpreter process pair.

    Built up step by step during start(); only registered once both
    processes are ready. Processes are owned exclusively by this record.
    """

    def __init__(self, app_id: str, layout: AppLayout) -> None:
        self.app_id = app_id
        self.layout = layout
        self.binaries: ResolvedBinaries | None = None
        self.ports: InstancePorts | None = None
        self.database_process: ManagedProcess | None = None
        self.interpreter_process: ManagedProcess | None = None

    @property
    def app_path(self) -> Path:
        return self.layout.root

    @property
    def alive(self) -> bool:
        return (
            self.database_process is not None
            and self.database_process.running
            and self.interpreter_process is not None
            and self.interpreter_process.running
        )


class InstanceRegistry:
    """app_id -> running ManagedInstance.

    Mutated only on the event loop, so inserts and removes are atomic with
    respect to the read accessors.
    """

    def __init__(self) -> None:
        self._instances: dict[str, ManagedInstance] = {}

    def get(self, app_id: str) -> ManagedInstance | None:
        return self._instances.get(app_id)

    def insert(self, instance: ManagedInstance) -> None:
        if instance.ports is None:
            raise ValueError("Cannot register an instance without ports")
        self._instances[instance.app_id] = instance

    def remove(self, app_id: str) -> ManagedInstance | None:
        return self._instances.pop(app_id, None)

    def app_ids(self) -> list[str]:
        return list(self._instances)

    def ports(self) -> dict[str, InstancePorts]:
        return {
            app_id: instance.ports
            for app_id, instance in self._instances.items()
            if instance.ports is not None
        }

    def clear(self) -> None:
        self._instances.clear()

    def __contains__(self, app_id: object) -> bool:
        return app_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)
