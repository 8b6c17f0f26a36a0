"""App registry: where each app lives and which ports it last ran on.

Ports are recorded after a successful start and cleared on stop so clients
can discover a running instance without asking the supervisor.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from wpruntime.errors import AppNotFoundError

logger = logging.getLogger(__name__)

REGISTRY_FILE = "apps.json"
WORDPRESS_APP = "wordpress"


class AppRecord(BaseModel):
    app_id: str
    path: str
    app_type: str = WORDPRESS_APP
    interpreter_port: int | None = None
    database_port: int | None = None


class AppRegistry(Protocol):
    async def find_app(self, app_id: str) -> AppRecord | None: ...

    async def update_app_ports(
        self,
        app_id: str,
        interpreter_port: int | None,
        database_port: int | None,
    ) -> None: ...


class FileAppRegistry:
    """AppRegistry persisted as a JSON object keyed by app_id.

    Relative app paths are resolved against apps_root.
    """

    def __init__(self, path: Path, apps_root: Path | None = None) -> None:
        self._path = path
        self._apps_root = apps_root
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, AppRecord]:
        if not self._path.exists():
            return {}
        raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        return {
            app_id: AppRecord(app_id=app_id, **fields)
            for app_id, fields in raw.items()
        }

    def _save(self, records: dict[str, AppRecord]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            app_id: record.model_dump(exclude={"app_id"})
            for app_id, record in records.items()
        }
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)

    def resolve_path(self, record: AppRecord) -> Path:
        path = Path(record.path)
        if not path.is_absolute() and self._apps_root is not None:
            path = self._apps_root / path
        return path

    async def list_apps(self) -> list[AppRecord]:
        async with self._lock:
            return list(self._load().values())

    async def find_app(self, app_id: str) -> AppRecord | None:
        async with self._lock:
            return self._load().get(app_id)

    async def register_app(
        self,
        app_id: str,
        path: Path | str,
        app_type: str = WORDPRESS_APP,
    ) -> AppRecord:
        """Insert or update an app's path, keeping any recorded ports."""
        async with self._lock:
            records = self._load()
            existing = records.get(app_id)
            record = AppRecord(
                app_id=app_id,
                path=str(path),
                app_type=app_type,
                interpreter_port=existing.interpreter_port if existing else None,
                database_port=existing.database_port if existing else None,
            )
            records[app_id] = record
            self._save(records)
            logger.info("Registered app %s at %s", app_id, path)
            return record

    async def update_app_ports(
        self,
        app_id: str,
        interpreter_port: int | None,
        database_port: int | None,
    ) -> None:
        async with self._lock:
            records = self._load()
            record = records.get(app_id)
            if record is None:
                raise AppNotFoundError(f"App with id {app_id} not found")
            records[app_id] = record.model_copy(
                update={
                    "interpreter_port": interpreter_port,
                    "database_port": database_port,
                }
            )
            self._save(records)
