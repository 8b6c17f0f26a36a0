"""Unit tests for FileAppRegistry."""

import json
from pathlib import Path

import pytest

from wpruntime.errors import AppNotFoundError
from wpruntime.registry import FileAppRegistry


@pytest.fixture
def registry(tmp_path: Path) -> FileAppRegistry:
    return FileAppRegistry(tmp_path / "data" / "apps.json", apps_root=tmp_path / "apps")


class TestFileAppRegistry:
    async def test_empty_when_file_missing(self, registry: FileAppRegistry) -> None:
        assert await registry.list_apps() == []
        assert await registry.find_app("blog") is None

    async def test_register_and_find(self, registry: FileAppRegistry, tmp_path: Path) -> None:
        await registry.register_app("blog", tmp_path / "apps" / "blog")

        record = await registry.find_app("blog")

        assert record is not None
        assert record.app_type == "wordpress"
        assert record.interpreter_port is None
        assert registry.resolve_path(record) == tmp_path / "apps" / "blog"

    async def test_file_format(self, registry: FileAppRegistry) -> None:
        await registry.register_app("blog", "/srv/blog")

        raw = json.loads(registry.path.read_text())

        assert raw == {
            "blog": {
                "path": "/srv/blog",
                "app_type": "wordpress",
                "interpreter_port": None,
                "database_port": None,
            }
        }

    async def test_update_ports(self, registry: FileAppRegistry) -> None:
        await registry.register_app("blog", "/srv/blog")

        await registry.update_app_ports("blog", 8080, 3306)

        record = await registry.find_app("blog")
        assert (record.interpreter_port, record.database_port) == (8080, 3306)

    async def test_clear_ports(self, registry: FileAppRegistry) -> None:
        await registry.register_app("blog", "/srv/blog")
        await registry.update_app_ports("blog", 8080, 3306)

        await registry.update_app_ports("blog", None, None)

        record = await registry.find_app("blog")
        assert record.interpreter_port is None

    async def test_reregister_keeps_ports(self, registry: FileAppRegistry) -> None:
        await registry.register_app("blog", "/srv/blog")
        await registry.update_app_ports("blog", 8080, 3306)

        await registry.register_app("blog", "/srv/blog-moved")

        record = await registry.find_app("blog")
        assert record.path == "/srv/blog-moved"
        assert record.database_port == 3306

    async def test_update_unknown_app(self, registry: FileAppRegistry) -> None:
        with pytest.raises(AppNotFoundError):
            await registry.update_app_ports("missing", 8080, 3306)

    async def test_relative_path_resolved_against_root(
        self, registry: FileAppRegistry, tmp_path: Path
    ) -> None:
        record = await registry.register_app("shop", "shop")

        assert registry.resolve_path(record) == tmp_path / "apps" / "shop"

    async def test_persisted_across_instances(self, registry: FileAppRegistry) -> None:
        await registry.register_app("blog", "/srv/blog")
        await registry.register_app("shop", "/srv/shop", app_type="static")

        reopened = FileAppRegistry(registry.path)

        apps = {record.app_id: record for record in await reopened.list_apps()}
        assert set(apps) == {"blog", "shop"}
        assert apps["shop"].app_type == "static"
