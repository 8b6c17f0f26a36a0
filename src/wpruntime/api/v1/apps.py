"""App lifecycle API endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from wpruntime.api.dependencies import get_runtime
from wpruntime.errors import AppNotFoundError
from wpruntime.infra.process import CommandResult
from wpruntime.registry import WORDPRESS_APP
from wpruntime.runtimes import LocalRuntime

router = APIRouter(prefix="/apps", tags=["apps"])


# =============================================================================
# Schemas
# =============================================================================


class StartAppRequest(BaseModel):
    """Start request. app_path registers (or moves) the app before starting."""

    app_path: str | None = None


class OperationResponse(BaseModel):
    status: Literal["started", "stopped"]
    app_id: str
    interpreter_port: int | None = None
    database_port: int | None = None


class AppStatusResponse(BaseModel):
    app_id: str
    running: bool
    state: str
    interpreter_port: int | None = None
    database_port: int | None = None


class AppListResponse(BaseModel):
    apps: list[AppStatusResponse]


class CliRequest(BaseModel):
    args: list[str] = Field(min_length=1)


class QueryRequest(BaseModel):
    sql: str = Field(min_length=1)


class CommandResponse(BaseModel):
    success: bool
    exit_code: int
    stdout: str
    stderr: str

    @classmethod
    def from_result(cls, result: CommandResult) -> "CommandResponse":
        return cls(
            success=result.ok,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
        )


def _status(runtime: LocalRuntime, app_id: str) -> AppStatusResponse:
    ports = runtime.supervisor.get_running_processes().get(app_id)
    return AppStatusResponse(
        app_id=app_id,
        running=ports is not None,
        state=runtime.supervisor.get_state(app_id).value,
        interpreter_port=ports.interpreter_port if ports else None,
        database_port=ports.database_port if ports else None,
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=AppListResponse)
async def list_apps(
    runtime: LocalRuntime = Depends(get_runtime),
) -> AppListResponse:
    """List registered apps with their runtime status."""
    records = await runtime.apps.list_apps()
    app_ids = {record.app_id for record in records}
    app_ids.update(runtime.supervisor.get_running_processes())
    return AppListResponse(apps=[_status(runtime, app_id) for app_id in sorted(app_ids)])


@router.post("/{app_id}/start", response_model=OperationResponse)
async def start_app(
    app_id: str,
    request: StartAppRequest,
    runtime: LocalRuntime = Depends(get_runtime),
) -> OperationResponse:
    """Start WordPress for an app."""
    if request.app_path:
        await runtime.apps.register_app(app_id, request.app_path)

    record = await runtime.apps.find_app(app_id)
    if record is None:
        raise AppNotFoundError(f"App with id {app_id} not found")
    if record.app_type != WORDPRESS_APP:
        raise AppNotFoundError(f"App {app_id} is not a WordPress app")

    ports = await runtime.supervisor.start(app_id, runtime.apps.resolve_path(record))
    await runtime.apps.update_app_ports(app_id, ports.interpreter_port, ports.database_port)
    return OperationResponse(
        status="started",
        app_id=app_id,
        interpreter_port=ports.interpreter_port,
        database_port=ports.database_port,
    )


@router.post("/{app_id}/stop", response_model=OperationResponse)
async def stop_app(
    app_id: str,
    runtime: LocalRuntime = Depends(get_runtime),
) -> OperationResponse:
    """Stop WordPress for an app. Stopping a stopped app succeeds."""
    await runtime.supervisor.stop(app_id)
    if await runtime.apps.find_app(app_id) is not None:
        await runtime.apps.update_app_ports(app_id, None, None)
    return OperationResponse(status="stopped", app_id=app_id)


@router.get("/{app_id}/status", response_model=AppStatusResponse)
async def get_app_status(
    app_id: str,
    runtime: LocalRuntime = Depends(get_runtime),
) -> AppStatusResponse:
    return _status(runtime, app_id)


@router.post("/{app_id}/cli", response_model=CommandResponse)
async def run_cli(
    app_id: str,
    request: CliRequest,
    runtime: LocalRuntime = Depends(get_runtime),
) -> CommandResponse:
    """Run a WP-CLI command; a non-zero exit is returned, not raised."""
    result = await runtime.supervisor.run_cli(app_id, request.args)
    return CommandResponse.from_result(result)


@router.post("/{app_id}/query", response_model=CommandResponse)
async def run_query(
    app_id: str,
    request: QueryRequest,
    runtime: LocalRuntime = Depends(get_runtime),
) -> CommandResponse:
    result = await runtime.supervisor.run_query(app_id, request.sql)
    return CommandResponse.from_result(result)
