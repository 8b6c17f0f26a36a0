"""Dependency status and installation endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from wpruntime.api.dependencies import get_runtime
from wpruntime.core.binaries import BinaryCheck
from wpruntime.installer import (
    InstallationGuidance,
    InstallationResult,
    InstallationStatus,
    StaticPrompt,
)
from wpruntime.runtimes import LocalRuntime

router = APIRouter(prefix="/dependencies", tags=["dependencies"])


class InstallRequest(BaseModel):
    """Install request.

    allow_system_install answers the system-wide prompt up front; without it
    only portable installs are attempted.
    """

    allow_system_install: bool = False


@router.get("/binaries", response_model=BinaryCheck)
async def check_binaries(
    runtime: LocalRuntime = Depends(get_runtime),
) -> BinaryCheck:
    return runtime.supervisor.check_binaries()


@router.get("/status", response_model=InstallationStatus)
async def get_status(
    runtime: LocalRuntime = Depends(get_runtime),
) -> InstallationStatus:
    return await runtime.dependencies.check_status()


@router.post("/install", response_model=InstallationResult)
async def install(
    request: InstallRequest,
    runtime: LocalRuntime = Depends(get_runtime),
) -> InstallationResult:
    """Install missing dependencies. Partial failure is reported in the body."""
    prompt = StaticPrompt(allow_system_install=request.allow_system_install)
    return await runtime.supervisor.install_dependencies(prompt=prompt)


@router.get("/guidance", response_model=InstallationGuidance)
async def get_guidance(
    runtime: LocalRuntime = Depends(get_runtime),
) -> InstallationGuidance:
    """Installation guidance for whatever is currently missing."""
    check = runtime.supervisor.check_binaries()
    return runtime.dependencies.guidance(check.missing)
