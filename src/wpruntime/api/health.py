"""Health check endpoint."""

from fastapi import APIRouter
from pydantic import BaseModel

from wpruntime import __version__

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str = __version__


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy")
