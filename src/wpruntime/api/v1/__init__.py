"""API v1 module."""

from wpruntime.api.v1.apps import router as apps_router
from wpruntime.api.v1.dependencies import router as dependencies_router

__all__ = [
    "apps_router",
    "dependencies_router",
]
