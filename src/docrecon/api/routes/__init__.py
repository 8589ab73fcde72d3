"""API routes."""

from .health import router as health_router
from .reconcile import get_pipeline
from .reconcile import router as reconcile_router

__all__ = ["get_pipeline", "health_router", "reconcile_router"]
