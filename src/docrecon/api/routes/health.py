"""Health check endpoint."""

from fastapi import APIRouter

from ...classification import load_rules
from ...config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns service status and version.
    """
    from docrecon import __version__

    return {
        "status": "healthy",
        "version": __version__,
        "service": "docrecon",
    }


@router.get("/ready")
async def readiness_check() -> dict:
    """
    Readiness check endpoint.

    Reports which external collaborators are configured. Without an FX key
    every conversion falls back to the identity rate.
    """
    settings = get_settings()
    checks = {
        "api": True,
        "rules": bool(load_rules().account_rules),
        "extraction_service": bool(settings.openai_api_key),
        "exchange_rates": bool(settings.exchange_rate_api_key),
    }

    return {
        "ready": checks["api"] and checks["rules"],
        "checks": checks,
    }
