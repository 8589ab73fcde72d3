"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.middleware.error_handler import setup_error_handlers
from .api.routes import health_router, reconcile_router
from .config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("DocRecon API starting up...")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"LLM Model: {settings.llm_model}")
    logger.info(f"Reporting currency: {settings.reporting_currency}")
    yield
    logger.info("DocRecon API shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    if settings.debug:
        logging.getLogger("docrecon").setLevel(logging.DEBUG)

    app = FastAPI(
        title="DocRecon API",
        description=(
            "Reconciles AI-extracted bank statements, invoices and trial balances "
            "into clean ledgers in a single reporting currency."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_error_handlers(app)

    app.include_router(health_router, prefix="/api/v1")
    app.include_router(reconcile_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "docrecon.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
