"""FastAPI application entry point.

This module creates and configures the FastAPI application instance.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from trendpulse.api import v1
from trendpulse.core.config import get_config
from trendpulse.core.container import close_resources, container
from trendpulse.core.database import check_db_connection, init_db
from trendpulse.core.logging import get_logger, setup_logging

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    config = get_config()
    # Startup
    logger.info("Starting TrendPulse application", env=config.app_env)

    # Create tables directly only in development; production uses migrations
    if config.is_development:
        db_engine = container.db_engine()
        if await check_db_connection(db_engine):
            await init_db(db_engine)
        else:
            logger.warning("Database connection not available, skipping initialization")

    yield

    # Shutdown
    logger.info("Shutting down TrendPulse application")
    await close_resources()
    logger.info("Cleanup complete")


# Create FastAPI application
_config = get_config()
app = FastAPI(
    title=_config.app_name,
    description="Streaming trend detection and ranking engine",
    version="0.1.0",
    docs_url="/docs" if _config.is_development else None,
    redoc_url="/redoc" if _config.is_development else None,
    lifespan=lifespan,
)

app.include_router(v1.router, prefix="/api/v1", tags=["trends"])


# Health check endpoint
@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Health status
    """
    cfg = get_config()
    return {
        "status": "healthy",
        "app": cfg.app_name,
        "env": cfg.app_env,
    }
