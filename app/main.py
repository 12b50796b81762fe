"""
CadenceEngine FastAPI application entry point.

Contact inputs → cadence resolver → next engagement date → query views
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app import __version__
from app.config import get_settings
from app.db.session import check_db_connection, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("CadenceEngine starting")
    try:
        try:
            check_db_connection()
            logger.info("Database connection verified")
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise

        # Validate the cadence table eagerly so a bad deployment (missing file,
        # YAML syntax error, or a classification without a rule) fails at
        # startup rather than on the first recompute.
        if get_settings().cadence_table_path:
            try:
                from app.cadence_table.loader import (
                    get_cadence_table_version,
                    load_cadence_table,
                )

                table = load_cadence_table()
                logger.info(
                    "Cadence table validated: version=%s rules=%d",
                    get_cadence_table_version(),
                    len(table["rules"]),
                )
            except Exception as e:
                logger.critical("Cadence table validation failed at startup: %s", e)
                raise
        else:
            logger.warning(
                "CADENCE_TABLE_PATH is not set; recompute requests will fail until it is configured"
            )

        yield
    finally:
        logger.info("CadenceEngine shutting down")
        engine.dispose()
        logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Mount API routes
    from app.api.engagement import router as engagement_router

    app.include_router(engagement_router, prefix="/api/engagement", tags=["engagement"])

    # Internal job endpoints (cron/scripts — token-authenticated)
    from app.api.internal import router as internal_router

    app.include_router(internal_router, tags=["internal"])

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint. Confirms DB connectivity."""
        from sqlalchemy import text

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {
                "status": "ok",
                "version": __version__,
                "database": "connected",
            }
        except Exception:
            from fastapi.responses import JSONResponse

            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "version": __version__,
                    "database": "disconnected",
                },
            )

    return app


app = create_app()
