"""HALO — FastAPI Application Entry Point.

Ingests orders, customers and ad spend, models them canonically and
aggregates daily revenue / ROAS / CAC / AOV per tenant.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from halo.database import init_db, test_connection
from halo.scheduler.jobs import start_scheduler, stop_scheduler
from halo.api.ingestion_routes import router as ingestion_router
from halo.api.analytics_routes import router as analytics_router
from halo.core.logging import get_logger

logger = get_logger("main")

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 HALO starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    if test_connection():
        try:
            init_db()
        except Exception as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected — endpoints will fail")
    if not IS_SERVERLESS:
        start_scheduler()
    yield
    if not IS_SERVERLESS:
        abandoned = await stop_scheduler()
        if abandoned:
            logger.warning(f"Shutdown abandoned cycles: {abandoned}")
    logger.info("HALO shut down")


app = FastAPI(
    title="HALO",
    description="Multi-tenant commerce & ad-spend ingestion, modeling and daily metrics.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(ingestion_router)
app.include_router(analytics_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "halo",
        "version": "1.0.0",
    }
