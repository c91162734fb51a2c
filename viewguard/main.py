import logging

from fastapi import FastAPI

from viewguard import models  # noqa: F401
from viewguard.config import settings
from viewguard.database import Base, engine
from viewguard.exception_handlers import register_exception_handlers
from viewguard.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from viewguard.middleware.rate_limit import configure_rate_limiting
from viewguard.routes import analytics, monitoring, views
from viewguard.scheduler import scheduler
from viewguard.utils.cache import cache_manager
from viewguard.utils.metrics import PrometheusMiddleware
from viewguard.utils.retention import install_retention_policy

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="View counting with bot filtering, abuse limits and an auditable view ledger",
        debug=settings.debug,
        version=settings.app_version,
    )

    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    configure_rate_limiting(app)
    register_exception_handlers(app)

    app.include_router(views.router, prefix="/views")
    app.include_router(analytics.router, prefix="/analytics")
    app.include_router(monitoring.router)

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


@app.on_event("startup")
async def startup_event():
    setup_structured_logging(log_level="DEBUG" if settings.debug else "INFO", json_format=settings.log_json)
    logger.info("Starting up the application...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created (if not existing).")

    install_retention_policy(
        scheduler,
        retention_days=settings.view_event_retention_days,
        interval_hours=settings.view_event_retention_interval_hours,
    )
    scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down the application...")
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await cache_manager.disconnect()
