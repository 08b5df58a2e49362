"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Dispatch Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fleet_backend.app.core.config import settings
from fleet_backend.app.api.v1.router import router as api_v1_router
from fleet_backend.app.db.session import engine, Base, AsyncSessionLocal
from fleet_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from fleet_backend.app.core.redis_client import redis_client, ping_redis
from fleet_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from fleet_backend.app.services.overdue_monitor import OverdueMonitor
from fleet_backend.app.services.realtime import ChangeNotifier, RealtimeSyncBridge, manager

# Import models to ensure they are registered with Base
from fleet_backend.app.models.fleet import Client, Vehicle, Driver
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_assignment import TripAssignment
from fleet_backend.app.models.trip_message import TripMessage
from fleet_backend.app.models.activity import Activity
from fleet_backend.app.models.alert import Alert

configure_logging(settings.debug)
logger = logging.getLogger("fleet.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Starts the overdue monitor and the realtime bridge (when enabled).
    3. Stops both on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    monitor = None
    if settings.overdue_sweep_enabled:
        monitor = OverdueMonitor(AsyncSessionLocal, notifier_factory=lambda: ChangeNotifier(redis_client))
        monitor.start()

    bridge = None
    if settings.realtime_enabled:
        bridge = RealtimeSyncBridge(redis_client, manager)
        bridge.start()

    app.state.overdue_monitor = monitor
    app.state.realtime_bridge = bridge
    logger.info("%s started", settings.app_name)

    yield

    if bridge is not None:
        await bridge.stop()
    if monitor is not None:
        await monitor.stop()
    logger.info("%s stopped", settings.app_name)


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Trip booking, dispatch and driver coordination backend for fleet operations",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and Redis reachability
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Fleet Dispatch Backend API",
        "docs": "/docs",
        "health": "/health",
    }
