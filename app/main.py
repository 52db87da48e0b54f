from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from core.config import settings
from core.database import AsyncDatabaseConfig, db_manager
from core.logging import configure_logging
from core.MongoORJSONResponse import MongoORJSONResponse
from core.plugin_loader import discover_and_register_plugins
from metrics.metrics import get_metrics

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting billing console API...", env=settings.APP_ENV)

    db_config = AsyncDatabaseConfig.from_env()
    await db_manager.initialize(config=db_config)
    adb = db_manager.database

    app.state.adb = adb
    app.state.metrics = get_metrics()
    await discover_and_register_plugins(app, db=adb)

    health = await db_manager.health_check()
    if health["status"] != "healthy":
        raise RuntimeError(f"Database unhealthy: {health}")
    logger.info("billing_console_started", database=health)

    yield

    # Shutdown
    await db_manager.close()
    logger.info("billing_console_stopped")


app = FastAPI(
    title=settings.APP_NAME,
    description="Bills, payments and monthly rent generation for the landlord console",
    version="1.0.0",
    lifespan=lifespan,
    default_response_class=MongoORJSONResponse,
)


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with proper logging"""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "data": None, "error": str(exc.detail)}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(
        "unexpected_exception",
        error=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={"success": False, "data": None, "error": "Internal server error"}
    )


@app.get("/")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
async def health():
    return await db_manager.health_check()


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(get_metrics().registry), media_type=CONTENT_TYPE_LATEST)
