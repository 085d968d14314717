import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from core.logging import get_logger, configure_logging
from app.containers import AppContainer
from api.middleware.request_ids import RequestIdMiddleware
from api.middleware.error_handling import ErrorHandlingMiddleware, register_exception_handlers
from api.routers import broker, realtime, system, trades, webhooks
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

logger = get_logger("api.main", component="api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting trade sync API server")
    orchestrator = app.state.container.orchestrator()

    # Every startup step logs and continues; the process always comes up
    await orchestrator.startup()

    yield

    logger.info("Shutting down trade sync API server")
    try:
        await orchestrator.stop()
    except Exception as e:
        logger.error("Error during API shutdown", error=str(e))


def _build_uvicorn_log_config() -> dict:
    """Minimal log config that keeps the structlog handler on the root logger.

    Only levels and propagation are set; uvicorn records propagate to the root
    handler installed by configure_logging.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "loggers": {
            "uvicorn": {"level": "INFO", "propagate": True},
            "uvicorn.error": {"level": "INFO", "propagate": True},
            "uvicorn.access": {"level": "INFO", "propagate": True},
        },
    }


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    """Creates and configures the FastAPI application"""
    container = container or AppContainer()
    settings = container.settings()
    configure_logging(settings)

    app = FastAPI(
        title=f"{settings.app_name} API",
        version=settings.version,
        description="Administrative and real-time surface of the trade ingestion engine.",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.container = container
    # Use DI: shared Prometheus registry from container
    app.state.prom_registry = container.prometheus_registry()

    container.wire(modules=["api.dependencies"])

    # Order matters - last added is outermost
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials="*" not in settings.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(trades.router, prefix="/api")
    app.include_router(broker.router, prefix="/api")
    app.include_router(system.router, prefix="/api")
    app.include_router(webhooks.router, prefix="/api")
    app.include_router(realtime.router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        database_ok = await container.db_manager().verify_connection()
        return {
            "status": "healthy" if database_ok else "degraded",
            "database": "ok" if database_ok else "unavailable",
            "service": "trade-sync-api",
            "version": settings.version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # Prometheus metrics endpoint
    @app.get("/metrics", tags=["Monitoring"])
    def metrics():
        try:
            data = generate_latest(app.state.prom_registry)
            return Response(content=data, media_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            logger.error("Failed to generate Prometheus metrics", error=str(e))
            # Minimal failure response to prevent scraper from crashing
            return Response(content=b"", media_type=CONTENT_TYPE_LATEST)

    return app


def run():
    """Main function to run the API server"""
    app = create_app()
    settings = app.state.container.settings()
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.logging.level.lower(),
        access_log=True,
        log_config=_build_uvicorn_log_config(),
    )


if __name__ == "__main__":
    run()
