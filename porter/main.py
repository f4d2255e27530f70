"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from porter import __version__
from porter.api.dependencies import DispatchServices
from porter.api.routes import router
from porter.api.websocket import ConnectionManager, handle_websocket
from porter.config import get_settings
from porter.exceptions import register_exception_handlers
from porter.state.manager import StateManager, get_state_manager
from porter.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
logger = get_logger(__name__)


def build_services(app: FastAPI, state: StateManager) -> DispatchServices:
    """Wire the dispatch services onto ``app.state``."""
    connections = ConnectionManager()
    services = DispatchServices(state, connections)
    app.state.connections = connections
    app.state.services = services
    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("application_starting")

    # Tests pre-wire services against a fake Redis.
    if getattr(app.state, "services", None) is None:
        state_manager = await get_state_manager()
        build_services(app, state_manager)
        logger.info("state_manager_initialized")

    yield

    logger.info("application_shutting_down")
    await app.state.services.state.disconnect()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Porter Dispatch",
        description="Delivery dispatch core: orders, drivers, vehicles and live tracking",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        services: DispatchServices | None = getattr(app.state, "services", None)
        redis_ok = False
        if services is not None:
            try:
                redis_ok = await services.state.ping()
            except Exception as e:
                logger.warning("health_redis_unreachable", error=str(e))

        return {
            "status": "healthy" if redis_ok else "degraded",
            "service": "porter-dispatch",
            "redis": "ok" if redis_ok else "unreachable",
        }

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Porter Dispatch API",
            "docs": "/docs",
            "health": "/health",
        }

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Real-time subscriptions to order, fleet and driver channels."""
        await handle_websocket(websocket, app.state.connections, app.state.services)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "porter.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
    )
