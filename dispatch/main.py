"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dispatch.api import router
from dispatch.api.websocket import handle_websocket
from dispatch.config import get_settings
from dispatch.errors import DispatchError, InputValidationError, StorageUnavailableError
from dispatch.notifications.hub import ConnectionHub
from dispatch.services import build_services
from dispatch.state.manager import StateManager
from dispatch.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
logger = get_logger(__name__)


def validation_fields(exc: RequestValidationError) -> dict[str, str]:
    """Flatten pydantic errors into ``{"field.path": "message"}``."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "body"] = error.get("msg", "Invalid value")
    return fields


def create_app(
    state_manager: StateManager | None = None,
    hub: ConnectionHub | None = None,
) -> FastAPI:
    """
    Build the application.

    Services are wired eagerly so the app works with or without the
    lifespan having run (ASGI test transports skip it).

    Args:
        state_manager: Storage to use; a Redis-backed one from settings by default
        hub: WebSocket hub; doubles as the notification port

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()
    state_manager = state_manager or StateManager()
    hub = hub or ConnectionHub(send_timeout=settings.notification_send_timeout)
    services = build_services(state_manager, hub, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        # Startup
        logger.info("application_starting", environment=settings.environment)
        await state_manager.connect()
        logger.info("state_manager_initialized")

        yield

        # Shutdown
        logger.info("application_shutting_down")
        await hub.drain()
        await state_manager.disconnect()

    app = FastAPI(
        title=settings.app_name,
        description="Order lifecycle, partner assignment and real-time dispatch updates",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.hub = hub

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
        if isinstance(exc, StorageUnavailableError) or exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = InputValidationError("Validation failed", fields=validation_fields(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path, error=str(exc))
        content = {"success": False, "error": "internal_error", "message": "Server error"}
        if settings.debug:
            content["detail"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        storage = "up"
        try:
            await state_manager.ping()
        except DispatchError:
            storage = "down"
        return {
            "status": "healthy" if storage == "up" else "degraded",
            "service": "order-dispatch",
            "storage": storage,
        }

    app.include_router(router, prefix="/api")

    # WebSocket endpoint
    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Push channel for order and partner events."""
        await handle_websocket(websocket, hub, services)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "dispatch.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
    )
