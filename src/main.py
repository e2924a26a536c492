from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.config import Settings, get_settings
from src.shared.exceptions import register_exception_handlers  # central mapping
from src.shared.infrastructure.observability.logger import bind_context, clear_context, configure_logging
from src.sms.api.routes.messages import router as messages_router
from src.sms.api.routes.rate_limits import router as rate_limits_router
from src.sms.api.routes.webhooks import router as webhooks_router
from src.sms.infrastructure.dependencies import ServiceContainer, build_container


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Assigns request.state.request_id (from X-Request-ID or a new uuid) and
    binds it to the log context for the duration of the request.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid4())
        request.state.request_id = request_id
        bind_context(request_id=request_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_context()
        response.headers["X-Request-ID"] = request_id
        return response


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.container is None:
            app.state.container = build_container(settings)
        if settings.DATABASE_CREATE_SCHEMA:
            await app.state.container.database.create_schema()
        try:
            yield
        finally:
            await app.state.container.close()

    app = FastAPI(
        title="SMS Delivery Pipeline API",
        version=settings.PROJECT_VERSION,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(RequestContextMiddleware)

    # Routers
    app.include_router(messages_router)
    app.include_router(rate_limits_router)
    app.include_router(webhooks_router)

    # Centralized error handling → {code, message, details?, correlation_id?}
    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.PROJECT_NAME}

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "message": "SMS Delivery Pipeline API",
            "docs": "/docs",
            "health": "/health",
        }

    return app


def _create_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    return create_app(settings)


app = _create_default_app()
