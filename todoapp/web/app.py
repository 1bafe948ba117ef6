"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine  # noqa: TC002  (resolved by FastAPI at runtime)

from todoapp.config.logging import setup_logging
from todoapp.config.settings import get_settings
from todoapp.storage.database import init_db
from todoapp.web.dependencies import provide_engine
from todoapp.web.health import check_health
from todoapp.web.middleware import RateLimitMiddleware, RequestIDMiddleware
from todoapp.web.routes.auth import router as auth_router
from todoapp.web.routes.subtasks import router as subtasks_router
from todoapp.web.routes.tags import router as tags_router
from todoapp.web.routes.templates import router as templates_router
from todoapp.web.routes.todos import router as todos_router
from todoapp.web.routes.transfer import router as transfer_router
from todoapp.web.security_headers import SecurityHeadersMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi.exceptions import HTTPException

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    engine = app.dependency_overrides.get(provide_engine, provide_engine)()
    await init_db(engine)
    logger.info("database_ready")
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="Todo App",
        description="Todo list with passkey authentication",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(401)
    async def unauthorized_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("request_invalid", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        )

    # Middleware (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIDMiddleware)

    # Public routes; protected ones check the session per endpoint
    app.include_router(auth_router)

    @app.get("/api/health")
    async def health_check(engine: AsyncEngine = Depends(provide_engine)) -> dict[str, object]:
        return await check_health(engine)

    for router in (todos_router, subtasks_router, tags_router, templates_router, transfer_router):
        app.include_router(router)

    logger.info("app_created")
    return app
