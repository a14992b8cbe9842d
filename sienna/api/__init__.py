"""Sienna REST API: analytics and content-management endpoints for the admin dashboard.

Split into domain modules under sienna/api/. Each module exports a
register_routes(router, svc) function that adds its endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sienna import __version__
from sienna.api.utils import APIKeyAuthMiddleware
from sienna.core.services import Services
from sienna.core.utils import ConflictError, IntegrationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _error(status: int, message: str, detail=None) -> JSONResponse:
    content = {"error": message}
    if detail is not None:
        content["detail"] = detail
    return JSONResponse(status_code=status, content=content)


def _register_error_handlers(app: FastAPI, production: bool) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(ConflictError)
    async def conflict(request: Request, exc: ConflictError):
        return _error(409, str(exc))

    @app.exception_handler(ValidationError)
    async def invalid(request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(IntegrationError)
    async def integration_failed(request: Request, exc: IntegrationError):
        logger.warning("%s %s: %s", request.method, request.url.path, exc)
        if exc.status == 404:
            return _error(404, "Not found")
        return _error(502, str(exc) if not production else "Upstream service failed")

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        detail = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
            for e in exc.errors()
        ]
        return _error(400, "Invalid request", detail)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error(500, "Internal server error", None if production else str(exc))


def create_api(svc: Services) -> FastAPI:
    """Build the REST API as a FastAPI app.

    Mounted under ``/api`` by the server; the server owns the DB lifecycle.
    """
    db = svc.db
    config = svc.config

    def _release_db_conn():
        """Release any DB connection the request thread still holds."""
        yield
        db.release_if_held()

    app = FastAPI(
        title="Sienna Dashboard API",
        version=__version__,
        description="Analytics and content management for the Sienna Naturals chatbot.",
        docs_url="/swagger",
        redoc_url=None,
        dependencies=[Depends(_release_db_conn)],
    )

    _register_error_handlers(app, production=config.is_production)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Data-Source"],
    )

    if config.auth.enabled and config.auth.api_key:
        app.add_middleware(
            APIKeyAuthMiddleware,
            api_key=config.auth.api_key,
            header_name=config.auth.header_name,
        )
        logger.info("API key auth enabled (header: %s)", config.auth.header_name)

    router = APIRouter()

    from sienna.api.core import register_routes as reg_core
    from sienna.api.analytics import register_routes as reg_analytics
    from sienna.api.concerns import register_routes as reg_concerns
    from sienna.api.catalog import register_routes as reg_catalog
    from sienna.api.conversations import register_routes as reg_conversations
    from sienna.api.training import register_routes as reg_training
    from sienna.api.team import register_routes as reg_team

    reg_core(router, svc)
    reg_analytics(router, svc)
    reg_concerns(router, svc)
    reg_catalog(router, svc)
    reg_conversations(router, svc)
    reg_training(router, svc)
    reg_team(router, svc)

    app.include_router(router)
    return app
