"""Shared utilities for API route modules."""

from __future__ import annotations

from datetime import date

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sienna.core.assembler import Assembled

DATA_SOURCE_HEADER = "X-Data-Source"


def respond(result: Assembled) -> JSONResponse:
    """JSON body from an assembled payload, with the data-source header set."""
    return JSONResponse(
        content=jsonable_encoder(result.payload),
        headers={DATA_SOURCE_HEADER: result.data_source},
    )


def parse_day(value: str | None) -> date:
    """Parse a ``YYYY-MM-DD`` query param or raise 400."""
    if not value:
        raise HTTPException(status_code=400, detail="date is required")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def acting_user(request: Request, header_name: str) -> str | None:
    """Identity-provider ID of the admin making the request, if the proxy sent one."""
    return request.headers.get(header_name) or None


class APIKeyAuthMiddleware(BaseHTTPMiddleware):
    """Optional API key authentication middleware.

    When enabled, checks for a valid API key in the configured header.
    Allows OPTIONS requests (CORS preflight) and health/swagger endpoints through.
    """

    def __init__(self, app, api_key: str, header_name: str = "X-API-Key"):
        super().__init__(app)
        self.api_key = api_key
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return await call_next(request)
        path = request.url.path.rstrip("/")
        if path in ("/status", "/swagger", "/openapi.json",
                    "/api/status", "/api/swagger", "/api/openapi.json"):
            return await call_next(request)

        token = request.headers.get(self.header_name)
        if not token or token != self.api_key:
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized"},
            )
        return await call_next(request)
