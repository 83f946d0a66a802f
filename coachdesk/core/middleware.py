"""
Middleware — request logging, upload size limit, and tenant resolution helper.
"""

import logging
import time

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from coachdesk.core.logging_config import generate_request_id, request_id_var
from coachdesk.utils.response import error_response

logger = logging.getLogger(__name__)

# Paths that are too noisy to log on every hit
SKIP_LOG_PATHS = {"/", "/api/health", "/docs", "/redoc", "/openapi.json"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        token = request_id_var.set(request_id)
        path = request.url.path
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        duration_ms = (time.perf_counter() - start) * 1000
        if path not in SKIP_LOG_PATHS and not path.startswith("/uploads"):
            logger.info(
                "%s %s -> %s (%.1f ms) [%s]",
                request.method, path, response.status_code, duration_ms, request_id,
            )
        response.headers["X-Request-ID"] = request_id
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies whose declared Content-Length exceeds the upload limit."""

    def __init__(self, app: ASGIApp, max_size: int):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                "Request body too large: %s bytes (max %s) on %s",
                content_length, self.max_size, request.url.path,
            )
            return JSONResponse(
                status_code=413,
                content=error_response(
                    f"Request body too large. Maximum size is {self.max_size // 1024 // 1024}MB"
                ),
            )
        return await call_next(request)


def get_tenant_id(user: dict) -> str | None:
    """
    Extract tenant_id from authenticated user.
    Super admin has no tenant_id (can access all).
    Everyone else MUST have a tenant_id.
    """
    tenant_id = user.get("tenant_id")
    if user.get("role") == "super_admin":
        return tenant_id  # can be None
    if not tenant_id:
        raise HTTPException(status_code=403, detail="No tenant context. User not assigned to a coaching center.")
    return tenant_id


def get_user_id(user: dict) -> str:
    return user.get("user_id", user.get("uid"))
