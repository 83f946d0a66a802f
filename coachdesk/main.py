"""
CoachDesk — Multi-Tenant Coaching Center Backend
FastAPI entry point.
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from coachdesk.core.config import settings
from coachdesk.core.logging_config import setup_logging
from coachdesk.core.middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware
from coachdesk.routers import (
    admin,
    assignments,
    attendance,
    auth,
    batches,
    contact,
    courses,
    fees,
    materials,
    notices,
    recordings,
    schedules,
    students,
    submissions,
    support,
    teachers,
)
from coachdesk.utils.response import error_response

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-Tenant Coaching Center Management Backend",
    version="1.0.0",
    debug=settings.DEBUG,
)

# Upload size guard, then request logging around it
app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.max_upload_bytes)
app.add_middleware(RequestLoggingMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", message)
    return JSONResponse(status_code=422, content=error_response(message))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_response("Internal server error"))


# Uploaded files
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

# Include routers
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(courses.router)
app.include_router(batches.router)
app.include_router(assignments.router)
app.include_router(submissions.router)
app.include_router(attendance.router)
app.include_router(fees.router)
app.include_router(recordings.router)
app.include_router(materials.router)
app.include_router(notices.router)
app.include_router(students.router)
app.include_router(teachers.router)
app.include_router(schedules.router)
app.include_router(support.router)
app.include_router(contact.router)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running",
        "auth_mode": settings.AUTH_MODE,
    }


@app.get("/api/health")
async def health():
    return {"status": "healthy", "auth_mode": settings.AUTH_MODE}
