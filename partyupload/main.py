"""Entry point for the Party Upload service."""

import re
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.logging_config import reset_request_id, set_request_id, setup_logging
from partyupload import config
from partyupload.blob_storage import storage_writable
from partyupload.cleanup_task import ReservationCleaner
from partyupload.database import get_db_connection, init_database
from partyupload.exceptions import (
    AccessForbiddenError,
    AuthorizationRequiredError,
    PartyUploadError,
    RateLimitedError,
)
from partyupload.routes.app_routes import router as app_router
from partyupload.routes.event_routes import router as event_router
from partyupload.routes.file_routes import router as file_router

logger = setup_logging('partyupload')

cleanup_task = ReservationCleaner()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Initialize storage and start background tasks for the application lifetime.
    """
    logger.info("Party Upload service starting up...")

    init_database()
    Path(config.DATA_ROOT_PATH).mkdir(parents=True, exist_ok=True)
    logger.info(f"Database initialized [path={config.DATABASE_PATH}] data_root={config.DATA_ROOT_PATH}")

    await cleanup_task.start()

    yield

    logger.info("Party Upload service shutting down...")
    await cleanup_task.stop()


app = FastAPI(
    title="Party Upload API",
    description="Password-gated file sharing for short-lived events",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if config.ENABLE_API_DOCS else None,
    redoc_url=None,
    openapi_url="/openapi.json" if config.ENABLE_API_DOCS else None,
)


def build_cors_origin_regex() -> str:
    """
    Origin pattern for the configured domains.

    Each domain is allowed over http(s), with any subdomain when events are
    addressed as <eventId>.<domain>.
    """
    patterns = []
    for domain in config.ALLOWED_DOMAINS:
        escaped = re.escape(domain)
        if config.SUPPORT_SUBDOMAIN:
            patterns.append(rf"https?://([a-z0-9-]+\.)?{escaped}(:\d+)?")
        else:
            patterns.append(rf"https?://{escaped}(:\d+)?")
    return "|".join(patterns)


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_origin_regex=build_cors_origin_regex() or None,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = set_request_id(request_id)

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path}")

    try:
        response = await call_next(request)

        duration = time.time() - start_time

        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s"
        )

        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        reset_request_id(token)


def _error_response(exc: PartyUploadError, headers=None) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RateLimitedError)
async def rate_limited_handler(request: Request, exc: RateLimitedError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Rate limited: retry_after={exc.retry_after_seconds}s [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc, headers={"Retry-After": str(exc.retry_after_seconds)})


@app.exception_handler(AuthorizationRequiredError)
async def authorization_required_handler(request: Request, exc: AuthorizationRequiredError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Authorization required: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc)


@app.exception_handler(AccessForbiddenError)
async def access_forbidden_handler(request: Request, exc: AccessForbiddenError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Access forbidden ({exc.error_key}): {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc)


@app.exception_handler(PartyUploadError)
async def party_upload_error_handler(request: Request, exc: PartyUploadError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    if exc.status_code >= 500:
        logger.error(
            f"Service error ({exc.error_key}): {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
    else:
        logger.info(
            f"Request rejected ({exc.error_key}): {exc} property={exc.field} "
            f"[request_id={request_id}] path={request.url.path}"
        )
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = [part for part in first.get("loc", ()) if isinstance(part, str)]
    field = location[-1] if len(location) > 1 else None
    logger.info(
        f"Request validation failed: property={field} [request_id={request_id}] path={request.url.path}"
    )
    body = {
        "message": first.get("msg", "Invalid input."),
        "errorKey": "INVALID_INPUT",
        "additionalParams": {},
    }
    if field is not None:
        body["property"] = field
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Unhandled error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error.", "errorKey": "INTERNAL_ERROR", "additionalParams": {}}
    )


app.include_router(app_router)
app.include_router(event_router)
app.include_router(file_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "partyupload"}


@app.get("/ready")
def ready_check():
    """
    Readiness check endpoint.
    Verifies database access and that the data root is writable.
    """
    try:
        with get_db_connection() as conn:
            conn.execute("SELECT 1 FROM events LIMIT 1")
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    try:
        storage_status = "ok" if storage_writable() else "error: data root not writable"
    except OSError as e:
        storage_status = f"error: {str(e)}"

    ready = db_status == "ok" and storage_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "database": db_status,
            "storage": storage_status
        }
    )


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "partyupload.main:app",
        host=config.HOST,
        port=config.PORT,
    )


if __name__ == "__main__":
    main()
