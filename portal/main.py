"""
Module: main
Purpose: FastAPI application: middleware, error bodies, lifespan and health endpoints
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from portal.core.config import settings, get_cors_origins, validate_security_configuration
from portal.core.constants import ErrorCode
from portal.core.exceptions import PortalException
from portal.db.database import db_manager, check_database_health
from portal.api.api import api_router
from portal.schemas.common import error_body
from portal.utils.logger import setup_logging

logger = setup_logging()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update({
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "X-API-Version": settings.VERSION,
        })
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request with its duration, also echoed in ``X-Process-Time``."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} failed after {time.perf_counter() - started:.4f}s: {e}")
            raise

        elapsed = time.perf_counter() - started
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.log_api_request(request.method, request.url.path, response.status_code, elapsed)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Development and test runs create the schema directly. Other
    environments rely on Alembic and only check the connection.
    """
    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} starting ({settings.ENVIRONMENT})")
    for warning in validate_security_configuration():
        logger.warning(f"Security warning: {warning}")

    try:
        if settings.is_development or settings.is_testing:
            db_manager.create_tables()
        elif check_database_health()["database"]["status"] != "healthy":
            logger.warning("Database is not reachable at startup")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        if settings.is_production:
            raise

    yield

    logger.info(f"{settings.PROJECT_NAME} shutting down")
    db_manager.engine.dispose()


# Application

app = FastAPI(
    title=settings.PROJECT_NAME,
    description=(
        "Operations portal API: branch cashbook with running balances and an "
        "approval workflow, notifications, task emails and the daily report."
    ),
    version=settings.VERSION,
    lifespan=lifespan,
    openapi_url="/openapi.json" if not settings.is_production else None,
)

# Middleware

cors_origins = get_cors_origins()
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Process-Time", "X-API-Version"]
    )

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)

if not settings.is_production:
    app.add_middleware(RequestLoggingMiddleware)


# Error bodies

@app.exception_handler(PortalException)
async def portal_exception_handler(request: Request, exc: PortalException):
    if exc.status_code >= 500:
        logger.error(f"Portal exception on {request.url.path}: {exc.message}", error_code=exc.error_code)
    else:
        logger.warning(f"{exc.status_code} on {request.url.path}: {exc.message}", error_code=exc.error_code)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error_code, exc.details, str(request.url.path)),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request validation errors are answered with 400."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    message = f"Validation failed: {errors[0]['message']}" if errors else "Validation failed"
    logger.warning(f"Validation error on {request.url.path}: {message}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, ErrorCode.INVALID_INPUT.value, {"errors": errors}, str(request.url.path)),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Unexpected errors surface their message with a 500."""
    logger.error(f"Unhandled exception on {request.url.path}: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(str(exc), ErrorCode.INTERNAL_ERROR.value, None, str(request.url.path)),
    )


# Routes

app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/", tags=["Root"])
def root():
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "api": settings.API_PREFIX,
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness and database check."""
    health = check_database_health()
    healthy = health["database"]["status"] == "healthy"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            **health,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "portal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
