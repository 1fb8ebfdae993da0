import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from secure_upload.api.v1.router import api_router
from secure_upload.config import settings
from secure_upload.core.exceptions import (
    AccessDeniedException,
    ConflictException,
    NotFoundException,
    StorageException,
    ValidationException,
)
from secure_upload.core.logging_config import setup_logging, cleanup_old_logs
from secure_upload.core.logging_utils import get_request_id, sanitize_log_message
from secure_upload.middleware.logging_middleware import LoggingMiddleware
from secure_upload.middleware.rate_limit import setup_rate_limiting
from secure_upload.middleware.security import setup_security_middleware
from secure_upload.repositories.factory import build_store
from secure_upload.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize logging and the store on startup; release the store on shutdown."""
    setup_logging()
    cleanup_old_logs()
    app.state.store = await build_store(settings)
    logger.info(f"Application startup complete - Storage: {app.state.store.backend}")
    yield
    await app.state.store.close()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID", "Accept", "Origin"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)

# Security middleware (request size limit + security headers)
setup_security_middleware(app, max_request_size=settings.MAX_REQUEST_SIZE)

# Logging middleware (after CORS, before routes)
if settings.LOG_ENABLE_REQUEST_LOGGING:
    app.add_middleware(LoggingMiddleware)

# Rate limiting
setup_rate_limiting(app)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


def _context(request: Request) -> dict:
    return {
        "RequestID": get_request_id(request),
        "Path": request.url.path,
        "Method": request.method,
        "IP": request.client.host if request.client else None,
    }


# Exception handlers with logging
@app.exception_handler(ValidationException)
async def validation_handler(request: Request, exc: ValidationException):
    logger.info(sanitize_log_message("Validation failed", Detail=exc.detail, **_context(request)))
    return _error(exc.status_code, exc.detail)


@app.exception_handler(NotFoundException)
async def not_found_handler(request: Request, exc: NotFoundException):
    logger.info(sanitize_log_message("Resource not found", Detail=exc.detail, **_context(request)))
    return _error(exc.status_code, exc.detail)


@app.exception_handler(AccessDeniedException)
async def access_denied_handler(request: Request, exc: AccessDeniedException):
    logger.warning(sanitize_log_message("Access denied", Detail=exc.detail, **_context(request)))
    return _error(exc.status_code, exc.detail)


@app.exception_handler(ConflictException)
async def conflict_handler(request: Request, exc: ConflictException):
    logger.warning(sanitize_log_message("Conflict", Detail=exc.detail, **_context(request)))
    return _error(exc.status_code, exc.detail)


@app.exception_handler(StorageException)
async def storage_handler(request: Request, exc: StorageException):
    logger.error(sanitize_log_message("Storage failure", Detail=exc.detail, **_context(request)))
    return _error(exc.status_code, "An internal error occurred while storing data")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    logger.info(sanitize_log_message("Request validation failed", Errors=len(errors), **_context(request)))
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.info(
        sanitize_log_message("HTTP error", StatusCode=exc.status_code, Detail=exc.detail, **_context(request))
    )
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


# Generic exception handler for unhandled exceptions
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(
        sanitize_log_message(
            f"Unhandled exception: {type(exc).__name__}",
            ExceptionMessage=str(exc),
            **_context(request)
        )
    )
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error" if settings.is_production() else str(exc),
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_STR}/docs"
    }
