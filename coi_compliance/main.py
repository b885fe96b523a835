"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from coi_compliance.api.v1.endpoints import health
from coi_compliance.api.v1.router import api_router
from coi_compliance.core.config import settings
from coi_compliance.core.database import async_session_maker, close_database, init_database
from coi_compliance.core.default_templates import seed_system_templates
from coi_compliance.core.exceptions import (
    AppError,
    AuthorizationError,
    CascadeInUseError,
    ConfigurationError,
    DuplicateDocumentError,
    ExtractionFailure,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)
from coi_compliance.utils.logging import get_logger
from coi_compliance.utils.responses import create_error_detail

LOGGER = get_logger(__name__, level=settings.log_level)

# Most specific first: DuplicateDocumentError is also a ValidationError
ERROR_STATUS = [
    (DuplicateDocumentError, status.HTTP_409_CONFLICT, "Duplicate Document"),
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Validation Error"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Not Found"),
    (AuthorizationError, status.HTTP_403_FORBIDDEN, "Forbidden"),
    (CascadeInUseError, status.HTTP_409_CONFLICT, "Template In Use"),
    (RateLimitExceededError, status.HTTP_429_TOO_MANY_REQUESTS, "Rate Limit Exceeded"),
    (ExtractionFailure, status.HTTP_422_UNPROCESSABLE_ENTITY, "Extraction Failed"),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE, "Service Unavailable"),
]


class RootResponse(BaseModel):
    """Root endpoint response payload."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    LOGGER.info("Validating configuration...")
    if not settings.extraction.api_key:
        LOGGER.error("ANTHROPIC_API_KEY is missing; certificate uploads will fail")

    LOGGER.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    try:
        await init_database(auto_migrate=settings.auto_migrate)
        await seed_system_templates(async_session_maker)
    except Exception as e:
        LOGGER.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    LOGGER.info("Shutting down application")
    try:
        await close_database()
    except Exception as e:
        LOGGER.error("Error closing database", exc_info=True, extra={"error": str(e)})


def error_status(error: AppError) -> tuple[int, str]:
    for error_type, status_code, title in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code, title
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code, title = error_status(exc)
    if status_code >= 500:
        LOGGER.error(
            f"Request failed: {exc.message}",
            exc_info=exc.original_error or exc,
            extra={"path": request.url.path, "code": exc.code},
        )
        detail = exc.message if status_code == 503 else "An unexpected error occurred."
    else:
        detail = exc.message

    error_detail = create_error_detail(
        title=title,
        status=status_code,
        detail=detail,
        request=request,
        code=exc.code,
        details=exc.details,
    )
    return JSONResponse(status_code=status_code, content=error_detail.model_dump(mode="json"))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid request")
    error_detail = create_error_detail(
        title="Validation Error",
        status=status.HTTP_400_BAD_REQUEST,
        detail=f"{location}: {message}" if location else message,
        request=request,
        code=ValidationError.code,
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=error_detail.model_dump(mode="json")
    )


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Certificate of insurance compliance tracking for property managers",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get(
    "/",
    response_model=RootResponse,
    tags=["Root"],
    summary="Root endpoint",
    description="Get basic information about the API",
    operation_id="get_public_root_metadata",
)
async def root() -> RootResponse:
    """Root endpoint.

    Returns:
        RootResponse: Basic API information
    """
    return RootResponse(
        message="Server is running",
        version=settings.app_version,
        docs="/docs",
        health="/health",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coi_compliance.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
