import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cabinet.core.config import settings
from cabinet.core.database import init_models
from cabinet.core.logging import setup_logging
from cabinet.core.minio import minio_client
from cabinet.core.redis import redis_client
from cabinet.api.v1.router import api_router
from cabinet.utils.exceptions import (
    AuthenticationError,
    CabinetException,
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidFormatError,
    InvalidOperationError,
    NotEmptyError,
    NotFoundError,
    StorageFailureError,
    ValidationError,
)

setup_logging()
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    NotEmptyError: status.HTTP_409_CONFLICT,
    InvalidOperationError: status.HTTP_400_BAD_REQUEST,
    InvalidFormatError: status.HTTP_400_BAD_REQUEST,
    ExpiredError: status.HTTP_410_GONE,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    StorageFailureError: status.HTTP_502_BAD_GATEWAY,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    logger.info("Starting up...")
    await redis_client.connect()
    await minio_client.ensure_bucket_exists()
    await init_models()

    yield

    logger.info("Shutting down...")
    await redis_client.disconnect()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CabinetException)
async def cabinet_exception_handler(request: Request, exc: CabinetException):
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
        headers=headers,
    )


# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


# Root endpoint
@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "health": "/health",
        "api": settings.API_V1_PREFIX,
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    redis_status = "healthy" if await redis_client.ping() else "unhealthy"

    minio_status = "healthy"
    try:
        await minio_client.ensure_bucket_exists()
    except Exception as e:
        logger.warning(f"MinIO health check failed: {e}")
        minio_status = "unhealthy"

    return {
        "status": "healthy" if redis_status == "healthy" and minio_status == "healthy" else "degraded",
        "services": {
            "redis": redis_status,
            "minio": minio_status
        }
    }
