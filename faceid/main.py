"""Main application module for the face identity service."""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from faceid.api import router as api_v1_router
from faceid.core.config import settings
from faceid.core.container import container
from faceid.core.exceptions import ServiceNotInitializedError
from faceid.core.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[Any, None]:
    """Build the identity services on startup and release the store on shutdown.

    Loading the face model happens here, so a missing model pack fails startup
    rather than the first request.
    """
    logger.info(
        "Starting face identity service",
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        identity_store=settings.IDENTITY_STORE,
    )
    await container.initialize()

    yield

    await container.cleanup()
    logger.info("Face identity service stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.exception_handler(ServiceNotInitializedError)
async def service_not_initialized_handler(request: Request, exc: ServiceNotInitializedError) -> JSONResponse:
    """Report requests arriving before startup finished as unavailable."""
    logger.error("Service not initialized", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content={"detail": {"reason": "SERVICE_NOT_INITIALIZED", "message": str(exc)}},
    )


@app.get("/health")
async def health_check() -> dict:
    """Report liveness and whether the identity services are ready.

    Returns:
        dict: Health status
    """
    ready = container.enrollment_service is not None
    return {
        "status": "healthy",
        "ready": ready,
        "store": type(container.identity_store).__name__ if ready else None,
    }
