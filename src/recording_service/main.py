"""
Ride Recording Service - Main Application

FastAPI application for ride audio/video recording lifecycle management.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from recording_service.config.settings import settings
from recording_service.api.routes.admin import router as admin_router
from recording_service.api.routes.recordings import router as recordings_router
from recording_service.core.exceptions import RecordingServiceError
from recording_service.core.services import build_services
from recording_service.infrastructure.database.client import db_client
from recording_service.infrastructure.storage import get_storage_provider

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info(f"Starting {settings.service_name} ({settings.environment})")
    logger.info(f"Database: {settings.database_url}")

    await db_client.initialize()

    services = build_services(db_client.session_maker, get_storage_provider(), settings)
    await services.processing_queue.start()
    app.state.services = services

    yield

    # Shutdown
    logger.info("Shutting down Ride Recording Service")
    await services.processing_queue.shutdown(drain=True)
    await db_client.close()


# Create FastAPI app
app = FastAPI(
    title="Ride Recording Service",
    description="Microservice for ride audio/video recordings: capture, upload, consent, access audit and retention",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RecordingServiceError)
async def recording_service_error_handler(request: Request, exc: RecordingServiceError) -> JSONResponse:
    """Render service errors as {"error": code, "detail": message}"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message}
    )


# Include routers
app.include_router(recordings_router)
app.include_router(admin_router)


# Root endpoint
@app.get(
    "/",
    summary="Service Information",
    description="""
Returns basic information about the Ride Recording Service.

**Response Example**:
```json
{
  "service": "ride-recording-service",
  "version": "0.1.0",
  "status": "running",
  "environment": "production"
}
```

**Authorization**: None required (public endpoint)
    """,
    responses={
        200: {"description": "Service information returned successfully"}
    }
)
async def root():
    """Root endpoint"""
    return {
        "service": settings.service_name,
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment
    }


# Health endpoint (simple version at root level)
@app.get(
    "/health",
    summary="Health Check",
    description="""
Returns the liveness of the Ride Recording Service.

**Use Cases**:
- Kubernetes liveness/readiness probes
- Load balancer health checks
- Docker Compose healthcheck

**Storage**: No database or storage query (lightweight check)
**Authorization**: None required (public endpoint)

**Note**: For storage and database status, use `/api/v1/recordings/health`.
    """,
    responses={
        200: {"description": "Service is healthy and operational"}
    }
)
async def health():
    """Simple health check"""
    return {"status": "healthy", "service": settings.service_name}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "recording_service.main:app",
        host=settings.host,
        port=settings.port,
        reload=True if settings.environment == "development" else False
    )
