"""
SoundCheck - Crowd Rating for Short Audio Clips
FastAPI backend for the track lifecycle, credit ledger and rating aggregation
"""

from contextlib import asynccontextmanager
from typing import Any, Dict

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api.dependencies import close_milestone_notifier
from .api.routes import catalog, maintenance, profiles, ratings, tracks, uploads
from .core.config import get_settings
from .core.errors import FatalError, GENERIC_FAILURE_MESSAGE, SoundCheckError
from .core.logging import setup_logging
from .database.connection import database_manager

# Global settings
settings = get_settings()

# Setup logging
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""

    # Startup
    logger.info("Starting SoundCheck backend server...")

    try:
        await database_manager.initialize()
        logger.info("Database connections initialized")
        logger.info("SoundCheck backend started successfully")

    except Exception as e:
        logger.error(f"Failed to start SoundCheck backend: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down SoundCheck backend...")

    try:
        await close_milestone_notifier()
        logger.info("Pending insight tasks finished")

        await database_manager.close()
        logger.info("Database connections closed")

        logger.info("SoundCheck backend shutdown complete")

    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


# Create FastAPI application
app = FastAPI(
    title="SoundCheck API",
    description="Crowd rating for short audio clips",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


# Exception handlers
@app.exception_handler(SoundCheckError)
async def soundcheck_exception_handler(request: Request, exc: SoundCheckError):
    """Map domain errors to JSON responses"""
    if isinstance(exc, FatalError):
        logger.error(f"Fatal error on {request.url.path}: {exc.message}", exc_info=exc)
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.user_message}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": GENERIC_FAILURE_MESSAGE}
    )


# Health check endpoint
@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint"""
    db_status = await database_manager.check_health()
    if not db_status:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "services": {"database": "unhealthy"}
            }
        )

    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "services": {"database": "healthy"}
    }


# API Routes
app.include_router(uploads.router, prefix="/api/uploads", tags=["Uploads"])
app.include_router(tracks.router, prefix="/api/tracks", tags=["Tracks"])
app.include_router(tracks.share_router, prefix="/api/share", tags=["Sharing"])
app.include_router(ratings.router, prefix="/api/ratings", tags=["Ratings"])
app.include_router(profiles.router, prefix="/api/profile", tags=["Profile"])
app.include_router(catalog.router, prefix="/api", tags=["Catalog"])
app.include_router(maintenance.router, prefix="/api/maintenance", tags=["Maintenance"])


# Static file serving (for uploaded audio)
if settings.SERVE_UPLOADS:
    app.mount(
        "/uploads",
        StaticFiles(directory=f"{settings.STORAGE_PATH}/uploads"),
        name="uploads"
    )


if __name__ == "__main__":
    # Development server
    uvicorn.run(
        "soundcheck.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
