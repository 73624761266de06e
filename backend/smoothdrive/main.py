"""
SmoothDrive - FastAPI Backend

Main application entry point and configuration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smoothdrive.api.session import router as session_router
from smoothdrive.services.session_service import get_session_controller


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting SmoothDrive Backend")
    controller = get_session_controller()
    logger.info(f"Sensor variant: {controller.sources.kind.value}")

    yield

    # Shutdown
    get_session_controller().stop()
    logger.info("Shutting down SmoothDrive Backend")


# Create FastAPI app
app = FastAPI(
    title="SmoothDrive",
    description="""
    Backend API for the smooth driving score engine.

    ## Features
    - Fuse accelerometer readings and position fixes into live statistics
    - Score driving smoothness on a 0-100 scale
    - Device bridge endpoints for pushing real sensor readings

    ## Data Flow
    1. Start a session via POST /session/start
    2. Push readings via POST /session/samples and POST /session/fixes
    3. Poll GET /session/snapshot for live statistics
    4. Stop via POST /session/stop and fetch GET /session/record
    """,
    version="0.1.0",
    lifespan=lifespan,
)


# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(session_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": "SmoothDrive",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    controller = get_session_controller()

    return {
        "status": "healthy",
        "session": controller.status.value,
        "sensor_kind": controller.sources.kind.value,
    }
