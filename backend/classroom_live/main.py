"""
Classroom Live
FastAPI Application Entry Point

Roll-call and buzzer sessions for live classes: teachers open sessions,
students check in and buzz, dashboards follow along over WebSockets.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from classroom_live.config import settings
from classroom_live.database import engine
from classroom_live.api.rollcalls import router as rollcalls_router
from classroom_live.api.buzzers import router as buzzers_router
from classroom_live.api.courses import router as courses_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("classroom-live")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle."""
    logger.info("Starting Classroom Live...")
    logger.info("Skipping create_all; ensure Alembic migrations are applied (alembic upgrade head)")
    logger.info(f"{settings.APP_NAME} is ready!")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Classroom Live: roll-call and buzzer sessions",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OperationalError)
async def record_store_unavailable(request: Request, exc: OperationalError):
    logger.error(f"Record store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Record store unavailable, please retry"},
    )


# Register API routes
app.include_router(rollcalls_router)
app.include_router(buzzers_router)
app.include_router(courses_router)


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "online",
        "app": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/api/v1/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "1.0.0",
    }
