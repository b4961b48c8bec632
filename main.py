"""
Counselboard Backend API Server

FastAPI application for the counseling-session lifecycle engine.
Serves session lifecycle operations, list queries and dashboard analytics,
and runs the auto-complete sweep in the background.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from counselboard.api.dependencies import install_services
from counselboard.api.routes import analytics, follow_ups, sessions
from counselboard.config import AUTO_COMPLETE_ENABLED, LOG_LEVEL
from counselboard.database import AsyncSessionLocal, engine, get_db, init_db
from counselboard.services.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Counselboard API server...")

    await init_db(engine)
    install_services(app, AsyncSessionLocal)

    app.state.scheduler = None
    if AUTO_COMPLETE_ENABLED:
        app.state.scheduler = start_scheduler(app.state.sweeper)
        logger.info("Background scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down Counselboard API server...")
    if app.state.scheduler is not None:
        stop_scheduler(app.state.scheduler)
        logger.info("Background scheduler stopped")
    await engine.dispose()


# Create FastAPI application
app = FastAPI(
    title="Counselboard API",
    description="Counseling-session lifecycle engine and dashboard analytics",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""
    start_time = time.time()

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000

    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration_ms:.2f}ms"
    )

    return response


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal server error occurred",
                "details": str(exc) if app.debug else None
            }
        }
    )


# Validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError):
    """Validation errors with non-JSON context (e.g. exception objects) stringified."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns server status, database reachability and version information.
    """
    await db.execute(text("SELECT 1"))

    return {
        "status": "ok",
        "database": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
        "service": "counselboard-api"
    }


# Include routers
# Follow-ups first so /follow-ups is not taken for a session id
app.include_router(follow_ups.router)
app.include_router(sessions.router)
app.include_router(analytics.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """API root endpoint"""
    return {
        "name": "Counselboard API",
        "version": "1.0.0",
        "description": "Counseling-session lifecycle engine and dashboard analytics",
        "docs": "/api/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
