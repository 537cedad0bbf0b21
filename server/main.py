"""
Main FastAPI application for the VirtuLab backend.

This is the entry point for the VirtuLab API: the practical catalog, lab
sessions with their simulated apparatus, and the lab guide.
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import get_settings, get_system_info, initialize_logging, validate_required_settings
from api.lab import router as lab_router, shutdown_session_manager, start_session_cleanup
# Import database initialization functions
from database import init_db, check_db_connection

settings = get_settings()

# Configure logging
initialize_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Virtual science practicals with an AI lab guide",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(lab_router)

# Database initialization on startup
@app.on_event("startup")
async def startup_event():
    """Initialize database on application startup."""
    logger.info("=== Starting VirtuLab API server ===")
    try:
        logger.info("Step 1: Initializing database...")
        init_db()

        logger.info("Step 2: Checking database connection...")
        if check_db_connection():
            logger.info("✓ Database connection verified successfully")
        else:
            logger.error("✗ Database connection failed - completions will not be recorded")
    except Exception as e:
        logger.error(f"Database startup error: {e}")
        logger.warning("Server starting without database - completions will not be recorded")

    start_session_cleanup()

    for missing in validate_required_settings():
        logger.warning(f"Missing {missing}; the Bunsen burner guide will reply with a configuration error")

    logger.info("=== VirtuLab API server startup complete ===")

@app.on_event("shutdown")
async def shutdown_event():
    """Close open lab sessions and their tick loops."""
    await shutdown_session_manager()
    logger.info("=== VirtuLab API server stopped ===")

@app.get("/")
async def root():
    """Root endpoint for health check."""
    return {
        "message": "VirtuLab API is running",
        "version": settings.app_version,
        "status": "healthy",
        "available_modules": [
            "lab"
        ]
    }

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    info = get_system_info()
    return {
        "status": "healthy",
        "database": "connected" if check_db_connection() else "unavailable",
        "guide_configured": info["has_openai_key"],
        "guide_models": info["guide_models"]
    }

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
