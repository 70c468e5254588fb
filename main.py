"""
Tutor Scheduling Backend - FastAPI Application

Availability, breaks, bookable slots and lesson request review for a
tutoring business. Business logic lives in scheduling/ services and
repositories; this module only wires the app together.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings, validate_required_settings
from database import get_db_manager
from shared.api import health
from scheduling.api import availability, breaks, lesson_requests, notifications, slots

# Validate configuration on startup
validate_required_settings()

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Tutor Scheduling Backend",
    description="Tutor availability, breaks and lesson request reconciliation API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(availability.router)
app.include_router(breaks.router)
app.include_router(slots.router)
app.include_router(lesson_requests.router)
app.include_router(notifications.router)


@app.on_event("startup")
async def startup_event():
    """Validate database connection on startup."""
    logger.info("Starting Tutor Scheduling Backend...")

    db_manager = get_db_manager()
    is_healthy = db_manager.health_check()

    if not is_healthy:
        logger.warning("Database health check failed on startup")
    else:
        logger.info("Database connection healthy")


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
