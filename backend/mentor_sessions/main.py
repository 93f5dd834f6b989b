# backend/mentor_sessions/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import is_running_tests, settings
from .database import init_db
from .errors import register_error_handlers
from .routes.v1 import (
    availability as availability_v1,
    monitoring as monitoring_v1,
    policies as policies_v1,
    reschedule as reschedule_v1,
    sessions as sessions_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = "Mentor Sessions API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{settings.app_name} starting up...")
    logger.info(f"Environment: {settings.environment}")

    if settings.is_sqlite and not is_running_tests():
        # Local development convenience; PostgreSQL schemas are managed outside the app
        init_db()

    yield

    logger.info(f"{settings.app_name} shutting down...")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

api_v1.include_router(availability_v1.router, prefix="/mentors")
api_v1.include_router(sessions_v1.router, prefix="/sessions")
api_v1.include_router(reschedule_v1.router)
api_v1.include_router(policies_v1.router, prefix="/session-policies")

app.include_router(api_v1)
app.include_router(monitoring_v1.router)
