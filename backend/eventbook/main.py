"""
Event Reservation API - Main Application Entry Point

An event booking backend built around:
- A reservation workflow with consistent seat accounting
  (conditional UPDATEs, one transaction per state change)
- Role and ownership checks for admins and participants
- Structured logging with request correlation and Prometheus metrics
- PostgreSQL with constraints, partial indexes and connection pooling
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventbook.core.config import get_settings
from eventbook.core.logging import setup_logging, get_logger
from eventbook.core.metrics import metrics_endpoint
from eventbook.api.errors import register_exception_handlers
from eventbook.api.router import api_router
from eventbook.api.middleware import RequestLoggingMiddleware
from eventbook.db.session import engine
from eventbook.services import notification_service

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        email_enabled=bool(settings.RESEND_API_KEY),
    )

    yield

    # Let in-flight emails finish before the loop goes away
    await notification_service.drain()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event reservation API with admin-approved bookings and consistent seat accounting",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
