"""FastAPI application: main entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.infrastructure.database import engine, Base
from app.core.logging import configure_logging
from app.core.middleware import setup_middleware
from app.core.exceptions import AppError, global_exception_handler

# Import all models so SQLAlchemy knows about them
from app.domain.models.customer import Customer  # noqa: F401
from app.domain.models.product import Product  # noqa: F401
from app.domain.models.order import Order, OrderItem  # noqa: F401
from app.domain.models.invoice import Invoice  # noqa: F401
from app.domain.models.notification import Notification  # noqa: F401

from app.interfaces.api.notifications import router as notifications_router

settings = get_settings()

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    logger.info(
        "startup",
        env=settings.ENVIRONMENT,
        whatsapp_live=settings.whatsapp_config().is_configured,
        email_live=settings.email_config().is_configured,
    )

    # Create DB tables (dev only, use migrations in production)
    Base.metadata.create_all(bind=engine)

    if settings.SCHEDULER_ENABLED:
        from app.scheduler.jobs import start_scheduler
        start_scheduler()

    yield

    from app.scheduler.jobs import stop_scheduler
    stop_scheduler()
    logger.info("shutdown")


app = FastAPI(
    title="FreshBox Notification Dispatch",
    description="Order confirmations, payment reminders and catalog broadcasts over WhatsApp and email",
    version="1.0.0",
    lifespan=lifespan,
)

setup_middleware(app)

app.add_exception_handler(AppError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications_router)


@app.get("/")
def root():
    return {
        "name": "FreshBox Notification Dispatch",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "healthy"}
