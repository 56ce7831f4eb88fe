"""APScheduler jobs: weekly catalog + seasonal poll, weekly payment reminders, queue drain."""

import pytz
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.config import get_settings
from app.infrastructure.database import SessionLocal

settings = get_settings()
logger = structlog.get_logger(__name__)
tz = pytz.timezone(settings.TIMEZONE)

scheduler = AsyncIOScheduler(timezone=tz)


async def weekly_catalog_job():
    """Tuesday 08:00: product list and seasonal poll to every customer."""
    from app.application.services.notification_service import build_dispatcher
    from app.domain.models.customer import Customer
    from app.domain.schemas.notification import summarize
    from app.infrastructure.repositories.customer_repository import SQLAlchemyCustomerRepository

    logger.info("weekly_catalog_started")

    db = SessionLocal()
    try:
        customer_ids = SQLAlchemyCustomerRepository(db, Customer).get_all_ids()
        if not customer_ids:
            logger.info("weekly_catalog_skipped", reason="no customers")
            return

        dispatcher = build_dispatcher(db)
        catalog = await dispatcher.send_product_list(customer_ids)
        poll = await dispatcher.send_seasonal_items_poll(customer_ids)
        logger.info(
            "weekly_catalog_completed",
            customers=len(customer_ids),
            catalog=summarize(catalog),
            poll=summarize(poll),
        )
    except Exception:
        logger.exception("weekly_catalog_failed")
    finally:
        db.close()


async def weekly_payment_reminder_job():
    """Monday 09:00: one reminder per customer with overdue invoices."""
    from app.application.services.notification_service import build_dispatcher

    logger.info("weekly_payment_reminders_started")

    db = SessionLocal()
    try:
        result = await build_dispatcher(db).send_overdue_payment_reminders()
        logger.info("weekly_payment_reminders_completed", **result)
    except Exception:
        logger.exception("weekly_payment_reminders_failed")
    finally:
        db.close()


async def notification_queue_job():
    """Drain pending ledger records."""
    from app.application.services.notification_service import build_dispatcher

    db = SessionLocal()
    try:
        report = await build_dispatcher(db).process_notification_queue()
        if report.processed:
            logger.info("notification_queue_drained", **report.model_dump())
    except Exception:
        logger.exception("notification_queue_job_failed")
    finally:
        db.close()


def start_scheduler():
    """Register all jobs and start the scheduler."""
    scheduler.add_job(
        weekly_catalog_job,
        trigger=CronTrigger(day_of_week="tue", hour=8, minute=0, timezone=tz),
        id="weekly_catalog",
        name="Product List + Seasonal Poll (Tuesday 08:00)",
        replace_existing=True,
    )

    scheduler.add_job(
        weekly_payment_reminder_job,
        trigger=CronTrigger(day_of_week="mon", hour=9, minute=0, timezone=tz),
        id="weekly_payment_reminders",
        name="Payment Reminders (Monday 09:00)",
        replace_existing=True,
    )

    scheduler.add_job(
        notification_queue_job,
        trigger=IntervalTrigger(minutes=settings.QUEUE_DRAIN_INTERVAL_MINUTES, timezone=tz),
        id="notification_queue",
        name=f"Notification Queue (Every {settings.QUEUE_DRAIN_INTERVAL_MINUTES} mins)",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info("scheduler_started", timezone=settings.TIMEZONE, jobs=len(scheduler.get_jobs()))


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
