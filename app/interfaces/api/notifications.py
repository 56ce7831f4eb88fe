"""Notifications API routes: ledger, event triggers, queue and scheduler status."""

from datetime import datetime
from typing import List, Optional

import pytz
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field

from app.config import get_settings
from app.application.services.notification_service import NotificationDispatcher
from app.domain.models.notification import NotificationStatus
from app.domain.repositories.customer_repository import CustomerRepository
from app.domain.repositories.notification_repository import NotificationRepository
from app.domain.schemas.notification import NotificationRead, summarize
from app.interfaces.api.deps import get_customer_repository, get_dispatcher, get_notification_repository

settings = get_settings()
tz = pytz.timezone(settings.TIMEZONE)
router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


class SendWhatsAppRequest(BaseModel):
    phone: str = Field(min_length=1)
    message: str = Field(min_length=1)


class SendEmailRequest(BaseModel):
    email: EmailStr
    subject: str = Field(min_length=1)
    content: str = Field(min_length=1)


class BroadcastRequest(BaseModel):
    customer_ids: Optional[List[str]] = None


class VerificationCodeRequest(BaseModel):
    contact: str = Field(min_length=1)
    code: str = Field(min_length=1)


class RequeueRequest(BaseModel):
    customer_id: Optional[str] = None


def _audience(body: Optional[BroadcastRequest], customers: CustomerRepository) -> List[str]:
    """Explicit ids, or every customer when none are given."""
    if body and body.customer_ids:
        return body.customer_ids
    return customers.get_all_ids()


@router.get("")
def list_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    status: Optional[NotificationStatus] = Query(None),
    ledger: NotificationRepository = Depends(get_notification_repository),
):
    result = ledger.get_page(page=page, page_size=page_size, status=status)
    result["items"] = [NotificationRead.model_validate(n) for n in result["items"]]
    return result


@router.post("/whatsapp")
async def send_whatsapp(
    body: SendWhatsAppRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a one-off WhatsApp message."""
    await dispatcher.send_whatsapp_message(body.phone, body.message)
    return {"success": True, "message": "WhatsApp message sent successfully"}


@router.post("/email")
async def send_email(
    body: SendEmailRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a one-off HTML email."""
    await dispatcher.send_email_message(body.email, body.subject, body.content)
    return {"success": True, "message": "Email sent successfully"}


@router.post("/order-confirmation/{order_id}")
async def send_order_confirmation(
    order_id: str,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    results = await dispatcher.send_order_confirmation(order_id)
    return {"success": True, **summarize(results), "results": results}


@router.post("/payment-reminder/{customer_id}")
async def send_payment_reminder(
    customer_id: str,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a payment reminder; delivery failures surface as a 502 error body."""
    result = await dispatcher.send_payment_reminder(customer_id)
    return {"success": True, "message": "Payment reminder processed", **result.model_dump()}


@router.post("/product-list")
async def send_product_list(
    body: Optional[BroadcastRequest] = None,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    customers: CustomerRepository = Depends(get_customer_repository),
):
    customer_ids = _audience(body, customers)
    results = await dispatcher.send_product_list(customer_ids)
    return {
        "success": True,
        "message": f"Product list sent to {len(customer_ids)} customers",
        **summarize(results),
        "results": results,
    }


@router.post("/seasonal-poll")
async def send_seasonal_poll(
    body: Optional[BroadcastRequest] = None,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    customers: CustomerRepository = Depends(get_customer_repository),
):
    customer_ids = _audience(body, customers)
    results = await dispatcher.send_seasonal_items_poll(customer_ids)
    return {
        "success": True,
        "message": f"Seasonal poll sent to {len(customer_ids)} customers",
        **summarize(results),
        "results": results,
    }


@router.post("/verification-code")
async def send_verification_code(
    body: VerificationCodeRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    delivery = await dispatcher.send_verification_code(body.contact, body.code)
    return {"success": True, "channel": delivery.channel, "simulated": delivery.simulated}


@router.post("/process-queue")
async def process_queue(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    report = await dispatcher.process_notification_queue()
    return {"success": True, "message": "Notification queue processed", **report.model_dump()}


@router.post("/requeue-failed")
def requeue_all_failed(
    body: Optional[RequeueRequest] = None,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    count = dispatcher.requeue_all_failed(body.customer_id if body else None)
    return {"success": True, "requeued": count}


@router.post("/{notification_id}/requeue", response_model=NotificationRead)
def requeue_notification(
    notification_id: int,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return NotificationRead.model_validate(dispatcher.requeue_failed(notification_id))


@router.get("/scheduler-status")
def scheduler_status():
    """Get scheduler status and next run time."""
    from app.scheduler.jobs import scheduler

    now = datetime.now(tz)
    jobs = []
    for job in scheduler.get_jobs():
        next_run = job.next_run_time
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.strftime("%d/%m/%Y %H:%M") if next_run else "N/A",
            "next_run_iso": next_run.isoformat() if next_run else None,
        })

    return {
        "running": scheduler.running,
        "current_time": now.strftime("%d/%m/%Y %H:%M"),
        "timezone": settings.TIMEZONE,
        "jobs": jobs,
    }
