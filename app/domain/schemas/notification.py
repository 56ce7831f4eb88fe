"""Pydantic schemas for the notification ledger and dispatch results."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class NotificationRead(BaseModel):
    id: int
    customer_id: str
    type: str
    method: str
    content: str
    status: str
    sent_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class DeliveryResult(BaseModel):
    """Outcome of one (recipient, channel) delivery inside a broadcast."""

    customer_id: str
    channel: Optional[str] = None
    outcome: DeliveryOutcome
    notification_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == DeliveryOutcome.SENT


class PaymentReminderResult(BaseModel):
    customer_id: str
    invoice_count: int = 0
    total_outstanding: float = 0.0
    deliveries: list[DeliveryResult] = Field(default_factory=list)


class QueueReport(BaseModel):
    processed: int = 0
    sent: int = 0
    failed: int = 0


class VerificationDelivery(BaseModel):
    contact: str
    channel: Optional[str] = None  # None when only logged (no provider configured)
    simulated: bool = False


def summarize(results: list[DeliveryResult]) -> dict:
    """Counts per outcome, for API responses and job logs."""
    return {
        "sent": sum(1 for r in results if r.ok),
        "failed": sum(1 for r in results if r.outcome == DeliveryOutcome.FAILED),
        "skipped": sum(1 for r in results if r.outcome == DeliveryOutcome.SKIPPED),
    }
