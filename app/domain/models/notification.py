"""Notification ledger: one row per (customer, channel, event) delivery unit."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union

import pytz
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.config import get_settings
from app.infrastructure.database import Base

settings = get_settings()
tz = pytz.timezone(settings.TIMEZONE)


class NotificationType(str, Enum):
    ORDER_CONFIRMATION = "order_confirmation"
    PAYMENT_REMINDER = "payment_reminder"
    PRODUCT_LIST = "product_list"
    SEASONAL_POLL = "seasonal_poll"


class NotificationMethod(str, Enum):
    WHATSAPP = "whatsapp"
    EMAIL = "email"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not NotificationStatus.PENDING


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Sent:
    sent_at: datetime


@dataclass(frozen=True)
class Failed:
    pass


DeliveryState = Union[Pending, Sent, Failed]


def _now() -> datetime:
    return datetime.now(tz)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    method = Column(String(10), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(String(10), nullable=False, default=NotificationStatus.PENDING.value, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    # Set client-side so FIFO order keeps sub-second precision on every backend
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def state(self) -> DeliveryState:
        status = NotificationStatus(self.status)
        if status is NotificationStatus.SENT:
            return Sent(sent_at=self.sent_at)
        if status is NotificationStatus.FAILED:
            return Failed()
        return Pending()

    def __repr__(self):
        return f"<Notification {self.id} {self.type}/{self.method} - {self.status}>"
