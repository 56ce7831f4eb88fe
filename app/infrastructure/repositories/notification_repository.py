"""
SQLAlchemy Implementation of the Notification Ledger.

Status transitions are conditional UPDATEs on ``status = 'pending'`` so a
record can only leave pending once, even with concurrent writers.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import pytz

from app.config import get_settings
from app.core.exceptions import EntityNotFoundException, InvalidStatusTransition
from app.domain.models.notification import (
    Notification,
    NotificationMethod,
    NotificationStatus,
    NotificationType,
)
from app.domain.repositories.notification_repository import NotificationRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository

settings = get_settings()
tz = pytz.timezone(settings.TIMEZONE)


class SQLAlchemyNotificationRepository(SQLAlchemyRepository[Notification], NotificationRepository):
    """Notification ledger implementation using SQLAlchemy."""

    def create(
        self,
        customer_id: str,
        type: NotificationType,
        method: NotificationMethod,
        content: str,
    ) -> Notification:
        notification = Notification(
            customer_id=customer_id,
            type=NotificationType(type).value,
            method=NotificationMethod(method).value,
            content=content,
            status=NotificationStatus.PENDING.value,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def _get_or_raise(self, notification_id: int) -> Notification:
        notification = self.get_by_id(notification_id)
        if notification is None:
            raise EntityNotFoundException(
                "Notification not found", details={"notification_id": notification_id}
            )
        return notification

    def _transition(self, notification_id: int, expected: NotificationStatus, values: dict) -> Notification:
        updated = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.status == expected.value)
            .update(values, synchronize_session=False)
        )
        self.db.commit()

        notification = self._get_or_raise(notification_id)
        if not updated:
            raise InvalidStatusTransition(
                f"Notification {notification_id} is {notification.status}, expected {expected.value}",
                details={"notification_id": notification_id, "status": notification.status},
            )
        self.db.refresh(notification)
        return notification

    def update_status(
        self,
        notification_id: int,
        status: NotificationStatus,
        sent_at: Optional[datetime] = None,
    ) -> Notification:
        status = NotificationStatus(status)
        if not status.is_terminal:
            raise InvalidStatusTransition(
                "Use requeue_failed to move a record back to pending",
                details={"notification_id": notification_id},
            )

        if status is NotificationStatus.SENT:
            sent_at = sent_at or datetime.now(tz)
        else:
            sent_at = None

        return self._transition(
            notification_id,
            NotificationStatus.PENDING,
            {"status": status.value, "sent_at": sent_at},
        )

    def list_pending(self) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.status == NotificationStatus.PENDING.value)
            .order_by(Notification.created_at.asc(), Notification.id.asc())
            .all()
        )

    def requeue_failed(self, notification_id: int) -> Notification:
        return self._transition(
            notification_id,
            NotificationStatus.FAILED,
            {"status": NotificationStatus.PENDING.value, "sent_at": None},
        )

    def requeue_all_failed(self, customer_id: Optional[str] = None) -> int:
        query = self.db.query(Notification).filter(
            Notification.status == NotificationStatus.FAILED.value
        )
        if customer_id:
            query = query.filter(Notification.customer_id == customer_id)

        count = query.update(
            {"status": NotificationStatus.PENDING.value, "sent_at": None},
            synchronize_session=False,
        )
        self.db.commit()
        return count

    def get_page(
        self,
        page: int = 1,
        page_size: int = 50,
        status: Optional[NotificationStatus] = None,
    ) -> Dict[str, Any]:
        query = self.db.query(Notification)
        if status:
            query = query.filter(Notification.status == NotificationStatus(status).value)

        total = query.count()
        offset = (page - 1) * page_size
        items = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(page_size)
            .all()
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": (total + page_size - 1) // page_size,
        }
