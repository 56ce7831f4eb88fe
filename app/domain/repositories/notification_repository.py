"""
Notification Ledger Interface.
Persists one record per (customer, channel, event) and its delivery status.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from app.domain.repositories.base import BaseRepository
from app.domain.models.notification import (
    Notification,
    NotificationMethod,
    NotificationStatus,
    NotificationType,
)


class NotificationRepository(BaseRepository[Notification]):
    """Interface for ledger operations."""

    def create(
        self,
        customer_id: str,
        type: NotificationType,
        method: NotificationMethod,
        content: str,
    ) -> Notification:
        """Create a record in status pending."""
        ...

    def update_status(
        self,
        notification_id: int,
        status: NotificationStatus,
        sent_at: Optional[datetime] = None,
    ) -> Notification:
        """Move a pending record to sent or failed."""
        ...

    def list_pending(self) -> List[Notification]:
        """Get pending records, oldest first."""
        ...

    def requeue_failed(self, notification_id: int) -> Notification:
        """Reset one failed record to pending."""
        ...

    def requeue_all_failed(self, customer_id: Optional[str] = None) -> int:
        """Reset every failed record (optionally for one customer); returns the count."""
        ...

    def get_page(self, page: int = 1, page_size: int = 50, status: Optional[NotificationStatus] = None) -> Dict[str, Any]:
        """Paginated listing, newest first."""
        ...
