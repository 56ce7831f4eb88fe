"""
Invoice Repository Interface.
"""

from datetime import datetime
from typing import List, Optional

from app.domain.repositories.base import BaseRepository
from app.domain.models.invoice import Invoice


class InvoiceRepository(BaseRepository[Invoice]):
    """Interface for Invoice-specific operations."""

    def get_overdue(self, now: datetime, customer_id: Optional[str] = None) -> List[Invoice]:
        """Get unpaid/partial invoices with a due date strictly before ``now``."""
        ...
