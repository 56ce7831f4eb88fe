"""
SQLAlchemy Implementation of Invoice Repository.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import joinedload

from app.domain.models.invoice import Invoice, OUTSTANDING_STATUSES
from app.domain.repositories.invoice_repository import InvoiceRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyInvoiceRepository(SQLAlchemyRepository[Invoice], InvoiceRepository):
    """Invoice repository implementation using SQLAlchemy."""

    def get_overdue(self, now: datetime, customer_id: Optional[str] = None) -> List[Invoice]:
        query = (
            self.db.query(Invoice)
            .options(joinedload(Invoice.customer))
            .filter(
                Invoice.status.in_(OUTSTANDING_STATUSES),
                Invoice.due_date < now,
            )
        )
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)

        return query.order_by(Invoice.due_date.asc()).all()
