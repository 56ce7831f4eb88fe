"""Invoice domain model, mapped to the 'invoices' table."""

import uuid

from sqlalchemy import Column, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.infrastructure.database import Base

OUTSTANDING_STATUSES = ("unpaid", "partial")


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    total = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="unpaid")  # unpaid, partial, paid
    due_date = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship("Customer", back_populates="invoices")
    order = relationship("Order")

    def __repr__(self):
        return f"<Invoice {self.id[:8]} - {self.status}>"
