"""
SQLAlchemy Implementation of Order Repository.
"""

from typing import Optional

from sqlalchemy.orm import joinedload, selectinload

from app.domain.models.order import Order, OrderItem
from app.domain.repositories.order_repository import OrderRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyOrderRepository(SQLAlchemyRepository[Order], OrderRepository):
    """Order repository implementation using SQLAlchemy."""

    def get_with_details(self, order_id: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .options(
                joinedload(Order.customer),
                selectinload(Order.items).joinedload(OrderItem.product),
            )
            .filter(Order.id == order_id)
            .first()
        )
