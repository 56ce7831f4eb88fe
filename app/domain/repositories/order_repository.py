"""
Order Repository Interface.
"""

from typing import Optional

from app.domain.repositories.base import BaseRepository
from app.domain.models.order import Order


class OrderRepository(BaseRepository[Order]):
    """Interface for Order-specific operations."""

    def get_with_details(self, order_id: str) -> Optional[Order]:
        """Get an order with its customer and line items (and their products) loaded."""
        ...
