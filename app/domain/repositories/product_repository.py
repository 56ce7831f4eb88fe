"""
Product Repository Interface.
"""

from typing import List

from app.domain.repositories.base import BaseRepository
from app.domain.models.product import Product


class ProductRepository(BaseRepository[Product]):
    """Interface for Product-specific operations."""

    def get_available(self) -> List[Product]:
        """Get every available product, ordered by category then name."""
        ...

    def get_available_seasonal(self, limit: int = 12) -> List[Product]:
        """Get up to ``limit`` available seasonal products."""
        ...
