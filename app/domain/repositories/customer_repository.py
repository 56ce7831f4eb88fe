"""
Customer Repository Interface.
"""

from typing import List

from app.domain.repositories.base import BaseRepository
from app.domain.models.customer import Customer


class CustomerRepository(BaseRepository[Customer]):
    """Interface for Customer-specific operations."""

    def get_all_ids(self) -> List[str]:
        """Get the ids of every customer (broadcast audience)."""
        ...
