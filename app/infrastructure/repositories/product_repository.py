"""
SQLAlchemy Implementation of Product Repository.
"""

from typing import List

from app.domain.models.product import Product
from app.domain.repositories.product_repository import ProductRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyProductRepository(SQLAlchemyRepository[Product], ProductRepository):
    """Product repository implementation using SQLAlchemy."""

    def get_available(self) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.is_available.is_(True))
            .order_by(Product.category.asc(), Product.name.asc())
            .all()
        )

    def get_available_seasonal(self, limit: int = 12) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.is_available.is_(True), Product.is_seasonal.is_(True))
            .order_by(Product.name.asc())
            .limit(limit)
            .all()
        )
