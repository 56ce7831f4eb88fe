"""
SQLAlchemy Implementation of Customer Repository.
"""

from typing import List

from app.domain.models.customer import Customer
from app.domain.repositories.customer_repository import CustomerRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyCustomerRepository(SQLAlchemyRepository[Customer], CustomerRepository):
    """Customer repository implementation using SQLAlchemy."""

    def get_all_ids(self) -> List[str]:
        rows = self.db.query(Customer.id).order_by(Customer.created_at.asc()).all()
        return [r[0] for r in rows]
