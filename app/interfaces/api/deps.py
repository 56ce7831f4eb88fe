"""
API Dependencies.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from app.application.services.notification_service import NotificationDispatcher, build_dispatcher
from app.domain.models.customer import Customer
from app.domain.models.notification import Notification
from app.domain.repositories.customer_repository import CustomerRepository
from app.domain.repositories.notification_repository import NotificationRepository
from app.infrastructure.database import get_db
from app.infrastructure.repositories.customer_repository import SQLAlchemyCustomerRepository
from app.infrastructure.repositories.notification_repository import SQLAlchemyNotificationRepository


def get_notification_repository(db: Session = Depends(get_db)) -> NotificationRepository:
    """Get notification ledger instance."""
    return SQLAlchemyNotificationRepository(db, Notification)


def get_customer_repository(db: Session = Depends(get_db)) -> CustomerRepository:
    """Get customer repository instance."""
    return SQLAlchemyCustomerRepository(db, Customer)


def get_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    """Get a dispatcher bound to the request's session."""
    return build_dispatcher(db)
