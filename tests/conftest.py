"""Shared fixtures: in-memory database, entity factories and mocked channel clients."""

import os

# Must run before any app module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
for _key in (
    "WHATSAPP_API_URL",
    "WHATSAPP_API_TOKEN",
    "WHATSAPP_PHONE_NUMBER_ID",
    "SENDGRID_API_KEY",
    "SENDGRID_FROM_EMAIL",
):
    os.environ[_key] = ""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytz
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.application.services.notification_service import NotificationDispatcher
from app.domain.models.customer import Customer
from app.domain.models.invoice import Invoice
from app.domain.models.notification import Notification
from app.domain.models.order import Order, OrderItem
from app.domain.models.product import Product
from app.infrastructure.database import Base
from app.infrastructure.repositories.customer_repository import SQLAlchemyCustomerRepository
from app.infrastructure.repositories.invoice_repository import SQLAlchemyInvoiceRepository
from app.infrastructure.repositories.notification_repository import SQLAlchemyNotificationRepository
from app.infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from app.infrastructure.repositories.product_repository import SQLAlchemyProductRepository

TZ = pytz.timezone("Africa/Johannesburg")


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    yield session
    session.close()


@pytest.fixture
def now():
    return datetime.now(TZ)


# --- Factories ---------------------------------------------------------------

@pytest.fixture
def customer_factory(db_session):
    def _make(name="Thandi Nkosi", phone="+27 82 555 0101", email="thandi@example.com", **kwargs):
        customer = Customer(name=name, phone=phone, email=email, **kwargs)
        db_session.add(customer)
        db_session.commit()
        db_session.refresh(customer)
        return customer

    return _make


@pytest.fixture
def product_factory(db_session):
    def _make(name="Butternut", price=24.99, unit="each", category="vegetables",
              is_seasonal=False, is_available=True):
        product = Product(
            name=name,
            price=price,
            unit=unit,
            category=category,
            is_seasonal=is_seasonal,
            is_available=is_available,
        )
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def order_factory(db_session, now):
    def _make(customer, lines, delivery_method="delivery", delivery_address="12 Kloof St",
              special_instructions=None, delivery_date=None):
        order = Order(
            customer_id=customer.id,
            delivery_date=delivery_date or now + timedelta(days=3),
            delivery_method=delivery_method,
            delivery_address=delivery_address,
            special_instructions=special_instructions,
        )
        db_session.add(order)
        db_session.flush()
        for product, quantity, price in lines:
            db_session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                quantity=quantity,
                price_at_order=price,
            ))
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make


@pytest.fixture
def invoice_factory(db_session, now):
    def _make(customer, total, status="unpaid", due_in_days=-7):
        invoice = Invoice(
            customer_id=customer.id,
            total=total,
            status=status,
            due_date=now + timedelta(days=due_in_days),
        )
        db_session.add(invoice)
        db_session.commit()
        db_session.refresh(invoice)
        return invoice

    return _make


# --- Repositories ------------------------------------------------------------

@pytest.fixture
def ledger(db_session):
    return SQLAlchemyNotificationRepository(db_session, Notification)


@pytest.fixture
def customer_repository(db_session):
    return SQLAlchemyCustomerRepository(db_session, Customer)


# --- Channel clients ---------------------------------------------------------

@pytest.fixture
def mock_whatsapp():
    """Live WhatsApp client double whose sends succeed."""
    client = MagicMock()
    client.is_live = True
    client.send_text = AsyncMock(return_value={"messages": [{"id": "wamid.TEST"}]})
    client.send_poll = AsyncMock(return_value={"messages": [{"id": "wamid.POLL"}]})
    return client


@pytest.fixture
def mock_email():
    """Live SendGrid client double whose sends succeed."""
    client = MagicMock()
    client.is_live = True
    client.send_email = AsyncMock(return_value=None)
    return client


@pytest.fixture
def dispatcher(db_session, ledger, customer_repository, mock_whatsapp, mock_email):
    return NotificationDispatcher(
        ledger=ledger,
        customers=customer_repository,
        orders=SQLAlchemyOrderRepository(db_session, Order),
        invoices=SQLAlchemyInvoiceRepository(db_session, Invoice),
        products=SQLAlchemyProductRepository(db_session, Product),
        whatsapp=mock_whatsapp,
        email=mock_email,
    )


@pytest.fixture
def recorded_sleeps():
    """Async sleep replacement that records requested delays instead of waiting."""
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep
