"""Notification service: turns business events into WhatsApp and email deliveries.

Every delivery goes through the ledger: a record is created as pending with
its fully rendered content, the provider is called, and the record is moved
to sent or failed.

Two kinds of operations:
- broadcasts (order confirmation, product list, seasonal poll) never raise on
  a delivery failure; they return one DeliveryResult per (customer, channel)
- the payment reminder is an admin action: every channel is attempted and
  recorded, then NotificationDeliveryError is raised if any of them failed

process_notification_queue() drains pending records oldest first, reusing the
stored content, and never raises.
"""

from datetime import datetime
from typing import Iterable, List, Optional

import pytz
import structlog
from sqlalchemy.orm import Session

from app.application.services import notification_templates as templates
from app.config import Settings, get_settings
from app.core.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    InvalidStatusTransition,
    NotificationDeliveryError,
)
from app.domain.models.customer import Customer
from app.domain.models.invoice import Invoice
from app.domain.models.notification import (
    Notification,
    NotificationMethod,
    NotificationStatus,
    NotificationType,
)
from app.domain.models.order import Order
from app.domain.models.product import Product
from app.domain.repositories.customer_repository import CustomerRepository
from app.domain.repositories.invoice_repository import InvoiceRepository
from app.domain.repositories.notification_repository import NotificationRepository
from app.domain.repositories.order_repository import OrderRepository
from app.domain.repositories.product_repository import ProductRepository
from app.domain.schemas.notification import (
    DeliveryOutcome,
    DeliveryResult,
    PaymentReminderResult,
    QueueReport,
    VerificationDelivery,
)
from app.infrastructure.repositories.customer_repository import SQLAlchemyCustomerRepository
from app.infrastructure.repositories.invoice_repository import SQLAlchemyInvoiceRepository
from app.infrastructure.repositories.notification_repository import SQLAlchemyNotificationRepository
from app.infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from app.infrastructure.repositories.product_repository import SQLAlchemyProductRepository
from app.infrastructure.sendgrid_api import SendGridClient
from app.infrastructure.whatsapp_api import MAX_POLL_OPTIONS, WhatsAppClient

settings = get_settings()
tz = pytz.timezone(settings.TIMEZONE)
logger = structlog.get_logger(__name__)


def address_for(customer: Customer, method: NotificationMethod) -> Optional[str]:
    """The customer's usable address for a channel, or None."""
    raw = customer.phone if method == NotificationMethod.WHATSAPP else customer.email
    raw = (raw or "").strip()
    return raw or None


class NotificationDispatcher:
    """Dispatch orchestrator and queue processor."""

    def __init__(
        self,
        ledger: NotificationRepository,
        customers: CustomerRepository,
        orders: OrderRepository,
        invoices: InvoiceRepository,
        products: ProductRepository,
        whatsapp: WhatsAppClient,
        email: SendGridClient,
    ):
        self.ledger = ledger
        self.customers = customers
        self.orders = orders
        self.invoices = invoices
        self.products = products
        self.whatsapp = whatsapp
        self.email = email

    def _now(self) -> datetime:
        return datetime.now(tz)

    # --- Channel plumbing ---------------------------------------------------

    async def _send_via(
        self,
        method: NotificationMethod,
        address: str,
        notification_type: NotificationType,
        content: str,
    ) -> None:
        if method == NotificationMethod.WHATSAPP:
            if notification_type == NotificationType.SEASONAL_POLL:
                poll = templates.parse_poll_content(content)
                await self.whatsapp.send_poll(
                    address, poll.question, poll.options, poll.multiple_selection
                )
            else:
                await self.whatsapp.send_text(address, content)
        else:
            await self.email.send_email(address, templates.email_subject(notification_type), content)

    async def _deliver(
        self,
        customer: Customer,
        method: NotificationMethod,
        notification_type: NotificationType,
        content: str,
        errors: Optional[list] = None,
    ) -> DeliveryResult:
        """Create a ledger record, send it, and settle its status.

        A send failure marks the record failed and is returned as a FAILED
        result; when ``errors`` is given the exception is also appended to it.
        A record already settled by a queue drain during the send is left as is.
        """
        address = address_for(customer, method)
        if address is None:
            return DeliveryResult(
                customer_id=customer.id,
                channel=method.value,
                outcome=DeliveryOutcome.SKIPPED,
                error=f"no {method.value} address",
            )

        record = self.ledger.create(customer.id, notification_type, method, content)

        try:
            await self._send_via(method, address, notification_type, content)
        except Exception as e:
            self._settle(record, NotificationStatus.FAILED)
            logger.error(
                "notification_failed",
                notification_id=record.id,
                customer_id=customer.id,
                type=notification_type.value,
                channel=method.value,
                error=str(e),
            )
            if errors is not None:
                errors.append(e)
            return DeliveryResult(
                customer_id=customer.id,
                channel=method.value,
                outcome=DeliveryOutcome.FAILED,
                notification_id=record.id,
                error=str(e)[:500],
            )

        self._settle(record, NotificationStatus.SENT)
        return DeliveryResult(
            customer_id=customer.id,
            channel=method.value,
            outcome=DeliveryOutcome.SENT,
            notification_id=record.id,
        )

    # --- Direct sends (no ledger) -------------------------------------------

    async def send_whatsapp_message(self, phone: str, message: str) -> dict:
        return await self.whatsapp.send_text(phone, message)

    async def send_email_message(self, email: str, subject: str, html_content: str) -> None:
        await self.email.send_email(email, subject, html_content)

    # --- Business events ----------------------------------------------------

    async def send_order_confirmation(self, order_id: str) -> List[DeliveryResult]:
        """Confirm an order on every channel the customer can be reached on.

        Best-effort: a failed channel is recorded and logged, never raised.
        """
        order: Optional[Order] = self.orders.get_with_details(order_id)
        if order is None:
            raise EntityNotFoundException("Order not found", details={"order_id": order_id})

        total = order.total
        contents = {
            NotificationMethod.WHATSAPP: templates.order_confirmation_text(order, total),
            NotificationMethod.EMAIL: templates.order_confirmation_html(order, total),
        }

        results = [
            await self._deliver(order.customer, method, NotificationType.ORDER_CONFIRMATION, content)
            for method, content in contents.items()
        ]
        logger.info("order_confirmation_dispatched", order_id=order_id, results=[r.outcome.value for r in results])
        return results

    def get_overdue_invoices(self, customer_id: Optional[str] = None) -> List[Invoice]:
        return self.invoices.get_overdue(self._now(), customer_id=customer_id)

    async def send_payment_reminder(self, customer_id: str) -> PaymentReminderResult:
        """Remind a customer of every overdue invoice.

        No overdue invoices is a no-op. Raises NotificationDeliveryError once all
        channels have been attempted if any of them failed.
        """
        customer = self.customers.get_by_id(customer_id)
        if customer is None:
            raise EntityNotFoundException("Customer not found", details={"customer_id": customer_id})

        overdue = self.get_overdue_invoices(customer_id)
        if not overdue:
            logger.info("payment_reminder_skipped", customer_id=customer_id, reason="no overdue invoices")
            return PaymentReminderResult(customer_id=customer_id)

        total_outstanding = sum(invoice.total for invoice in overdue)
        contents = {
            NotificationMethod.WHATSAPP: templates.payment_reminder_text(customer.name, overdue, total_outstanding),
            NotificationMethod.EMAIL: templates.payment_reminder_html(customer.name, overdue, total_outstanding),
        }

        errors: list = []
        deliveries = [
            await self._deliver(customer, method, NotificationType.PAYMENT_REMINDER, content, errors=errors)
            for method, content in contents.items()
        ]

        if errors:
            failed = [d.channel for d in deliveries if d.outcome == DeliveryOutcome.FAILED]
            first = errors[0]
            raise NotificationDeliveryError(
                f"Payment reminder failed on {', '.join(failed)}: {first}",
                attempts=getattr(first, "attempts", 1),
                last_error=first,
                details={"customer_id": customer_id, "failed_channels": failed},
            ) from first

        return PaymentReminderResult(
            customer_id=customer_id,
            invoice_count=len(overdue),
            total_outstanding=round(total_outstanding, 2),
            deliveries=deliveries,
        )

    async def send_overdue_payment_reminders(self) -> dict:
        """Send one reminder per customer with overdue invoices; failures are isolated per customer."""
        customer_ids = list(dict.fromkeys(inv.customer_id for inv in self.get_overdue_invoices()))
        reminded, failed = 0, []

        for customer_id in customer_ids:
            try:
                await self.send_payment_reminder(customer_id)
                reminded += 1
            except Exception as e:
                logger.error("payment_reminder_failed", customer_id=customer_id, error=str(e))
                failed.append(customer_id)

        return {"customers": len(customer_ids), "reminded": reminded, "failed": failed}

    def _load_customers(self, customer_ids: Iterable[str]):
        for customer_id in customer_ids:
            yield customer_id, self.customers.get_by_id(customer_id)

    async def send_product_list(self, customer_ids: Iterable[str]) -> List[DeliveryResult]:
        """Broadcast the weekly catalog. Content is rendered once for the whole batch."""
        products: List[Product] = self.products.get_available()
        contents = {
            NotificationMethod.WHATSAPP: templates.product_list_text(products),
            NotificationMethod.EMAIL: templates.product_list_html(products),
        }

        results: List[DeliveryResult] = []
        for customer_id, customer in self._load_customers(customer_ids):
            if customer is None:
                results.append(DeliveryResult(
                    customer_id=customer_id, outcome=DeliveryOutcome.SKIPPED, error="customer not found",
                ))
                continue

            for method, content in contents.items():
                results.append(await self._deliver(customer, method, NotificationType.PRODUCT_LIST, content))

        logger.info("product_list_dispatched", products=len(products), deliveries=len(results))
        return results

    async def send_seasonal_items_poll(self, customer_ids: Iterable[str]) -> List[DeliveryResult]:
        """Send the seasonal poll over WhatsApp; each send gets its own ledger record."""
        seasonal = self.products.get_available_seasonal(limit=MAX_POLL_OPTIONS)
        if not seasonal:
            logger.info("seasonal_poll_skipped", reason="no seasonal products")
            return []

        content = templates.render_poll_content(templates.seasonal_poll(seasonal))

        results: List[DeliveryResult] = []
        for customer_id, customer in self._load_customers(customer_ids):
            if customer is None:
                results.append(DeliveryResult(
                    customer_id=customer_id, outcome=DeliveryOutcome.SKIPPED, error="customer not found",
                ))
                continue
            results.append(
                await self._deliver(customer, NotificationMethod.WHATSAPP, NotificationType.SEASONAL_POLL, content)
            )

        logger.info("seasonal_poll_dispatched", options=len(seasonal), deliveries=len(results))
        return results

    async def send_verification_code(self, contact: str, code: str) -> VerificationDelivery:
        """Deliver a login code directly (no ledger). Errors propagate to the caller."""
        contact = contact.strip()
        if not contact:
            raise BusinessRuleViolationException("A phone number or email address is required")

        if not self.whatsapp.is_live and not self.email.is_live:
            logger.info("verification_code_not_sent", contact=contact, code=code, reason="no provider configured")
            return VerificationDelivery(contact=contact, simulated=True)

        if "@" in contact:
            await self.email.send_email(
                contact, templates.VERIFICATION_SUBJECT, templates.verification_code_html(code)
            )
            return VerificationDelivery(contact=contact, channel=NotificationMethod.EMAIL.value,
                                        simulated=not self.email.is_live)

        await self.whatsapp.send_text(contact, templates.verification_code_text(code))
        return VerificationDelivery(contact=contact, channel=NotificationMethod.WHATSAPP.value,
                                    simulated=not self.whatsapp.is_live)

    # --- Queue --------------------------------------------------------------

    def _settle(self, record: Notification, status: NotificationStatus) -> bool:
        try:
            self.ledger.update_status(record.id, status, self._now() if status == NotificationStatus.SENT else None)
        except InvalidStatusTransition:
            # settled elsewhere while the send was awaited
            logger.warning("notification_already_settled", notification_id=record.id)
            return False
        return True

    async def process_notification_queue(self) -> QueueReport:
        """Send every pending record, oldest first. Never raises on a bad record."""
        report = QueueReport()

        for record in self.ledger.list_pending():
            report.processed += 1
            status = NotificationStatus.FAILED
            try:
                customer = self.customers.get_by_id(record.customer_id)
                method = NotificationMethod(record.method)
                address = address_for(customer, method) if customer else None

                if customer is None:
                    logger.warning("queued_notification_orphaned", notification_id=record.id,
                                   customer_id=record.customer_id)
                elif address is None:
                    logger.warning("queued_notification_unaddressable", notification_id=record.id,
                                   customer_id=record.customer_id, channel=method.value)
                else:
                    await self._send_via(method, address, NotificationType(record.type), record.content)
                    status = NotificationStatus.SENT
            except Exception as e:
                logger.error("queued_notification_failed", notification_id=record.id, error=str(e))

            if self._settle(record, status):
                if status == NotificationStatus.SENT:
                    report.sent += 1
                else:
                    report.failed += 1

        logger.info("notification_queue_processed", **report.model_dump())
        return report

    def requeue_failed(self, notification_id: int) -> Notification:
        return self.ledger.requeue_failed(notification_id)

    def requeue_all_failed(self, customer_id: Optional[str] = None) -> int:
        return self.ledger.requeue_all_failed(customer_id)


def build_dispatcher(db: Session, config: Optional[Settings] = None) -> NotificationDispatcher:
    """Wire a dispatcher to SQLAlchemy repositories and live provider clients."""
    config = config or get_settings()
    delivery = dict(
        retries=config.NOTIFICATION_RETRIES,
        timeout=config.NOTIFICATION_TIMEOUT_SECONDS,
        backoff_seconds=config.NOTIFICATION_BACKOFF_SECONDS,
    )
    return NotificationDispatcher(
        ledger=SQLAlchemyNotificationRepository(db, Notification),
        customers=SQLAlchemyCustomerRepository(db, Customer),
        orders=SQLAlchemyOrderRepository(db, Order),
        invoices=SQLAlchemyInvoiceRepository(db, Invoice),
        products=SQLAlchemyProductRepository(db, Product),
        whatsapp=WhatsAppClient(config.whatsapp_config(), **delivery),
        email=SendGridClient(config.email_config(), **delivery),
    )
