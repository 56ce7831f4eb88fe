"""Tests for NotificationDispatcher business events."""

import json

import pytest

from app.application.services.notification_service import address_for
from app.core.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    NotificationDeliveryError,
)
from app.domain.models.notification import Notification, NotificationMethod
from app.domain.schemas.notification import DeliveryOutcome, summarize


def _ledger_rows(db_session):
    return db_session.query(Notification).order_by(Notification.id).all()


@pytest.fixture
def customer(customer_factory):
    return customer_factory()


@pytest.fixture
def order(order_factory, product_factory, customer):
    carrots = product_factory(name="Carrots", price=18.5, unit="kg")
    eggs = product_factory(name="Eggs", price=54.0, unit="dozen", category="dairy_eggs")
    return order_factory(customer, [(carrots, 2, 18.5), (eggs, 1, 54.0)])


@pytest.mark.unit
class TestAddressFor:

    def test_blank_addresses_are_unusable(self, customer_factory):
        customer = customer_factory(phone="   ", email=None)
        assert address_for(customer, NotificationMethod.WHATSAPP) is None
        assert address_for(customer, NotificationMethod.EMAIL) is None

    def test_addresses_are_trimmed(self, customer_factory):
        customer = customer_factory(phone=" 27820000001 ", email=" a@example.com")
        assert address_for(customer, NotificationMethod.WHATSAPP) == "27820000001"
        assert address_for(customer, NotificationMethod.EMAIL) == "a@example.com"


@pytest.mark.unit
class TestOrderConfirmation:

    @pytest.mark.asyncio
    async def test_sends_on_both_channels(self, dispatcher, order, customer, db_session, mock_whatsapp, mock_email):
        results = await dispatcher.send_order_confirmation(order.id)

        assert [r.outcome for r in results] == [DeliveryOutcome.SENT, DeliveryOutcome.SENT]
        assert [r.channel for r in results] == ["whatsapp", "email"]

        text = mock_whatsapp.send_text.await_args.args[1]
        assert mock_whatsapp.send_text.await_args.args[0] == customer.phone
        assert "Total: R91.00" in text

        email, subject, html = mock_email.send_email.await_args.args
        assert email == customer.email
        assert subject == "Order Confirmation"
        assert "R91.00" in html

        rows = _ledger_rows(db_session)
        assert [(r.method, r.status, r.type) for r in rows] == [
            ("whatsapp", "sent", "order_confirmation"),
            ("email", "sent", "order_confirmation"),
        ]
        assert all(r.sent_at is not None for r in rows)
        assert rows[0].content == text

    @pytest.mark.asyncio
    async def test_one_failed_channel_does_not_stop_the_other(self, dispatcher, order, db_session, mock_email):
        mock_email.send_email.side_effect = NotificationDeliveryError("Failed to send email after 3 attempts", attempts=3)

        results = await dispatcher.send_order_confirmation(order.id)

        assert summarize(results) == {"sent": 1, "failed": 1, "skipped": 0}
        failed = next(r for r in results if r.outcome == DeliveryOutcome.FAILED)
        assert failed.channel == "email"
        assert "3 attempts" in failed.error

        rows = _ledger_rows(db_session)
        assert [(r.method, r.status) for r in rows] == [("whatsapp", "sent"), ("email", "failed")]
        assert rows[1].sent_at is None

    @pytest.mark.asyncio
    async def test_missing_email_is_skipped_without_a_record(
        self, dispatcher, customer_factory, order_factory, product_factory, db_session, mock_email
    ):
        customer = customer_factory(email=None)
        order = order_factory(customer, [(product_factory(), 1, 24.99)])

        results = await dispatcher.send_order_confirmation(order.id)

        assert [r.outcome for r in results] == [DeliveryOutcome.SENT, DeliveryOutcome.SKIPPED]
        assert [r.ok for r in results] == [True, False]
        assert len(_ledger_rows(db_session)) == 1
        mock_email.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_order(self, dispatcher):
        with pytest.raises(EntityNotFoundException):
            await dispatcher.send_order_confirmation("no-such-order")


@pytest.mark.unit
class TestPaymentReminder:

    @pytest.mark.asyncio
    async def test_totals_only_overdue_outstanding_invoices(
        self, dispatcher, customer, invoice_factory, db_session, mock_whatsapp, mock_email
    ):
        invoice_factory(customer, 157.50, status="unpaid", due_in_days=-10)
        invoice_factory(customer, 76.50, status="partial", due_in_days=-3)
        invoice_factory(customer, 500.00, status="paid", due_in_days=-3)
        invoice_factory(customer, 99.00, status="unpaid", due_in_days=5)

        result = await dispatcher.send_payment_reminder(customer.id)

        assert result.invoice_count == 2
        assert result.total_outstanding == 234.00
        assert [d.outcome for d in result.deliveries] == [DeliveryOutcome.SENT, DeliveryOutcome.SENT]

        text = mock_whatsapp.send_text.await_args.args[1]
        assert "Total Outstanding: R234.00" in text
        assert "R157.50" in text and "R76.50" in text
        assert "R500.00" not in text
        assert mock_email.send_email.await_args.args[1] == "Payment Reminder"

        assert {r.type for r in _ledger_rows(db_session)} == {"payment_reminder"}

    @pytest.mark.asyncio
    async def test_nothing_overdue_is_a_no_op(
        self, dispatcher, customer, invoice_factory, db_session, mock_whatsapp, mock_email
    ):
        invoice_factory(customer, 100.0, status="unpaid", due_in_days=7)

        result = await dispatcher.send_payment_reminder(customer.id)

        assert result.invoice_count == 0
        assert result.deliveries == []
        assert _ledger_rows(db_session) == []
        mock_whatsapp.send_text.assert_not_awaited()
        mock_email.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_raises_after_every_channel_is_attempted(
        self, dispatcher, customer, invoice_factory, db_session, mock_whatsapp, mock_email
    ):
        invoice_factory(customer, 157.50)
        mock_whatsapp.send_text.side_effect = NotificationDeliveryError("Failed to send WhatsApp message", attempts=3)

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await dispatcher.send_payment_reminder(customer.id)

        assert exc_info.value.attempts == 3
        assert exc_info.value.details["failed_channels"] == ["whatsapp"]
        mock_email.send_email.assert_awaited_once()
        assert [(r.method, r.status) for r in _ledger_rows(db_session)] == [
            ("whatsapp", "failed"),
            ("email", "sent"),
        ]

    @pytest.mark.asyncio
    async def test_unknown_customer(self, dispatcher):
        with pytest.raises(EntityNotFoundException):
            await dispatcher.send_payment_reminder("no-such-customer")

    @pytest.mark.asyncio
    async def test_overdue_scan_isolates_failing_customers(
        self, dispatcher, customer_factory, invoice_factory, mock_email
    ):
        good = customer_factory(name="Good", email="good@example.com")
        bad = customer_factory(name="Bad", email="bad@example.com")
        customer_factory(name="Paid Up", email="paid@example.com")
        invoice_factory(good, 50.0)
        invoice_factory(good, 25.0)
        invoice_factory(bad, 80.0)

        async def fail_for_bad(email, subject, html):
            if email == "bad@example.com":
                raise NotificationDeliveryError("Failed to send email", attempts=3)

        mock_email.send_email.side_effect = fail_for_bad

        summary = await dispatcher.send_overdue_payment_reminders()

        assert summary == {"customers": 2, "reminded": 1, "failed": [bad.id]}


@pytest.mark.unit
class TestProductList:

    @pytest.mark.asyncio
    async def test_broadcast_renders_once_and_records_each_delivery(
        self, dispatcher, customer_factory, product_factory, db_session, mock_whatsapp
    ):
        product_factory(name="Carrots", price=18.5)
        product_factory(name="Hidden", price=1.0, is_available=False)
        alice = customer_factory(name="Alice", phone="27820000001", email="alice@example.com")
        bob = customer_factory(name="Bob", phone="27820000002", email="bob@example.com")

        results = await dispatcher.send_product_list([alice.id, "ghost", bob.id])

        assert summarize(results) == {"sent": 4, "failed": 0, "skipped": 1}
        skipped = next(r for r in results if r.outcome == DeliveryOutcome.SKIPPED)
        assert skipped.customer_id == "ghost"

        texts = [call.args[1] for call in mock_whatsapp.send_text.await_args_list]
        assert texts[0] == texts[1]
        assert "Carrots - R18.50/each" in texts[0]
        assert "Hidden" not in texts[0]

        rows = _ledger_rows(db_session)
        assert len(rows) == 4
        assert {r.customer_id for r in rows} == {alice.id, bob.id}

    @pytest.mark.asyncio
    async def test_failures_are_isolated_per_recipient(
        self, dispatcher, customer_factory, product_factory, mock_whatsapp
    ):
        product_factory()
        alice = customer_factory(name="Alice", phone="27820000001", email="alice@example.com")
        bob = customer_factory(name="Bob", phone="27820000002", email="bob@example.com")

        async def fail_for_alice(phone, message):
            if phone == "27820000001":
                raise NotificationDeliveryError("Failed to send WhatsApp message", attempts=3)
            return {}

        mock_whatsapp.send_text.side_effect = fail_for_alice

        results = await dispatcher.send_product_list([alice.id, bob.id])

        assert summarize(results) == {"sent": 3, "failed": 1, "skipped": 0}

    @pytest.mark.asyncio
    async def test_queue_drain_during_a_send_does_not_abort_the_batch(
        self, dispatcher, customer_factory, product_factory, db_session, mock_whatsapp
    ):
        product_factory()
        alice = customer_factory(name="Alice", phone="27820000001", email="alice@example.com")
        bob = customer_factory(name="Bob", phone="27820000002", email="bob@example.com")
        drained = []

        async def drain_on_first_send(phone, message):
            if not drained:
                drained.append(await dispatcher.process_notification_queue())
            return {}

        mock_whatsapp.send_text.side_effect = drain_on_first_send

        results = await dispatcher.send_product_list([alice.id, bob.id])

        assert drained[0].sent == 1
        assert summarize(results) == {"sent": 4, "failed": 0, "skipped": 0}
        assert [c.args[0] for c in mock_whatsapp.send_text.await_args_list] == [
            "27820000001", "27820000001", "27820000002",
        ]
        rows = _ledger_rows(db_session)
        assert len(rows) == 4
        assert {r.status for r in rows} == {"sent"}
        assert {r.customer_id for r in rows} == {alice.id, bob.id}


@pytest.mark.unit
class TestSeasonalPoll:

    @pytest.mark.asyncio
    async def test_poll_is_recorded_and_sent(
        self, dispatcher, customer, product_factory, db_session, mock_whatsapp, mock_email
    ):
        product_factory(name="Figs", price=45.0, category="fruits", is_seasonal=True)
        product_factory(name="Apples", price=29.99, category="fruits")

        results = await dispatcher.send_seasonal_items_poll([customer.id])

        assert [r.outcome for r in results] == [DeliveryOutcome.SENT]
        phone, question, options, multiple = mock_whatsapp.send_poll.await_args.args
        assert phone == customer.phone
        assert options == ["Figs (R45.00)"]
        assert multiple is True
        mock_email.send_email.assert_not_awaited()

        (row,) = _ledger_rows(db_session)
        assert (row.type, row.method, row.status) == ("seasonal_poll", "whatsapp", "sent")
        assert json.loads(row.content)["question"] == question

    @pytest.mark.asyncio
    async def test_options_are_capped_at_twelve(self, dispatcher, customer, product_factory, mock_whatsapp):
        for i in range(15):
            product_factory(name=f"Item {i:02d}", price=10.0, category="fruits", is_seasonal=True)

        await dispatcher.send_seasonal_items_poll([customer.id])

        options = mock_whatsapp.send_poll.await_args.args[2]
        assert len(options) == 12

    @pytest.mark.asyncio
    async def test_no_seasonal_products_sends_nothing(self, dispatcher, customer, product_factory, db_session, mock_whatsapp):
        product_factory(name="Apples", is_seasonal=False)

        assert await dispatcher.send_seasonal_items_poll([customer.id]) == []
        mock_whatsapp.send_poll.assert_not_awaited()
        assert _ledger_rows(db_session) == []


@pytest.mark.unit
class TestVerificationCode:

    @pytest.mark.asyncio
    async def test_email_contact_goes_by_email(self, dispatcher, db_session, mock_whatsapp, mock_email):
        delivery = await dispatcher.send_verification_code("thandi@example.com", "123456")

        assert delivery.channel == "email"
        assert delivery.simulated is False
        email, subject, html = mock_email.send_email.await_args.args
        assert (email, subject) == ("thandi@example.com", "Your Verification Code")
        assert "123456" in html
        mock_whatsapp.send_text.assert_not_awaited()
        assert _ledger_rows(db_session) == []

    @pytest.mark.asyncio
    async def test_phone_contact_goes_by_whatsapp(self, dispatcher, mock_whatsapp, mock_email):
        delivery = await dispatcher.send_verification_code(" +27 82 555 0101 ", "654321")

        assert delivery.channel == "whatsapp"
        mock_whatsapp.send_text.assert_awaited_once()
        assert mock_whatsapp.send_text.await_args.args[0] == "+27 82 555 0101"
        assert "654321" in mock_whatsapp.send_text.await_args.args[1]
        mock_email.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_providers_the_code_is_only_logged(self, dispatcher, mock_whatsapp, mock_email):
        mock_whatsapp.is_live = False
        mock_email.is_live = False

        delivery = await dispatcher.send_verification_code("thandi@example.com", "123456")

        assert delivery.simulated is True
        assert delivery.channel is None
        mock_email.send_email.assert_not_awaited()
        mock_whatsapp.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_contact_is_rejected(self, dispatcher, mock_whatsapp):
        with pytest.raises(BusinessRuleViolationException):
            await dispatcher.send_verification_code("   ", "123456")
        mock_whatsapp.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delivery_errors_propagate(self, dispatcher, mock_email):
        mock_email.send_email.side_effect = NotificationDeliveryError("Failed to send email", attempts=3)

        with pytest.raises(NotificationDeliveryError):
            await dispatcher.send_verification_code("thandi@example.com", "123456")


@pytest.mark.unit
class TestDirectSends:

    @pytest.mark.asyncio
    async def test_direct_sends_bypass_the_ledger(self, dispatcher, db_session, mock_whatsapp, mock_email):
        await dispatcher.send_whatsapp_message("27820000001", "Hi")
        await dispatcher.send_email_message("a@example.com", "Subject", "<p>Hi</p>")

        mock_whatsapp.send_text.assert_awaited_once_with("27820000001", "Hi")
        mock_email.send_email.assert_awaited_once_with("a@example.com", "Subject", "<p>Hi</p>")
        assert _ledger_rows(db_session) == []
