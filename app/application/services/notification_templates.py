"""Message templates: WhatsApp text and HTML email for each notification type.

Every function here is pure: the same input always renders the same string,
so content stored in the ledger can be replayed verbatim by the queue processor.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from html import escape
from typing import Iterable, Sequence

from app.domain.models.notification import NotificationType

CURRENCY = "R"
ORDER_DEADLINE = "Place your order by Friday for next week's delivery!"
POLL_QUESTION = "Which of these seasonal items would you like to add to your order this week?"
CODE_EXPIRY_MINUTES = 10

# Catalog sections, rendered in this order
PRODUCT_CATEGORIES = [
    ("vegetables", "🥕 Vegetables"),
    ("fruits", "🍎 Fruits"),
    ("dairy_eggs", "🥛 Dairy & Eggs"),
    ("bread_bakery", "🍞 Bread & Bakery"),
    ("pantry", "🥫 Pantry Items"),
    ("meat_protein", "🥩 Meat & Protein"),
]

EMAIL_SUBJECTS = {
    NotificationType.ORDER_CONFIRMATION: "Order Confirmation",
    NotificationType.PAYMENT_REMINDER: "Payment Reminder",
    NotificationType.PRODUCT_LIST: "Weekly Product List",
    NotificationType.SEASONAL_POLL: "Seasonal Items Poll",
}

_CELL = "padding: 10px; border: 1px solid #ddd;"
_WRAPPER = "font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;"


def format_money(value) -> str:
    return f"{CURRENCY}{float(value):.2f}"


def format_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def short_ref(entity_id: str) -> str:
    return str(entity_id)[:8]


def delivery_label(method: str) -> str:
    return "Delivery" if method == "delivery" else "Collection"


def email_subject(notification_type: str) -> str:
    try:
        return EMAIL_SUBJECTS[NotificationType(notification_type)]
    except ValueError:
        return "Notification"


# --- Order confirmation -------------------------------------------------------

def order_confirmation_text(order, total: float) -> str:
    lines = [
        f"Hi {order.customer.name},",
        "",
        "Thank you for your order! Your order has been confirmed.",
        "",
        "Order Details:",
        f"Order #: {short_ref(order.id)}",
        f"Delivery Date: {format_date(order.delivery_date)}",
        f"Delivery Method: {delivery_label(order.delivery_method)}",
        "",
        "Items:",
    ]
    for item in order.items:
        lines.append(
            f"• {item.product.name} - {item.quantity} {item.product.unit} @ {format_money(item.price_at_order)}"
        )

    lines.extend(["", f"Total: {format_money(total)}", ""])

    if order.special_instructions:
        lines.extend([f"Special Instructions: {order.special_instructions}", ""])

    lines.extend([
        f"We'll notify you when your order is ready for {delivery_label(order.delivery_method).lower()}.",
        "",
        "Thank you for your business!",
    ])
    return "\n".join(lines)


def order_confirmation_html(order, total: float) -> str:
    method = delivery_label(order.delivery_method)
    parts = [
        f'<div style="{_WRAPPER}">',
        '<h2 style="color: #4CAF50;">Order Confirmation</h2>',
        f"<p>Hi {escape(order.customer.name)},</p>",
        "<p>Thank you for your order! Your order has been confirmed.</p>",
        '<div style="background-color: #f5f5f5; padding: 15px; margin: 20px 0; border-radius: 5px;">',
        '<h3 style="margin-top: 0;">Order Details</h3>',
        f"<p><strong>Order #:</strong> {short_ref(order.id)}</p>",
        f"<p><strong>Delivery Date:</strong> {format_date(order.delivery_date)}</p>",
        f"<p><strong>Delivery Method:</strong> {method}</p>",
    ]
    if order.delivery_address:
        parts.append(f"<p><strong>Delivery Address:</strong> {escape(order.delivery_address)}</p>")
    parts.extend([
        "</div>",
        "<h3>Items Ordered</h3>",
        '<table style="width: 100%; border-collapse: collapse; margin: 20px 0;">',
        '<thead><tr style="background-color: #f5f5f5;">',
        f'<th style="{_CELL} text-align: left;">Product</th>',
        f'<th style="{_CELL} text-align: center;">Quantity</th>',
        f'<th style="{_CELL} text-align: right;">Price</th>',
        f'<th style="{_CELL} text-align: right;">Subtotal</th>',
        "</tr></thead>",
        "<tbody>",
    ])
    for item in order.items:
        subtotal = item.price_at_order * item.quantity
        parts.append(
            "<tr>"
            f'<td style="{_CELL}">{escape(item.product.name)}</td>'
            f'<td style="{_CELL} text-align: center;">{item.quantity} {escape(item.product.unit)}</td>'
            f'<td style="{_CELL} text-align: right;">{format_money(item.price_at_order)}</td>'
            f'<td style="{_CELL} text-align: right;">{format_money(subtotal)}</td>'
            "</tr>"
        )
    parts.extend([
        "</tbody>",
        '<tfoot><tr style="background-color: #f5f5f5; font-weight: bold;">',
        f'<td colspan="3" style="{_CELL} text-align: right;">Total</td>',
        f'<td style="{_CELL} text-align: right;">{format_money(total)}</td>',
        "</tr></tfoot>",
        "</table>",
    ])
    if order.special_instructions:
        parts.extend([
            '<div style="background-color: #fff3cd; padding: 15px; margin: 20px 0; '
            'border-radius: 5px; border-left: 4px solid #ffc107;">',
            '<p style="margin: 0;"><strong>Special Instructions:</strong></p>',
            f'<p style="margin: 5px 0 0 0;">{escape(order.special_instructions)}</p>',
            "</div>",
        ])
    parts.extend([
        f"<p>We'll notify you when your order is ready for {method.lower()}.</p>",
        "<p>Thank you for your business!</p>",
        "</div>",
    ])
    return "\n".join(parts)


# --- Payment reminder ---------------------------------------------------------

def payment_reminder_text(customer_name: str, invoices: Sequence, total_outstanding: float) -> str:
    lines = [
        f"Hi {customer_name},",
        "",
        "This is a friendly reminder that you have outstanding invoices:",
        "",
    ]
    for invoice in invoices:
        lines.append(
            f"• Invoice #{short_ref(invoice.id)} - {format_money(invoice.total)} (Due: {format_date(invoice.due_date)})"
        )
    lines.extend([
        "",
        f"Total Outstanding: {format_money(total_outstanding)}",
        "",
        "Please arrange payment at your earliest convenience. If you have any questions, feel free to reach out.",
        "",
        "Thank you!",
    ])
    return "\n".join(lines)


def payment_reminder_html(customer_name: str, invoices: Sequence, total_outstanding: float) -> str:
    parts = [
        f'<div style="{_WRAPPER}">',
        '<h2 style="color: #333;">Payment Reminder</h2>',
        f"<p>Hi {escape(customer_name)},</p>",
        "<p>This is a friendly reminder that you have outstanding invoices:</p>",
        '<table style="width: 100%; border-collapse: collapse; margin: 20px 0;">',
        '<thead><tr style="background-color: #f5f5f5;">',
        f'<th style="{_CELL} text-align: left;">Invoice</th>',
        f'<th style="{_CELL} text-align: right;">Amount</th>',
        f'<th style="{_CELL} text-align: center;">Due Date</th>',
        "</tr></thead>",
        "<tbody>",
    ]
    for invoice in invoices:
        parts.append(
            "<tr>"
            f'<td style="{_CELL}">#{short_ref(invoice.id)}</td>'
            f'<td style="{_CELL} text-align: right;">{format_money(invoice.total)}</td>'
            f'<td style="{_CELL} text-align: center;">{format_date(invoice.due_date)}</td>'
            "</tr>"
        )
    parts.extend([
        "</tbody>",
        '<tfoot><tr style="background-color: #f5f5f5; font-weight: bold;">',
        f'<td style="{_CELL}">Total Outstanding</td>',
        f'<td style="{_CELL} text-align: right;">{format_money(total_outstanding)}</td>',
        f'<td style="{_CELL}"></td>',
        "</tr></tfoot>",
        "</table>",
        "<p>Please arrange payment at your earliest convenience. "
        "If you have any questions, feel free to reach out.</p>",
        "<p>Thank you!</p>",
        "</div>",
    ])
    return "\n".join(parts)


# --- Catalog broadcast --------------------------------------------------------

def _group_by_category(products: Iterable) -> list[tuple[str, list]]:
    products = list(products)
    sections = []
    for key, label in PRODUCT_CATEGORIES:
        in_category = [p for p in products if p.category == key]
        if in_category:
            sections.append((label, in_category))
    return sections


def product_list_text(products: Iterable) -> str:
    lines = ["🌱 *Weekly Product List* 🌱", ""]

    for label, in_category in _group_by_category(products):
        lines.append(f"*{label}*")
        for p in in_category:
            seasonal = " 🌟" if p.is_seasonal else ""
            lines.append(f"• {p.name} - {format_money(p.price)}/{p.unit}{seasonal}")
        lines.append("")

    lines.extend(["🌟 = Seasonal item", "", ORDER_DEADLINE])
    return "\n".join(lines)


def product_list_html(products: Iterable) -> str:
    star = '<span style="color: #ffc107;">🌟</span>'
    parts = [
        f'<div style="{_WRAPPER}">',
        '<h2 style="color: #4CAF50;">🌱 Weekly Product List 🌱</h2>',
        "<p>Here are this week's available products:</p>",
    ]
    for label, in_category in _group_by_category(products):
        parts.extend([
            f'<h3 style="color: #333; margin-top: 20px;">{label}</h3>',
            '<table style="width: 100%; border-collapse: collapse; margin-bottom: 20px;">',
            '<thead><tr style="background-color: #f5f5f5;">',
            f'<th style="{_CELL} text-align: left;">Product</th>',
            f'<th style="{_CELL} text-align: right;">Price</th>',
            "</tr></thead>",
            "<tbody>",
        ])
        for p in in_category:
            seasonal = f" {star}" if p.is_seasonal else ""
            parts.append(
                "<tr>"
                f'<td style="{_CELL}">{escape(p.name)}{seasonal}</td>'
                f'<td style="{_CELL} text-align: right;">{format_money(p.price)}/{escape(p.unit)}</td>'
                "</tr>"
            )
        parts.extend(["</tbody>", "</table>"])

    parts.extend([
        f'<p style="margin-top: 20px;">{star} = Seasonal item</p>',
        '<p style="background-color: #e8f5e9; padding: 15px; border-radius: 5px; border-left: 4px solid #4CAF50;">',
        f"<strong>{ORDER_DEADLINE}</strong>",
        "</p>",
        "</div>",
    ])
    return "\n".join(parts)


# --- Verification code --------------------------------------------------------

VERIFICATION_SUBJECT = "Your Verification Code"


def verification_code_text(code: str) -> str:
    return f"Your verification code is: {code}\n\nThis code will expire in {CODE_EXPIRY_MINUTES} minutes."


def verification_code_html(code: str) -> str:
    return "\n".join([
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        "<h2>Verification Code</h2>",
        "<p>Your verification code is:</p>",
        f'<h1 style="color: #4CAF50; font-size: 32px; letter-spacing: 5px;">{escape(code)}</h1>',
        f"<p>This code will expire in {CODE_EXPIRY_MINUTES} minutes.</p>",
        "<p>If you didn't request this code, please ignore this email.</p>",
        "</div>",
    ])


# --- Seasonal poll ------------------------------------------------------------

@dataclass(frozen=True)
class SeasonalPoll:
    question: str
    options: list[str] = field(default_factory=list)
    multiple_selection: bool = True


def seasonal_poll(products: Sequence) -> SeasonalPoll:
    """Build the poll from products already capped to the provider option limit by the caller."""
    options = [f"{p.name} ({format_money(p.price)})" for p in products]
    return SeasonalPoll(question=POLL_QUESTION, options=options)


def render_poll_content(poll: SeasonalPoll) -> str:
    return json.dumps(
        {
            "question": poll.question,
            "options": poll.options,
            "multiple_selection": poll.multiple_selection,
        },
        ensure_ascii=False,
        sort_keys=True,
    )


def parse_poll_content(content: str) -> SeasonalPoll:
    data = json.loads(content)
    return SeasonalPoll(
        question=data["question"],
        options=list(data["options"]),
        multiple_selection=bool(data.get("multiple_selection", True)),
    )
