"""
planmarket/features/inquiries/service.py

Contact form and order notifications, rendered as plain text plus HTML and
handed to the configured mailer.
"""

from datetime import datetime, timezone
from decimal import Decimal
from email.message import EmailMessage
from html import escape
from typing import List, Optional

from planmarket.core.logging import log_event
from planmarket.features.inquiries.mailer import Mailer
from planmarket.models.inquiry import ContactMessage, InquiryAck, OrderNotification, PostalAddress

SHOP_NAME = "Plan Market"

PAYMENT_METHOD_LABELS = {
    "transfer": "Bank transfer",
    "cash": "Cash on delivery",
    "nequi": "Nequi",
}


def format_price(value: Decimal) -> str:
    return f"${value:,.2f}"


def payment_method_label(method: str) -> str:
    return PAYMENT_METHOD_LABELS.get(method.lower(), method)


def _address_html(address: PostalAddress) -> str:
    return "<br>".join(escape(line) for line in address.lines())


def _build_message(subject: str, sender: str, recipient: str, text: str, html: str, reply_to: Optional[str] = None) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = " ".join(subject.split())
    message["From"] = sender
    message["To"] = recipient
    if reply_to:
        message["Reply-To"] = reply_to
    message.set_content(text)
    message.add_alternative(html, subtype="html")
    return message


def render_contact(contact: ContactMessage, received_at: datetime):
    subject = f"New contact message from {contact.name}"
    text = "\n".join([
        f"New message through the {SHOP_NAME} contact form",
        "",
        f"Name: {contact.name}",
        f"Email: {contact.email}",
        f"Phone: {contact.phone or '-'}",
        "",
        contact.message,
        "",
        f"Received: {received_at:%Y-%m-%d %H:%M} UTC",
    ])
    html = (
        f"<h2>New message through the {escape(SHOP_NAME)} contact form</h2>"
        f"<p><strong>Name:</strong> {escape(contact.name)}<br>"
        f"<strong>Email:</strong> {escape(contact.email)}<br>"
        f"<strong>Phone:</strong> {escape(contact.phone or '-')}</p>"
        f"<blockquote>{escape(contact.message)}</blockquote>"
        f"<p><small>Received {received_at:%Y-%m-%d %H:%M} UTC</small></p>"
    )
    return subject, text, html


def render_order(order: OrderNotification, received_at: datetime):
    billing = order.billing
    subject = f"New order #{order.order_id} - {billing.full_name}"
    shipping_cost = "To be quoted by carrier" if order.shipping_cost == 0 else format_price(order.shipping_cost)

    text_lines: List[str] = [
        f"New order #{order.order_id}",
        "",
        "Billing",
        f"  {billing.full_name} <{billing.email}> {billing.phone or ''}".rstrip(),
        *(f"  {line}" for line in billing.address.lines()),
        "",
        "Shipping",
    ]
    if order.shipping.same_as_billing:
        text_lines.append("  Same as billing address")
    else:
        if order.shipping.recipient:
            text_lines.append(f"  {order.shipping.recipient}")
        text_lines.extend(f"  {line}" for line in order.ship_to.lines())
    text_lines.extend(["", "Items"])
    for line in order.items:
        kind = "digital" if line.is_digital else "physical"
        text_lines.append(
            f"  {line.quantity} x {line.name} ({line.category or 'Product'}, {kind}) "
            f"@ {format_price(line.price)} = {format_price(line.line_total)}"
        )
    text_lines.extend([
        "",
        f"Subtotal: {format_price(order.subtotal)}",
        f"Shipping: {shipping_cost}",
        f"Total: {format_price(order.total)}",
        f"Payment method: {payment_method_label(order.payment_method)}",
    ])
    if order.notes:
        text_lines.extend(["", "Notes", order.notes])
    placed = order.placed_at or received_at
    text_lines.extend(["", f"Placed: {placed:%Y-%m-%d %H:%M}"])

    rows = "".join(
        "<tr>"
        f"<td>{'[PDF]' if line.is_digital else '[Box]'} {escape(line.name)}<br><small>{escape(line.category or 'Product')}</small></td>"
        f"<td>{line.quantity}</td>"
        f"<td>{format_price(line.price)}</td>"
        f"<td>{format_price(line.line_total)}</td>"
        "</tr>"
        for line in order.items
    )
    if order.shipping.same_as_billing:
        shipping_html = "<p><em>Same as billing address</em></p>"
    else:
        recipient = f"{escape(order.shipping.recipient)}<br>" if order.shipping.recipient else ""
        shipping_html = f"<p>{recipient}{_address_html(order.ship_to)}</p>"
    notes_html = f"<h3>Notes</h3><p>{escape(order.notes)}</p>" if order.notes else ""
    html = (
        f"<h1>New order #{escape(order.order_id)}</h1>"
        f"<h3>Billing</h3><p>{escape(billing.full_name)}<br>{escape(billing.email)}<br>"
        f"{escape(billing.phone or '')}<br>{_address_html(billing.address)}</p>"
        f"<h3>Shipping</h3>{shipping_html}"
        "<table><thead><tr><th>Item</th><th>Qty</th><th>Unit price</th><th>Total</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        f"<p>Subtotal: {format_price(order.subtotal)}<br>Shipping: {escape(shipping_cost)}<br>"
        f"<strong>Total: {format_price(order.total)}</strong></p>"
        f"<p>Payment method: <strong>{escape(payment_method_label(order.payment_method))}</strong></p>"
        f"{notes_html}"
        f"<p><a href=\"mailto:{escape(billing.email)}\">Email customer</a></p>"
    )
    return subject, "\n".join(text_lines), html


class InquiryService:
    def __init__(self, mailer: Mailer, *, sender: Optional[str], recipient: Optional[str]):
        self._mailer = mailer
        self._sender = sender or "no-reply@localhost"
        self._recipient = recipient or self._sender

    def send_contact(self, contact: ContactMessage, *, now: Optional[datetime] = None) -> InquiryAck:
        subject, text, html = render_contact(contact, now or datetime.now(timezone.utc))
        self._mailer.send(_build_message(subject, self._sender, self._recipient, text, html, reply_to=contact.email))
        log_event("info", "inquiry.contact_sent", event_type="inquiry.contact")
        return InquiryAck(message="Message sent")

    def send_order(self, order: OrderNotification, *, now: Optional[datetime] = None) -> InquiryAck:
        subject, text, html = render_order(order, now or datetime.now(timezone.utc))
        self._mailer.send(_build_message(subject, self._sender, self._recipient, text, html, reply_to=order.billing.email))
        log_event(
            "info",
            "inquiry.order_sent",
            event_type="inquiry.order",
            extra={"order_id": order.order_id, "items": len(order.items)},
        )
        return InquiryAck(message="Order sent")
