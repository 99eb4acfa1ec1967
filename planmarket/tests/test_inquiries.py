import smtplib
from decimal import Decimal

import pytest

from planmarket.core.errors import DeliveryError
from planmarket.features.inquiries.mailer import LogMailer, Mailer, SmtpMailer, build_mailer
from planmarket.features.inquiries.service import InquiryService, payment_method_label
from planmarket.models.inquiry import OrderLine, OrderNotification


def _order(**overrides):
    body = {
        "order_id": 1042,
        "items": [
            {"name": "Router table plan", "price": 15, "quantity": 1, "category": "CNC plans"},
            {"name": "Spindle 800W", "price": 120, "quantity": 2, "category": "Spindles"},
        ],
        "billing": {
            "first_name": "Ana",
            "last_name": "Rojas",
            "email": "ana@example.com",
            "phone": "+57 300 123 4567",
            "address": {"street": "Calle 10 # 5-20", "city": "Medellin", "country": "Colombia", "postal_code": "050001"},
        },
        "shipping": {"same_as_billing": True},
        "payment_method": "transfer",
        "subtotal": 255,
        "shipping_cost": 0,
        "total": 255,
    }
    body.update(overrides)
    return body


def _text_part(message):
    return message.get_body(preferencelist=("plain",)).get_content()


def test_contact_is_mailed(client, mailer):
    resp = client.post("/api/contact", json={
        "name": "Luis", "email": "luis@example.com", "phone": "(604) 555-0101", "message": "Do you ship to Lima?",
    })

    assert resp.status_code == 200
    assert resp.json() == {"message": "Message sent", "status": "success"}
    sent = mailer.outbox[-1]
    assert sent["Subject"] == "New contact message from Luis"
    assert sent["Reply-To"] == "luis@example.com"
    assert sent["To"] == "owner@example.com"
    assert "Do you ship to Lima?" in _text_part(sent)


@pytest.mark.parametrize("body", [
    {"name": "Luis", "email": "not-an-email", "message": "hi"},
    {"name": "Luis", "email": "luis@example.com", "phone": "call me", "message": "hi"},
    {"name": "Luis", "email": "luis@example.com", "message": ""},
    {"email": "luis@example.com", "message": "hi"},
])
def test_contact_validation(client, mailer, body):
    resp = client.post("/api/contact", json=body)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "bad_request"
    assert len(mailer.outbox) == 0


def test_order_is_mailed_with_digital_lines_marked(client, mailer):
    resp = client.post("/api/orders", json=_order())

    assert resp.status_code == 200
    sent = mailer.outbox[-1]
    assert sent["Subject"] == "New order #1042 - Ana Rojas"
    text = _text_part(sent)
    assert "1 x Router table plan (CNC plans, digital)" in text
    assert "2 x Spindle 800W (Spindles, physical) @ $120.00 = $240.00" in text
    assert "Same as billing address" in text
    assert "Shipping: To be quoted by carrier" in text
    assert "Payment method: Bank transfer" in text


def test_order_with_separate_shipping_address(client, mailer):
    resp = client.post("/api/orders", json=_order(shipping={
        "same_as_billing": False,
        "recipient": "Workshop",
        "address": {"street": "Carrera 43A", "city": "Envigado", "country": "Colombia"},
    }))

    assert resp.status_code == 200
    text = _text_part(mailer.outbox[-1])
    assert "Carrera 43A" in text
    assert "Envigado" in text


def test_order_requires_shipping_address_when_not_billing(client):
    resp = client.post("/api/orders", json=_order(shipping={"same_as_billing": False}))
    assert resp.status_code == 400


def test_order_requires_items(client):
    assert client.post("/api/orders", json=_order(items=[])).status_code == 400


def test_order_line_digital_detection():
    assert OrderLine(name="x", price=Decimal("1"), quantity=1, category="Planos PDF").is_digital
    assert not OrderLine(name="x", price=Decimal("1"), quantity=1, category="Tools").is_digital
    assert not OrderLine(name="x", price=Decimal("1"), quantity=1).is_digital


def test_payment_method_label_falls_back_to_raw_value():
    assert payment_method_label("cash") == "Cash on delivery"
    assert payment_method_label("crypto") == "crypto"


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.calls = []
        FakeSMTP.instances.append(self)

    def ehlo(self):
        self.calls.append("ehlo")

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username))

    def send_message(self, message):
        self.calls.append(("send", message["Subject"]))

    def quit(self):
        self.calls.append("quit")


class RefusingSMTP(FakeSMTP):
    def send_message(self, message):
        raise smtplib.SMTPRecipientsRefused({"owner@example.com": (550, b"no such user")})


def test_smtp_mailer_uses_starttls_and_login(monkeypatch, settings_factory):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    settings = settings_factory(MAIL_ENABLED=True, SMTP_HOST="smtp.example.com", SMTP_USERNAME="shop", SMTP_PASSWORD="pw")
    mailer = build_mailer(settings)
    assert isinstance(mailer, SmtpMailer)

    service = InquiryService(mailer, sender=settings.MAIL_FROM, recipient=settings.MAIL_TO)
    service.send_order(OrderNotification.model_validate(_order()))

    server = FakeSMTP.instances[-1]
    assert (server.host, server.port) == ("smtp.example.com", 587)
    assert server.calls[:3] == ["ehlo", "starttls", "ehlo"]
    assert ("login", "shop") in server.calls
    assert server.calls[-1] == "quit"


def test_smtp_failure_becomes_delivery_error(monkeypatch, settings_factory):
    monkeypatch.setattr(smtplib, "SMTP", RefusingSMTP)
    mailer = SmtpMailer(settings_factory(MAIL_ENABLED=True, SMTP_HOST="smtp.example.com", SMTP_SECURITY="none"))

    with pytest.raises(DeliveryError):
        InquiryService(mailer, sender="a@example.com", recipient="b@example.com").send_order(
            OrderNotification.model_validate(_order())
        )


def test_mail_disabled_uses_log_mailer(settings_factory):
    assert isinstance(build_mailer(settings_factory(MAIL_ENABLED=False)), LogMailer)


def test_mailer_base_requires_send():
    with pytest.raises(TypeError):
        Mailer()

    class Incomplete(Mailer):
        pass

    with pytest.raises(TypeError):
        Incomplete()
