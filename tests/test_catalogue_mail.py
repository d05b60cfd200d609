import asyncio
from dataclasses import replace

import pytest
from fastapi_mail import FastMail

import storefront.emails as emails
import storefront.main as main
from storefront.emails import send_email_async


@pytest.fixture
def outbox(monkeypatch):
    monkeypatch.setattr(main, "settings", replace(main.settings, mail_enabled=True))
    sent = []

    async def fake_send(self, message, template_name=None):
        sent.append(message)

    monkeypatch.setattr(FastMail, "send_message", fake_send)
    return sent


@pytest.fixture
def mail_log(monkeypatch):
    logged = []
    monkeypatch.setattr(emails, "log_event", lambda level, event, **fields: logged.append((level, event, fields)))
    return logged


def test_catalogue_lists_products(client):
    body = client.get("/products").json()
    assert body["success"] is True
    assert set(body["products"]) == {"tshirt", "hoodie", "mug", "hat"}
    assert body["colorCopyOptions"][0] == {"value": "8.5x11-single", "label": "8.5x11 - Single side", "price": 0.49}


def test_unknown_product_falls_back_to_tshirt(client):
    assert client.get("/products/mug").json()["product"]["name"] == "Custom Mug"
    assert client.get("/products/spaceship").json()["product"]["name"] == "Custom T-Shirt"


def test_health_reports_database(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"success": True, "database": "connected"}


def test_checkout_and_paid_confirmation_send_mail(client, outbox, checkout_payload):
    order_id = client.post("/checkout", json=checkout_payload).json()["orderId"]
    assert len(outbox) == 1
    assert outbox[0].subject.endswith("order received")
    assert "sam@example.com" in str(outbox[0].recipients[0])
    assert order_id in outbox[0].body

    client.post(f"/orders/{order_id}/payment", json={"paymentId": "PAY-1", "status": "failed"})
    assert len(outbox) == 1

    client.post(f"/orders/{order_id}/payment", json={"paymentId": "PAY-1", "status": "paid"})
    assert len(outbox) == 2
    assert outbox[1].subject.endswith("payment received")
    assert "PAY-1" in outbox[1].body


def test_no_mail_when_disabled(client, monkeypatch, checkout_payload):
    sent = []

    async def fake_send(self, message, template_name=None):
        sent.append(message)

    monkeypatch.setattr(FastMail, "send_message", fake_send)
    assert client.post("/checkout", json=checkout_payload).status_code == 200
    assert sent == []


def test_send_failure_is_only_logged(monkeypatch, mail_log):
    async def smtp_down(self, message, template_name=None):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(FastMail, "send_message", smtp_down)
    asyncio.run(send_email_async("Hello", "sam@example.com", "<p>hi</p>"))
    assert mail_log == [("error", "mail.failed", {"subject": "Hello", "error": "smtp down"})]


def test_checkout_succeeds_when_mail_fails(client, monkeypatch, outbox, mail_log, checkout_payload):
    async def smtp_down(self, message, template_name=None):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(FastMail, "send_message", smtp_down)
    res = client.post("/checkout", json=checkout_payload)
    assert res.status_code == 200
    assert res.json()["success"] is True
    assert [event for _, event, _ in mail_log] == ["mail.failed"]
