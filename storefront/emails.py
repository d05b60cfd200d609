import os
from functools import lru_cache

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType

from .logs import log_event


@lru_cache(maxsize=1)
def get_mail_config() -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=os.getenv("MAIL_USERNAME", ""),
        MAIL_PASSWORD=os.getenv("MAIL_PASSWORD", ""),
        MAIL_FROM=os.getenv("MAIL_FROM", "orders@example.com"),
        MAIL_PORT=int(os.getenv("MAIL_PORT", 587)),
        MAIL_SERVER=os.getenv("MAIL_SERVER", "localhost"),
        MAIL_STARTTLS=os.getenv("MAIL_STARTTLS", "True") == "True",
        MAIL_SSL_TLS=os.getenv("MAIL_SSL_TLS", "False") == "True",
        USE_CREDENTIALS=bool(os.getenv("MAIL_USERNAME")),
        VALIDATE_CERTS=True,
    )


async def send_email_async(subject: str, email_to: str, body_html: str):
    """Send one HTML mail; meant to run as a background task."""
    message = MessageSchema(
        subject=subject,
        recipients=[email_to],
        body=body_html,
        subtype=MessageType.html,
    )

    fm = FastMail(get_mail_config())
    try:
        await fm.send_message(message)
    except Exception as e:
        # Mail is best effort; the order is already stored.
        log_event("error", "mail.failed", subject=subject, error=str(e))


def get_order_received_html(customer_name: str, order_id: str, total_price: float, site_name: str) -> str:
    return f"""
    <h3>Hi {customer_name},</h3>
    <p>Thanks for your order at {site_name}!</p>
    <p>Order number: <strong>{order_id}</strong></p>
    <p>Total: <strong>${total_price:,.2f}</strong></p>
    <p>We will start printing as soon as your payment is confirmed.</p>
    """


def get_payment_confirmed_html(customer_name: str, order_id: str, payment_id: str) -> str:
    return f"""
    <h3>Payment received</h3>
    <p>Hi {customer_name}, we received your payment for order {order_id}.</p>
    <p>Payment reference: {payment_id}</p>
    <p>Your order is now being processed.</p>
    """
