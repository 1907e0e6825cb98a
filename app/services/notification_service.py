# app/services/notification_service.py
"""
Best-effort side effects after a settled payment.

Two independent calls, neither of which may change the response sent to
the payer:
  - invoke the `verify-payment` Edge Function, which confirms the order and
    fans out vendor notifications;
  - email the payer a confirmation with the booking summary.

Failures are logged and dropped; nothing is retried.
"""

import html
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from app.core.config import get_settings
from app.core.email_client import send_email
from app.core.supabase_client import supabase_for_functions

logger = logging.getLogger(__name__)


@dataclass
class PaymentVerificationRequest:
    transaction_hash: str
    order_id: str
    expected_amount: str
    from_address: str
    to_address: str
    chain_id: int

    def to_body(self) -> dict[str, Any]:
        return {
            "transactionHash": self.transaction_hash,
            "orderId": self.order_id,
            "expectedAmount": self.expected_amount,
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "chainId": self.chain_id,
        }


@dataclass
class BookingSummary:
    title: str
    vendor: str | None
    quantity: int
    booking_date: datetime | None
    price: float


@dataclass
class ConfirmationEmail:
    order_id: str
    user_email: str
    user_name: str
    total_amount: float
    transaction_hash: str | None
    bookings: list[BookingSummary] = field(default_factory=list)


def _format_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def render_confirmation_email(data: ConfirmationEmail, app_url: str) -> tuple[str, str, str]:
    """Return (subject, text_body, html_body)."""
    order_url = f"{app_url.rstrip('/')}/order/{data.order_id}"
    subject = "Payment Confirmed - Your Tickets Are Ready"

    lines = [
        f"Hi {data.user_name},",
        "",
        "Your payment was confirmed and your NFT tickets have been minted.",
        "",
        f"Order: {data.order_id}",
        f"Total: {data.total_amount:.2f} UTICK",
        f"Transaction: {data.transaction_hash or '-'}",
        "",
        "Bookings:",
    ]
    for b in data.bookings:
        lines.append(
            f"  - {b.title} ({b.vendor or 'Vendor'}) x{b.quantity} "
            f"on {_format_date(b.booking_date)}: {b.price:.2f} UTICK"
        )
    lines += ["", f"View your order: {order_url}"]
    text_body = "\n".join(lines)

    rows = "".join(
        "<tr>"
        f"<td>{html.escape(b.title)}</td>"
        f"<td>{html.escape(b.vendor or 'Vendor')}</td>"
        f"<td>{b.quantity}</td>"
        f"<td>{_format_date(b.booking_date)}</td>"
        f"<td>{b.price:.2f} UTICK</td>"
        "</tr>"
        for b in data.bookings
    )
    html_body = (
        f"<p>Hi {html.escape(data.user_name)},</p>"
        "<p>Your payment was confirmed and your NFT tickets have been minted.</p>"
        f"<p><b>Order:</b> {data.order_id}<br>"
        f"<b>Total:</b> {data.total_amount:.2f} UTICK<br>"
        f"<b>Transaction:</b> {html.escape(data.transaction_hash or '-')}</p>"
        "<table><tr><th>Service</th><th>Vendor</th><th>Qty</th>"
        f"<th>Date</th><th>Price</th></tr>{rows}</table>"
        f'<p><a href="{order_url}">View your order</a></p>'
    )
    return subject, text_body, html_body


class PostPaymentNotifier:
    def __init__(
        self,
        functions_client_factory: Callable[[], Any] = supabase_for_functions,
        email_sender: Callable[..., None] = send_email,
        app_url: str | None = None,
    ):
        self.functions_client_factory = functions_client_factory
        self.email_sender = email_sender
        self.app_url = app_url or get_settings().APP_URL

    def verify_payment(self, request: PaymentVerificationRequest) -> bool:
        """
        Invoke the verify-payment Edge Function.

        Returns the function's `success` flag. Transport errors propagate.
        """
        client = self.functions_client_factory()
        raw = client.functions.invoke(
            "verify-payment",
            invoke_options={"body": request.to_body()},
        )
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8") if raw else "{}"
        result = json.loads(raw) if isinstance(raw, str) else (raw or {})

        if not result.get("success"):
            logger.error(
                "Payment verification failed for order %s: %s",
                request.order_id,
                result.get("error") or result.get("message"),
            )
            return False
        return True

    def send_confirmation_email(self, data: ConfirmationEmail) -> None:
        subject, text_body, html_body = render_confirmation_email(data, self.app_url)
        self.email_sender(
            to_email=data.user_email,
            subject=subject,
            text_body=text_body,
            html_body=html_body,
        )

    def notify(
        self,
        verification: PaymentVerificationRequest,
        email: ConfirmationEmail,
    ) -> None:
        """Run both side effects; never raises."""
        try:
            logger.info("Calling verify-payment for order %s", verification.order_id)
            if self.verify_payment(verification):
                logger.info("Payment verification successful, vendor notifications sent")
        except Exception:
            logger.exception("Error calling verify-payment for order %s", verification.order_id)

        try:
            self.send_confirmation_email(email)
            logger.info("Confirmation email sent for order %s", email.order_id)
        except Exception:
            logger.exception("Failed to send confirmation email for order %s", email.order_id)


def get_notifier() -> PostPaymentNotifier:
    """FastAPI dependency."""
    return PostPaymentNotifier()
