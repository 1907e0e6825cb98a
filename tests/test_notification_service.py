import json
from datetime import datetime

from app.services.notification_service import (
    BookingSummary,
    ConfirmationEmail,
    PaymentVerificationRequest,
    PostPaymentNotifier,
    render_confirmation_email,
)


class FakeFunctions:
    def __init__(self, response):
        self.response = response
        self.invocations = []

    def invoke(self, name, invoke_options=None):
        self.invocations.append((name, invoke_options))
        return self.response


class FakeSupabase:
    def __init__(self, response):
        self.functions = FakeFunctions(response)


def _verification() -> PaymentVerificationRequest:
    return PaymentVerificationRequest(
        transaction_hash="contract_7",
        order_id="order-1",
        expected_amount="80.4",
        from_address="0x" + "d4" * 20,
        to_address="0x" + "f3" * 20,
        chain_id=84532,
    )


def _email() -> ConfirmationEmail:
    return ConfirmationEmail(
        order_id="order-1",
        user_email="buyer@example.com",
        user_name="Test <Buyer>",
        total_amount=80.4,
        transaction_hash="0xabc",
        bookings=[
            BookingSummary(
                title="Sunset Boat Tour",
                vendor="Harbor Tours",
                quantity=1,
                booking_date=datetime(2026, 12, 1),
                price=50.0,
            )
        ],
    )


def test_verify_payment_sends_camel_case_body():
    client = FakeSupabase(json.dumps({"success": True}).encode())
    notifier = PostPaymentNotifier(
        functions_client_factory=lambda: client,
        email_sender=lambda **kwargs: None,
        app_url="http://localhost:3000",
    )

    assert notifier.verify_payment(_verification()) is True
    [(name, options)] = client.functions.invocations
    assert name == "verify-payment"
    assert options["body"] == {
        "transactionHash": "contract_7",
        "orderId": "order-1",
        "expectedAmount": "80.4",
        "fromAddress": "0x" + "d4" * 20,
        "toAddress": "0x" + "f3" * 20,
        "chainId": 84532,
    }


def test_verify_payment_reports_function_failure():
    client = FakeSupabase('{"success": false, "error": "amount mismatch"}')
    notifier = PostPaymentNotifier(
        functions_client_factory=lambda: client,
        email_sender=lambda **kwargs: None,
        app_url="http://localhost:3000",
    )
    assert notifier.verify_payment(_verification()) is False


def test_notify_swallows_failures_and_still_sends_email():
    sent = []

    def broken_factory():
        raise ConnectionError("edge function unreachable")

    notifier = PostPaymentNotifier(
        functions_client_factory=broken_factory,
        email_sender=lambda **kwargs: sent.append(kwargs),
        app_url="http://localhost:3000",
    )
    notifier.notify(_verification(), _email())

    [message] = sent
    assert message["to_email"] == "buyer@example.com"
    assert message["subject"] == "Payment Confirmed - Your Tickets Are Ready"


def test_notify_survives_email_failure():
    def broken_sender(**kwargs):
        raise RuntimeError("SMTP is not configured correctly.")

    client = FakeSupabase(b'{"success": true}')
    notifier = PostPaymentNotifier(
        functions_client_factory=lambda: client,
        email_sender=broken_sender,
        app_url="http://localhost:3000",
    )
    notifier.notify(_verification(), _email())
    assert len(client.functions.invocations) == 1


def test_render_confirmation_email():
    subject, text_body, html_body = render_confirmation_email(_email(), "http://localhost:3000/")
    assert subject == "Payment Confirmed - Your Tickets Are Ready"
    assert "Sunset Boat Tour (Harbor Tours) x1 on 2026-12-01: 50.00 UTICK" in text_body
    assert "Total: 80.40 UTICK" in text_body
    assert "http://localhost:3000/order/order-1" in text_body
    assert "Test &lt;Buyer&gt;" in html_body
