# send_test_email.py
"""
Send a sample payment confirmation to check the SMTP_* settings.

    python send_test_email.py you@example.com
"""

import sys
from datetime import datetime, timezone

from app.core.config import get_settings
from app.core.email_client import send_email
from app.services.notification_service import (
    BookingSummary,
    ConfirmationEmail,
    render_confirmation_email,
)


def main():
    if len(sys.argv) != 2:
        print("Usage: python send_test_email.py <recipient email>")
        sys.exit(1)

    sample = ConfirmationEmail(
        order_id="00000000-0000-0000-0000-000000000000",
        user_email=sys.argv[1],
        user_name="UniTick Tester",
        total_amount=80.4,
        transaction_hash="0x" + "0" * 64,
        bookings=[
            BookingSummary(
                title="Sample Event",
                vendor="Sample Vendor",
                quantity=1,
                booking_date=datetime.now(timezone.utc),
                price=80.0,
            )
        ],
    )
    subject, text_body, html_body = render_confirmation_email(sample, get_settings().APP_URL)

    print(f"Sending test confirmation to {sample.user_email}...")
    send_email(
        to_email=sample.user_email,
        subject=f"[Test] {subject}",
        text_body=text_body,
        html_body=html_body,
    )
    print("If no errors: email sent! Check your inbox.")


if __name__ == "__main__":
    main()
