# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    One successful on-chain payment.

    Created right after the contract call succeeds and never rolled back.
    transaction_hash holds the synthetic reference "contract_<orderId>"
    pointing at the on-chain order.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )

    # Subtotal + platform fee, in UTICK
    total_amount: float
    platform_fee_total: float

    wallet_address: str | None = None

    transaction_hash: str = Field(index=True)

    # confirmed is the only status set by the payment flow
    status: str = Field(default="confirmed", index=True)

    nft_batch_contract_address: str | None = None
    nft_batch_id: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class Booking(SQLModel, table=True):
    """
    One booking per settled cart item.

    user_id is the ticket holder: the recipient for gifts, which may differ
    from the payer on the order.

    Invariant: subtotal + platform_fee == total_amount.
    """

    __tablename__ = "bookings"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )

    listing_id: uuid.UUID = Field(
        foreign_key="listings.id",
        index=True,
    )

    vendor_id: uuid.UUID = Field(
        foreign_key="vendors.id",
        index=True,
    )

    booking_date: datetime

    quantity: int = Field(gt=0)

    subtotal: float
    platform_fee: float
    total_amount: float

    # confirmed | pending_recipient
    status: str = Field(default="confirmed", index=True)

    is_gift: bool = Field(default=False)
    recipient_name: str | None = None
    recipient_email: str | None = None
    recipient_phone: str | None = None
    recipient_wallet: str | None = None
    gift_message: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """Join row: order -> booking."""

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    booking_id: uuid.UUID = Field(
        foreign_key="bookings.id",
        index=True,
    )
