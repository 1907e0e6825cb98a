# app/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class CartItem(SQLModel, table=True):
    """
    Cart entry for a user: one listing, a quantity and a booking date.

    Gift fields are filled when the customer configures the item as a gift;
    the NFT ticket is then minted to recipient_wallet.

    Deleted once the order is settled.
    """

    __tablename__ = "cart_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
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

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    booking_date: datetime | None = None

    is_gift: bool = Field(default=False)
    recipient_name: str | None = None
    recipient_email: str | None = None
    recipient_phone: str | None = None
    recipient_wallet: str | None = None
    gift_message: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
