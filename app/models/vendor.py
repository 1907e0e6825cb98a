# app/models/vendor.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Vendor(SQLModel, table=True):
    """
    Service provider receiving split payments.

    Read-only for the payment flow:
      - wallet_address is the payout target on the ticketing contract.
      - is_verified is the platform-side verification flag; on-chain
        whitelisting is checked separately through the contract.
    """

    __tablename__ = "vendors"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="profiles.id",
        index=True,
    )

    business_name: str = Field(max_length=200)

    wallet_address: str | None = Field(default=None, index=True)

    is_verified: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
