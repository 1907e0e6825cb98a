# app/models/listing.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Listing(SQLModel, table=True):
    """
    A bookable service offered by a vendor (event, tour, stay, ...).

    price is expressed in UTICK (1 UTICK == 1 USD on the platform).
    """

    __tablename__ = "listings"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    vendor_id: uuid.UUID = Field(
        foreign_key="vendors.id",
        index=True,
    )

    title: str = Field(max_length=200)

    service_type: str | None = Field(default=None, index=True)

    price: float = Field(ge=0)

    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
