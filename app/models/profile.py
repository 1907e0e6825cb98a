# app/models/profile.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    """
    Customer / vendor account.

    Identity:
      - id: matches Supabase auth.users.id (UUID from JWT "sub") for
        registered users. Gift recipients without an account get a
        generated id and claim the profile later.

    Custodial wallet:
      - wallet_address is the public address.
      - wallet_encrypted_* hold the AES-256-GCM encrypted private key
        (hex), see app.core.wallet_secure.
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Lower-cased email",
    )

    full_name: str | None = Field(default=None, max_length=200)

    wallet_address: str | None = Field(default=None, index=True)

    wallet_encrypted_private_key: str | None = None
    wallet_encryption_iv: str | None = None
    wallet_encryption_auth_tag: str | None = None
    wallet_encryption_salt: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
