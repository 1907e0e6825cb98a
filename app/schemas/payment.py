# app/schemas/payment.py
import uuid
from datetime import datetime
from typing import Any, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from app.core.errors import ValidationFailed

ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    """
    Base for request/response bodies exchanged with the web client,
    which speaks camelCase (userId, cartItems, transactionHash, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Cart items as sent by the client (denormalised through listing -> vendor)
# ---------------------------------------------------------------------------


class VendorPayload(BaseModel):
    id: uuid.UUID | None = None
    business_name: str | None = None
    wallet_address: str | None = None


class ListingPayload(BaseModel):
    id: uuid.UUID
    title: str
    price: float = Field(ge=0)
    vendor_id: uuid.UUID
    vendor: VendorPayload | None = None

    @property
    def vendor_wallet(self) -> str | None:
        return self.vendor.wallet_address if self.vendor else None

    @property
    def vendor_name(self) -> str | None:
        return self.vendor.business_name if self.vendor else None


class CartItemPayload(BaseModel):
    """
    One cart row joined with its listing and vendor.

    The client sends the cart row id as `_id` (older pages) or `id`.
    """

    id: uuid.UUID | None = None
    listing: ListingPayload
    quantity: int = Field(gt=0)
    booking_date: datetime | None = None

    is_gift: bool = False
    recipient_name: str | None = None
    recipient_email: str | None = None
    recipient_phone: str | None = None
    recipient_wallet: str | None = None
    gift_message: str | None = None

    @model_validator(mode="before")
    @classmethod
    def accept_underscore_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and "_id" in data and not data.get("id"):
            data = {**data, "id": data["_id"]}
        return data

    @field_validator(
        "recipient_name",
        "recipient_email",
        "recipient_phone",
        "recipient_wallet",
        "gift_message",
    )
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @property
    def line_total(self) -> float:
        return self.listing.price * self.quantity


# ---------------------------------------------------------------------------
# /payment/process
# ---------------------------------------------------------------------------


class ProcessPaymentRequest(CamelModel):
    cart_items: list[CartItemPayload]
    user_id: str
    use_external_wallet: bool = False


class ProcessPaymentResponse(CamelModel):
    success: bool = True
    order_id: uuid.UUID
    transaction_hash: str | None
    message: str = "Payment processed successfully"


# ---------------------------------------------------------------------------
# /payment-diagnostic
# ---------------------------------------------------------------------------


class DiagnosticRequest(CamelModel):
    cart_items: list[CartItemPayload]
    user_id: str


class DiagnosticResponse(CamelModel):
    success: bool = True
    diagnostics: dict[str, Any]
    message: str


# ---------------------------------------------------------------------------
# /token-approval, /token-status
# ---------------------------------------------------------------------------


class TokenApprovalRequest(CamelModel):
    """`amount` is the base-unit integer, as a decimal string."""

    amount: str
    user_id: str

    @field_validator("amount", mode="before")
    @classmethod
    def stringify_amount(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class TokenApprovalResponse(CamelModel):
    success: bool = True
    transaction_hash: str
    allowance: str
    message: str = "Token approval completed successfully"


class TokenStatusResponse(CamelModel):
    success: bool = True
    wallet_address: str
    contract_address: str
    balance: str
    allowance: str
    balance_formatted: str
    allowance_formatted: str
    needs_wallet_creation: bool = False

    # Only present when the caller passes ?amount=
    required_allowance: str | None = None
    needs_approval: bool | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def validation_details(exc: ValidationError) -> list[dict[str, Any]]:
    """Compact, JSON-safe rendering of pydantic errors."""
    return [
        {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
        for err in exc.errors()
    ]


def parse_body(model: type[ModelT], body: dict[str, Any]) -> ModelT:
    """
    Validate a raw JSON body into `model`.

    Routes validate after the userId check so that a mismatched user is
    always answered with 401, whatever else is wrong with the payload.
    """
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise ValidationFailed("Invalid request body", details=validation_details(exc))


# ---------------------------------------------------------------------------
# /wallet/ensure
# ---------------------------------------------------------------------------


class WalletEnsureResponse(CamelModel):
    success: bool = True
    wallet_address: str
    is_new_wallet: bool
    message: str
