# app/core/errors.py
from typing import Any

from fastapi import status


class UniTickError(Exception):
    """
    Base exception for the payment flow.

    Rendered by the handler in `app.main` as:
        {"error": message, "details": details, **extra}
    """

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        details: Any = None,
        status_code: int | None = None,
        **extra: Any,
    ):
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra
        super().__init__(message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


class ValidationFailed(UniTickError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(UniTickError):
    """Session missing or does not match the claimed user."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ProfileNotFound(UniTickError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "User profile not found", details: Any = None):
        super().__init__(message, details)


class WalletNotFound(UniTickError):
    """No usable custodial wallet; the UI should branch into wallet setup."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str = "No wallet found. Please create a wallet first.",
        details: Any = (
            "Your wallet needs to be set up. Please go to the wallet "
            "management page to create a new wallet."
        ),
    ):
        super().__init__(message, details, needsWalletCreation=True)


class InsufficientBalance(UniTickError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, balance: int, required: int):
        super().__init__(
            f"Insufficient UniTick tokens. Balance: {balance}, Required: {required}",
            balance=str(balance),
            required=str(required),
        )


class ChainError(UniTickError):
    """A contract read or write failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class SettlementError(UniTickError):
    """Payment went through (or was attempted) but settlement failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
