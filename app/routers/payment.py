# app/routers/payment.py
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from app.core.auth import AuthUser, ensure_same_user, get_current_user
from app.core.blockchain import UniTickContractClient, get_contract_client
from app.core.errors import ValidationFailed
from app.database import get_session
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.vendor_repo import VendorRepository
from app.schemas.payment import (
    DiagnosticRequest,
    DiagnosticResponse,
    ProcessPaymentRequest,
    ProcessPaymentResponse,
    parse_body,
)
from app.services.diagnostic_service import PaymentDiagnosticService
from app.services.notification_service import PostPaymentNotifier, get_notifier
from app.services.payment_service import PaymentService

router = APIRouter(tags=["Payment"])

profile_repo = ProfileRepository()
order_repo = OrderRepository()
cart_repo = CartRepository()
vendor_repo = VendorRepository()


def get_payment_service(
    contract: UniTickContractClient = Depends(get_contract_client),
    notifier: PostPaymentNotifier = Depends(get_notifier),
) -> PaymentService:
    return PaymentService(contract, notifier, profile_repo, order_repo, cart_repo)


def get_diagnostic_service(
    contract: UniTickContractClient = Depends(get_contract_client),
) -> PaymentDiagnosticService:
    return PaymentDiagnosticService(contract, profile_repo, vendor_repo)


def _require_cart_and_user(body: dict[str, Any]) -> None:
    if body.get("cartItems") is None or not body.get("userId"):
        raise ValidationFailed("Cart items and user ID are required")


@router.post("/payment/process", response_model=ProcessPaymentResponse)
def process_payment(
    body: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Pay for the cart with UTICK and settle it.

    One on-chain order covers every vendor in the cart. Once it is mined
    the payment is final; database bookkeeping afterwards is best effort.
    """
    _require_cart_and_user(body)
    ensure_same_user(body["userId"], current_user)
    payload = parse_body(ProcessPaymentRequest, body)
    return service.process_payment(session, current_user, payload)


@router.post("/payment-diagnostic", response_model=DiagnosticResponse)
def payment_diagnostic(
    body: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
    service: PaymentDiagnosticService = Depends(get_diagnostic_service),
):
    """
    Report everything that would block payment of this cart.

    Read-only; safe to call repeatedly.
    """
    _require_cart_and_user(body)
    ensure_same_user(body["userId"], current_user)
    payload = parse_body(DiagnosticRequest, body)
    return service.run(session, current_user, payload.cart_items)
