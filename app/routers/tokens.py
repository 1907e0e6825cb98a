# app/routers/tokens.py
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from sqlmodel import Session

from app.core.auth import AuthUser, ensure_same_user, get_current_user
from app.core.blockchain import UniTickContractClient, get_contract_client
from app.core.errors import ValidationFailed
from app.database import get_session
from app.repositories.profile_repo import ProfileRepository
from app.schemas.payment import (
    TokenApprovalRequest,
    TokenApprovalResponse,
    TokenStatusResponse,
    parse_body,
)
from app.services.token_service import TokenService

router = APIRouter(tags=["Tokens"])

profile_repo = ProfileRepository()


def get_token_service(
    contract: UniTickContractClient = Depends(get_contract_client),
) -> TokenService:
    return TokenService(contract, profile_repo)


@router.post("/token-approval", response_model=TokenApprovalResponse)
def approve_tokens(
    body: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
    service: TokenService = Depends(get_token_service),
):
    """
    Approve the ticketing contract to spend `amount` UTICK base units
    from the user's custodial wallet.
    """
    if body.get("amount") in (None, "") or not body.get("userId"):
        raise ValidationFailed("Amount and user ID are required")
    ensure_same_user(body["userId"], current_user)
    payload = parse_body(TokenApprovalRequest, body)
    return service.approve_tokens(session, current_user, payload.amount)


def _token_status(
    user_id: str | None,
    amount: str | None,
    session: Session,
    current_user: AuthUser,
    service: TokenService,
) -> TokenStatusResponse:
    if not user_id:
        raise ValidationFailed("User ID is required")
    ensure_same_user(user_id, current_user)
    return service.get_token_status(session, current_user, amount)


@router.get(
    "/token-approval",
    response_model=TokenStatusResponse,
    response_model_exclude_none=True,
)
def get_token_approval_status(
    user_id: str | None = Query(None, alias="userId"),
    amount: str | None = Query(None, description="Cart total in UTICK, e.g. 80.4"),
    session: Session = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
    service: TokenService = Depends(get_token_service),
):
    """
    Balance and allowance of the user's wallet.

    With `amount`, also reports the base-unit allowance it requires and
    whether an approval is needed before paying.
    """
    return _token_status(user_id, amount, session, current_user, service)


@router.get(
    "/token-status",
    response_model=TokenStatusResponse,
    response_model_exclude_none=True,
)
def get_token_status(
    user_id: str | None = Query(None, alias="userId"),
    amount: str | None = Query(None),
    session: Session = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
    service: TokenService = Depends(get_token_service),
):
    """Same as GET /token-approval; userId defaults to the session user."""
    return _token_status(user_id or str(current_user.id), amount, session, current_user, service)
