# app/routers/wallet.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import AuthUser, get_current_user
from app.database import get_session
from app.repositories.profile_repo import ProfileRepository
from app.schemas.payment import WalletEnsureResponse
from app.services.wallet_service import WalletService

router = APIRouter(prefix="/wallet", tags=["Wallet"])

profile_repo = ProfileRepository()
service = WalletService(profile_repo)


@router.post("/ensure", response_model=WalletEnsureResponse)
def ensure_wallet(
    session: Session = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    """
    Make sure the authenticated user has a custodial wallet.

    Idempotent: an existing, decryptable wallet is returned unchanged.
    """
    return service.ensure_wallet(session, current_user)
