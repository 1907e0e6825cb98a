# app/services/wallet_service.py
import logging

from sqlmodel import Session

from app.core.auth import AuthUser
from app.core.errors import ProfileNotFound, WalletNotFound
from app.core.wallet_secure import create_secure_wallet_for_user, get_secure_wallet_for_user
from app.repositories.profile_repo import ProfileRepository
from app.schemas.payment import WalletEnsureResponse

logger = logging.getLogger(__name__)


class WalletService:
    """
    Custodial wallet setup: the step every `needsWalletCreation` response
    sends the client to.
    """

    def __init__(self, profile_repo: ProfileRepository):
        self.profile_repo = profile_repo

    def ensure_wallet(self, session: Session, user: AuthUser) -> WalletEnsureResponse:
        """
        Return the user's usable custodial wallet, creating one if needed.

        A stored address without a decryptable key is replaced by a fresh
        wallet; the old address cannot sign anything from this service.
        """
        profile = self.profile_repo.get_by_id(session, user.id)
        if profile is None:
            raise ProfileNotFound()

        try:
            wallet = get_secure_wallet_for_user(session, user.id, profile.email)
        except WalletNotFound as exc:
            logger.info("No usable wallet for user %s (%s), creating one", user.id, exc.message)
        else:
            return WalletEnsureResponse(
                wallet_address=wallet.address,
                is_new_wallet=False,
                message="Wallet already exists",
            )

        address = create_secure_wallet_for_user(session, profile)
        return WalletEnsureResponse(
            wallet_address=address,
            is_new_wallet=True,
            message="Secure encrypted wallet created successfully",
        )
