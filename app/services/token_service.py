# app/services/token_service.py
import logging
from typing import Callable

from sqlmodel import Session

from app.core.auth import AuthUser
from app.core.blockchain import UniTickContractClient, wait_for_state
from app.core.config import get_settings
from app.core.errors import ChainError, InsufficientBalance, ProfileNotFound, ValidationFailed
from app.core.token_units import format_units, needs_approval, parse_base_units, to_base_units
from app.core.wallet_secure import SecureWallet, get_secure_wallet_for_user
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.schemas.payment import TokenApprovalResponse, TokenStatusResponse

logger = logging.getLogger(__name__)

WalletResolver = Callable[..., SecureWallet]


class TokenService:
    """
    UTICK balance / allowance for a user's custodial wallet.

    Responsibilities:
      - resolve the custodial wallet of the authenticated user
      - read balance and allowance against the ticketing contract
      - submit approve() sized to the cart total and confirm it took effect
    """

    def __init__(
        self,
        contract: UniTickContractClient,
        profile_repo: ProfileRepository,
        wallet_resolver: WalletResolver = get_secure_wallet_for_user,
        settle_seconds: float | None = None,
    ):
        self.contract = contract
        self.profile_repo = profile_repo
        self.wallet_resolver = wallet_resolver
        if settle_seconds is None:
            settle_seconds = get_settings().ALLOWANCE_SETTLE_SECONDS
        self.settle_seconds = settle_seconds

    # ---- internal helpers ----

    def _load_profile(self, session: Session, user: AuthUser) -> Profile:
        profile = self.profile_repo.get_by_id(session, user.id)
        if profile is None:
            raise ProfileNotFound()
        return profile

    def _load_wallet(self, session: Session, user: AuthUser, profile: Profile) -> SecureWallet:
        # Raises WalletNotFound (needsWalletCreation) when nothing usable is stored
        return self.wallet_resolver(session, user.id, profile.email)

    def _read_balance(self, address: str) -> int:
        try:
            return self.contract.get_unitick_balance(address)
        except Exception as exc:
            logger.error("Error getting balance for %s: %s", address, exc)
            raise ChainError("Failed to get token balance", details=str(exc))

    def _read_allowance(self, address: str) -> int:
        try:
            return self.contract.get_unitick_allowance(
                address, self.contract.ticket_contract_address
            )
        except Exception as exc:
            logger.error("Error getting allowance for %s: %s", address, exc)
            raise ChainError("Failed to get token allowance", details=str(exc))

    # ---- public operations ----

    def get_token_status(
        self,
        session: Session,
        user: AuthUser,
        amount: str | None = None,
    ) -> TokenStatusResponse:
        """
        Balance and allowance of the user's wallet, raw and formatted.

        If `amount` (display units, e.g. the cart total) is given, also
        report the base-unit allowance it requires and whether an approval
        is needed first.
        """
        required: int | None = None
        if amount is not None:
            try:
                required = to_base_units(amount)
            except ValueError as exc:
                raise ValidationFailed("Invalid amount", details=str(exc))

        profile = self._load_profile(session, user)
        wallet = self._load_wallet(session, user, profile)

        # Two sequential reads; nothing here is latency sensitive.
        balance = self._read_balance(wallet.address)
        allowance = self._read_allowance(wallet.address)

        logger.info(
            "Token status for %s: balance=%s allowance=%s",
            wallet.address,
            format_units(balance),
            format_units(allowance),
        )

        status = TokenStatusResponse(
            wallet_address=wallet.address,
            contract_address=self.contract.ticket_contract_address,
            balance=str(balance),
            allowance=str(allowance),
            balance_formatted=format_units(balance),
            allowance_formatted=format_units(allowance),
        )
        if required is not None:
            status.required_allowance = str(required)
            status.needs_approval = needs_approval(allowance, required)
        return status

    def approve_tokens(
        self,
        session: Session,
        user: AuthUser,
        amount: str,
    ) -> TokenApprovalResponse:
        """
        Approve the ticketing contract to spend `amount` base units.

        Steps:
          1. Parse amount (base-unit integer string).
          2. Resolve profile and custodial wallet.
          3. Refuse if the balance cannot cover the amount (400).
          4. Submit approve(), wait for the receipt; failed status → 500.
          5. Re-read the allowance; still short → 500.
        """
        try:
            approval_amount = parse_base_units(amount)
        except ValueError as exc:
            raise ValidationFailed("Invalid amount", details=str(exc))
        if approval_amount == 0:
            raise ValidationFailed("Amount must be greater than zero")

        profile = self._load_profile(session, user)
        wallet = self._load_wallet(session, user, profile)

        balance = self._read_balance(wallet.address)
        logger.info("Approval requested: balance=%s required=%s", balance, approval_amount)
        if balance < approval_amount:
            raise InsufficientBalance(balance, approval_amount)

        try:
            tx_hash = self.contract.approve_unitick_tokens(
                wallet, approval_amount, self.contract.ticket_contract_address
            )
            logger.info("Approval transaction sent: %s", tx_hash)
            succeeded = self.contract.wait_for_receipt(tx_hash)
        except Exception as exc:
            logger.error("Approval transaction error: %s", exc)
            raise ChainError("Approval transaction failed", details=str(exc))

        if not succeeded:
            raise ChainError("Approval transaction failed", transactionHash=tx_hash)

        wait_for_state(self.settle_seconds)

        new_allowance = self._read_allowance(wallet.address)
        if new_allowance < approval_amount:
            # Mined fine but the allowance did not move: contract state race
            raise ChainError(
                "Approval completed but allowance verification failed. "
                f"New: {new_allowance}, Requested: {approval_amount}",
                transactionHash=tx_hash,
            )

        logger.info("Approval successful: %s", tx_hash)
        return TokenApprovalResponse(
            transaction_hash=tx_hash,
            allowance=str(new_allowance),
        )
