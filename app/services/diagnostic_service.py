# app/services/diagnostic_service.py
import logging
import re
from typing import Any

from sqlmodel import Session

from app.core.auth import AuthUser
from app.core.blockchain import UniTickContractClient
from app.core.errors import ProfileNotFound, WalletNotFound
from app.core.token_units import ZERO_ADDRESS, format_units, has_precision_loss, to_base_units
from app.core.wallet_secure import get_secure_wallet_for_user
from app.repositories.profile_repo import ProfileRepository
from app.repositories.vendor_repo import VendorRepository
from app.schemas.payment import CartItemPayload, DiagnosticResponse
from app.services.pricing import cart_totals
from app.services.token_service import WalletResolver

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

# Issues that block payment outright, surfaced separately in the summary.
CRITICAL_MARKERS = ("not whitelisted", "Insufficient", "missing")


class PaymentDiagnosticService:
    """
    Pre-flight checklist for a cart, for troubleshooting failed payments.

    Re-derives the totals, whitelist status and allowance check that
    settlement performs, and reports what would block it. Reads only:
    no database row or contract state is changed.
    """

    def __init__(
        self,
        contract: UniTickContractClient,
        profile_repo: ProfileRepository,
        vendor_repo: VendorRepository,
        wallet_resolver: WalletResolver = get_secure_wallet_for_user,
    ):
        self.contract = contract
        self.profile_repo = profile_repo
        self.vendor_repo = vendor_repo
        self.wallet_resolver = wallet_resolver

    def run(
        self,
        session: Session,
        user: AuthUser,
        items: list[CartItemPayload],
    ) -> DiagnosticResponse:
        profile = self.profile_repo.get_by_id(session, user.id)
        if profile is None or not profile.wallet_address:
            raise ProfileNotFound("User profile or wallet not found")

        try:
            wallet = self.wallet_resolver(session, user.id, profile.email)
        except WalletNotFound as exc:
            raise ProfileNotFound("User profile or wallet not found", details=exc.message)

        issues: list[str] = []
        warnings: list[str] = []

        diagnostics: dict[str, Any] = {
            "user": {
                "id": str(user.id),
                "email": profile.email,
                "walletAddress": wallet.address,
            },
            "contract": {"address": self.contract.ticket_contract_address},
            "cartItems": {
                "count": len(items),
                "items": [
                    {
                        "id": str(item.id) if item.id else None,
                        "title": item.listing.title,
                        "price": item.listing.price,
                        "quantity": item.quantity,
                        "vendorId": str(item.listing.vendor_id),
                        "vendorWallet": item.listing.vendor_wallet,
                        "vendorBusinessName": item.listing.vendor_name,
                        "bookingDate": item.booking_date.isoformat() if item.booking_date else None,
                    }
                    for item in items
                ],
                "vendors": [],
            },
        }

        if not items:
            issues.append("No cart items found")

        vendor_groups = self._group_by_vendor(items, issues)
        diagnostics["whitelistStatus"] = self._check_whitelist(
            vendor_groups, diagnostics["cartItems"]["vendors"], issues
        )
        self._check_tokens(wallet.address, items, diagnostics, issues)
        diagnostics["arrays"] = self._check_arrays(items, issues)
        self._check_vendor_records(session, items, issues)
        self._check_amounts(items, issues, warnings)
        diagnostics["platformWallet"] = self._check_platform_wallet(issues)
        diagnostics["platformFee"] = self._check_platform_fee(issues, warnings)

        diagnostics["validation"] = {"issues": issues, "warnings": warnings}
        diagnostics["summary"] = {
            "totalIssues": len(issues),
            "totalWarnings": len(warnings),
            "canProceed": not issues,
            "criticalIssues": [
                issue for issue in issues if any(m in issue for m in CRITICAL_MARKERS)
            ],
        }
        logger.info("Payment diagnostic for %s: %s", user.id, diagnostics["summary"])

        return DiagnosticResponse(
            diagnostics=diagnostics,
            message=f"Found {len(issues)} issues and {len(warnings)} warnings",
        )

    # ---- individual checks ----

    @staticmethod
    def _group_by_vendor(
        items: list[CartItemPayload], issues: list[str]
    ) -> dict[str, list[CartItemPayload]]:
        groups: dict[str, list[CartItemPayload]] = {}
        for item in items:
            address = item.listing.vendor_wallet
            if not address:
                issues.append(
                    f"Vendor wallet address missing for listing: {item.listing.title} "
                    f"(vendor_id: {item.listing.vendor_id})"
                )
                continue
            groups.setdefault(address, []).append(item)
        return groups

    def _check_whitelist(
        self,
        groups: dict[str, list[CartItemPayload]],
        vendors_out: list[dict[str, Any]],
        issues: list[str],
    ) -> dict[str, bool]:
        status: dict[str, bool] = {}
        for address, group in groups.items():
            try:
                whitelisted = self.contract.is_vendor_whitelisted(address)
            except Exception as exc:
                logger.error("Error checking whitelist for vendor %s: %s", address, exc)
                issues.append(f"Failed to check whitelist status for vendor {address}: {exc}")
                continue

            status[address] = whitelisted
            vendors_out.append(
                {
                    "address": address,
                    "isWhitelisted": whitelisted,
                    "itemsCount": len(group),
                    "businessName": group[0].listing.vendor_name,
                }
            )
            if not whitelisted:
                issues.append(
                    f"Vendor {address} ({group[0].listing.vendor_name}) "
                    "is not whitelisted on contract"
                )
        return status

    def _check_tokens(
        self,
        wallet_address: str,
        items: list[CartItemPayload],
        diagnostics: dict[str, Any],
        issues: list[str],
    ) -> None:
        totals = cart_totals(items)
        required = to_base_units(totals.total_amount)
        diagnostics["payment"] = {
            "subtotal": totals.subtotal,
            "platformFeeInTokens": totals.platform_fee,
            "platformFeeInWei": str(to_base_units(totals.platform_fee)),
            "totalWithFee": str(required),
            "totalWithFeeFormatted": format_units(required),
        }

        try:
            balance = self.contract.get_unitick_balance(wallet_address)
            allowance = self.contract.get_unitick_allowance(
                wallet_address, self.contract.ticket_contract_address
            )
        except Exception as exc:
            logger.error("Error checking tokens for %s: %s", wallet_address, exc)
            issues.append("Failed to check token balance and allowance")
            return

        diagnostics["tokens"] = {
            "balance": str(balance),
            "allowance": str(allowance),
            "balanceFormatted": format_units(balance),
            "allowanceFormatted": format_units(allowance),
        }
        if balance < required:
            issues.append(
                f"Insufficient token balance. Required: {required}, Available: {balance}"
            )
        if allowance < required:
            issues.append(
                f"Insufficient token allowance. Required: {required}, Available: {allowance}"
            )

    @staticmethod
    def _check_arrays(items: list[CartItemPayload], issues: list[str]) -> dict[str, Any]:
        # One vendor payment, service name and booking date per cart item.
        payments = sum(1 for item in items if item.listing.vendor_wallet)
        names = len(items)
        dates = len(items)
        if payments != names:
            issues.append(
                f"Vendor payments count ({payments}) does not match "
                f"service names count ({names})"
            )
        return {
            "vendorPaymentsCount": payments,
            "serviceNamesCount": names,
            "bookingDatesCount": dates,
            "lengthsMatch": payments == names == dates,
        }

    def _check_vendor_records(
        self, session: Session, items: list[CartItemPayload], issues: list[str]
    ) -> None:
        for item in items:
            address = item.listing.vendor_wallet
            if not address:
                continue
            if not ADDRESS_RE.match(address):
                issues.append(
                    f"Invalid vendor address format for {item.listing.title}: {address}"
                )

            vendor = self.vendor_repo.get_by_id(session, item.listing.vendor_id)
            if vendor is None:
                issues.append(f"Vendor not found in database: {item.listing.vendor_id}")
            elif not vendor.is_verified:
                issues.append(f"Vendor {vendor.business_name} is not verified")
            elif (vendor.wallet_address or "").lower() != address.lower():
                issues.append(
                    f"Vendor wallet address mismatch: DB has {vendor.wallet_address}, "
                    f"listing has {address}"
                )

    @staticmethod
    def _check_amounts(
        items: list[CartItemPayload], issues: list[str], warnings: list[str]
    ) -> None:
        for item in items:
            amount = item.line_total
            if amount <= 0:
                issues.append(f"Invalid amount for item {item.listing.title}: {amount}")
                continue
            if to_base_units(amount) <= 0:
                issues.append(f"Invalid amount in wei for item {item.listing.title}")
            if has_precision_loss(amount):
                warnings.append(
                    f"Precision loss detected for {item.listing.title}: original={amount}"
                )

    def _check_platform_wallet(self, issues: list[str]) -> dict[str, Any] | None:
        try:
            address = self.contract.platform_wallet()
        except Exception as exc:
            logger.error("Error checking platform wallet: %s", exc)
            issues.append("Failed to check platform wallet configuration")
            return None
        is_valid = address.lower() != ZERO_ADDRESS
        if not is_valid:
            issues.append("Platform wallet is not configured (zero address)")
        return {"address": address, "isValid": is_valid}

    def _check_platform_fee(
        self, issues: list[str], warnings: list[str]
    ) -> dict[str, Any] | None:
        try:
            fee_bps = self.contract.platform_fee_bps()
        except Exception as exc:
            logger.error("Error checking platform fee: %s", exc)
            issues.append("Failed to check platform fee configuration")
            return None
        if fee_bps == 0:
            warnings.append("Platform fee is set to 0%")
        return {"feeBps": str(fee_bps), "feePercentage": f"{fee_bps / 100:.2f}%"}
