# app/services/payment_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.auth import AuthUser
from app.core.blockchain import ChainOrderResult, UniTickContractClient
from app.core.errors import ChainError, ProfileNotFound, SettlementError, ValidationFailed
from app.core.wallet_secure import get_secure_wallet_for_user
from app.models.order import Booking, Order, OrderItem
from app.models.profile import Profile
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.payment import CartItemPayload, ProcessPaymentRequest, ProcessPaymentResponse
from app.services.notification_service import (
    BookingSummary,
    ConfirmationEmail,
    PaymentVerificationRequest,
    PostPaymentNotifier,
)
from app.services.pricing import cart_totals, item_totals
from app.services.token_service import WalletResolver

logger = logging.getLogger(__name__)

BOOKING_CONFIRMED = "confirmed"
# Gift booking whose recipient profile could not be created; held by the
# payer until the recipient is attached.
BOOKING_PENDING_RECIPIENT = "pending_recipient"


class PaymentService:
    """
    Settles a multi-vendor cart in one on-chain order.

    Responsibilities:
      - re-check the payer's profile and wallet
      - validate gift items before anything is submitted
      - call the ticketing contract once for the whole cart
      - record order, bookings and order items, then clear the cart
      - trigger best-effort notifications

    Everything up to the contract call aborts cleanly. After it, the
    payment is final: database failures are logged and skipped, never
    rolled back or retried.
    """

    def __init__(
        self,
        contract: UniTickContractClient,
        notifier: PostPaymentNotifier,
        profile_repo: ProfileRepository,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        wallet_resolver: WalletResolver = get_secure_wallet_for_user,
    ):
        self.contract = contract
        self.notifier = notifier
        self.profile_repo = profile_repo
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.wallet_resolver = wallet_resolver

    def process_payment(
        self,
        session: Session,
        user: AuthUser,
        payload: ProcessPaymentRequest,
    ) -> ProcessPaymentResponse:
        """
        Pay for the cart and settle it in the database.

        The caller has already verified payload.user_id against the session.
        """
        items = payload.cart_items
        if not items:
            raise ValidationFailed("Cart items and user ID are required")

        # 1) Profile and wallet
        profile = self.profile_repo.get_by_id(session, user.id)
        if profile is None:
            raise ProfileNotFound()

        if not profile.wallet_address:
            if payload.use_external_wallet:
                raise ValidationFailed("No wallet found. Please create a wallet first.")
            raise ValidationFailed(
                "No internal wallet found. Please set up internal wallet "
                "or use external wallet."
            )

        # 2) Gift validation: all or nothing
        gift_items = [item for item in items if item.is_gift]
        for item in gift_items:
            if not item.recipient_wallet:
                raise ValidationFailed(
                    f"Gift item {item.id or item.listing.id} is missing recipient wallet address"
                )

        logger.info(
            "Processing payment for user %s: %d items (%d gifts)",
            user.id,
            len(items),
            len(gift_items),
        )

        wallet = self.wallet_resolver(session, user.id, profile.email)

        # 3) One on-chain order for every vendor in the cart
        if gift_items:
            result = self.contract.create_gift_order_from_cart_items(
                items, wallet, profile.email
            )
        else:
            result = self.contract.create_order_from_cart_items(items, wallet, profile.email)

        if not result.success:
            logger.error("Blockchain transaction failed: %s", result.error)
            raise ChainError(
                "Payment processing failed",
                details=result.error or "Payment failed",
            )

        logger.info(
            "Blockchain transaction successful: %s (order %s)",
            result.transaction_hash,
            result.blockchain_order_id,
        )

        # 4) Order row. From here on the payment cannot be undone.
        order = self._record_order(session, user, profile, items, result)

        # 5-6) Bookings, order items, cart
        self._record_bookings(session, user, order, items)
        self._clear_cart(session, user, items)

        # 7) Side effects
        self.notifier.notify(
            PaymentVerificationRequest(
                transaction_hash=order.transaction_hash,
                order_id=str(order.id),
                expected_amount=str(order.total_amount),
                from_address=profile.wallet_address,
                to_address=self.contract.ticket_contract_address,
                chain_id=self.contract.chain_id,
            ),
            ConfirmationEmail(
                order_id=str(order.id),
                user_email=profile.email,
                user_name=profile.full_name or "Customer",
                total_amount=order.total_amount,
                transaction_hash=result.transaction_hash,
                bookings=[
                    BookingSummary(
                        title=item.listing.title,
                        vendor=item.listing.vendor_name,
                        quantity=item.quantity,
                        booking_date=item.booking_date,
                        price=item.line_total,
                    )
                    for item in items
                ],
            ),
        )

        return ProcessPaymentResponse(
            order_id=order.id,
            transaction_hash=result.transaction_hash,
        )

    # ---- settlement steps ----

    def _record_order(
        self,
        session: Session,
        user: AuthUser,
        profile: Profile,
        items: list[CartItemPayload],
        result: ChainOrderResult,
    ) -> Order:
        totals = cart_totals(items)
        order = Order(
            user_id=user.id,
            total_amount=totals.total_amount,
            platform_fee_total=totals.platform_fee,
            wallet_address=profile.wallet_address,
            transaction_hash=f"contract_{result.blockchain_order_id}",
            status="confirmed",
            nft_batch_contract_address=self.contract.ticket_contract_address,
            nft_batch_id=result.blockchain_order_id,
        )
        try:
            order = self.order_repo.create_order(session, order)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "Failed to create order for paid transaction %s: %s",
                result.transaction_hash,
                exc,
            )
            raise SettlementError(
                "Database order creation failed",
                details=str(exc),
                transactionHash=result.transaction_hash,
            )
        logger.info("Database order created: %s", order.id)
        return order

    def _resolve_recipient(self, session: Session, item: CartItemPayload) -> uuid.UUID | None:
        """
        Profile id of a gift recipient, creating a placeholder profile the
        recipient can claim later. None if creation failed.
        """
        email = item.recipient_email.lower()
        existing = self.profile_repo.get_by_email(session, email)
        if existing is not None:
            return existing.id

        try:
            recipient = self.profile_repo.create(
                session,
                Profile(
                    email=email,
                    full_name=item.recipient_name or "Gift Recipient",
                    wallet_address=item.recipient_wallet,
                ),
            )
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Failed to create recipient profile for %s: %s", email, exc)
            return None
        return recipient.id

    def _record_bookings(
        self,
        session: Session,
        user: AuthUser,
        order: Order,
        items: list[CartItemPayload],
    ) -> list[Booking]:
        bookings: list[Booking] = []
        for item in items:
            holder_id = user.id
            status = BOOKING_CONFIRMED
            if item.is_gift and item.recipient_email:
                recipient_id = self._resolve_recipient(session, item)
                if recipient_id is None:
                    status = BOOKING_PENDING_RECIPIENT
                    logger.warning(
                        "Gift booking for listing %s kept under payer %s pending recipient %s",
                        item.listing.id,
                        user.id,
                        item.recipient_email,
                    )
                else:
                    holder_id = recipient_id

            totals = item_totals(item.listing.price, item.quantity)
            booking = Booking(
                order_id=order.id,
                user_id=holder_id,
                listing_id=item.listing.id,
                vendor_id=item.listing.vendor_id,
                booking_date=item.booking_date or datetime.now(timezone.utc),
                quantity=item.quantity,
                subtotal=totals.subtotal,
                platform_fee=totals.platform_fee,
                total_amount=totals.total_amount,
                status=status,
                is_gift=item.is_gift,
                recipient_name=item.recipient_name,
                recipient_email=item.recipient_email,
                recipient_phone=item.recipient_phone,
                recipient_wallet=item.recipient_wallet,
                gift_message=item.gift_message,
            )

            try:
                booking = self.order_repo.create_booking(session, booking)
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Failed to create booking for listing %s: %s", item.listing.id, exc)
                continue

            try:
                self.order_repo.create_item(
                    session, OrderItem(order_id=order.id, booking_id=booking.id)
                )
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Failed to create order_item for booking %s: %s", booking.id, exc)

            bookings.append(booking)

        logger.info("Created %d of %d bookings for order %s", len(bookings), len(items), order.id)
        return bookings

    def _clear_cart(
        self,
        session: Session,
        user: AuthUser,
        items: list[CartItemPayload],
    ) -> None:
        cart_item_ids = [item.id for item in items if item.id]
        if not cart_item_ids:
            logger.info("No cart item IDs found to clear")
            return
        try:
            removed = self.cart_repo.delete_many(session, user.id, cart_item_ids)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Failed to clear cart items: %s", exc)
            return
        logger.info("Cleared %d cart items", removed)
