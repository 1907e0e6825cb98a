"""
Test fixtures for the UniTick payments backend.

Provides:
- In-memory SQLite database shared by the app and the tests
- FastAPI TestClient with the contract client and notifier swapped for fakes
- Supabase-style JWTs for authenticated requests
- Factories for profiles, vendors, listings and cart items
"""
# IMPORTANT: Set environment variables BEFORE any app imports
import os

TEST_JWT_SECRET = "test-supabase-jwt-secret"

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_KEY"] = "test-anon-key"
os.environ["SUPABASE_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["ALLOWANCE_SETTLE_SECONDS"] = "0"

import time
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import SQLModel, Session

from app.core.blockchain import ChainOrderResult, get_contract_client
from app.core.token_units import to_base_units
from app.core.wallet_secure import encrypt_private_key
from app.database import engine
from app.main import app
from app.models.cart import CartItem
from app.models.listing import Listing
from app.models.profile import Profile
from app.models.vendor import Vendor
from app.services.notification_service import get_notifier
from app.services.pricing import cart_totals

TICKET_CONTRACT = "0xf3b0fc3021a28e75deEe5c1bbba3A7a714eE9C79"
PLATFORM_WALLET = "0x00000000000000000000000000000000000000Fe"
TEST_PRIVATE_KEY = "0x" + "11" * 32

VENDOR_A_WALLET = "0x" + "a1" * 20
VENDOR_B_WALLET = "0x" + "b2" * 20
RECIPIENT_WALLET = "0x" + "c3" * 20


class FakeContractClient:
    """In-memory stand-in for UniTickContractClient."""

    ticket_contract_address = TICKET_CONTRACT
    chain_id = 84532

    def __init__(self):
        self.balances: dict[str, int] = {}
        self.allowances: dict[str, int] = {}
        self.whitelisted: set[str] = set()
        self.platform_address = PLATFORM_WALLET
        self.fee_bps = 50

        self.receipt_ok = True
        # False simulates a mined approval whose allowance never shows up
        self.apply_approvals = True
        self.order_error: str | None = None

        self.approve_calls: list[tuple[str, int, str]] = []
        self.order_calls: list[dict] = []
        self._next_order_id = 1

    # ---- reads ----

    def get_unitick_balance(self, owner: str) -> int:
        return self.balances.get(owner.lower(), 0)

    def get_unitick_allowance(self, owner: str, spender: str | None = None) -> int:
        return self.allowances.get(owner.lower(), 0)

    def is_vendor_whitelisted(self, vendor: str) -> bool:
        return vendor.lower() in self.whitelisted

    def platform_wallet(self) -> str:
        return self.platform_address

    def platform_fee_bps(self) -> int:
        return self.fee_bps

    # ---- writes ----

    def approve_unitick_tokens(self, wallet, amount: int, spender: str | None = None) -> str:
        self.approve_calls.append((wallet.address, amount, spender))
        if self.apply_approvals and self.receipt_ok:
            self.allowances[wallet.address.lower()] = amount
        return "0x" + "ab" * 32

    def wait_for_receipt(self, tx_hash: str) -> bool:
        return self.receipt_ok

    def create_order_from_cart_items(self, items, wallet, email) -> ChainOrderResult:
        return self._create_order(items, wallet, email, gift=False)

    def create_gift_order_from_cart_items(self, items, wallet, email) -> ChainOrderResult:
        return self._create_order(items, wallet, email, gift=True)

    def _create_order(self, items, wallet, email, gift: bool) -> ChainOrderResult:
        self.order_calls.append({"items": list(items), "email": email, "gift": gift})
        if self.order_error:
            return ChainOrderResult(success=False, error=self.order_error)

        buyer = wallet.address.lower()
        required = to_base_units(cart_totals(items).total_amount)
        if self.allowances.get(buyer, 0) < required:
            return ChainOrderResult(success=False, error="Insufficient token allowance")

        self.balances[buyer] = self.balances.get(buyer, 0) - required
        self.allowances[buyer] -= required

        order_id = self._next_order_id
        self._next_order_id += 1
        return ChainOrderResult(
            success=True,
            blockchain_order_id=str(order_id),
            transaction_hash="0x" + f"{order_id:064x}",
            block_number="100",
            buyer_address=wallet.address,
            token_ids=[str(i) for i in range(len(items))],
        )

    # ---- helpers ----

    def fund(self, address: str, balance: int, allowance: int = 0) -> None:
        self.balances[address.lower()] = balance
        self.allowances[address.lower()] = allowance


class FakeNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, verification, email) -> None:
        self.calls.append((verification, email))


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def contract() -> FakeContractClient:
    return FakeContractClient()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def client(contract, notifier):
    app.dependency_overrides[get_contract_client] = lambda: contract
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_token(user_id: uuid.UUID | str, email: str | None = None, expires_in: int = 3600) -> str:
    """Supabase-style access token signed with the test secret."""
    now = int(time.time())
    claims = {
        "sub": str(user_id),
        "email": email,
        "aud": "authenticated",
        "role": "authenticated",
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(profile: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(profile.id, profile.email)}"}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def create_profile(
    session: Session,
    email: str = "buyer@example.com",
    full_name: str | None = "Test Buyer",
    with_wallet: bool = True,
    wallet_address: str = "0x" + "d4" * 20,
) -> Profile:
    profile = Profile(email=email.lower(), full_name=full_name)
    if with_wallet:
        profile.wallet_address = wallet_address
        for name, value in encrypt_private_key(profile.id, profile.email, TEST_PRIVATE_KEY).items():
            setattr(profile, name, value)
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def create_vendor(
    session: Session,
    business_name: str,
    wallet_address: str,
    is_verified: bool = True,
) -> Vendor:
    vendor = Vendor(
        business_name=business_name,
        wallet_address=wallet_address,
        is_verified=is_verified,
    )
    session.add(vendor)
    session.commit()
    session.refresh(vendor)
    return vendor


def create_listing(session: Session, vendor: Vendor, title: str, price: float) -> Listing:
    listing = Listing(vendor_id=vendor.id, title=title, price=price, service_type="event")
    session.add(listing)
    session.commit()
    session.refresh(listing)
    return listing


def create_cart_item(
    session: Session,
    profile: Profile,
    listing: Listing,
    quantity: int = 1,
    **gift_fields,
) -> CartItem:
    item = CartItem(
        user_id=profile.id,
        listing_id=listing.id,
        quantity=quantity,
        booking_date=datetime(2026, 12, 1, 18, 0, tzinfo=timezone.utc),
        **gift_fields,
    )
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def cart_item_payload(item: CartItem, listing: Listing, vendor: Vendor) -> dict:
    """A cart row as the web client sends it (joined through listing -> vendor)."""
    return {
        "id": str(item.id),
        "quantity": item.quantity,
        "booking_date": item.booking_date.isoformat() if item.booking_date else None,
        "is_gift": item.is_gift,
        "recipient_name": item.recipient_name,
        "recipient_email": item.recipient_email,
        "recipient_phone": item.recipient_phone,
        "recipient_wallet": item.recipient_wallet,
        "gift_message": item.gift_message,
        "listing": {
            "id": str(listing.id),
            "title": listing.title,
            "price": listing.price,
            "vendor_id": str(vendor.id),
            "vendor": {
                "id": str(vendor.id),
                "business_name": vendor.business_name,
                "wallet_address": vendor.wallet_address,
            },
        },
    }


@pytest.fixture
def buyer(session) -> Profile:
    return create_profile(session)


@pytest.fixture
def two_vendor_cart(session, buyer, contract):
    """
    Two whitelisted vendors, $50 and $30, one of each.

    Returns (cart_items_payload, cart_item_rows).
    """
    vendor_a = create_vendor(session, "Harbor Tours", VENDOR_A_WALLET)
    vendor_b = create_vendor(session, "Night Market Live", VENDOR_B_WALLET)
    listing_a = create_listing(session, vendor_a, "Sunset Boat Tour", 50.0)
    listing_b = create_listing(session, vendor_b, "Jazz Night", 30.0)
    item_a = create_cart_item(session, buyer, listing_a)
    item_b = create_cart_item(session, buyer, listing_b)

    contract.whitelisted.update({VENDOR_A_WALLET.lower(), VENDOR_B_WALLET.lower()})

    payload = [
        cart_item_payload(item_a, listing_a, vendor_a),
        cart_item_payload(item_b, listing_b, vendor_b),
    ]
    return payload, [item_a, item_b]
