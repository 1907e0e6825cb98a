# app/core/blockchain.py
"""
Client for the UniTick token (ERC-20) and the UnilaBook ticketing contract
on Base Sepolia.

The ticketing contract takes one order covering every vendor in the cart:
it pulls `total + platform fee` from the buyer via transferFrom, pays each
vendor, keeps the fee, and mints one NFT ticket per cart item (to the buyer,
or to the recipient wallet for gift orders).

Routes receive the client through the `get_contract_client` dependency so
tests can swap it for an in-memory fake.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Sequence

from web3 import Web3
from web3.logs import DISCARD

from app.core.config import get_settings
from app.core.errors import ChainError
from app.core.token_units import format_units, to_base_units
from app.core.wallet_secure import SecureWallet
from app.schemas.payment import CartItemPayload
from app.services.pricing import cart_totals

logger = logging.getLogger(__name__)

_VENDOR_PAYMENT_TUPLE = {
    "name": "vendorPayments",
    "type": "tuple[]",
    "components": [
        {"name": "vendor", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "isPaid", "type": "bool"},
    ],
}

UNILABOOK_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "createOrder",
        "stateMutability": "nonpayable",
        "inputs": [
            _VENDOR_PAYMENT_TUPLE,
            {"name": "serviceNames", "type": "string[]"},
            {"name": "bookingDates", "type": "uint256[]"},
            {"name": "metadata", "type": "string"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "createGiftOrder",
        "stateMutability": "nonpayable",
        "inputs": [
            _VENDOR_PAYMENT_TUPLE,
            {"name": "serviceNames", "type": "string[]"},
            {"name": "bookingDates", "type": "uint256[]"},
            {"name": "recipients", "type": "address[]"},
            {"name": "metadata", "type": "string"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "platformFeeBps",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "platformWallet",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "isVendorWhitelisted",
        "stateMutability": "view",
        "inputs": [{"name": "vendor", "type": "address"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "event",
        "name": "OrderCreated",
        "anonymous": False,
        "inputs": [
            {"name": "orderId", "type": "uint256", "indexed": True},
            {"name": "buyer", "type": "address", "indexed": True},
            {"name": "totalAmount", "type": "uint256", "indexed": False},
            {"name": "platformFee", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "TicketMinted",
        "anonymous": False,
        "inputs": [
            {"name": "tokenId", "type": "uint256", "indexed": True},
            {"name": "orderId", "type": "uint256", "indexed": True},
            {"name": "owner", "type": "address", "indexed": True},
        ],
    },
]

UNITICK_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "allowance",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


@dataclass
class ChainOrderResult:
    """Outcome of an order submission. Failures are reported, not raised."""

    success: bool
    blockchain_order_id: str | None = None
    transaction_hash: str | None = None
    block_number: str | None = None
    buyer_address: str | None = None
    token_ids: list[str] | None = None
    error: str | None = None


def _booking_timestamp(value: datetime | None) -> int:
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


class UniTickContractClient:
    """web3.py wrapper around the token and ticketing contracts."""

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        ticket_contract_address: str,
        token_address: str,
        rpc_timeout: int = 10,
        receipt_timeout: int = 120,
        min_gas_balance_wei: int = 10**15,
    ):
        self.w3 = Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": rpc_timeout})
        )
        self.chain_id = chain_id
        self.ticket_contract_address = Web3.to_checksum_address(ticket_contract_address)
        self.token_address = Web3.to_checksum_address(token_address)
        self.receipt_timeout = receipt_timeout
        self.min_gas_balance_wei = min_gas_balance_wei

        self.ticketing = self.w3.eth.contract(
            address=self.ticket_contract_address, abi=UNILABOOK_ABI
        )
        self.token = self.w3.eth.contract(address=self.token_address, abi=UNITICK_ABI)

    # ---- reads ----

    def get_unitick_balance(self, owner: str) -> int:
        return self.token.functions.balanceOf(Web3.to_checksum_address(owner)).call()

    def get_unitick_allowance(self, owner: str, spender: str | None = None) -> int:
        spender = spender or self.ticket_contract_address
        return self.token.functions.allowance(
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(spender),
        ).call()

    def is_vendor_whitelisted(self, vendor: str) -> bool:
        return self.ticketing.functions.isVendorWhitelisted(
            Web3.to_checksum_address(vendor)
        ).call()

    def platform_wallet(self) -> str:
        return self.ticketing.functions.platformWallet().call()

    def platform_fee_bps(self) -> int:
        return self.ticketing.functions.platformFeeBps().call()

    # ---- writes ----

    def _send(self, wallet: SecureWallet, contract_fn) -> str:
        """Build, sign locally and broadcast a contract call."""
        sender = Web3.to_checksum_address(wallet.address)
        tx = contract_fn.build_transaction(
            {
                "from": sender,
                "chainId": self.chain_id,
                "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
                "gasPrice": self.w3.eth.gas_price,
            }
        )
        signed = self.w3.eth.account.sign_transaction(tx, wallet.private_key)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    def approve_unitick_tokens(
        self,
        wallet: SecureWallet,
        amount: int,
        spender: str | None = None,
    ) -> str:
        """Submit approve(spender, amount) and return the tx hash."""
        spender = Web3.to_checksum_address(spender or self.ticket_contract_address)
        return self._send(wallet, self.token.functions.approve(spender, amount))

    def wait_for_receipt(self, tx_hash: str) -> bool:
        """Block until mined; True if the receipt status is success."""
        receipt = self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.receipt_timeout
        )
        return receipt["status"] == 1

    def create_order_from_cart_items(
        self,
        items: Sequence[CartItemPayload],
        wallet: SecureWallet,
        email: str,
    ) -> ChainOrderResult:
        """Pay every vendor in the cart and mint tickets to the buyer."""
        return self._create_order(items, wallet, email, gift=False)

    def create_gift_order_from_cart_items(
        self,
        items: Sequence[CartItemPayload],
        wallet: SecureWallet,
        email: str,
    ) -> ChainOrderResult:
        """
        Same as `create_order_from_cart_items`, but each ticket is minted to
        the item's recipient wallet (the buyer for non-gift items).
        """
        return self._create_order(items, wallet, email, gift=True)

    def _create_order(
        self,
        items: Sequence[CartItemPayload],
        wallet: SecureWallet,
        email: str,
        gift: bool,
    ) -> ChainOrderResult:
        try:
            buyer = Web3.to_checksum_address(wallet.address)

            eth_balance = self.w3.eth.get_balance(buyer)
            if eth_balance < self.min_gas_balance_wei:
                raise ChainError(
                    "Insufficient ETH for gas fees. Required: "
                    f"{format_units(self.min_gas_balance_wei)} ETH minimum, "
                    f"Available: {format_units(eth_balance)} ETH. "
                    f"Please add ETH to your wallet address: {buyer}"
                )

            vendor_payments = []
            service_names = []
            booking_dates = []
            recipients = []
            for item in items:
                vendor_address = item.listing.vendor_wallet
                if not vendor_address:
                    raise ChainError(
                        f"Vendor wallet address not found for listing: {item.listing.title}"
                    )
                vendor_payments.append(
                    (
                        Web3.to_checksum_address(vendor_address),
                        to_base_units(item.listing.price * item.quantity),
                        False,
                    )
                )
                service_names.append(item.listing.title)
                booking_dates.append(_booking_timestamp(item.booking_date))
                if item.is_gift and item.recipient_wallet:
                    recipients.append(Web3.to_checksum_address(item.recipient_wallet))
                else:
                    recipients.append(buyer)

            required = to_base_units(cart_totals(items).total_amount)

            balance = self.get_unitick_balance(buyer)
            if balance < required:
                raise ChainError(
                    f"Insufficient UniTick tokens. Required: {required}, "
                    f"Available: {balance}. Please claim tokens from faucet or add "
                    f"more UniTick tokens to your wallet address: {buyer}"
                )

            allowance = self.get_unitick_allowance(buyer)
            if allowance < required:
                raise ChainError(
                    f"Insufficient token allowance. Current: {allowance}, "
                    f"Required: {required}. Please approve tokens first."
                )

            for vendor in {payment[0] for payment in vendor_payments}:
                if not self.is_vendor_whitelisted(vendor):
                    raise ChainError(f"Vendor {vendor} is not whitelisted on contract")

            metadata = json.dumps(
                {
                    "buyerEmail": email,
                    "totalItems": len(items),
                    "isGift": gift,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            )

            if gift:
                contract_fn = self.ticketing.functions.createGiftOrder(
                    vendor_payments, service_names, booking_dates, recipients, metadata
                )
            else:
                contract_fn = self.ticketing.functions.createOrder(
                    vendor_payments, service_names, booking_dates, metadata
                )

            # Dry run first: surfaces reverts before gas is spent and
            # predicts the order id.
            predicted_order_id = contract_fn.call({"from": buyer})

            tx_hash = self._send(wallet, contract_fn)
            logger.info("Order transaction sent: %s", tx_hash)

            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
            if receipt["status"] != 1:
                raise ChainError(f"Transaction failed with status: {receipt['status']}")

            order_id = predicted_order_id
            created = self.ticketing.events.OrderCreated().process_receipt(
                receipt, errors=DISCARD
            )
            if created:
                order_id = created[0]["args"]["orderId"]
            minted = self.ticketing.events.TicketMinted().process_receipt(
                receipt, errors=DISCARD
            )

            return ChainOrderResult(
                success=True,
                blockchain_order_id=str(order_id),
                transaction_hash=tx_hash,
                block_number=str(receipt["blockNumber"]),
                buyer_address=buyer,
                token_ids=[str(log["args"]["tokenId"]) for log in minted],
            )
        except Exception as exc:
            logger.exception("Error creating order from cart items")
            message = exc.message if isinstance(exc, ChainError) else str(exc)
            return ChainOrderResult(success=False, error=message or "Unknown error")


@lru_cache
def get_contract_client() -> UniTickContractClient:
    """
    FastAPI dependency returning the shared contract client.

    Construction does not touch the network.
    """
    settings = get_settings()
    return UniTickContractClient(
        rpc_url=settings.RPC_URL,
        chain_id=settings.CHAIN_ID,
        ticket_contract_address=settings.TICKET_CONTRACT_ADDRESS,
        token_address=settings.UNITICK_TOKEN_ADDRESS,
        rpc_timeout=settings.RPC_TIMEOUT_SECONDS,
        receipt_timeout=settings.RECEIPT_TIMEOUT_SECONDS,
        min_gas_balance_wei=settings.MIN_GAS_BALANCE_WEI,
    )


def wait_for_state(seconds: float) -> None:
    """Give the RPC node time to reflect a freshly mined block."""
    if seconds > 0:
        time.sleep(seconds)
