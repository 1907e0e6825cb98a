import uuid

import pytest
from cryptography.exceptions import InvalidTag
from eth_account import Account

from app.core.errors import WalletNotFound
from app.core.wallet_secure import (
    create_secure_wallet_for_user,
    decrypt_private_key,
    encrypt_private_key,
    get_secure_wallet_for_user,
)
from conftest import TEST_PRIVATE_KEY, create_profile


def test_encrypt_then_decrypt():
    user_id = uuid.uuid4()
    columns = encrypt_private_key(user_id, "Buyer@Example.com", TEST_PRIVATE_KEY)

    assert TEST_PRIVATE_KEY[2:] not in columns["wallet_encrypted_private_key"]
    assert len(bytes.fromhex(columns["wallet_encryption_iv"])) == 16
    assert len(bytes.fromhex(columns["wallet_encryption_auth_tag"])) == 16
    assert len(bytes.fromhex(columns["wallet_encryption_salt"])) == 32

    # email is case-insensitive for key derivation
    key = decrypt_private_key(
        user_id,
        "buyer@example.com",
        columns["wallet_encrypted_private_key"],
        columns["wallet_encryption_iv"],
        columns["wallet_encryption_auth_tag"],
        columns["wallet_encryption_salt"],
    )
    assert key == TEST_PRIVATE_KEY


def test_wrong_identity_cannot_decrypt():
    user_id = uuid.uuid4()
    columns = encrypt_private_key(user_id, "buyer@example.com", TEST_PRIVATE_KEY)
    with pytest.raises(InvalidTag):
        decrypt_private_key(
            uuid.uuid4(),
            "buyer@example.com",
            columns["wallet_encrypted_private_key"],
            columns["wallet_encryption_iv"],
            columns["wallet_encryption_auth_tag"],
            columns["wallet_encryption_salt"],
        )


def test_get_secure_wallet(session):
    profile = create_profile(session)
    wallet = get_secure_wallet_for_user(session, profile.id, profile.email)
    assert wallet.address == profile.wallet_address
    assert wallet.private_key == TEST_PRIVATE_KEY
    assert TEST_PRIVATE_KEY not in repr(wallet)


def test_missing_wallet_flags_wallet_creation(session):
    profile = create_profile(session, with_wallet=False)
    with pytest.raises(WalletNotFound) as exc_info:
        get_secure_wallet_for_user(session, profile.id, profile.email)
    assert exc_info.value.to_body()["needsWalletCreation"] is True


def test_address_without_encrypted_key(session):
    profile = create_profile(session, with_wallet=False)
    profile.wallet_address = "0x" + "d4" * 20
    session.add(profile)
    session.commit()

    with pytest.raises(WalletNotFound) as exc_info:
        get_secure_wallet_for_user(session, profile.id, profile.email)
    assert exc_info.value.message.startswith("No encrypted wallet found")


def test_wrong_email_reports_wallet_failure(session):
    profile = create_profile(session)
    with pytest.raises(WalletNotFound) as exc_info:
        get_secure_wallet_for_user(session, profile.id, "someone-else@example.com")
    assert exc_info.value.message == "Failed to get secure wallet"


def test_create_secure_wallet(session):
    profile = create_profile(session, with_wallet=False)
    address = create_secure_wallet_for_user(session, profile)

    wallet = get_secure_wallet_for_user(session, profile.id, profile.email)
    assert wallet.address == address
    assert Account.from_key(wallet.private_key).address == address
