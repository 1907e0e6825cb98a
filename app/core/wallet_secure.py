# app/core/wallet_secure.py
"""
Custodial wallet storage.

Private keys are generated server-side and stored encrypted on the
profile row:

  - key derivation: PBKDF2-HMAC-SHA256 over "<user_id>:<email lower>",
    random 32-byte salt, 100 000 iterations, 32-byte key
  - cipher: AES-256-GCM with a 16-byte IV; ciphertext and auth tag are
    stored separately, all values hex-encoded

Only the authenticated user (id + email) can decrypt their wallet.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from eth_account import Account
from sqlmodel import Session

from app.core.errors import WalletNotFound
from app.models.profile import Profile

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 16
AUTH_TAG_LENGTH = 16
SALT_LENGTH = 32
PBKDF2_ITERATIONS = 100_000


@dataclass(frozen=True)
class SecureWallet:
    address: str
    private_key: str

    def __repr__(self) -> str:
        return f"SecureWallet(address={self.address!r})"


def derive_encryption_key(user_id: str | uuid.UUID, email: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(f"{user_id}:{email.lower()}".encode("utf-8"))


def encrypt_private_key(
    user_id: str | uuid.UUID,
    email: str,
    private_key: str,
) -> dict[str, str]:
    """
    Encrypt a private key for storage.

    Returns the four profile column values (hex encoded).
    """
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = derive_encryption_key(user_id, email, salt)

    # AESGCM appends the tag to the ciphertext
    sealed = AESGCM(key).encrypt(iv, private_key.encode("utf-8"), None)
    ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]

    return {
        "wallet_encrypted_private_key": ciphertext.hex(),
        "wallet_encryption_iv": iv.hex(),
        "wallet_encryption_auth_tag": tag.hex(),
        "wallet_encryption_salt": salt.hex(),
    }


def decrypt_private_key(
    user_id: str | uuid.UUID,
    email: str,
    encrypted: str,
    iv: str,
    auth_tag: str,
    salt: str,
) -> str:
    """
    Reverse of `encrypt_private_key`.

    Raises:
        InvalidTag: wrong user/email or tampered ciphertext.
        ValueError: malformed hex.
    """
    key = derive_encryption_key(user_id, email, bytes.fromhex(salt))
    sealed = bytes.fromhex(encrypted) + bytes.fromhex(auth_tag)
    return AESGCM(key).decrypt(bytes.fromhex(iv), sealed, None).decode("utf-8")


def get_secure_wallet_for_user(
    session: Session,
    user_id: uuid.UUID,
    email: str,
) -> SecureWallet:
    """
    Load and decrypt the custodial wallet of a user.

    Raises:
        WalletNotFound: no profile, no wallet columns, or decryption failed.
    """
    profile = session.get(Profile, user_id)
    if profile is None or not profile.wallet_address:
        raise WalletNotFound()

    if not (
        profile.wallet_encrypted_private_key
        and profile.wallet_encryption_iv
        and profile.wallet_encryption_auth_tag
        and profile.wallet_encryption_salt
    ):
        raise WalletNotFound(
            "No encrypted wallet found. Please create a wallet first.",
            details=(
                "Your wallet needs to be set up with proper encryption. Please go "
                "to the wallet management page to create a new wallet."
            ),
        )

    try:
        private_key = decrypt_private_key(
            user_id,
            email,
            profile.wallet_encrypted_private_key,
            profile.wallet_encryption_iv,
            profile.wallet_encryption_auth_tag,
            profile.wallet_encryption_salt,
        )
    except (InvalidTag, ValueError) as exc:
        logger.error("Failed to decrypt wallet for user %s: %s", user_id, type(exc).__name__)
        raise WalletNotFound("Failed to get secure wallet")

    return SecureWallet(address=profile.wallet_address, private_key=private_key)


def create_secure_wallet_for_user(session: Session, profile: Profile) -> str:
    """
    Generate a fresh custodial wallet, store it encrypted on the profile,
    and return the new address.
    """
    account = Account.create()
    columns = encrypt_private_key(profile.id, profile.email, account.key.hex())

    profile.wallet_address = account.address
    for name, value in columns.items():
        setattr(profile, name, value)
    profile.updated_at = datetime.now(timezone.utc)

    session.add(profile)
    session.commit()
    session.refresh(profile)

    logger.info("Created custodial wallet %s for user %s", account.address, profile.id)
    return account.address
