# app/core/auth.py
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.core.config import get_settings
from app.core.errors import Unauthorized

settings = get_settings()

# auto_error=False so a missing header is reported by get_current_user
# with the same 401 shape as an invalid token.
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthUser:
    """Identity taken from a verified Supabase access token."""

    id: uuid.UUID
    email: str | None = None


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthUser:
    """
    Resolve the authenticated user from a Supabase JWT.

    Unlike profile lookups, this never touches the database: the payment
    routes re-fetch the profile themselves and report a missing one as 404.

    Raises:
        HTTPException(401): no token, invalid token, or malformed claims.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authenticated user found",
        )

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub",
        )

    # Supabase provides sub as a string; enforce UUID
    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sub in token",
        )

    return AuthUser(id=sub_uuid, email=payload.get("email"))


def ensure_same_user(claimed_user_id: str | uuid.UUID, current_user: AuthUser) -> None:
    """
    Reject requests whose body/query userId is not the session user.

    The client-supplied id is never trusted on its own.

    Raises:
        Unauthorized: on any mismatch, including unparseable ids.
    """
    if str(claimed_user_id).strip().lower() != str(current_user.id).lower():
        raise Unauthorized(
            "User ID mismatch",
            details={"expected": str(claimed_user_id), "actual": str(current_user.id)},
        )
