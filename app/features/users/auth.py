"""
Authentication utilities: password hashing, access tokens and reset tokens.
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from app.core import config
from app.core.errors import UnauthorizedError


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """One-way bcrypt hash with the configured cost factor."""
    salt = bcrypt.gensalt(rounds=rounds or config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(user_id: str, tenant_id: str, role: str, issued_at: Optional[datetime] = None) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Account ULID (stored as "sub")
        tenant_id: Account tenant
        role: Account role value
        issued_at: Override for "iat", defaults to now

    Returns:
        Encoded JWT
    """
    now = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "tenant": tenant_id,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": now + timedelta(minutes=config.JWT_EXPIRES_MINUTES),
        "type": "access",
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_access_token(token: str) -> dict:
    """
    Verify an access token and return its payload.

    Raises:
        UnauthorizedError: If the token is expired, malformed or not an access token
    """
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(f"Invalid token: {str(e)}")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise UnauthorizedError("Invalid token payload")
    return payload


def changed_password_after(password_changed_at: Optional[datetime], issued_at: int) -> bool:
    """
    True when the password changed after a token issued at `issued_at`
    (epoch seconds). `password_changed_at` is naive UTC.
    """
    if password_changed_at is None:
        return False
    changed_timestamp = int(password_changed_at.replace(tzinfo=timezone.utc).timestamp())
    return issued_at < changed_timestamp


def generate_reset_token() -> tuple[str, str]:
    """Return (raw token for the user, digest to store)."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
