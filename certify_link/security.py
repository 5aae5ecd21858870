"""
Password hashing, JWT tokens, and TOTP helpers.

Pure functions with no database access, so the services and the
request dependencies share one implementation of each primitive.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
import pyotp

from certify_link.config import get_settings
from certify_link.exceptions import AuthenticationError, ErrorCode, InvalidInputError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
TOTP_VALID_WINDOW = 2

# bcrypt rejects longer inputs
MAX_PASSWORD_BYTES = 72


# --- Passwords ---

def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    if password_too_long(password):
        raise InvalidInputError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"
        )
    rounds = get_settings().BCRYPT_ROUNDS
    return bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)
    ).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password or not password_hash or password_too_long(password):
        return False
    try:
        return bcrypt.checkpw(
            password.encode("utf-8"), password_hash.encode("utf-8")
        )
    except ValueError:
        # Malformed stored hash
        return False


def generate_temporary_password() -> str:
    return secrets.token_hex(12)


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def email_verification_token(user_id: int, email: str) -> str:
    return hashlib.sha256(f"{user_id}{email}".encode("utf-8")).hexdigest()


# --- JWT ---

def _encode(
    subject: int, token_type: str, expires_delta: timedelta, secret: str
) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(subject),
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(claims, secret, algorithm=get_settings().JWT_ALGORITHM)


def create_token_pair(user_id: int, remember_me: bool = False) -> dict[str, Any]:
    """
    Issue an access/refresh token pair.

    remember_me stretches both lifetimes (7 days / 90 days by default)
    instead of the short-lived pair (15 minutes / 7 days).
    """
    settings = get_settings()
    if remember_me:
        access_ttl = timedelta(days=settings.REMEMBER_ME_ACCESS_DAYS)
        refresh_ttl = timedelta(days=settings.REMEMBER_ME_REFRESH_DAYS)
    else:
        access_ttl = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        refresh_ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    return {
        "access_token": _encode(
            user_id, ACCESS_TOKEN_TYPE, access_ttl, settings.JWT_SECRET
        ),
        "refresh_token": _encode(
            user_id, REFRESH_TOKEN_TYPE, refresh_ttl, settings.JWT_REFRESH_SECRET
        ),
        "expires_in": int(access_ttl.total_seconds()),
        "token_type": "Bearer",
    }


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict[str, Any]:
    """
    Verify a token's signature, expiry and type, returning its claims.

    Raises AuthenticationError with TOKEN_EXPIRED or INVALID_TOKEN.
    """
    settings = get_settings()
    secret = (
        settings.JWT_REFRESH_SECRET
        if expected_type == REFRESH_TOKEN_TYPE
        else settings.JWT_SECRET
    )
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired", code=ErrorCode.TOKEN_EXPIRED)
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token", code=ErrorCode.INVALID_TOKEN)

    if claims.get("type") != expected_type:
        raise AuthenticationError("Invalid token type", code=ErrorCode.INVALID_TOKEN)
    return claims


# --- TOTP ---

def generate_totp_secret() -> str:
    return pyotp.random_base32(length=32)


def totp_provisioning_uri(secret: str, email: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(
        name=email, issuer_name=get_settings().APP_NAME
    )


def verify_totp(secret: str | None, code: str | None) -> bool:
    if not secret or not code:
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=TOTP_VALID_WINDOW)
