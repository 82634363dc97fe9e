"""
Password hashing and JWT helpers.

Access and refresh tokens are signed with different secrets so that a
refresh token can never be replayed as an access token (and vice versa).
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from blog_panel.config import settings
from blog_panel.exceptions import TOKEN_EXPIRED, TOKEN_INVALID, AuthenticationError

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    result: str = pwd_context.hash(password)
    return result


def verify_password(plain_password: str, hashed_password: str) -> bool:
    result: bool = pwd_context.verify(plain_password, hashed_password)
    return result


def _encode(
    data: dict[str, Any],
    secret: str,
    expires_delta: timedelta,
    now_utc: datetime | None = None,
) -> str:
    to_encode = data.copy()
    current_time = now_utc if now_utc is not None else datetime.now(timezone.utc)
    to_encode.update({
        "iat": current_time,
        "exp": current_time + expires_delta,
        # Distinguishes tokens issued for the same user within one second.
        "jti": secrets.token_urlsafe(8),
    })
    encoded: str = jwt.encode(to_encode, secret, algorithm=settings.JWT_ALGORITHM)
    return encoded


def _decode(token: str, secret: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token", TOKEN_EXPIRED)
    except JWTError:
        raise AuthenticationError("Token", TOKEN_INVALID)


def token_payload(user) -> dict[str, Any]:
    """Claims carried by both token kinds for *user* (role eager-loaded)."""
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role.name if user.role is not None else None,
    }


def create_access_token(data: dict[str, Any], now_utc: datetime | None = None) -> str:
    """
    Create a short-lived access token.

    Args:
        data: Claims to encode in the token
        now_utc: Current UTC time (for testing/determinism)
    """
    return _encode(
        data,
        settings.SECRET_JWT_KEY,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        now_utc,
    )


def create_refresh_token(data: dict[str, Any], now_utc: datetime | None = None) -> str:
    return _encode(
        data,
        settings.REFRESH_JWT_KEY,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        now_utc,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    return _decode(token, settings.SECRET_JWT_KEY)


def decode_refresh_token(token: str) -> dict[str, Any]:
    return _decode(token, settings.REFRESH_JWT_KEY)
