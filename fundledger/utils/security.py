"""
Fund Ledger - Security Utilities

JWT token handling and the shared secret used by the scheduler.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from fundledger.config import settings


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary containing token payload
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def verify_access_token(token: str) -> Optional[dict]:
    """
    Decode an access token.

    Returns:
        Token payload dict, or None if the token is invalid, expired or
        not an access token
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload


def verify_cron_secret(token: Optional[str]) -> bool:
    """Constant time check of the scheduler bearer token. Disabled when no secret is configured."""
    if not token or not settings.cron_secret:
        return False
    return secrets.compare_digest(token, settings.cron_secret)
