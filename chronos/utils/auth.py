"""Bearer token utilities for the authentication boundary.

Users are authenticated elsewhere; this service only needs to turn a token
into an owner ID. Token creation is kept for operators and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from chronos.config import settings


def create_access_token(
    owner: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token for an owner.

    Args:
        owner: Owner ID to encode in the ``sub`` claim
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string

    Example:
        >>> token = create_access_token(owner="user123")
        >>> isinstance(token, str)
        True
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_expiration_minutes)

    to_encode = {
        "sub": owner,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }

    return jwt.encode(
        to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm
    )


def verify_access_token(token: str) -> str:
    """
    Verify and decode a JWT access token.

    Args:
        token: JWT token string to verify

    Returns:
        Owner ID from token

    Raises:
        JWTError: If token is invalid, expired, or has no subject

    Example:
        >>> token = create_access_token(owner="user123")
        >>> verify_access_token(token)
        'user123'
    """
    payload = jwt.decode(
        token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
    )
    owner: Optional[str] = payload.get("sub")

    if not owner:
        raise JWTError("Token payload missing 'sub' claim")

    return owner
