"""
JWT token creation and validation.
Uses python-jose for JWT handling.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from impact_analytics.config import get_settings
from impact_analytics.models.timeframe import utc_now


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode; `sub` carries the user's external id
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    settings = get_settings()
    to_encode = data.copy()

    issued_at = utc_now()
    if expires_delta:
        expire = issued_at + expires_delta
    else:
        expire = issued_at + timedelta(minutes=settings.jwt_expiration_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": issued_at,
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string

    Returns:
        Decoded payload

    Raises:
        JWTError: If token is invalid, expired or not an access token
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise JWTError(f"Token validation failed: {str(e)}") from e

    if payload.get("type") != "access":
        raise JWTError("Token validation failed: invalid token type")

    return payload
