# movieshelf/core/jwt.py
from __future__ import annotations

"""
MovieShelf · JWT helpers
========================
- `decode_token` with optional issuer/audience enforcement
- Required `sub` and `jti` claims, optional `token_type` membership
- Thin `decode_access_token()` wrapper (access-only)

Notes
-----
- Token *creation* lives in `movieshelf.core.security`.
- Standard `exp`/`nbf`/`iat` checks are performed by python-jose.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from jose import ExpiredSignatureError, JWTError, jwt

from movieshelf.core.config import settings
from movieshelf.core.exceptions import InvalidTokenException

logger = logging.getLogger(__name__)


def decode_token(token: str, *, expected_types: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Decode and validate a JWT.

    Security checks
    ---------------
    1) Verify signature and standard claims (exp/nbf/iat)
    2) Enforce issuer/audience when configured
    3) Require `sub` and `jti`, optional `token_type` membership

    Raises
    ------
    InvalidTokenException (401) for invalid/expired tokens or type mismatch.
    """
    issuer = settings.JWT_ISSUER or None
    audience = settings.JWT_AUDIENCE or None

    # 1) Decode & base checks
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": bool(audience)},
            audience=audience,
            issuer=issuer,
        )
    except ExpiredSignatureError:
        logger.info("Token expired.")
        raise InvalidTokenException(detail="Token has expired.")
    except JWTError as e:
        logger.warning("JWT decoding failed: %s", e)
        raise InvalidTokenException(detail="Invalid token.")

    # 2) Required subject / JTI
    if not payload.get("sub"):
        logger.warning("Missing sub in token payload.")
        raise InvalidTokenException(detail="Token missing user ID.")
    if not payload.get("jti"):
        logger.warning("Missing JTI in token.")
        raise InvalidTokenException(detail="Token missing JTI.")

    # 3) Token type enforcement
    if expected_types is not None:
        token_type = payload.get("token_type")
        if token_type not in set(expected_types):
            logger.warning("Token type mismatch: got %r, expected one of %s", token_type, list(expected_types))
            raise InvalidTokenException(detail="Invalid token type.")

    return payload


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode a token, enforcing `token_type == 'access'`."""
    return decode_token(token, expected_types=["access"])


__all__ = ["decode_token", "decode_access_token"]
