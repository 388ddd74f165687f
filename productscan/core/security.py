"""
==============================================================================
Security Module - Tokens & Password Hashing
==============================================================================

Signs and verifies the bearer tokens that identify scanner operators, and
hashes their passwords.

- Bcrypt (passlib) for password hashes
- JWT (python-jose) access and refresh tokens, distinguished by "type"

Token Structure:
---------------
{
    "sub": "user-uuid",
    "username": "operator",
    "type": "access|refresh",
    "exp": 1234567890,
    "iat": 1234567890
}

==============================================================================
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from productscan.config import get_settings


# Module logger
logger = logging.getLogger(__name__)


class SecurityManager:
    """
    Password hashing and JWT handling for operator accounts.

    Example:
        >>> security = get_security_manager()
        >>> hashed = security.hash_password("secret123")
        >>> token = security.create_access_token({"sub": "user-id"})
        >>> security.verify_token(token, "access")["sub"]
        'user-id'
    """

    TOKEN_TYPE_ACCESS = "access"
    TOKEN_TYPE_REFRESH = "refresh"

    def __init__(self) -> None:
        self._pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
        self._settings = get_settings()

        logger.debug("SecurityManager initialized")

    # =========================================================================
    # PASSWORDS
    # =========================================================================

    def hash_password(self, plain_password: str) -> str:
        if not plain_password:
            raise ValueError("Password cannot be empty")
        return self._pwd_context.hash(plain_password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """
        Check a password against its bcrypt hash.

        Malformed hashes count as a mismatch rather than an error.
        """
        try:
            return self._pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError) as e:
            logger.warning(f"Password verification error: {type(e).__name__}")
            return False

    # =========================================================================
    # TOKENS
    # =========================================================================

    def create_access_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        return self._create_token(
            data,
            self.TOKEN_TYPE_ACCESS,
            expires_delta or timedelta(minutes=self._settings.access_token_expire_minutes)
        )

    def create_refresh_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        return self._create_token(
            data,
            self.TOKEN_TYPE_REFRESH,
            expires_delta or timedelta(days=self._settings.refresh_token_expire_days)
        )

    def _create_token(
        self,
        data: Dict[str, Any],
        token_type: str,
        expires_delta: timedelta
    ) -> str:
        now = datetime.now(timezone.utc)
        payload = dict(data)
        payload.update({
            "type": token_type,
            "exp": now + expires_delta,
            "iat": now
        })

        return jwt.encode(
            payload,
            self._settings.jwt_secret_key,
            algorithm=self._settings.jwt_algorithm
        )

    def verify_token(
        self,
        token: str,
        token_type: str = TOKEN_TYPE_ACCESS
    ) -> Optional[Dict[str, Any]]:
        """
        Decode a token and check its signature, expiry and type.

        Args:
            token: Encoded JWT
            token_type: Expected "type" claim

        Returns:
            Payload dictionary, or None when the token is unusable
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret_key,
                algorithms=[self._settings.jwt_algorithm]
            )
        except JWTError as e:
            logger.debug(f"Token verification failed: {e}")
            return None

        if payload.get("type") != token_type:
            logger.warning(
                f"Token type mismatch: expected {token_type}, got {payload.get('type')}"
            )
            return None

        return payload


@lru_cache(maxsize=1)
def get_security_manager() -> SecurityManager:
    """Get the shared SecurityManager instance."""
    return SecurityManager()
