"""
==============================================================================
Authentication Service Module
==============================================================================

Operator login, self-service registration and token refresh.

Authentication Flow:
-------------------
    ┌─────────────┐
    │   Login     │
    └──────┬──────┘
    ┌──────▼──────┐     ┌─────────────┐
    │ Find User   │────▶│  Not found  │ → INVALID_CREDENTIALS
    └──────┬──────┘     └─────────────┘
    ┌──────▼──────┐     ┌─────────────┐
    │  Verify     │────▶│   Wrong     │ → INVALID_CREDENTIALS
    │  Password   │     └─────────────┘
    └──────┬──────┘     ┌─────────────┐
    ┌──────▼──────┐────▶│  Disabled   │ → ACCOUNT_DISABLED
    │ Check Active│     └─────────────┘
    └──────┬──────┘
    ┌──────▼──────┐
    │   Tokens    │
    └─────────────┘

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from productscan.config import get_settings
from productscan.core import exceptions
from productscan.core.security import SecurityManager, get_security_manager
from productscan.db.models import User


# Module logger
logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentication service for operator accounts.

    Example:
        >>> auth_service = AuthService(db_session)
        >>> user, access, refresh = auth_service.authenticate("operator", "pass123")
        >>> user, access, refresh = auth_service.refresh_tokens(refresh)
    """

    def __init__(
        self,
        db: Session,
        security: Optional[SecurityManager] = None
    ) -> None:
        self._db = db
        self._security = security or get_security_manager()
        self._settings = get_settings()

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    def authenticate(self, username: str, password: str) -> Tuple[User, str, str]:
        """
        Verify credentials and issue a token pair.

        Args:
            username: Login name (case-insensitive)
            password: Plain text password

        Returns:
            Tuple of (user, access_token, refresh_token)

        Raises:
            AppException: INVALID_CREDENTIALS or ACCOUNT_DISABLED
        """
        user = self._db.query(User).filter(User.username == username.lower()).first()

        if not user or not self._security.verify_password(password, user.password_hash):
            logger.warning(f"Login failed for: {username}")
            raise exceptions.invalid_credentials()

        if not user.is_active:
            logger.warning(f"Disabled account attempted login: {user.username}")
            raise exceptions.account_disabled()

        logger.info(f"🔑 Login: {user.username}")
        access_token, refresh_token = self.issue_tokens(user)
        return user, access_token, refresh_token

    def register(self, username: str, password: str) -> User:
        """
        Create a new operator account.

        Raises:
            AppException: USERNAME_EXISTS if the name is taken
        """
        username = username.lower()

        if self._db.query(User).filter(User.username == username).first():
            raise exceptions.username_exists(username)

        user = User(
            username=username,
            password_hash=self._security.hash_password(password),
            is_active=True
        )

        try:
            self._db.add(user)
            self._db.commit()
            self._db.refresh(user)
        except IntegrityError:
            self._db.rollback()
            raise exceptions.username_exists(username)

        logger.info(f"✅ User registered: {user.username}")
        return user

    def refresh_tokens(self, refresh_token: str) -> Tuple[User, str, str]:
        """
        Exchange a refresh token for a new token pair.

        Raises:
            AppException: TOKEN_INVALID, USER_NOT_FOUND or ACCOUNT_DISABLED
        """
        payload = self._security.verify_token(refresh_token, SecurityManager.TOKEN_TYPE_REFRESH)

        if not payload or not payload.get("sub"):
            raise exceptions.token_invalid()

        user = self._db.query(User).filter(User.id == payload["sub"]).first()

        if not user:
            raise exceptions.user_not_found(payload["sub"])

        if not user.is_active:
            raise exceptions.account_disabled()

        access_token, new_refresh = self.issue_tokens(user)
        return user, access_token, new_refresh

    def issue_tokens(self, user: User) -> Tuple[str, str]:
        claims = {"sub": user.id, "username": user.username}
        return (
            self._security.create_access_token(claims),
            self._security.create_refresh_token({"sub": user.id}),
        )

    def get_token_expiry_seconds(self) -> int:
        return self._settings.access_token_expire_seconds
