"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Authentication and pagination dependencies.

Dependency Hierarchy:
--------------------
                    ┌─────────────────┐
                    │    get_db()     │
                    └────────┬────────┘
                             │
          ┌──────────────────┼──────────────────┐
          │                  │                  │
┌─────────▼────────┐ ┌───────▼────────┐ ┌───────▼────────┐
│ get_current_user │ │ get_pagination │ │ resolve_ws_user│
└──────────────────┘ └────────────────┘ └────────────────┘

The scan WebSocket accepts anonymous connections, so its user is resolved
from the optional ?token= query parameter rather than required.

Usage Examples:
--------------
    @router.get("/history")
    async def history(user: User = Depends(get_current_user)):
        ...

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from productscan.core import exceptions
from productscan.core.security import SecurityManager, get_security_manager
from productscan.db.database import SessionFactory, get_db
from productscan.db.models import User


# Module logger
logger = logging.getLogger(__name__)

# HTTP Bearer security scheme for Swagger UI
security_scheme = HTTPBearer(auto_error=False)


class AuthenticationManager:
    """
    Resolves the operator behind a bearer token.

    Example:
        >>> auth = AuthenticationManager(security_manager, db_session)
        >>> user = auth.authenticate_from_token(token)
    """

    def __init__(self, security: SecurityManager, db: Session) -> None:
        self._security = security
        self._db = db

    # =========================================================================
    # TOKEN EXTRACTION METHODS
    # =========================================================================

    def extract_token_from_header(
        self,
        credentials: Optional[HTTPAuthorizationCredentials]
    ) -> str:
        if not credentials:
            logger.debug("No authorization credentials provided")
            raise exceptions.token_invalid()

        return credentials.credentials

    # =========================================================================
    # USER AUTHENTICATION METHODS
    # =========================================================================

    def authenticate_from_token(
        self,
        token: str,
        token_type: str = SecurityManager.TOKEN_TYPE_ACCESS
    ) -> User:
        """
        Authenticate user from JWT token.

        Args:
            token: JWT token string
            token_type: Expected token type ('access' or 'refresh')

        Returns:
            Authenticated, active User

        Raises:
            AppException: If token is invalid, expired, or user not found
        """
        payload = self._security.verify_token(token, token_type)

        if not payload:
            logger.debug("Token verification failed")
            raise exceptions.token_expired()

        user_id = payload.get("sub")

        if not user_id:
            logger.warning("Token payload missing 'sub' claim")
            raise exceptions.token_invalid()

        user = self._db.query(User).filter(User.id == user_id).first()

        if not user:
            logger.warning(f"User not found for token: {user_id}")
            raise exceptions.user_not_found(user_id)

        if not user.is_active:
            logger.warning(f"Disabled user attempted access: {user.username}")
            raise exceptions.account_disabled()

        logger.debug(f"User authenticated: {user.username}")
        return user

    def get_current_user(
        self,
        credentials: Optional[HTTPAuthorizationCredentials]
    ) -> User:
        token = self.extract_token_from_header(credentials)
        return self.authenticate_from_token(token)


# =============================================================================
# FASTAPI DEPENDENCY FUNCTIONS
# =============================================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    FastAPI dependency to get the current authenticated user.

    Raises:
        AppException: If authentication fails
    """
    auth_manager = AuthenticationManager(get_security_manager(), db)
    return auth_manager.get_current_user(credentials)


def resolve_ws_user(token: Optional[str], session_factory: SessionFactory) -> Optional[User]:
    """
    Resolve the WebSocket operator from the ?token= query parameter.

    WebSocket connections cannot use HTTP headers, so the token travels in
    the query string. No token means an anonymous session.

    Returns:
        The user, or None for anonymous connections

    Raises:
        AppException: If a token was sent but does not authenticate
    """
    if not token:
        return None

    db = session_factory()
    try:
        user = AuthenticationManager(get_security_manager(), db).authenticate_from_token(token)
        db.expunge(user)
        return user
    finally:
        db.close()


# =============================================================================
# PAGINATION DEPENDENCY
# =============================================================================

def get_pagination(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page")
) -> Dict[str, int]:
    """
    FastAPI dependency for pagination parameters.

    Returns:
        Dictionary with page, page_size, and offset
    """
    return {
        "page": page,
        "page_size": page_size,
        "offset": (page - 1) * page_size
    }
