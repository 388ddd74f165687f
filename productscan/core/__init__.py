"""
==============================================================================
Core Package
==============================================================================

Core utilities and infrastructure for the application.

Modules:
--------
- exceptions: AppException hierarchy and error factory functions
- messages: Operator-facing message strings
- security: SecurityManager for passwords and tokens
- dependencies: FastAPI dependency injection functions

Usage:
------
    from productscan.core import AppException, get_current_user

    from productscan.core import exceptions
    raise exceptions.product_not_found("SN-001")

==============================================================================
"""

from .exceptions import (
    AppException,
    CaptureActiveError,
    CaptureError,
    CaptureStartError,
    LookupTransportError,
    NoCameraError,
    NotFoundError,
    PermissionDeniedError,
    RegistryError,
    register_exception_handlers,
)
from .security import SecurityManager, get_security_manager
from .dependencies import (
    AuthenticationManager,
    get_current_user,
    get_pagination,
    resolve_ws_user,
)

__all__ = [
    # Exceptions
    "AppException",
    "CaptureError",
    "CaptureActiveError",
    "CaptureStartError",
    "LookupTransportError",
    "NoCameraError",
    "NotFoundError",
    "PermissionDeniedError",
    "RegistryError",
    "register_exception_handlers",
    # Security
    "SecurityManager",
    "get_security_manager",
    # Dependencies
    "AuthenticationManager",
    "get_current_user",
    "get_pagination",
    "resolve_ws_user",
]
