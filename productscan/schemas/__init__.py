"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request, response and state schemas.

==============================================================================
"""

from .common import MessageResponse, PaginatedResponse
from .auth import (
    LoginRequest,
    RegisterRequest,
    RefreshRequest,
    TokenResponse,
    UserInfo,
    CurrentUserResponse,
)
from .product import (
    ProductDetail,
    ProductSeed,
    VerifyRequest,
    ProductResponse,
    BatchVerificationResponse,
)
from .scanner import (
    ScannerCreate,
    ScannerDetail,
    ScannerResponse,
    ScannerListResponse,
    ScannerPanelState,
)
from .history import ScanEvent, ScanHistoryDetail
from .session import CameraInfo, ScanSessionState, ScanStatus

__all__ = [
    # Common
    "MessageResponse",
    "PaginatedResponse",
    # Auth
    "LoginRequest",
    "RegisterRequest",
    "RefreshRequest",
    "TokenResponse",
    "UserInfo",
    "CurrentUserResponse",
    # Product
    "ProductDetail",
    "ProductSeed",
    "VerifyRequest",
    "ProductResponse",
    "BatchVerificationResponse",
    # Scanner
    "ScannerCreate",
    "ScannerDetail",
    "ScannerResponse",
    "ScannerListResponse",
    "ScannerPanelState",
    # History
    "ScanEvent",
    "ScanHistoryDetail",
    # Session
    "CameraInfo",
    "ScanSessionState",
    "ScanStatus",
]
