"""
Application Exception Handling

AppException is the single base for every error the service raises. Camera,
lookup and registry failures subclass it so they can be caught by kind at
the session boundary and still render as JSON when they reach FastAPI.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from productscan.core import messages


class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Usage:
        raise AppException("Invalid credentials", "INVALID_CREDENTIALS", 401)
        raise NoCameraError()

    Error Codes:
        Authentication:
            - INVALID_CREDENTIALS (401)
            - TOKEN_EXPIRED (401)
            - TOKEN_INVALID (401)
            - ACCOUNT_DISABLED (403)
            - USERNAME_EXISTS (409)
            - USER_NOT_FOUND (404)

        Camera:
            - NO_CAMERA (404)
            - CAMERA_PERMISSION_DENIED (403)
            - CAPTURE_START_FAILED (500)
            - CAPTURE_ACTIVE (409)

        Lookup:
            - PRODUCT_NOT_FOUND (404)
            - LOOKUP_FAILED (503)

        Scanner registry:
            - REGISTRY_ERROR (500)
            - SCANNER_NOT_FOUND (404)
            - CONFIRMATION_REQUIRED (400)

        General:
            - INVALID_UPLOAD (400)
            - INTERNAL_ERROR (500)
    """

    default_message = "Internal server error"
    default_code = "INTERNAL_ERROR"
    default_status = 500

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "PRODUCT_NOT_FOUND")
            status_code: HTTP status code
            details: Additional error context (optional)
        """
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.status_code = status_code or self.default_status
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


# ============================================
# CAMERA ACQUISITION
# ============================================

class CaptureError(AppException):
    """Base for failures while acquiring the camera."""

    default_message = messages.CAMERA_START_FAILED
    default_code = "CAPTURE_START_FAILED"
    default_status = 500


class NoCameraError(CaptureError):
    default_message = messages.CAMERA_NOT_FOUND
    default_code = "NO_CAMERA"
    default_status = 404


class PermissionDeniedError(CaptureError):
    default_message = messages.CAMERA_PERMISSION_DENIED
    default_code = "CAMERA_PERMISSION_DENIED"
    default_status = 403


class CaptureStartError(CaptureError):
    pass


class CaptureActiveError(CaptureError):
    """Raised when start is requested while a capture is already running."""

    default_message = messages.CAMERA_ALREADY_ACTIVE
    default_code = "CAPTURE_ACTIVE"
    default_status = 409


# ============================================
# PRODUCT LOOKUP
# ============================================

class LookupTransportError(AppException):
    """The product store could not be queried."""

    default_message = messages.PRODUCT_LOOKUP_FAILED
    default_code = "LOOKUP_FAILED"
    default_status = 503


class NotFoundError(AppException):
    """No product matches the scanned serial. A valid outcome, not a fault."""

    default_message = messages.PRODUCT_NOT_FOUND
    default_code = "PRODUCT_NOT_FOUND"
    default_status = 404


# ============================================
# SCANNER REGISTRY
# ============================================

class RegistryError(AppException):
    default_message = "Scanner registry operation failed"
    default_code = "REGISTRY_ERROR"
    default_status = 500


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Convert AppException to a consistent JSON error response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def invalid_credentials() -> AppException:
    return AppException("Invalid username or password", "INVALID_CREDENTIALS", 401)


def token_expired() -> AppException:
    return AppException("Token has expired", "TOKEN_EXPIRED", 401)


def token_invalid() -> AppException:
    return AppException("Invalid or malformed token", "TOKEN_INVALID", 401)


def account_disabled() -> AppException:
    return AppException("Account has been disabled", "ACCOUNT_DISABLED", 403)


def user_not_found(user_id: Optional[str] = None) -> AppException:
    details = {"user_id": user_id} if user_id else {}
    return AppException("User not found", "USER_NOT_FOUND", 404, details)


def username_exists(username: str) -> AppException:
    return AppException(
        f"Username '{username}' already exists",
        "USERNAME_EXISTS",
        409,
        {"username": username}
    )


def product_not_found(serial_number: str) -> NotFoundError:
    """Create product not found exception."""
    return NotFoundError(details={"serial_number": serial_number})


def scanner_not_found(scanner_id: str) -> RegistryError:
    """Create scanner not found exception."""
    return RegistryError(
        "Scanner not found",
        "SCANNER_NOT_FOUND",
        404,
        {"scanner_id": scanner_id}
    )


def confirmation_required() -> AppException:
    """Deleting a scanner needs an explicit confirmation."""
    return AppException(
        messages.SCANNER_DELETE_CONFIRM,
        "CONFIRMATION_REQUIRED",
        400
    )


def invalid_upload(reason: str) -> AppException:
    return AppException(f"Invalid upload: {reason}", "INVALID_UPLOAD", 400, {"reason": reason})

