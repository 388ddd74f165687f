"""
==============================================================================
Scan Session Schemas Module
==============================================================================

Snapshot of a scan session as pushed to WebSocket clients.

==============================================================================
"""

import enum
from typing import Optional

from pydantic import BaseModel, Field

from productscan.schemas.product import ProductDetail


class ScanStatus(str, enum.Enum):
    """
    Scan session status.

    ┌──────┐ decode ┌───────────┐ found ┌─────────┐
    │ IDLE │ ─────▶ │ DETECTING │ ────▶ │ SUCCESS │ ──┐
    └──────┘        └───────────┘       └─────────┘   │ 2s / stop
       ▲                  │ miss/fail   ┌─────────┐   │
       │                  └───────────▶ │  ERROR  │ ──┤
       └──────────────────────────────────────────────┘
    """

    IDLE = "idle"
    DETECTING = "detecting"
    SUCCESS = "success"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class CameraInfo(BaseModel):
    """A capturable camera as reported by the decode engine."""
    id: str = Field(..., min_length=1)
    label: str = Field(default="")


class ScanSessionState(BaseModel):
    """Immutable view of the session at one instant."""
    camera_active: bool = False
    status: ScanStatus = ScanStatus.IDLE
    error: str = ""
    product: Optional[ProductDetail] = None
    camera: Optional[CameraInfo] = None
