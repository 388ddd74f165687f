"""
==============================================================================
Scanner Profile Schemas Module
==============================================================================

Request and response schemas for the scanner registry.

==============================================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from productscan.db.models import ScanMethod


class ScannerCreate(BaseModel):
    """Register (or refresh) a scanner profile by name."""
    scanner_name: str = Field(..., min_length=1, max_length=255)
    scanner_type: ScanMethod = Field(default=ScanMethod.CAMERA)
    device_info: Optional[Union[Dict[str, Any], str]] = Field(default=None)

    @field_validator("scanner_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Scanner name is required")
        return v


class ScannerDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    scanner_name: str
    scanner_type: ScanMethod
    device_info: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_used_at: Optional[datetime] = None


class ScannerResponse(BaseModel):
    success: bool = Field(default=True)
    scanner: ScannerDetail


class ScannerListResponse(BaseModel):
    success: bool = Field(default=True)
    scanners: List[ScannerDetail]
    total: int
    message: Optional[str] = None


class ScannerPanelState(BaseModel):
    """What the "Manage Scanners" view currently shows."""
    scanners: List[ScannerDetail] = Field(default_factory=list)
    message: str = ""
    loading: bool = False
