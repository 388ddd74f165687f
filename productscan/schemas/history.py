"""
==============================================================================
Scan History Schemas Module
==============================================================================

==============================================================================
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from productscan.db.models import ScanMethod


class ScanEvent(BaseModel):
    """One verification to append to the history log."""
    user_id: str
    serial_number: str = Field(..., min_length=1)
    scan_method: ScanMethod


class ScanHistoryDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    serial_number: str
    scan_method: ScanMethod
    scanned_at: datetime
    user_id: Optional[str] = None
