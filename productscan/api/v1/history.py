"""
==============================================================================
Scan History Endpoints
==============================================================================

==============================================================================
"""

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from productscan.core.dependencies import get_current_user, get_pagination
from productscan.db.database import get_db
from productscan.db.models import ScanMethod, User
from productscan.schemas.common import PaginatedResponse
from productscan.schemas.history import ScanHistoryDetail
from productscan.services.history_service import HistoryService


router = APIRouter(prefix="/history", tags=["History"])


@router.get("", response_model=PaginatedResponse[ScanHistoryDetail])
async def list_history(
    method: Optional[ScanMethod] = Query(None, description="camera, manual or excel"),
    pagination: Dict[str, int] = Depends(get_pagination),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The caller's scan events, newest first."""
    service = HistoryService(db)

    entries = service.list_for_user(
        user.id,
        offset=pagination["offset"],
        limit=pagination["page_size"],
        method=method
    )
    total = service.count_for_user(user.id, method=method)

    return PaginatedResponse[ScanHistoryDetail].from_pagination(
        [ScanHistoryDetail.model_validate(e) for e in entries],
        total,
        pagination
    )
