"""
==============================================================================
Scanner Profile Endpoints
==============================================================================

Registry of the operator's scanner profiles.

Deletion is permanent and requires ?confirm=true.

==============================================================================
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from productscan.core import exceptions, messages
from productscan.core.dependencies import get_current_user
from productscan.db.database import get_db
from productscan.db.models import User
from productscan.schemas.common import MessageResponse
from productscan.schemas.scanner import (
    ScannerCreate,
    ScannerDetail,
    ScannerListResponse,
    ScannerResponse,
)
from productscan.services.scanner_service import ScannerRegistry


router = APIRouter(prefix="/scanners", tags=["Scanners"])


class ScannerController:
    """Controller for scanner profile operations."""

    def __init__(self, db: Session, user: User):
        self._registry = ScannerRegistry(db)
        self._user = user

    def list_active(self) -> ScannerListResponse:
        scanners = [
            ScannerDetail.model_validate(s)
            for s in self._registry.list_active(self._user.id)
        ]
        return ScannerListResponse(scanners=scanners, total=len(scanners))

    def search(self, query: str) -> ScannerListResponse:
        found = self._registry.search(self._user.id, query) or []
        scanners = [ScannerDetail.model_validate(s) for s in found]

        message = None
        if not scanners and query.strip():
            message = messages.scanner_not_found(query)

        return ScannerListResponse(scanners=scanners, total=len(scanners), message=message)

    def register(self, request: ScannerCreate) -> ScannerResponse:
        scanner = self._registry.upsert(
            self._user.id,
            request.scanner_name,
            request.scanner_type,
            request.device_info
        )
        return ScannerResponse(scanner=ScannerDetail.model_validate(scanner))

    def delete(self, scanner_id: str, confirm: bool) -> MessageResponse:
        if not self._registry.delete(self._user.id, scanner_id, confirmed=confirm):
            raise exceptions.confirmation_required()
        return MessageResponse(message="Scanner deleted")


@router.get("", response_model=ScannerListResponse)
async def list_scanners(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Active scanner profiles, most recently used first."""
    controller = ScannerController(db, user)
    return controller.list_active()


@router.get("/search", response_model=ScannerListResponse)
async def search_scanners(
    q: str = Query("", max_length=255, description="Part of the scanner name"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Scanner profiles whose name contains q (case-insensitive), newest first."""
    controller = ScannerController(db, user)
    return controller.search(q)


@router.post("", response_model=ScannerResponse)
async def register_scanner(
    request: ScannerCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Register a scanner profile, or refresh the one with the same name."""
    controller = ScannerController(db, user)
    return controller.register(request)


@router.delete("/{scanner_id}", response_model=MessageResponse)
async def delete_scanner(
    scanner_id: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Permanently delete a scanner profile."""
    controller = ScannerController(db, user)
    return controller.delete(scanner_id, confirm)
