"""
==============================================================================
Product Verification Endpoints
==============================================================================

Lookup by serial, manual verification and spreadsheet batch verification.

Endpoints:
---------
    GET  /products/{serial}      lookup only
    POST /products/verify        manual entry, recorded as "manual"
    POST /products/verify-batch  spreadsheet upload, recorded as "excel"

==============================================================================
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from productscan.core.dependencies import get_current_user
from productscan.db.database import get_db
from productscan.db.models import ScanMethod, User
from productscan.schemas.product import (
    BatchVerificationResponse,
    ProductDetail,
    ProductResponse,
    VerifyRequest,
)
from productscan.services.batch_service import BatchVerifier
from productscan.services.history_service import HistoryService
from productscan.services.product_service import ProductService


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


class ProductController:
    """Controller for product verification."""

    def __init__(self, db: Session):
        self._db = db
        self._products = ProductService(db)

    def get(self, serial_number: str) -> ProductResponse:
        product = self._products.require_by_serial(serial_number.strip())
        return ProductResponse(product=ProductDetail.model_validate(product))

    def verify(self, user: User, request: VerifyRequest) -> ProductResponse:
        """Look up the serial and log the verification."""
        product = self._products.require_by_serial(request.serial_number)

        try:
            HistoryService(self._db).append(user.id, request.serial_number, ScanMethod.MANUAL)
        except SQLAlchemyError as e:
            logger.error(f"Error saving scan history: {e}")

        return ProductResponse(product=ProductDetail.model_validate(product))

    def verify_batch(self, user: User, filename: str, content: bytes) -> BatchVerificationResponse:
        return BatchVerifier(self._db).verify_upload(user.id, filename, content)


@router.get("/{serial_number}", response_model=ProductResponse)
async def get_product(
    serial_number: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Product with exactly this serial number."""
    controller = ProductController(db)
    return controller.get(serial_number)


@router.post("/verify", response_model=ProductResponse)
async def verify_product(
    request: VerifyRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Verify a manually entered serial number."""
    controller = ProductController(db)
    return controller.verify(user, request)


@router.post("/verify-batch", response_model=BatchVerificationResponse)
async def verify_batch(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Verify every serial number in an uploaded .xlsx or .csv file."""
    content = await file.read()
    controller = ProductController(db)
    return controller.verify_batch(user, file.filename or "", content)
