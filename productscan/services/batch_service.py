"""
==============================================================================
Batch Verification Module
==============================================================================

Verifies every serial number listed in an uploaded spreadsheet.

Input:
------
    .xlsx or .csv with a "serial_number" column. When that column is
    absent the first column is used. Blank cells are skipped; order is kept.

Output:
-------
    found:   ProductDetail for each serial that matched
    missing: serials with no product

Each found serial is appended to the history log with method "excel"; a
failed history write is logged and the batch carries on.

==============================================================================
"""

from __future__ import annotations

import io
import logging
import os
from typing import List, Optional, Tuple

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from productscan.config import get_settings
from productscan.core import exceptions
from productscan.db.models import ScanMethod
from productscan.schemas.product import BatchVerificationResponse, ProductDetail
from productscan.services.history_service import HistoryService
from productscan.services.product_service import ProductService


# Module logger
logger = logging.getLogger(__name__)

SERIAL_COLUMN = "serial_number"
EXCEL_EXTENSIONS = {".xlsx"}
CSV_EXTENSIONS = {".csv"}


class BatchVerifier:
    """
    Spreadsheet batch verification.

    Example:
        >>> verifier = BatchVerifier(db_session)
        >>> result = verifier.verify_upload(user_id, "serials.xlsx", content)
        >>> result.found, result.missing
    """

    def __init__(self, db: Session, max_rows: Optional[int] = None) -> None:
        self._db = db
        self._products = ProductService(db)
        self._history = HistoryService(db)
        self._max_rows = max_rows or get_settings().batch_max_rows

    def read_serials(self, filename: str, content: bytes) -> List[str]:
        """
        Extract serial numbers from an uploaded file.

        Raises:
            AppException: INVALID_UPLOAD for unsupported, unreadable, empty
                or oversized files
        """
        extension = os.path.splitext(filename or "")[1].lower()

        if extension not in EXCEL_EXTENSIONS | CSV_EXTENSIONS:
            raise exceptions.invalid_upload(f"unsupported file type '{extension or filename}'")

        logger.info(f"Loading serial list from: {filename}")

        try:
            if extension in CSV_EXTENSIONS:
                df = pd.read_csv(io.BytesIO(content), dtype=str).fillna("")
            else:
                df = pd.read_excel(io.BytesIO(content), dtype=str).fillna("")
        except Exception as e:
            logger.error(f"Failed to read spreadsheet: {e}")
            raise exceptions.invalid_upload("could not read the file")

        if df.empty or len(df.columns) == 0:
            raise exceptions.invalid_upload("the file contains no rows")

        columns = {str(c).strip().lower(): c for c in df.columns}
        column = columns.get(SERIAL_COLUMN, df.columns[0])

        serials = [str(v).strip() for v in df[column].tolist()]
        serials = [s for s in serials if s]

        if not serials:
            raise exceptions.invalid_upload("no serial numbers found")

        if len(serials) > self._max_rows:
            raise exceptions.invalid_upload(f"more than {self._max_rows} serial numbers")

        logger.debug(f"Read {len(serials)} serials from column {column!r}")
        return serials

    def verify(self, user_id: str, serials: List[str]) -> Tuple[List[ProductDetail], List[str]]:
        """Look up each serial in order, recording history for hits."""
        found: List[ProductDetail] = []
        missing: List[str] = []

        for serial in serials:
            product = self._products.get_by_serial(serial)
            if product is None:
                missing.append(serial)
                continue

            found.append(ProductDetail.model_validate(product))

            try:
                self._history.append(user_id, serial, ScanMethod.EXCEL)
            except SQLAlchemyError as e:
                logger.error(f"Error saving scan history for {serial!r}: {e}")

        logger.info(f"📊 Batch verified: {len(found)} found, {len(missing)} missing")
        return found, missing

    def verify_upload(self, user_id: str, filename: str, content: bytes) -> BatchVerificationResponse:
        serials = self.read_serials(filename, content)
        found, missing = self.verify(user_id, serials)
        return BatchVerificationResponse(total=len(serials), found=found, missing=missing)
