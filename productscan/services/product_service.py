"""
==============================================================================
Product Lookup Module
==============================================================================

Exact-match lookup of products by serial number.

- ProductService: synchronous queries on a request-scoped session (REST)
- ProductLookupClient: async facade used by scan sessions; each lookup runs
  in a worker thread on its own session so the event loop never blocks

Store failures surface as LookupTransportError. A missing product is not an
error at this layer; callers get None.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from productscan.core import exceptions
from productscan.core.exceptions import LookupTransportError
from productscan.db.database import SessionFactory
from productscan.db.models import Product
from productscan.schemas.product import ProductDetail


# Module logger
logger = logging.getLogger(__name__)


class ProductService:
    """
    Read-only product queries.

    Example:
        >>> service = ProductService(db_session)
        >>> product = service.get_by_serial("SN-001")
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_by_serial(self, serial_number: str) -> Optional[Product]:
        """
        Find the product whose serial matches exactly.

        Raises:
            LookupTransportError: If the store cannot be queried
        """
        try:
            return self._db.query(Product).filter(
                Product.serial_number == serial_number
            ).one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Product query failed for {serial_number!r}: {e}")
            raise LookupTransportError(details={"serial_number": serial_number}) from e

    def require_by_serial(self, serial_number: str) -> Product:
        """
        Like get_by_serial, but a miss raises NotFoundError.
        """
        product = self.get_by_serial(serial_number)
        if product is None:
            raise exceptions.product_not_found(serial_number)
        return product

    def count(self) -> int:
        return self._db.query(Product).count()


class ProductLookupClient:
    """
    Async product lookup for scan sessions.

    Example:
        >>> client = ProductLookupClient(DatabaseManager().session_factory)
        >>> detail = await client.find_by_serial("SN-001")
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def find_by_serial(self, serial_number: str) -> Optional[ProductDetail]:
        return await asyncio.to_thread(self._find, serial_number)

    def _find(self, serial_number: str) -> Optional[ProductDetail]:
        try:
            session = self._session_factory()
        except SQLAlchemyError as e:
            raise LookupTransportError(details={"serial_number": serial_number}) from e

        try:
            product = ProductService(session).get_by_serial(serial_number)
            return ProductDetail.model_validate(product) if product else None
        finally:
            session.close()
