"""
==============================================================================
Scanner Registry Module
==============================================================================

CRUD over named scanner profiles. Every operation is scoped to one owner;
a row belonging to someone else is indistinguishable from a missing row.

- ScannerRegistry: synchronous operations on a request-scoped session
- ScannerRegistryClient: async facade for scan sessions (worker thread,
  one session per call)

Ordering:
--------
- list_active: last_used_at DESC, never-used profiles last
- search:      created_at DESC

==============================================================================
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from productscan.core import exceptions
from productscan.core.exceptions import AppException, RegistryError
from productscan.db.database import SessionFactory
from productscan.db.models import ScanMethod, Scanner
from productscan.schemas.scanner import ScannerDetail


# Module logger
logger = logging.getLogger(__name__)

DeviceInfo = Optional[Union[Dict[str, Any], str]]


class ScannerRegistry:
    """
    Scanner profile CRUD for one database session.

    Example:
        >>> registry = ScannerRegistry(db_session)
        >>> registry.upsert(user_id, "Camera-2025-01-15", ScanMethod.CAMERA, {"platform": "Linux"})
        >>> registry.list_active(user_id)
        >>> registry.search(user_id, "camera")
        >>> registry.delete(user_id, scanner_id, confirmed=True)
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def list_active(self, user_id: str) -> List[Scanner]:
        try:
            return self._db.query(Scanner).filter(
                Scanner.user_id == user_id,
                Scanner.is_active.is_(True)
            ).order_by(
                Scanner.last_used_at.desc().nulls_last(),
                Scanner.created_at.desc()
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error loading scanners: {e}")
            raise RegistryError("Failed to load scanners") from e

    def search(self, user_id: str, query: str) -> Optional[List[Scanner]]:
        """
        Case-insensitive substring search on the scanner name.

        Args:
            user_id: Owner
            query: Name fragment

        Returns:
            Matching profiles (active or not), newest first, or None when the
            query is blank and nothing was dispatched
        """
        if not query or not query.strip():
            return None

        pattern = f"%{query.strip()}%"

        try:
            return self._db.query(Scanner).filter(
                Scanner.user_id == user_id,
                Scanner.scanner_name.ilike(pattern)
            ).order_by(Scanner.created_at.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Error searching scanner: {e}")
            raise RegistryError("Failed to search scanner") from e

    def get(self, user_id: str, scanner_id: str) -> Optional[Scanner]:
        return self._db.query(Scanner).filter(
            Scanner.id == scanner_id,
            Scanner.user_id == user_id
        ).first()

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    def upsert(
        self,
        user_id: str,
        scanner_name: str,
        scanner_type: ScanMethod = ScanMethod.CAMERA,
        device_info: DeviceInfo = None
    ) -> Scanner:
        """
        Insert or refresh the profile keyed by (owner, name).

        The profile is marked active and last_used_at is set to now either
        way.
        """
        now = datetime.utcnow()
        info = self._serialize_device_info(device_info)

        try:
            scanner = self._db.query(Scanner).filter(
                Scanner.user_id == user_id,
                Scanner.scanner_name == scanner_name
            ).first()

            if scanner is None:
                scanner = Scanner(
                    user_id=user_id,
                    scanner_name=scanner_name,
                    created_at=now
                )
                self._db.add(scanner)
                action = "registered"
            else:
                action = "updated"

            scanner.scanner_type = scanner_type
            scanner.device_info = info
            scanner.is_active = True
            scanner.last_used_at = now

            self._db.commit()
            self._db.refresh(scanner)

        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(f"Error registering scanner {scanner_name!r}: {e}")
            raise RegistryError("Failed to register scanner") from e

        logger.info(f"📷 Scanner {action}: {scanner_name} ({scanner_type.value})")
        return scanner

    def delete(self, user_id: str, scanner_id: str, confirmed: bool = False) -> bool:
        """
        Permanently remove one profile.

        Args:
            user_id: Owner
            scanner_id: Profile id
            confirmed: Operator confirmed the deletion

        Returns:
            False when unconfirmed (no query is issued), True once deleted

        Raises:
            RegistryError: Profile missing or store failure
        """
        if not confirmed:
            logger.debug(f"Delete of scanner {scanner_id} not confirmed")
            return False

        try:
            scanner = self.get(user_id, scanner_id)
            if scanner is None:
                raise exceptions.scanner_not_found(scanner_id)

            self._db.delete(scanner)
            self._db.commit()

        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(f"Error deleting scanner {scanner_id}: {e}")
            raise RegistryError("Failed to delete scanner") from e

        logger.info(f"🗑️ Scanner deleted: {scanner_id}")
        return True

    @staticmethod
    def _serialize_device_info(device_info: DeviceInfo) -> Optional[str]:
        if device_info is None or isinstance(device_info, str):
            return device_info
        return json.dumps(device_info, default=str, sort_keys=True)


class ScannerRegistryClient:
    """
    Async registry access for scan sessions.

    Returns ScannerDetail snapshots rather than ORM rows, since the session
    that loaded them is closed before the result reaches the event loop.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def list_active(self, user_id: str) -> List[ScannerDetail]:
        return await asyncio.to_thread(
            self._call, lambda registry: [
                ScannerDetail.model_validate(s) for s in registry.list_active(user_id)
            ]
        )

    async def search(self, user_id: str, query: str) -> Optional[List[ScannerDetail]]:
        def run(registry: ScannerRegistry):
            found = registry.search(user_id, query)
            return None if found is None else [ScannerDetail.model_validate(s) for s in found]

        return await asyncio.to_thread(self._call, run)

    async def upsert(
        self,
        user_id: str,
        scanner_name: str,
        scanner_type: ScanMethod = ScanMethod.CAMERA,
        device_info: DeviceInfo = None
    ) -> ScannerDetail:
        return await asyncio.to_thread(
            self._call, lambda registry: ScannerDetail.model_validate(
                registry.upsert(user_id, scanner_name, scanner_type, device_info)
            )
        )

    async def delete(self, user_id: str, scanner_id: str, confirmed: bool = False) -> bool:
        if not confirmed:
            return False
        return await asyncio.to_thread(
            self._call, lambda registry: registry.delete(user_id, scanner_id, confirmed=True)
        )

    def _call(self, operation):
        try:
            session = self._session_factory()
        except SQLAlchemyError as e:
            raise RegistryError() from e

        try:
            return operation(ScannerRegistry(session))
        except AppException:
            raise
        except SQLAlchemyError as e:
            raise RegistryError() from e
        finally:
            session.close()
