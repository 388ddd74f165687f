"""
==============================================================================
Scan History Module
==============================================================================

Flat, append-only log of verifications.

- HistoryService: synchronous append/list on a request-scoped session
- SqlHistoryStore: async append on a per-call session (worker thread)
- HistoryRecorder: fire-and-forget writer used by scan sessions

Recording Model:
---------------
    record() ──▶ asyncio.Task ──▶ store.append()
       │                              │ failure
       ▼                              ▼
    returns immediately         logged, on_failure hook, swallowed

The caller never waits on a write and never sees its failure.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Set

from sqlalchemy.orm import Session

from productscan.db.database import SessionFactory
from productscan.db.models import ScanHistory, ScanMethod
from productscan.schemas.history import ScanEvent


# Module logger
logger = logging.getLogger(__name__)


class HistoryStore(Protocol):
    async def append(self, user_id: str, serial_number: str, method: ScanMethod) -> None:
        ...


class HistoryService:
    """
    Scan history queries scoped to one user.

    Example:
        >>> service = HistoryService(db_session)
        >>> service.append("user-id", "SN-001", ScanMethod.MANUAL)
        >>> service.list_for_user("user-id", offset=0, limit=20)
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def append(self, user_id: str, serial_number: str, method: ScanMethod) -> ScanHistory:
        entry = ScanHistory(
            user_id=user_id,
            serial_number=serial_number,
            scan_method=method
        )

        try:
            self._db.add(entry)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

        logger.debug(f"History: {user_id} {method.value} {serial_number}")
        return entry

    def list_for_user(
        self,
        user_id: str,
        offset: int = 0,
        limit: int = 20,
        method: Optional[ScanMethod] = None
    ) -> List[ScanHistory]:
        """Newest first."""
        query = self._db.query(ScanHistory).filter(ScanHistory.user_id == user_id)

        if method is not None:
            query = query.filter(ScanHistory.scan_method == method)

        return query.order_by(
            ScanHistory.scanned_at.desc(),
            ScanHistory.id.desc()
        ).offset(offset).limit(limit).all()

    def count_for_user(self, user_id: str, method: Optional[ScanMethod] = None) -> int:
        query = self._db.query(ScanHistory).filter(ScanHistory.user_id == user_id)

        if method is not None:
            query = query.filter(ScanHistory.scan_method == method)

        return query.count()


class SqlHistoryStore:
    """HistoryStore backed by the scan_history table."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def append(self, user_id: str, serial_number: str, method: ScanMethod) -> None:
        await asyncio.to_thread(self._append, user_id, serial_number, method)

    def _append(self, user_id: str, serial_number: str, method: ScanMethod) -> None:
        session = self._session_factory()
        try:
            HistoryService(session).append(user_id, serial_number, method)
        finally:
            session.close()


class HistoryRecorder:
    """
    Best-effort background writer for scan events.

    Attributes:
        pending: Number of writes still in flight

    Example:
        >>> recorder = HistoryRecorder(SqlHistoryStore(factory))
        >>> recorder.record("user-id", "SN-001", ScanMethod.CAMERA)
        >>> await recorder.drain()
    """

    def __init__(
        self,
        store: HistoryStore,
        on_failure: Optional[Callable[[ScanEvent, Exception], None]] = None
    ) -> None:
        """
        Args:
            store: Destination for events
            on_failure: Called with the event and error when a write fails
        """
        self._store = store
        self._on_failure = on_failure
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def record(
        self,
        user_id: Optional[str],
        serial_number: str,
        method: ScanMethod
    ) -> Optional[asyncio.Task]:
        """
        Schedule a write and return without waiting for it.

        Anonymous sessions have nothing to record, so no task is created.
        Must be called from a running event loop.
        """
        if not user_id:
            return None

        event = ScanEvent(user_id=user_id, serial_number=serial_number, scan_method=method)
        task = asyncio.get_running_loop().create_task(self._write(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _write(self, event: ScanEvent) -> None:
        try:
            await self._store.append(event.user_id, event.serial_number, event.scan_method)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error saving scan history for {event.serial_number!r}: {e}")
            if self._on_failure is not None:
                try:
                    self._on_failure(event, e)
                except Exception:
                    logger.exception("History failure hook raised")

    async def drain(self) -> None:
        """Wait for every scheduled write to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
