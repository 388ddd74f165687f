"""
==============================================================================
Scanner Panel Module
==============================================================================

View state of the "Manage Scanners" panel: the listed profiles, a
notice line and a loading flag. Every change is pushed to listeners as a
ScannerPanelState.

Messages:
--------
- search found nothing:  'Scanner "<q>" not found'  (clears after 3 s)
- search failed:         "Failed to search scanner" (clears after 3 s)
- delete failed:         "Failed to delete scanner" (until dismiss())
- load failed:           "Failed to load scanners"  (until dismiss())

Without a user every operation is a silent no-op.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Protocol

from productscan.core import messages
from productscan.schemas.scanner import ScannerDetail, ScannerPanelState


# Module logger
logger = logging.getLogger(__name__)

PanelListener = Callable[[ScannerPanelState], None]


class ScannerStore(Protocol):
    async def list_active(self, user_id: str) -> List[ScannerDetail]:
        ...

    async def search(self, user_id: str, query: str) -> Optional[List[ScannerDetail]]:
        ...

    async def delete(self, user_id: str, scanner_id: str, confirmed: bool = False) -> bool:
        ...


class ScannerPanel:
    """
    Example:
        >>> panel = ScannerPanel(ScannerRegistryClient(factory), user_id=user.id)
        >>> await panel.load()
        >>> await panel.search("camera")
        >>> await panel.delete(scanner_id, confirmed=True)
    """

    def __init__(
        self,
        registry: ScannerStore,
        user_id: Optional[str] = None,
        message_seconds: float = 3.0
    ) -> None:
        self._registry = registry
        self._user_id = user_id
        self._message_seconds = message_seconds
        self._state = ScannerPanelState()
        self._listeners: List[PanelListener] = []
        self._clear_handle: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> ScannerPanelState:
        return self._state

    def add_listener(self, listener: PanelListener) -> None:
        self._listeners.append(listener)

    def _update(self, **changes: Any) -> None:
        new_state = self._state.model_copy(update=changes)
        if new_state == self._state:
            return

        self._state = new_state

        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Scanner panel listener raised")

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def load(self) -> None:
        """Show the operator's active profiles, most recently used first."""
        if not self._user_id:
            return

        self._update(loading=True)
        try:
            scanners = await self._registry.list_active(self._user_id)
        except Exception as e:
            logger.error(f"Error loading scanners: {e}")
            self._set_message(messages.SCANNER_LOAD_FAILED)
        else:
            self._update(scanners=list(scanners))
        finally:
            self._update(loading=False)

    async def search(self, query: str) -> None:
        """Replace the list with profiles whose name contains query."""
        if not self._user_id or not query or not query.strip():
            return

        try:
            found = await self._registry.search(self._user_id, query)
        except Exception as e:
            logger.error(f"Error searching scanner: {e}")
            self._set_message(messages.SCANNER_SEARCH_FAILED, transient=True)
            return

        if found:
            self._update(scanners=list(found))
        else:
            self._set_message(messages.scanner_not_found(query), transient=True)

    async def delete(self, scanner_id: str, confirmed: bool = False) -> bool:
        """
        Remove a profile once the operator confirmed it.

        The local list is filtered rather than reloaded.

        Returns:
            True if the profile was deleted
        """
        if not self._user_id or not confirmed:
            return False

        try:
            deleted = await self._registry.delete(self._user_id, scanner_id, confirmed=True)
        except Exception as e:
            logger.error(f"Error deleting scanner: {e}")
            self._set_message(messages.SCANNER_DELETE_FAILED)
            return False

        if deleted:
            self._cancel_clear()
            self._update(
                scanners=[s for s in self._state.scanners if s.id != scanner_id],
                message=""
            )
        return deleted

    def dismiss(self) -> None:
        """Clear the notice line."""
        self._cancel_clear()
        self._update(message="")

    def close(self) -> None:
        self._cancel_clear()
        self._listeners.clear()

    # =========================================================================
    # MESSAGES
    # =========================================================================

    def _set_message(self, message: str, transient: bool = False) -> None:
        self._cancel_clear()
        self._update(message=message)

        if transient:
            self._clear_handle = asyncio.get_running_loop().call_later(
                self._message_seconds, self._clear_message, message
            )

    def _clear_message(self, message: str) -> None:
        self._clear_handle = None
        if self._state.message == message:
            self._update(message="")

    def _cancel_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None
