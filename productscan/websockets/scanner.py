"""
==============================================================================
Scan WebSocket Module
==============================================================================

One ScanSessionController and one ScannerPanel per connection.

Protocol:
---------
1. Client connects, optionally with ?token=<JWT> (no token = anonymous;
   lookups work, history and scanner profiles are skipped)
2. Server sends the initial state (and the scanner list for users)
3. Client drives the session:

    Client → Server                          Server → Client
    ─────────────────────────────────        ───────────────────────────────
    {"type": "start", "cameras": [...],      {"type": "capture", "camera",
     "error": "NotAllowedError"?}             "config"} or {"type": "error"}
    {"type": "stop"}                         {"type": "state", "session"}
    {"type": "frame", "frame": <b64 jpeg>}   (on every state change)
    {"type": "decoded", "text": "..."}
    {"type": "manual", "serial": "..."}
    {"type": "scanners.load"}                {"type": "scanners", "scanners",
    {"type": "scanners.search", "query"}      "message", "loading"}
    {"type": "scanners.delete", "id",
     "confirmed": true}
    {"type": "scanners.dismiss"}

Errors never close the connection; only a rejected token does.

==============================================================================
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from productscan.config import Settings, get_settings
from productscan.core.dependencies import resolve_ws_user
from productscan.core.exceptions import AppException
from productscan.db.database import SessionFactory, get_session_factory
from productscan.scanner import (
    BrowserFrameEngine,
    CaptureConfig,
    ScannerPanel,
    ScanSessionController,
    SessionTimings,
    create_engine,
)
from productscan.schemas.scanner import ScannerPanelState
from productscan.schemas.session import CameraInfo, ScanSessionState
from productscan.services.history_service import HistoryRecorder, SqlHistoryStore
from productscan.services.product_service import ProductLookupClient
from productscan.services.scanner_service import ScannerRegistryClient


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ScanWebSocketHandler:
    """
    Handler for one scan WebSocket connection.

    Outgoing messages go through a queue drained by a single sender task,
    so state pushed from timers and lookups keeps its order.
    """

    def __init__(
        self,
        websocket: WebSocket,
        session_factory: SessionFactory,
        settings: Optional[Settings] = None
    ) -> None:
        self._websocket = websocket
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._user = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()

        self._engine = None
        self._recorder: Optional[HistoryRecorder] = None
        self._controller: Optional[ScanSessionController] = None
        self._panel: Optional[ScannerPanel] = None

    @property
    def user_id(self) -> Optional[str]:
        return self._user.id if self._user else None

    # =========================================================================
    # SETUP
    # =========================================================================

    def authenticate(self, token: Optional[str]) -> bool:
        """Resolve the operator; False if a token was sent and rejected."""
        try:
            self._user = resolve_ws_user(token, self._session_factory)
        except AppException as e:
            logger.warning(f"Auth failed: {e.code}")
            return False
        return True

    def build_session(self) -> ScanSessionController:
        factory = self._session_factory
        registry = ScannerRegistryClient(factory)

        self._engine = create_engine(self._settings)
        self._recorder = HistoryRecorder(SqlHistoryStore(factory))

        self._controller = ScanSessionController(
            engine=self._engine,
            products=ProductLookupClient(factory),
            history=self._recorder,
            registry=registry,
            user_id=self.user_id,
            config=CaptureConfig.from_settings(self._settings),
            timings=SessionTimings.from_settings(self._settings),
            device_info=self._device_info(),
        )
        self._controller.add_listener(self._push_state)

        self._panel = ScannerPanel(
            registry,
            user_id=self.user_id,
            message_seconds=self._settings.scanner_message_seconds
        )
        self._panel.add_listener(self._push_scanners)

        return self._controller

    def _device_info(self) -> Dict[str, Any]:
        headers = self._websocket.headers
        return {
            "userAgent": headers.get("user-agent", ""),
            "platform": headers.get("sec-ch-ua-platform", "").strip('"'),
        }

    # =========================================================================
    # OUTGOING
    # =========================================================================

    def _send(self, message: Dict[str, Any]) -> None:
        self._outbox.put_nowait(message)

    def send_error(self, message: str, code: str = "ERROR") -> None:
        self._send({"type": "error", "code": code, "message": message})

    def _push_state(self, state: ScanSessionState) -> None:
        self._send({"type": "state", "session": state.model_dump(mode="json")})

    def _push_scanners(self, state: ScannerPanelState) -> None:
        self._send({"type": "scanners", **state.model_dump(mode="json")})

    async def _sender(self) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self._websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                logger.debug("Send after disconnect dropped")
                return

    # =========================================================================
    # MESSAGE HANDLERS
    # =========================================================================

    async def handle_start(self, data: dict) -> None:
        if isinstance(self._engine, BrowserFrameEngine):
            try:
                cameras = [CameraInfo.model_validate(c) for c in data.get("cameras") or []]
            except ValidationError:
                self.send_error("Invalid camera list", "INVALID_MESSAGE")
                return
            self._engine.announce_cameras(cameras, data.get("error"))

        try:
            camera = await self._controller.start_capture()
        except AppException as e:
            self.send_error(e.message, e.code)
            return

        self._send({
            "type": "capture",
            "camera": camera.model_dump(),
            "config": self._controller.config.to_client(),
        })
        await self._panel.load()

    async def handle_frame(self, data: dict) -> None:
        if not isinstance(self._engine, BrowserFrameEngine):
            return

        try:
            frame = base64.b64decode(data.get("frame") or "", validate=False)
        except (binascii.Error, ValueError):
            logger.debug("Undecodable frame payload")
            return

        await self._engine.submit_frame(frame)

    def handle_decoded(self, data: dict) -> None:
        if isinstance(self._engine, BrowserFrameEngine):
            self._engine.submit_decoded(str(data.get("text") or ""))

    def handle_manual(self, data: dict) -> None:
        serial = str(data.get("serial") or "")
        self._spawn(self._controller.submit_manual(serial))

    async def dispatch(self, data: dict) -> None:
        message_type = data.get("type")

        if message_type == "start":
            await self.handle_start(data)
        elif message_type == "stop":
            await self._controller.stop_capture()
        elif message_type == "frame":
            await self.handle_frame(data)
        elif message_type == "decoded":
            self.handle_decoded(data)
        elif message_type == "manual":
            self.handle_manual(data)
        elif message_type == "scanners.load":
            await self._panel.load()
        elif message_type == "scanners.search":
            await self._panel.search(str(data.get("query") or ""))
        elif message_type == "scanners.delete":
            await self._panel.delete(str(data.get("id") or ""), bool(data.get("confirmed")))
        elif message_type == "scanners.dismiss":
            self._panel.dismiss()
        else:
            self.send_error(f"Unknown message type: {message_type}", "UNKNOWN_MESSAGE")

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Scan task failed: {task.exception()}")

    # =========================================================================
    # MAIN LOOP
    # =========================================================================

    async def run(self, token: Optional[str]) -> None:
        await self._websocket.accept()
        logger.info("📱 Scan WebSocket connected")

        if not self.authenticate(token):
            await self._websocket.send_json({
                "type": "error",
                "code": "AUTH_REQUIRED",
                "message": "Authentication required"
            })
            await self._websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        if self._user:
            logger.info(f"✅ User authenticated: {self._user.username}")

        controller = self.build_session()
        sender = asyncio.create_task(self._sender())

        try:
            self._push_state(controller.state)
            await self._panel.load()

            while True:
                raw = await self._websocket.receive_text()

                try:
                    data = json.loads(raw)
                except ValueError:
                    self.send_error("Invalid JSON", "INVALID_MESSAGE")
                    continue

                if not isinstance(data, dict):
                    self.send_error("Message must be an object", "INVALID_MESSAGE")
                    continue

                await self.dispatch(data)

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
        finally:
            await self.close(sender)
            logger.info("✅ Scan WebSocket closed")

    async def close(self, sender: asyncio.Task) -> None:
        for task in list(self._tasks):
            task.cancel()

        await self._controller.dispose()
        self._panel.close()
        await self._recorder.drain()

        sender.cancel()
        await asyncio.gather(sender, *self._tasks, return_exceptions=True)


@router.websocket("/ws/scan")
async def websocket_scan(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    session_factory: SessionFactory = Depends(get_session_factory)
):
    """Scan session over WebSocket."""
    handler = ScanWebSocketHandler(websocket, session_factory)
    await handler.run(token)
