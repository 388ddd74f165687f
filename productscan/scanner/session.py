"""
==============================================================================
Scan Session Controller Module
==============================================================================

Owns one operator's scan session: the camera lifecycle, the scan status
state machine, decode debounce, product lookup and the side effects of a
result (history, auto-reset).

State Machine:
-------------
    ┌──────┐ decode ┌───────────┐ found ┌─────────┐
    │ IDLE │ ─────▶ │ DETECTING │ ────▶ │ SUCCESS │ ──┐
    └──────┘        └───────────┘       └─────────┘   │ reset timer / stop
       ▲                  │ miss/fail   ┌─────────┐   │
       │                  └───────────▶ │  ERROR  │ ──┤
       └──────────────────────────────────────────────┘

Decode Pipeline:
---------------
    on_decode(text) ──▶ DETECTING ──(settle delay)──▶ lookup task
                                                          │
                     generation still current? ◀──────────┘
                          │ yes                 │ no
                          ▼                     ▼
                   apply result            discarded

Every decode schedules its own lookup; there is no dedup. Lookups of the
same generation apply in completion order. stop_capture() and dispose()
start a new generation, so results that were in flight are dropped.

Timers are loop.call_later handles; all methods must be called on the
event loop thread.

==============================================================================
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

from pydantic import BaseModel, ConfigDict, Field

from productscan.config import Settings
from productscan.core import messages
from productscan.core.exceptions import (
    CaptureActiveError,
    CaptureError,
    CaptureStartError,
    NoCameraError,
)
from productscan.db.models import ScanMethod
from productscan.scanner.engine import CameraSelector, CaptureConfig, DecodeEngine, select_last_camera
from productscan.schemas.product import ProductDetail
from productscan.schemas.session import CameraInfo, ScanSessionState, ScanStatus


# Module logger
logger = logging.getLogger(__name__)

StateListener = Callable[[ScanSessionState], None]


class ProductFinder(Protocol):
    async def find_by_serial(self, serial_number: str) -> Optional[ProductDetail]:
        ...


class ScanRecorder(Protocol):
    def record(self, user_id: Optional[str], serial_number: str, method: ScanMethod) -> Any:
        ...


class ScannerRegistrar(Protocol):
    async def upsert(
        self,
        user_id: str,
        scanner_name: str,
        scanner_type: ScanMethod = ScanMethod.CAMERA,
        device_info: Any = None
    ) -> Any:
        ...


class SessionTimings(BaseModel):
    """
    Attributes:
        settle_seconds: Delay between a decode and its lookup
        reset_seconds: How long success/error stays on screen
    """

    model_config = ConfigDict(frozen=True)

    settle_seconds: float = Field(default=0.3, ge=0)
    reset_seconds: float = Field(default=2.0, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionTimings:
        return cls(
            settle_seconds=settings.decode_settle_seconds,
            reset_seconds=settings.status_reset_seconds,
        )


class ScanSessionController:
    """
    Scan session for one connection.

    Attributes:
        state: Current ScanSessionState snapshot

    Example:
        >>> controller = ScanSessionController(engine, lookup_client, recorder,
        ...                                    registry_client, user_id=user.id)
        >>> controller.add_listener(push_state)
        >>> await controller.start_capture()
        >>> await controller.submit_manual("SN-001")
        >>> await controller.dispose()
    """

    def __init__(
        self,
        engine: DecodeEngine,
        products: ProductFinder,
        history: ScanRecorder,
        registry: Optional[ScannerRegistrar] = None,
        user_id: Optional[str] = None,
        config: Optional[CaptureConfig] = None,
        timings: Optional[SessionTimings] = None,
        select_camera: CameraSelector = select_last_camera,
        device_info: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Args:
            engine: Camera capture and decoding
            products: Product lookup by serial
            history: Background history writer
            registry: Scanner profile store for auto-registration
            user_id: Operator id; None for an anonymous session
            config: Sampling parameters passed to the engine
            timings: Debounce and reset delays
            select_camera: Picks one of the enumerated cameras
            device_info: Client metadata stored on the scanner profile
        """
        self._engine = engine
        self._products = products
        self._history = history
        self._registry = registry
        self._user_id = user_id
        self._config = config or CaptureConfig()
        self._timings = timings or SessionTimings()
        self._select_camera = select_camera
        self._device_info = dict(device_info or {})

        self._state = ScanSessionState()
        self._listeners: List[StateListener] = []
        self._generation = 0
        self._starting = False
        self._disposed = False

        self._debounce_ids = itertools.count(1)
        self._debounce: Dict[int, asyncio.TimerHandle] = {}
        self._reset_handle: Optional[asyncio.TimerHandle] = None
        self._lookups: Set[asyncio.Task] = set()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ScanSessionState:
        return self._state

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback that receives every new state snapshot."""
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
                logger.exception("Scan state listener raised")

    # =========================================================================
    # CAMERA LIFECYCLE
    # =========================================================================

    async def start_capture(self) -> CameraInfo:
        """
        Acquire a camera and start sampling.

        Returns:
            The camera now in use

        Raises:
            CaptureActiveError: A capture is already running
            NoCameraError: No camera available
            PermissionDeniedError: Camera access refused
            CaptureStartError: Any other start failure
        """
        if self._disposed:
            raise CaptureStartError("Scan session is closed")

        if self._starting or self._state.camera_active or self._engine.is_active:
            raise CaptureActiveError()

        self._starting = True
        self._update(status=ScanStatus.IDLE, error="")

        try:
            cameras = await self._engine.enumerate_cameras()
            if not cameras:
                raise NoCameraError()

            camera = self._select_camera(cameras)
            await self._engine.start(camera, self._config, self.on_decode, self.on_frame_error)

        except CaptureError as e:
            logger.warning(f"Camera error: {e.code} {e.details or ''}")
            self._update(camera_active=False, camera=None, error=e.message)
            raise

        except Exception as e:
            logger.error(f"Camera error: {e}")
            error = CaptureStartError(details={"reason": str(e)})
            self._update(camera_active=False, camera=None, error=error.message)
            raise error from e

        finally:
            self._starting = False

        if self._disposed:
            await self._stop_engine()
            raise CaptureStartError("Scan session is closed")

        self._update(camera_active=True, camera=camera)
        await self._register_scanner()
        return camera

    async def stop_capture(self) -> None:
        """
        Stop the camera and return to idle. Safe to call at any time.

        Pending debounced lookups are cancelled and in-flight lookups will
        be discarded when they complete.
        """
        self._generation += 1
        self._cancel_timers()
        await self._stop_engine()
        self._update(camera_active=False, camera=None, status=ScanStatus.IDLE)

    async def dispose(self) -> None:
        """
        Tear the session down: stop the camera, cancel all pending work and
        detach listeners. The controller cannot be started again.
        """
        if self._disposed:
            return

        self._disposed = True
        await self.stop_capture()

        tasks = list(self._lookups)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._listeners.clear()
        logger.debug("Scan session disposed")

    async def _stop_engine(self) -> None:
        if not self._engine.is_active:
            return

        try:
            await self._engine.stop()
        except Exception as e:
            logger.warning(f"Error stopping camera: {e}")

    async def _register_scanner(self) -> None:
        if not self._user_id or self._registry is None:
            return

        device_info = dict(self._device_info)
        device_info["timestamp"] = datetime.utcnow().isoformat()
        scanner_name = f"Camera-{date.today().isoformat()}"

        try:
            await self._registry.upsert(
                self._user_id,
                scanner_name,
                ScanMethod.CAMERA,
                device_info
            )
        except Exception as e:
            logger.error(f"Error registering scanner: {e}")
            self._update(error=messages.SCANNER_REGISTER_FAILED)

    # =========================================================================
    # DECODE PIPELINE
    # =========================================================================

    def on_decode(self, text: str) -> None:
        """Decode callback: schedule a lookup after the settle delay."""
        if self._disposed:
            return

        value = (text or "").strip()
        if not value:
            return

        self._cancel_reset()
        self._update(status=ScanStatus.DETECTING, error="")

        loop = asyncio.get_running_loop()
        debounce_id = next(self._debounce_ids)
        self._debounce[debounce_id] = loop.call_later(
            self._timings.settle_seconds,
            self._fire_lookup,
            debounce_id,
            value,
            self._generation
        )

    def on_frame_error(self) -> None:
        """Frames without a readable code are expected; nothing to do."""

    def _fire_lookup(self, debounce_id: int, value: str, generation: int) -> None:
        self._debounce.pop(debounce_id, None)

        if generation != self._generation:
            return

        task = asyncio.get_running_loop().create_task(
            self._run_lookup(value, ScanMethod.CAMERA, generation)
        )
        self._lookups.add(task)
        task.add_done_callback(self._lookups.discard)

    # =========================================================================
    # LOOKUP
    # =========================================================================

    async def lookup(self, value: str, method: ScanMethod = ScanMethod.MANUAL) -> ScanSessionState:
        """
        Look up a serial and apply the outcome to the session.

        Args:
            value: Serial number
            method: How the serial was captured; recorded with the history

        Returns:
            State after the lookup

        Raises:
            ValueError: value is blank
        """
        value = (value or "").strip()
        if not value:
            raise ValueError("Serial number is required")

        await self._run_lookup(value, method, self._generation)
        return self._state

    async def submit_manual(self, value: str) -> Optional[ScanSessionState]:
        """Manual entry. Blank input is ignored."""
        value = (value or "").strip()
        if not value:
            return None
        return await self.lookup(value, ScanMethod.MANUAL)

    async def _run_lookup(self, value: str, method: ScanMethod, generation: int) -> None:
        if self._is_stale(generation):
            return

        self._cancel_reset()
        self._update(status=ScanStatus.DETECTING, error="")

        try:
            product = await self._products.find_by_serial(value)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._is_stale(generation):
                return
            logger.error(f"Search error for {value!r}: {e}")
            self._update(
                status=ScanStatus.ERROR,
                error=messages.PRODUCT_LOOKUP_FAILED,
                product=None
            )
            self._schedule_reset()
            return

        if self._is_stale(generation):
            logger.debug(f"Discarding stale lookup result for {value!r}")
            return

        if product is None:
            logger.info(f"❌ Not found: {value}")
            self._update(
                status=ScanStatus.ERROR,
                error=messages.PRODUCT_NOT_FOUND,
                product=None
            )
        else:
            logger.info(f"✅ Verified: {value} ({method.value})")
            self._update(status=ScanStatus.SUCCESS, error="", product=product)
            self._history.record(self._user_id, value, method)

        self._schedule_reset()

    def _is_stale(self, generation: int) -> bool:
        return self._disposed or generation != self._generation

    # =========================================================================
    # TIMERS
    # =========================================================================

    def _schedule_reset(self) -> None:
        self._cancel_reset()
        self._reset_handle = asyncio.get_running_loop().call_later(
            self._timings.reset_seconds, self._reset_status
        )

    def _reset_status(self) -> None:
        self._reset_handle = None
        self._update(status=ScanStatus.IDLE, error="")

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _cancel_timers(self) -> None:
        self._cancel_reset()
        for handle in self._debounce.values():
            handle.cancel()
        self._debounce.clear()
