"""
==============================================================================
Decode Engine Module
==============================================================================

Camera acquisition and barcode decoding behind one interface.

    ┌──────────────────────┐      on_decode(text)     ┌──────────────────────┐
    │     DecodeEngine     │ ───────────────────────▶ │ ScanSessionController│
    │                      │      on_frame_error()    │                      │
    │ enumerate_cameras()  │ ───────────────────────▶ │                      │
    │ start() / stop()     │ ◀─────────────────────── │                      │
    └──────────────────────┘                          └──────────────────────┘
              ▲
    ┌─────────┴──────────┬──────────────────────┐
    │ BrowserFrameEngine │  DeviceCameraEngine  │
    │ (frames over WS)   │  (local OpenCV)      │
    └────────────────────┴──────────────────────┘

BrowserFrameEngine: the browser owns the camera. It reports the cameras it
can see (or the error it hit while asking), then pushes JPEG frames which
are decoded here, or text it already decoded itself.

DeviceCameraEngine: a camera attached to the server, read with
cv2.VideoCapture at the sampling rate.

Callbacks are always invoked on the event loop thread.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import cv2
from pydantic import BaseModel, ConfigDict, Field

from productscan.config import Settings
from productscan.core.exceptions import (
    CaptureActiveError,
    CaptureError,
    CaptureStartError,
    NoCameraError,
    PermissionDeniedError,
)
from productscan.scanner.decoder import crop_detection_box, decode_frame, decode_image
from productscan.schemas.session import CameraInfo


# Module logger
logger = logging.getLogger(__name__)

DecodeCallback = Callable[[str], None]
FrameErrorCallback = Callable[[], None]
CameraSelector = Callable[[List[CameraInfo]], CameraInfo]


class CaptureConfig(BaseModel):
    """
    Sampling parameters handed to the engine on start.

    Attributes:
        fps: Frames sampled per second
        detection_box_size: Side of the square decode region, in pixels
        aspect_ratio: Preview aspect ratio requested from the camera
    """

    model_config = ConfigDict(frozen=True)

    fps: int = Field(default=10, ge=1, le=60)
    detection_box_size: int = Field(default=300, ge=50)
    aspect_ratio: float = Field(default=1.0, gt=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> CaptureConfig:
        return cls(
            fps=settings.capture_fps,
            detection_box_size=settings.detection_box_size,
            aspect_ratio=settings.capture_aspect_ratio,
        )

    @property
    def frame_interval(self) -> float:
        return 1.0 / self.fps

    def to_client(self) -> Dict[str, Any]:
        """Shape understood by browser-side QR readers."""
        return {
            "fps": self.fps,
            "qrbox": {
                "width": self.detection_box_size,
                "height": self.detection_box_size
            },
            "aspectRatio": self.aspect_ratio,
        }


def select_last_camera(cameras: List[CameraInfo]) -> CameraInfo:
    """
    Default camera policy: the last one enumerated.

    On phones this is usually the rear camera.
    """
    return cameras[-1]


def classify_capture_error(reason: str) -> CaptureError:
    """
    Map a camera error reported by the client to a capture error kind.

    Args:
        reason: Error name or message (e.g. "NotAllowedError: Permission denied")
    """
    text = (reason or "").lower()

    if "notallowed" in text or "permission" in text or "securityerror" in text:
        return PermissionDeniedError(details={"reason": reason})

    if "notfound" in text or "no camera" in text or "overconstrained" in text:
        return NoCameraError(details={"reason": reason})

    return CaptureStartError(details={"reason": reason})


class DecodeEngine(ABC):
    """Camera capture plus decoding, driven by the scan session."""

    def __init__(self) -> None:
        self._active = False
        self._config: Optional[CaptureConfig] = None
        self._camera: Optional[CameraInfo] = None
        self._on_decode: Optional[DecodeCallback] = None
        self._on_frame_error: Optional[FrameErrorCallback] = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def camera(self) -> Optional[CameraInfo]:
        return self._camera

    @property
    def config(self) -> Optional[CaptureConfig]:
        return self._config

    @abstractmethod
    async def enumerate_cameras(self) -> List[CameraInfo]:
        """
        List capturable cameras.

        Raises:
            CaptureError: Cameras could not be queried
        """

    async def start(
        self,
        camera: CameraInfo,
        config: CaptureConfig,
        on_decode: DecodeCallback,
        on_frame_error: FrameErrorCallback
    ) -> None:
        """
        Begin sampling frames from camera.

        Raises:
            CaptureActiveError: Already sampling
            CaptureError: The camera could not be opened
        """
        if self._active:
            raise CaptureActiveError()

        await self._open(camera, config)

        self._camera = camera
        self._config = config
        self._on_decode = on_decode
        self._on_frame_error = on_frame_error
        self._active = True

        self._after_start()
        logger.info(f"📷 Capture started: {camera.label or camera.id} @ {config.fps} fps")

    async def stop(self) -> None:
        """Stop sampling and release the camera."""
        if not self._active:
            return

        self._active = False
        try:
            await self._close()
        finally:
            self._on_decode = None
            self._on_frame_error = None
            logger.info("🛑 Capture stopped")

    @abstractmethod
    async def _open(self, camera: CameraInfo, config: CaptureConfig) -> None:
        ...

    @abstractmethod
    async def _close(self) -> None:
        ...

    def _after_start(self) -> None:
        pass

    def _emit(self, text: Optional[str]) -> None:
        if not self._active:
            return

        if text:
            if self._on_decode is not None:
                self._on_decode(text)
        elif self._on_frame_error is not None:
            self._on_frame_error()


class BrowserFrameEngine(DecodeEngine):
    """
    Engine fed by a browser over the scan WebSocket.

    Example:
        >>> engine = BrowserFrameEngine()
        >>> engine.announce_cameras([CameraInfo(id="cam-1", label="Back")])
        >>> await engine.start(camera, config, on_decode, on_frame_error)
        >>> await engine.submit_frame(jpeg_bytes)
    """

    def __init__(self, decoder: Callable[[bytes, Optional[int]], Optional[str]] = decode_frame) -> None:
        super().__init__()
        self._decoder = decoder
        self._cameras: List[CameraInfo] = []
        self._camera_error: Optional[str] = None
        self._last_frame_at = 0.0
        self._decoding = False

    def announce_cameras(self, cameras: List[CameraInfo], error: Optional[str] = None) -> None:
        """Record what the browser reported when it queried its cameras."""
        self._cameras = list(cameras)
        self._camera_error = error

    async def enumerate_cameras(self) -> List[CameraInfo]:
        if self._camera_error:
            raise classify_capture_error(self._camera_error)
        return list(self._cameras)

    async def _open(self, camera: CameraInfo, config: CaptureConfig) -> None:
        if self._camera_error:
            raise classify_capture_error(self._camera_error)
        self._last_frame_at = 0.0

    async def _close(self) -> None:
        self._last_frame_at = 0.0

    async def submit_frame(self, data: bytes) -> None:
        """
        Decode one frame pushed by the browser.

        Frames arriving faster than the sampling rate, or while the previous
        frame is still being decoded, are dropped.
        """
        if not self._active or self._config is None:
            return

        now = time.monotonic()
        if self._decoding or now - self._last_frame_at < self._config.frame_interval:
            return

        self._last_frame_at = now
        self._decoding = True
        try:
            text = await asyncio.to_thread(self._decoder, data, self._config.detection_box_size)
        except Exception as e:
            logger.debug(f"Frame decode failed: {e}")
            text = None
        finally:
            self._decoding = False

        self._emit(text)

    def submit_decoded(self, text: str) -> None:
        """Forward text the browser already decoded."""
        if self._active and self._on_decode is not None:
            self._on_decode(text)


class DeviceCameraEngine(DecodeEngine):
    """
    Engine reading a camera attached to the server.

    Cameras are OpenCV device indices; the first probe_limit indices are
    tried during enumeration.
    """

    def __init__(self, probe_limit: int = 5) -> None:
        super().__init__()
        self._probe_limit = probe_limit
        self._cap = None
        self._task: Optional[asyncio.Task] = None

    async def enumerate_cameras(self) -> List[CameraInfo]:
        return await asyncio.to_thread(self._probe)

    def _probe(self) -> List[CameraInfo]:
        cameras = []

        for index in range(self._probe_limit):
            cap = cv2.VideoCapture(index)
            try:
                if cap.isOpened():
                    cameras.append(CameraInfo(id=str(index), label=f"Camera {index}"))
            finally:
                cap.release()

        logger.debug(f"Probed {self._probe_limit} devices, found {len(cameras)} cameras")
        return cameras

    async def _open(self, camera: CameraInfo, config: CaptureConfig) -> None:
        try:
            index = int(camera.id)
        except ValueError:
            raise NoCameraError(details={"camera": camera.id})

        cap = await asyncio.to_thread(cv2.VideoCapture, index)

        if not cap.isOpened():
            cap.release()
            logger.error(f"Cannot open camera {index}")
            raise CaptureStartError(details={"camera": camera.id})

        cap.set(cv2.CAP_PROP_FPS, config.fps)
        self._cap = cap

    def _after_start(self) -> None:
        self._task = asyncio.create_task(self._sample_loop())
        self._task.add_done_callback(self._sampling_ended)

    def _sampling_ended(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return

        logger.error(f"Sampling loop failed, releasing camera: {task.exception()}")
        self._active = False
        self._on_decode = None
        self._on_frame_error = None

        cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()

    async def _close(self) -> None:
        task, self._task = self._task, None

        # The loop exits after its current read once _active is cleared
        if task is not None and not task.done():
            try:
                await task
            except Exception as e:
                logger.warning(f"Sampling loop ended with error: {e}")

        cap, self._cap = self._cap, None
        if cap is not None:
            await asyncio.to_thread(cap.release)

    async def _sample_loop(self) -> None:
        interval = self._config.frame_interval
        box_size = self._config.detection_box_size

        while self._active:
            started = time.monotonic()

            ok, frame = await asyncio.to_thread(self._cap.read)

            if not ok:
                logger.warning("Failed to read frame")
                self._emit(None)
            else:
                payloads = await asyncio.to_thread(
                    decode_image, crop_detection_box(frame, box_size)
                )
                self._emit(payloads[0] if payloads else None)

            await asyncio.sleep(max(0.0, interval - (time.monotonic() - started)))


def create_engine(settings: Settings) -> DecodeEngine:
    """Engine for the configured capture backend."""
    if settings.capture_backend == "device":
        return DeviceCameraEngine(probe_limit=settings.camera_probe_limit)
    return BrowserFrameEngine()
