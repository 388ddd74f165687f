"""
==============================================================================
Scanner Package - Scan Sessions
==============================================================================

Camera capture, barcode decoding and the per-connection scan session.

Classes:
--------
- DecodeEngine: BrowserFrameEngine, DeviceCameraEngine
- ScanSessionController: Status state machine and lookup orchestration
- ScannerPanel: "Manage Scanners" view state

==============================================================================
"""

from .decoder import crop_detection_box, decode_frame, decode_image
from .engine import (
    BrowserFrameEngine,
    CaptureConfig,
    DecodeEngine,
    DeviceCameraEngine,
    classify_capture_error,
    create_engine,
    select_last_camera,
)
from .session import ScanSessionController, SessionTimings
from .panel import ScannerPanel

__all__ = [
    "crop_detection_box",
    "decode_frame",
    "decode_image",
    "BrowserFrameEngine",
    "CaptureConfig",
    "DecodeEngine",
    "DeviceCameraEngine",
    "classify_capture_error",
    "create_engine",
    "select_last_camera",
    "ScanSessionController",
    "SessionTimings",
    "ScannerPanel",
]
