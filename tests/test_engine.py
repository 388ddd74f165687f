"""
==============================================================================
Decode Engine Tests
==============================================================================
"""

import asyncio
import unittest
from unittest.mock import patch

import numpy as np
import pytest

from productscan.core.exceptions import (
    CaptureActiveError,
    CaptureStartError,
    NoCameraError,
    PermissionDeniedError,
)
from productscan.scanner.decoder import crop_detection_box, decode_frame
from productscan.scanner.engine import (
    BrowserFrameEngine,
    CaptureConfig,
    DeviceCameraEngine,
    classify_capture_error,
    create_engine,
    select_last_camera,
)
from productscan.config import Settings
from productscan.schemas.session import CameraInfo


CAMERAS = [CameraInfo(id="cam-front", label="Front"), CameraInfo(id="cam-back", label="Back")]


# ============================================================================
# CONFIG AND HELPERS
# ============================================================================

class TestCaptureConfig:

    def test_defaults(self):
        config = CaptureConfig()

        assert config.fps == 10
        assert config.detection_box_size == 300
        assert config.aspect_ratio == 1.0
        assert config.frame_interval == pytest.approx(0.1)

    def test_client_shape(self):
        assert CaptureConfig(fps=5, detection_box_size=250).to_client() == {
            "fps": 5,
            "qrbox": {"width": 250, "height": 250},
            "aspectRatio": 1.0,
        }

    def test_from_settings(self):
        settings = Settings(capture_fps=15, detection_box_size=200, capture_aspect_ratio=1.5)
        config = CaptureConfig.from_settings(settings)

        assert (config.fps, config.detection_box_size, config.aspect_ratio) == (15, 200, 1.5)

    def test_create_engine_by_backend(self):
        assert isinstance(create_engine(Settings(capture_backend="browser")), BrowserFrameEngine)
        assert isinstance(create_engine(Settings(capture_backend="device")), DeviceCameraEngine)


class TestCameraSelection:

    def test_last_camera_is_selected(self):
        assert select_last_camera(CAMERAS).id == "cam-back"

    @pytest.mark.parametrize("reason,kind", [
        ("NotAllowedError: Permission denied", PermissionDeniedError),
        ("SecurityError", PermissionDeniedError),
        ("NotFoundError: Requested device not found", NoCameraError),
        ("OverconstrainedError", NoCameraError),
        ("NotReadableError: Could not start video source", CaptureStartError),
    ])
    def test_classify_capture_error(self, reason, kind):
        error = classify_capture_error(reason)

        assert type(error) is kind
        assert error.details == {"reason": reason}


class TestDecoder:

    def test_crop_centres_box(self):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        frame[240, 320] = 255

        cropped = crop_detection_box(frame, 300)

        assert cropped.shape == (300, 300, 3)
        assert cropped[150, 150].tolist() == [255, 255, 255]

    def test_crop_smaller_frame_is_unchanged(self):
        frame = np.zeros((200, 100, 3), dtype=np.uint8)
        assert crop_detection_box(frame, 300).shape == (200, 100, 3)

    def test_empty_frame(self):
        assert decode_frame(b"") is None

    def test_unreadable_frame(self):
        assert decode_frame(b"definitely not a jpeg", 300) is None


# ============================================================================
# BROWSER ENGINE
# ============================================================================

class TestBrowserFrameEngine(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.frames = []
        self.results = {}
        self.engine = BrowserFrameEngine(decoder=self.fake_decoder)
        self.decoded = []
        self.frame_errors = 0

    def fake_decoder(self, data, box_size):
        self.frames.append((data, box_size))
        return self.results.get(data)

    def on_decode(self, text):
        self.decoded.append(text)

    def on_frame_error(self):
        self.frame_errors += 1

    async def start(self, fps=10):
        self.engine.announce_cameras(CAMERAS)
        cameras = await self.engine.enumerate_cameras()
        await self.engine.start(
            select_last_camera(cameras),
            CaptureConfig(fps=fps),
            self.on_decode,
            self.on_frame_error
        )

    async def test_start_and_stop(self):
        await self.start()

        self.assertTrue(self.engine.is_active)
        self.assertEqual(self.engine.camera.id, "cam-back")

        await self.engine.stop()
        self.assertFalse(self.engine.is_active)

        await self.engine.stop()

    async def test_start_twice_raises(self):
        await self.start()

        with self.assertRaises(CaptureActiveError):
            await self.start()

    async def test_announced_error_is_raised(self):
        self.engine.announce_cameras([], error="NotAllowedError: Permission denied")

        with self.assertRaises(PermissionDeniedError):
            await self.engine.enumerate_cameras()

        with self.assertRaises(PermissionDeniedError):
            await self.engine.start(CAMERAS[0], CaptureConfig(), self.on_decode, self.on_frame_error)

        self.assertFalse(self.engine.is_active)

    async def test_frames_are_decoded_in_detection_box(self):
        self.results[b"frame-1"] = "SN-001"
        await self.start()

        await self.engine.submit_frame(b"frame-1")

        self.assertEqual(self.frames, [(b"frame-1", 300)])
        self.assertEqual(self.decoded, ["SN-001"])

    async def test_unreadable_frame_reports_frame_error(self):
        await self.start()

        await self.engine.submit_frame(b"blurry")

        self.assertEqual(self.decoded, [])
        self.assertEqual(self.frame_errors, 1)

    async def test_frames_faster_than_sampling_rate_are_dropped(self):
        await self.start(fps=2)

        await self.engine.submit_frame(b"a")
        await self.engine.submit_frame(b"b")

        self.assertEqual([data for data, _ in self.frames], [b"a"])

    async def test_decoder_failure_counts_as_frame_error(self):
        def broken(data, box_size):
            raise RuntimeError("zbar unavailable")

        self.engine = BrowserFrameEngine(decoder=broken)
        await self.start()

        await self.engine.submit_frame(b"frame")

        self.assertEqual(self.frame_errors, 1)

    async def test_frames_before_start_are_ignored(self):
        await self.engine.submit_frame(b"frame")
        self.engine.submit_decoded("SN-001")

        self.assertEqual(self.frames, [])
        self.assertEqual(self.decoded, [])

    async def test_client_decoded_text_is_forwarded(self):
        await self.start()

        self.engine.submit_decoded("SN-002")

        self.assertEqual(self.decoded, ["SN-002"])

    async def test_no_callbacks_after_stop(self):
        self.results[b"late"] = "SN-001"
        await self.start()
        await self.engine.stop()

        await self.engine.submit_frame(b"late")
        await asyncio.sleep(0)

        self.assertEqual(self.decoded, [])


# ============================================================================
# DEVICE ENGINE
# ============================================================================

class FakeCapture:
    """Stands in for cv2.VideoCapture."""

    def __init__(self, read_error=None):
        self.read_error = read_error
        self.released = 0
        self.reads = 0

    def isOpened(self):
        return True

    def set(self, prop, value):
        return True

    def read(self):
        self.reads += 1
        if self.read_error:
            raise self.read_error
        return False, None

    def release(self):
        self.released += 1


class TestDeviceCameraEngine(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.frame_errors = 0
        self.engine = DeviceCameraEngine(probe_limit=1)

    def on_frame_error(self):
        self.frame_errors += 1

    async def start(self, capture):
        with patch("productscan.scanner.engine.cv2.VideoCapture", return_value=capture):
            await self.engine.start(
                CameraInfo(id="0", label="Camera 0"),
                CaptureConfig(fps=50),
                lambda text: None,
                self.on_frame_error
            )

    async def test_unreadable_frames_report_frame_errors(self):
        capture = FakeCapture()
        await self.start(capture)

        await asyncio.sleep(0.1)
        await self.engine.stop()

        self.assertGreater(self.frame_errors, 0)
        self.assertFalse(self.engine.is_active)
        self.assertEqual(capture.released, 1)

    async def test_failed_sampling_loop_releases_camera(self):
        capture = FakeCapture(read_error=RuntimeError("device unplugged"))
        await self.start(capture)

        await asyncio.sleep(0.05)

        self.assertFalse(self.engine.is_active)
        self.assertEqual(capture.released, 1)
        self.assertEqual(capture.reads, 1)

        await self.engine.stop()
        self.assertEqual(capture.released, 1)

    async def test_non_numeric_camera_id(self):
        with self.assertRaises(NoCameraError):
            await self.engine.start(
                CameraInfo(id="front"), CaptureConfig(), lambda text: None, self.on_frame_error
            )


if __name__ == "__main__":
    unittest.main()
