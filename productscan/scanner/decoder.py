"""
==============================================================================
Frame Decoder Module
==============================================================================

Barcode/QR decoding of camera frames with OpenCV and pyzbar.

Pipeline:
---------
    JPEG bytes ──▶ cv2.imdecode ──▶ crop detection box ──▶ pyzbar.decode
                                                              │
                                                 first payload (utf-8) or None

Only the centred square detection box is decoded, matching what the
operator sees framed on screen.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np


# Module logger
logger = logging.getLogger(__name__)


def crop_detection_box(frame: np.ndarray, box_size: int) -> np.ndarray:
    """
    Centre-crop the frame to a square of box_size pixels.

    Frames smaller than the box are returned unchanged along that axis.
    """
    height, width = frame.shape[:2]
    side_h = min(box_size, height)
    side_w = min(box_size, width)

    top = (height - side_h) // 2
    left = (width - side_w) // 2

    return frame[top:top + side_h, left:left + side_w]


def decode_image(frame: Optional[np.ndarray]) -> List[str]:
    """
    Decode every symbol in an image.

    Args:
        frame: OpenCV image (numpy array)

    Returns:
        Decoded payloads in detection order; empty when nothing was found
        or the frame is unusable
    """
    if frame is None or frame.size == 0:
        return []

    # Loaded here so zbar is only required once frames are actually decoded
    from pyzbar.pyzbar import decode

    try:
        barcodes = decode(frame)
    except Exception as e:
        logger.error(f"Decode error: {e}")
        return []

    payloads = []

    for barcode in barcodes:
        try:
            payloads.append(barcode.data.decode("utf-8"))
        except UnicodeDecodeError as e:
            logger.debug(f"Skipping non-utf8 {barcode.type} payload: {e}")

    return payloads


def decode_frame(data: bytes, box_size: Optional[int] = None) -> Optional[str]:
    """
    Decode one encoded camera frame (JPEG/PNG bytes).

    Args:
        data: Encoded image bytes
        box_size: Detection box side in pixels, None for the whole frame

    Returns:
        First decoded payload, or None
    """
    if not data:
        return None

    nparr = np.frombuffer(data, np.uint8)
    frame = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if frame is None:
        logger.debug("Frame could not be decoded as an image")
        return None

    if box_size:
        frame = crop_detection_box(frame, box_size)

    payloads = decode_image(frame)
    return payloads[0] if payloads else None
