"""
Background normalization for generated images.

Two algorithms make a uniform white background transparent so a generated
token or portrait can sit on top of the map:

* thresholding clears every pixel brighter than a threshold, including white
  regions inside the subject;
* the edge-seeded flood fill only clears white pixels connected to the image
  border, so interior whites (clothing, highlights) are kept.
"""

import logging
from typing import Optional

import numpy as np

from region_edit.imaging import decode_rgba, encode_png

logger = logging.getLogger(__name__)

THRESHOLD_METHOD = "threshold"
FLOOD_FILL_METHOD = "flood_fill"
METHODS = (THRESHOLD_METHOD, FLOOD_FILL_METHOD)

DEFAULT_BRIGHTNESS_THRESHOLD = 240
DEFAULT_DISTANCE_THRESHOLD = 30
# Pixels this transparent already count as background.
TRANSPARENT_ALPHA = 10


def threshold_background(image_bytes: bytes, threshold: int = DEFAULT_BRIGHTNESS_THRESHOLD) -> bytes:
    """Clear alpha wherever R, G and B all exceed ``threshold``."""
    rgba = decode_rgba(image_bytes)

    bright = np.all(rgba[:, :, :3] > threshold, axis=2)
    rgba[bright, 3] = 0

    logger.debug(f"Threshold background removal cleared {int(bright.sum())} pixels")
    return encode_png(rgba)


def flood_fill_background(image_bytes: bytes, threshold: int = DEFAULT_DISTANCE_THRESHOLD) -> bytes:
    """
    Clear the white background reachable from the image border.

    Args:
        image_bytes: Encoded source image
        threshold: Maximum RGB distance to pure white (0-441) for a pixel to
            count as background

    Returns:
        PNG bytes with the border-connected background made transparent
    """
    rgba = decode_rgba(image_bytes)
    h, w = rgba.shape[:2]

    # Squared distance avoids a square root per pixel
    diff = 255 - rgba[:, :, :3].astype(np.int32)
    distance_sq = (diff * diff).sum(axis=2)
    whitish = ((rgba[:, :, 3] < TRANSPARENT_ALPHA) | (distance_sq <= threshold * threshold))
    candidate = bytearray(whitish.astype(np.uint8).ravel().tobytes())

    visited = bytearray(w * h)
    queue = []

    def seed(idx: int) -> None:
        if not visited[idx] and candidate[idx]:
            visited[idx] = 1
            queue.append(idx)

    for x in range(w):
        seed(x)
        seed((h - 1) * w + x)
    for y in range(1, h - 1):
        seed(y * w)
        seed(y * w + w - 1)

    head = 0
    while head < len(queue):
        idx = queue[head]
        head += 1
        x = idx % w

        if x > 0:
            seed(idx - 1)
        if x < w - 1:
            seed(idx + 1)
        if idx >= w:
            seed(idx - w)
        if idx < (h - 1) * w:
            seed(idx + w)

    background = np.frombuffer(bytes(visited), dtype=np.uint8).reshape(h, w).astype(bool)
    rgba[background, 3] = 0

    logger.debug(f"Flood fill background removal cleared {len(queue)} of {w * h} pixels")
    return encode_png(rgba)


def normalize_background(
    image_bytes: bytes,
    method: str = FLOOD_FILL_METHOD,
    threshold: Optional[int] = None,
) -> bytes:
    """Run the named background removal algorithm."""
    if method == FLOOD_FILL_METHOD:
        return flood_fill_background(
            image_bytes, DEFAULT_DISTANCE_THRESHOLD if threshold is None else threshold
        )
    if method == THRESHOLD_METHOD:
        return threshold_background(
            image_bytes, DEFAULT_BRIGHTNESS_THRESHOLD if threshold is None else threshold
        )
    raise ValueError(f"Unknown background removal method: {method}")


__all__ = [
    "FLOOD_FILL_METHOD",
    "METHODS",
    "THRESHOLD_METHOD",
    "flood_fill_background",
    "normalize_background",
    "threshold_background",
]
