"""
PNG, base64 and data URL helpers shared by capture, editing and placement.
"""

import base64
import binascii
import io
from typing import Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from region_edit.errors import DecodeError

DATA_URL_PREFIX = "data:image/png;base64,"


def strip_data_url(value: str) -> str:
    """Return the raw base64 payload of a data URL, or the value unchanged."""
    value = value.strip()
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


def b64decode_image(value: str) -> bytes:
    """Decode raw base64 or a data URL into image bytes."""
    try:
        return base64.b64decode(strip_data_url(value), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError("Invalid base64 image data", str(e))


def b64encode_image(image_bytes: bytes) -> str:
    return base64.b64encode(image_bytes).decode("utf-8")


def to_data_url(image_bytes: bytes) -> str:
    """Re-encode any readable image as PNG and wrap it in a data URL."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img_buffer = io.BytesIO()
        img.save(img_buffer, format="PNG")
    except (UnidentifiedImageError, OSError) as e:
        raise DecodeError("Failed to decode image data", str(e))
    return DATA_URL_PREFIX + b64encode_image(img_buffer.getvalue())


def image_size(image_bytes: bytes) -> Tuple[int, int]:
    """(width, height) of encoded image bytes."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        raise DecodeError("Failed to decode image data", str(e))


def sniff_mime_type(image_bytes: bytes) -> str:
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def decode_rgba(image_bytes: bytes) -> np.ndarray:
    """Decode image bytes into an RGBA uint8 array of shape (h, w, 4)."""
    nparr = np.frombuffer(image_bytes, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED) if nparr.size else None
    if image is None:
        raise DecodeError("Failed to decode image data")

    if image.dtype != np.uint8:
        image = cv2.convertScaleAbs(image, alpha=255.0 / 65535.0)

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)


def encode_png(rgba: np.ndarray) -> bytes:
    """Encode an RGBA uint8 array as PNG bytes."""
    bgra = cv2.cvtColor(np.ascontiguousarray(rgba, dtype=np.uint8), cv2.COLOR_RGBA2BGRA)
    success, img_encoded = cv2.imencode(".png", bgra)
    if not success:
        raise DecodeError("Failed to encode PNG")
    return img_encoded.tobytes()
