"""
Tests for background normalization and the image codecs it relies on.
"""

import base64

import cv2
import numpy as np
import pytest

from conftest import make_png
from region_edit.background import (
    FLOOD_FILL_METHOD,
    THRESHOLD_METHOD,
    flood_fill_background,
    normalize_background,
    threshold_background,
)
from region_edit.errors import DecodeError
from region_edit.imaging import (
    b64decode_image,
    decode_rgba,
    image_size,
    sniff_mime_type,
    strip_data_url,
    to_data_url,
)


def framed_island(size=10, island=((4, 6), (4, 6)), island_color=(0, 0, 0, 255)):
    """White image with a coloured block in the middle."""
    rgba = np.full((size, size, 4), 255, dtype=np.uint8)
    (y0, y1), (x0, x1) = island
    rgba[y0:y1, x0:x1] = island_color
    return rgba


def png_of(rgba):
    success, encoded = cv2.imencode(".png", cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))
    assert success
    return encoded.tobytes()


class TestFloodFill:
    """Test cases for the edge-seeded flood fill."""

    def test_all_white_becomes_transparent(self):
        result = decode_rgba(flood_fill_background(make_png(10, 10)))
        assert result.shape == (10, 10, 4)
        assert (result[:, :, 3] == 0).all()

    def test_dark_island_kept(self):
        """A dark block surrounded by white keeps full opacity."""
        result = decode_rgba(flood_fill_background(png_of(framed_island())))

        assert (result[4:6, 4:6, 3] == 255).all()
        assert (result[0, :, 3] == 0).all()
        assert result[:, :, 3].sum() == 4 * 255

    def test_enclosed_white_kept(self):
        """White pixels fully enclosed by the subject are not background."""
        rgba = np.full((9, 9, 4), 255, dtype=np.uint8)
        rgba[2:7, 2:7] = (0, 0, 0, 255)
        rgba[4, 4] = (255, 255, 255, 255)

        result = decode_rgba(flood_fill_background(png_of(rgba)))
        assert result[4, 4, 3] == 255
        assert result[0, 0, 3] == 0

    def test_near_white_within_threshold(self):
        rgba = np.full((6, 6, 4), 240, dtype=np.uint8)
        rgba[:, :, 3] = 255

        # distance to white is sqrt(3 * 15^2) ~ 26
        assert (decode_rgba(flood_fill_background(png_of(rgba), 30))[:, :, 3] == 0).all()
        assert (decode_rgba(flood_fill_background(png_of(rgba), 20))[:, :, 3] == 255).all()

    def test_transparent_border_counts_as_background(self):
        rgba = np.zeros((6, 6, 4), dtype=np.uint8)
        rgba[:, :, 3] = 5
        result = decode_rgba(flood_fill_background(png_of(rgba)))
        assert (result[:, :, 3] == 0).all()

    def test_colour_channels_untouched(self):
        result = decode_rgba(flood_fill_background(png_of(framed_island(island_color=(10, 200, 30, 255)))))
        assert tuple(result[5, 5]) == (10, 200, 30, 255)


class TestThreshold:
    """Test cases for brightness thresholding."""

    def test_clears_interior_white(self):
        """Unlike the flood fill, thresholding also clears enclosed whites."""
        rgba = np.full((9, 9, 4), 255, dtype=np.uint8)
        rgba[2:7, 2:7] = (0, 0, 0, 255)
        rgba[4, 4] = (255, 255, 255, 255)

        result = decode_rgba(threshold_background(png_of(rgba)))
        assert result[4, 4, 3] == 0
        assert result[3, 3, 3] == 255

    def test_threshold_is_strict(self):
        rgba = np.full((4, 4, 4), 240, dtype=np.uint8)
        rgba[:, :, 3] = 255
        assert (decode_rgba(threshold_background(png_of(rgba), 240))[:, :, 3] == 255).all()
        assert (decode_rgba(threshold_background(png_of(rgba), 239))[:, :, 3] == 0).all()


class TestNormalizeBackground:
    """Test cases for method dispatch."""

    def test_dispatch(self):
        image = png_of(framed_island())
        assert normalize_background(image, FLOOD_FILL_METHOD) == flood_fill_background(image)
        assert normalize_background(image, THRESHOLD_METHOD) == threshold_background(image)

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            normalize_background(make_png(), "magic_wand")

    def test_undecodable_bytes(self):
        with pytest.raises(DecodeError):
            normalize_background(b"not an image")

    def test_output_is_png(self):
        assert normalize_background(make_png()).startswith(b"\x89PNG\r\n\x1a\n")


class TestImaging:
    """Test cases for the base64 and data URL helpers."""

    def test_strip_data_url(self):
        assert strip_data_url("data:image/png;base64,AAAA") == "AAAA"
        assert strip_data_url("  AAAA ") == "AAAA"

    def test_b64decode_invalid(self):
        with pytest.raises(DecodeError):
            b64decode_image("data:image/png;base64,!!!not-base64!!!")

    def test_to_data_url_reencodes_png(self):
        data_url = to_data_url(make_png(3, 2))
        assert data_url.startswith("data:image/png;base64,")
        assert image_size(base64.b64decode(data_url.split(",", 1)[1])) == (3, 2)

    def test_to_data_url_invalid(self):
        with pytest.raises(DecodeError):
            to_data_url(b"garbage")

    def test_sniff_mime_type(self):
        assert sniff_mime_type(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
        assert sniff_mime_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
        assert sniff_mime_type(make_png()) == "image/png"

    def test_decode_rgba_from_rgb(self):
        bgr = np.zeros((2, 2, 3), dtype=np.uint8)
        bgr[:, :] = (255, 0, 0)
        _, encoded = cv2.imencode(".png", bgr)
        rgba = decode_rgba(encoded.tobytes())
        assert tuple(rgba[0, 0]) == (0, 0, 255, 255)


if __name__ == "__main__":
    pytest.main([__file__])
