#!/usr/bin/env python3
"""
Simple script to analyze generated images and debug background removal.

Usage: python debug_background.py IMAGE [IMAGE ...]
"""

import sys
import cv2
import numpy as np
from pathlib import Path

from region_edit.background import (
    DEFAULT_BRIGHTNESS_THRESHOLD,
    DEFAULT_DISTANCE_THRESHOLD,
    FLOOD_FILL_METHOD,
    THRESHOLD_METHOD,
    normalize_background,
)
from region_edit.imaging import decode_rgba


def analyze_image(image_path: Path):
    """Print how much of an image looks like a white background."""
    print(f"\n=== Analyzing {image_path.name} ===")

    image = cv2.imread(str(image_path), cv2.IMREAD_COLOR)
    if image is None:
        print(f"Failed to load: {image_path}")
        return None

    h, w = image.shape[:2]
    print(f"Dimensions: {w}x{h} ({w*h} pixels)")

    diff = 255 - image.astype(np.int32)
    distance = np.sqrt((diff * diff).sum(axis=2))
    print(f"Mean distance to white: {np.mean(distance):.1f}")

    border = np.concatenate([distance[0], distance[-1], distance[:, 0], distance[:, -1]])
    near_white = border <= DEFAULT_DISTANCE_THRESHOLD
    print(f"Border pixels near white: {near_white.mean() * 100:.1f}%")

    bright = np.all(image > DEFAULT_BRIGHTNESS_THRESHOLD, axis=2)
    print(f"Pixels above brightness threshold: {bright.mean() * 100:.1f}%")

    return image


def compare_methods(image_path: Path):
    """Run both background methods and write their results next to the image."""
    print(f"\n=== Removing background from {image_path.name} ===")
    image_bytes = image_path.read_bytes()

    for method, thresholds in [
        (THRESHOLD_METHOD, [220, DEFAULT_BRIGHTNESS_THRESHOLD, 250]),
        (FLOOD_FILL_METHOD, [15, DEFAULT_DISTANCE_THRESHOLD, 60]),
    ]:
        for threshold in thresholds:
            try:
                png = normalize_background(image_bytes, method, threshold)
            except Exception as e:
                print(f"  {method} ({threshold}) failed: {e}")
                continue

            alpha = decode_rgba(png)[:, :, 3]
            cleared = np.sum(alpha == 0) / alpha.size
            out_path = image_path.with_name(f"{image_path.stem}-{method}-{threshold}.png")
            out_path.write_bytes(png)
            print(f"  {method} ({threshold}): {cleared * 100:.1f}% transparent -> {out_path.name}")


def main():
    """Main analysis function."""
    paths = [Path(arg) for arg in sys.argv[1:]]
    if not paths:
        print(__doc__)
        return 1

    print("BACKGROUND ANALYSIS")
    print("=" * 50)

    for path in paths:
        if analyze_image(path) is not None:
            compare_methods(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
