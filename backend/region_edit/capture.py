"""
Region capture from the live scene.

Capture strategies are tried from cheapest to most expensive. Each strategy
either returns an RGBA array of the requested region or raises; the engine
logs the failure and moves on to the next one.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import cv2
import numpy as np

from region_edit.errors import CaptureUnavailable
from region_edit.geometry import CoordinateSpace, Rectangle, scene_to_device
from region_edit.host import SceneLayers, SceneRenderer
from region_edit.imaging import DATA_URL_PREFIX, encode_png

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapturedImage:
    """PNG bytes of a captured region."""

    png: bytes
    width: int
    height: int
    strategy: str = ""

    def to_base64(self) -> str:
        return base64.b64encode(self.png).decode("utf-8")

    def to_data_url(self) -> str:
        return DATA_URL_PREFIX + self.to_base64()


def _fit(pixels: Any, width: int, height: int) -> np.ndarray:
    """Validate an RGBA buffer and scale it to the output size."""
    arr = np.asarray(pixels)
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise ValueError(f"Expected an RGBA buffer, got shape {arr.shape}")
    if arr.dtype != np.uint8:
        arr = arr.astype(np.uint8)
    if arr.shape[:2] != (height, width):
        arr = cv2.resize(arr, (width, height), interpolation=cv2.INTER_AREA)
    return arr


def layer_render_order(layers: SceneLayers) -> List[Any]:
    """
    Display objects that make up the scene, back to front.

    Hidden placeables are skipped. Interface drawings always go last so they
    sit above tokens.
    """
    def visible(placeables, interface=None):
        nodes = []
        for placeable in placeables:
            if getattr(placeable, "hidden", False):
                continue
            if interface is not None and bool(getattr(placeable, "interface", False)) != interface:
                continue
            display = getattr(placeable, "display", None)
            if display is not None:
                nodes.append(display)
        return nodes

    order = []
    if layers.hidden is not None:
        order.append(layers.hidden)
    if layers.background is not None:
        order.append(layers.background)
    order.extend(visible(layers.tiles))
    order.extend(visible(layers.drawings, interface=False))
    if layers.visibility is not None:
        order.append(layers.visibility)
    if layers.grid is not None:
        order.append(layers.grid)
    order.extend(visible(layers.tokens))
    order.extend(visible(layers.drawings, interface=True))
    return order


class CaptureStrategy:
    name = ""

    def capture(self, renderer: SceneRenderer, rect: Rectangle, width: int, height: int) -> np.ndarray:
        raise NotImplementedError


class ReadbackStrategy(CaptureStrategy):
    """Read the composited surface back and crop the region out of it."""

    name = "readback"

    def capture(self, renderer, rect, width, height):
        device = scene_to_device(rect, renderer.transform())
        if device.width < 1 or device.height < 1:
            raise ValueError("Region maps to an empty device rectangle")

        renderer.render()
        buffer = np.asarray(renderer.read_pixels())
        buf_h, buf_w = buffer.shape[:2]

        x0, y0 = int(device.x), int(device.y)
        x1, y1 = x0 + int(device.width), y0 + int(device.height)
        if x0 < 0 or y0 < 0 or x1 > buf_w or y1 > buf_h:
            raise ValueError(
                f"Device region ({x0}, {y0}, {x1}, {y1}) is outside the {buf_w}x{buf_h} surface"
            )

        crop = buffer[y0:y1, x0:x1].copy()
        # A failed readback yields transparent black
        if not crop.any():
            raise ValueError("Readback returned a blank buffer")
        return _fit(crop, width, height)


class OffscreenRenderStrategy(CaptureStrategy):
    """Render the stage root into an offscreen texture with the region at the origin."""

    name = "offscreen"

    def capture(self, renderer, rect, width, height):
        root = renderer.stage
        old_position, old_scale = root.position, root.scale
        try:
            root.position = (-rect.x, -rect.y)
            root.scale = (1.0, 1.0)
            pixels = renderer.render_to_texture(root, width, height)
        finally:
            root.position = old_position
            root.scale = old_scale
        return _fit(pixels, width, height)


class LayerCompositeStrategy(CaptureStrategy):
    """
    Resize the renderer to the region and render every layer explicitly.

    Viewport culling skips anything off screen, so the output is resized to
    the capture size and the view centred on the region before each layer is
    drawn into one shared texture.
    """

    name = "layer_composite"

    def capture(self, renderer, rect, width, height):
        old_view = renderer.view_position()
        old_resolution = renderer.resolution
        old_stage_position = renderer.stage.position
        texture = None
        try:
            renderer.resolution = 1
            renderer.resize(width, height)
            renderer.stage.position = (width / 2, height / 2)
            renderer.pan(rect.x + width / 2, rect.y + height / 2, 1.0)
            renderer.update_transforms()

            texture = renderer.create_texture(width, height)
            for node in layer_render_order(renderer.scene_layers()):
                renderer.render_into(node, texture, clear=False)
            pixels = texture.read_pixels()
        finally:
            try:
                renderer.resolution = old_resolution
                renderer.reset_screen()
                renderer.stage.position = old_stage_position
                renderer.pan(old_view.x, old_view.y, old_view.scale)
            finally:
                if texture is not None:
                    try:
                        texture.destroy()
                    except Exception as e:
                        logger.warning(f"Could not release capture texture: {e}")
        return _fit(pixels, width, height)


DEFAULT_STRATEGIES = (ReadbackStrategy, OffscreenRenderStrategy, LayerCompositeStrategy)


class RegionCaptureEngine:
    """Captures scene-space rectangles from one renderer, one capture at a time."""

    def __init__(self, renderer: SceneRenderer, strategies: Optional[Sequence[CaptureStrategy]] = None):
        self.renderer = renderer
        self.strategies = list(strategies) if strategies is not None else [cls() for cls in DEFAULT_STRATEGIES]
        self._lock = asyncio.Lock()

    async def capture(self, rect: Rectangle) -> CapturedImage:
        """
        Capture a scene-space rectangle as PNG.

        Args:
            rect: Region to capture, in scene space

        Returns:
            CapturedImage at the rectangle's rounded size

        Raises:
            CaptureUnavailable: If every strategy failed
        """
        if rect.space is not CoordinateSpace.SCENE:
            raise ValueError(f"Capture expects a scene-space rectangle, got {rect.space.value}")
        width, height = rect.pixel_size()

        async with self._lock:
            await self.renderer.next_frame()

            failures = []
            for strategy in self.strategies:
                try:
                    pixels = strategy.capture(self.renderer, rect, width, height)
                except Exception as e:
                    logger.warning(f"Capture strategy '{strategy.name}' failed: {e}")
                    failures.append(f"{strategy.name}: {e}")
                    continue

                logger.info(f"Captured {width}x{height} region with '{strategy.name}' strategy")
                return CapturedImage(
                    png=encode_png(pixels), width=width, height=height, strategy=strategy.name
                )

        raise CaptureUnavailable("Failed to capture canvas region", "; ".join(failures) or None)

    async def capture_full_scene(self) -> CapturedImage:
        return await self.capture(self.renderer.scene_rect())
