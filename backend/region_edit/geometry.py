"""
Coordinate mapping between scene space and device-pixel space.

Scene space is the logical coordinate system of the edited world. Device-pixel
space is the raster buffer the renderer draws into, after pan, zoom and the
display's device-pixel ratio have been applied.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from region_edit.errors import InvalidTransform

MIN_SELECTION_SIZE = 10


class CoordinateSpace(str, Enum):
    SCENE = "scene"
    DEVICE = "device"


@dataclass(frozen=True)
class Rectangle:
    """An axis-aligned rectangle tagged with the space it lives in."""

    x: float
    y: float
    width: float
    height: float
    space: CoordinateSpace = CoordinateSpace.SCENE

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"Rectangle dimensions must be non-negative, got {self.width}x{self.height}"
            )

    @classmethod
    def from_corners(
        cls,
        start: Tuple[float, float],
        end: Tuple[float, float],
        space: CoordinateSpace = CoordinateSpace.SCENE,
    ) -> "Rectangle":
        """Build the canonical rectangle spanned by two corner points."""
        return cls(
            x=min(start[0], end[0]),
            y=min(start[1], end[1]),
            width=abs(end[0] - start[0]),
            height=abs(end[1] - start[1]),
            space=space,
        )

    def is_selection(self, min_size: float = MIN_SELECTION_SIZE) -> bool:
        return self.width >= min_size and self.height >= min_size

    def pixel_size(self) -> Tuple[int, int]:
        """Rounded output size, never smaller than one pixel."""
        return max(1, int(round(self.width))), max(1, int(round(self.height)))

    def rounded(self) -> "Rectangle":
        return Rectangle(
            x=round(self.x),
            y=round(self.y),
            width=round(self.width),
            height=round(self.height),
            space=self.space,
        )

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "space": self.space.value,
        }


@dataclass(frozen=True)
class TransformSnapshot:
    """Viewport pan, zoom and resolution read at the start of one operation."""

    scale_x: float = 1.0
    scale_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    resolution: Optional[float] = 1.0

    @classmethod
    def from_world_transform(
        cls,
        a: float,
        d: float,
        tx: float,
        ty: float,
        resolution: Optional[float] = None,
    ) -> "TransformSnapshot":
        """Snapshot from the diagonal and translation of a 2-D world transform."""
        return cls(scale_x=a, scale_y=d, offset_x=tx, offset_y=ty, resolution=resolution)

    @property
    def effective_resolution(self) -> float:
        return 1.0 if self.resolution is None else float(self.resolution)

    def validate(self) -> None:
        for name, value in (("scale.x", self.scale_x), ("scale.y", self.scale_y)):
            if not math.isfinite(value) or value == 0:
                raise InvalidTransform("Transform scale must be finite and non-zero", f"{name}={value}")
        resolution = self.effective_resolution
        if not math.isfinite(resolution) or resolution <= 0:
            raise InvalidTransform("Transform resolution must be positive", f"resolution={resolution}")


def scene_to_device(rect: Rectangle, transform: TransformSnapshot) -> Rectangle:
    """Map a scene-space rectangle onto the device-pixel buffer."""
    if rect.space is not CoordinateSpace.SCENE:
        raise ValueError(f"Expected a scene-space rectangle, got {rect.space.value}")
    transform.validate()
    res = transform.effective_resolution

    return Rectangle(
        x=round((rect.x * transform.scale_x + transform.offset_x) * res),
        y=round((rect.y * transform.scale_y + transform.offset_y) * res),
        width=round(abs(rect.width * transform.scale_x) * res),
        height=round(abs(rect.height * transform.scale_y) * res),
        space=CoordinateSpace.DEVICE,
    )


def device_to_scene(rect: Rectangle, transform: TransformSnapshot) -> Rectangle:
    """Inverse of :func:`scene_to_device`, without rounding."""
    if rect.space is not CoordinateSpace.DEVICE:
        raise ValueError(f"Expected a device-space rectangle, got {rect.space.value}")
    transform.validate()
    res = transform.effective_resolution

    return Rectangle(
        x=(rect.x / res - transform.offset_x) / transform.scale_x,
        y=(rect.y / res - transform.offset_y) / transform.scale_y,
        width=abs(rect.width / res / transform.scale_x),
        height=abs(rect.height / res / transform.scale_y),
        space=CoordinateSpace.SCENE,
    )
