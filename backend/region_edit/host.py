"""Host application collaborators consumed by the region edit pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import numpy as np

from region_edit.geometry import CoordinateSpace, Rectangle, TransformSnapshot


@dataclass(frozen=True)
class ViewPosition:
    x: float
    y: float
    scale: float


@dataclass
class SceneLayers:
    """Renderable parts of the scene, each placeable exposing ``hidden`` and ``display``."""

    hidden: Any = None
    background: Any = None
    tiles: Sequence[Any] = ()
    drawings: Sequence[Any] = ()
    visibility: Any = None
    grid: Any = None
    tokens: Sequence[Any] = ()


class SceneNode(Protocol):
    position: Tuple[float, float]
    scale: Tuple[float, float]


class RenderTexture(Protocol):
    def read_pixels(self) -> np.ndarray:
        """RGBA uint8 array of shape (height, width, 4)."""

    def destroy(self) -> None:
        ...


class SceneRenderer(Protocol):
    """The live scene-graph renderer. Every method runs on the render thread."""

    resolution: Optional[float]
    stage: SceneNode

    async def next_frame(self) -> None:
        """Resume at the next frame boundary of the host."""

    def transform(self) -> TransformSnapshot:
        ...

    def scene_rect(self) -> Rectangle:
        """Full scene extent in scene space."""

    def render(self) -> None:
        """Force a full render pass of the live scene."""

    def read_pixels(self) -> np.ndarray:
        """RGBA contents of the rendering surface in device pixels."""

    def render_to_texture(self, node: SceneNode, width: int, height: int) -> np.ndarray:
        ...

    def create_texture(self, width: int, height: int) -> RenderTexture:
        ...

    def render_into(self, node: Any, texture: RenderTexture, clear: bool = False) -> None:
        ...

    def resize(self, width: int, height: int) -> None:
        ...

    def reset_screen(self) -> None:
        """Restore the output size from the host window."""

    def view_position(self) -> ViewPosition:
        ...

    def pan(self, x: float, y: float, scale: float) -> None:
        ...

    def update_transforms(self) -> None:
        ...

    def scene_layers(self) -> SceneLayers:
        ...


class InteractionSurface(Protocol):
    """Retained-mode layer that routes pointer events to an overlay."""

    coordinate_space: CoordinateSpace

    def attach_overlay(self, handlers: Mapping[str, Callable[..., Any]]) -> Any:
        ...

    def draw_selection(self, overlay: Any, rect: Rectangle) -> None:
        ...

    def clear_selection(self, overlay: Any) -> None:
        ...

    def detach_listeners(self, overlay: Any) -> None:
        ...

    def purge_references(self, overlay: Any) -> None:
        """Drop hover and hit-test bookkeeping that still points at ``overlay``."""

    def remove_overlay(self, overlay: Any) -> None:
        ...

    def call_on_next_frame(self, callback: Callable[[], None]) -> None:
        ...


class DocumentStore(Protocol):
    def active_scene_id(self) -> Optional[str]:
        ...

    async def create_tile(self, scene_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def list_tile_ids(self, scene_id: str) -> List[str]:
        ...

    async def delete_tiles(self, scene_id: str, tile_ids: Sequence[str]) -> None:
        ...

    async def update_scene(self, scene_id: str, changes: Dict[str, Any]) -> None:
        ...

    async def get_actor(self, actor_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def update_actor(self, actor_id: str, changes: Dict[str, Any]) -> None:
        ...

    async def list_token_ids(self, scene_id: str, actor_id: str) -> List[str]:
        ...

    async def update_token(self, scene_id: str, token_id: str, changes: Dict[str, Any]) -> None:
        ...


class FileStorage(Protocol):
    async def ensure_directory(self, path: str) -> None:
        ...

    async def upload(self, directory: str, filename: str, data: bytes) -> Optional[str]:
        """Store ``data`` and return its path, or None when refused."""

    async def list_directory(self, path: str) -> List[str]:
        ...

    async def read(self, path: str) -> bytes:
        ...


@dataclass(frozen=True)
class TokenExample:
    path: str
    name: str
    prompt: str = ""


@dataclass
class EditInstruction:
    """What the operator confirmed in the instruction dialog."""

    instruction: str
    options: Any = None
    remove_background: bool = False
    background_method: str = "flood_fill"
    background_threshold: Optional[int] = None
    # Indices into the offered token examples; None keeps all of them
    selected_examples: Optional[List[int]] = None


class EditDialog(Protocol):
    async def request_instruction(
        self,
        preview: bytes,
        title: str,
        examples: Sequence[TokenExample] = (),
    ) -> Optional[EditInstruction]:
        """Return the operator's instruction, or None when dismissed."""

    async def confirm(self, title: str, message: str) -> bool:
        ...


class Notifier(Protocol):
    def info(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...
