"""
Drag-to-select interaction on the live scene.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple

from region_edit.geometry import MIN_SELECTION_SIZE, Rectangle
from region_edit.host import InteractionSurface

logger = logging.getLogger(__name__)


class SelectionState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class SelectionController:
    """
    Idle -> Dragging -> Idle state machine driven by pointer events.

    A finished drag at least ``min_size`` in both directions deactivates the
    controller and is handed to ``on_selection``. Smaller drags are dropped
    and the controller stays active for another attempt.
    """

    def __init__(
        self,
        surface: InteractionSurface,
        on_selection: Callable[[Rectangle], Awaitable[Any]],
        min_size: float = MIN_SELECTION_SIZE,
    ):
        self.surface = surface
        self.on_selection = on_selection
        self.min_size = min_size
        self.active = False
        self.state = SelectionState.IDLE
        self._overlay = None
        self._anchor: Optional[Tuple[float, float]] = None

    def activate(self) -> bool:
        """Start listening; activating an active controller turns it off instead."""
        if self.active:
            self.deactivate()
            return False

        self._overlay = self.surface.attach_overlay({
            "pointerdown": self.pointer_down,
            "pointermove": self.pointer_move,
            "pointerup": self.pointer_up,
            "pointerupoutside": self.pointer_up,
        })
        self.active = True
        self.state = SelectionState.IDLE
        logger.info("Selection mode activated")
        return True

    def deactivate(self) -> None:
        if not self.active:
            return
        self.active = False
        self.state = SelectionState.IDLE
        self._anchor = None

        overlay, self._overlay = self._overlay, None
        if overlay is not None:
            # The host may still be dispatching to the overlay; only remove it
            # once nothing references it and the frame is over.
            self.surface.detach_listeners(overlay)
            self.surface.purge_references(overlay)
            self.surface.call_on_next_frame(lambda: self.surface.remove_overlay(overlay))
        logger.info("Selection mode deactivated")

    def toggle(self) -> bool:
        if self.active:
            self.deactivate()
            return False
        return self.activate()

    def pointer_down(self, x: float, y: float) -> None:
        if not self.active:
            return
        self._anchor = (x, y)
        self.state = SelectionState.DRAGGING
        self.surface.clear_selection(self._overlay)

    def pointer_move(self, x: float, y: float) -> None:
        if self.state is not SelectionState.DRAGGING:
            return
        rect = Rectangle.from_corners(self._anchor, (x, y), self.surface.coordinate_space)
        self.surface.draw_selection(self._overlay, rect)

    async def pointer_up(self, x: float, y: float) -> Optional[Rectangle]:
        """Finish the drag; returns the rectangle handed on, if any."""
        if self.state is not SelectionState.DRAGGING:
            return None

        rect = Rectangle.from_corners(self._anchor, (x, y), self.surface.coordinate_space)
        self._anchor = None
        self.state = SelectionState.IDLE
        self.surface.clear_selection(self._overlay)

        if not rect.is_selection(self.min_size):
            logger.debug(f"Ignoring {rect.width:.0f}x{rect.height:.0f} selection below minimum size")
            return None

        self.deactivate()
        await self.on_selection(rect)
        return rect
