"""
Tests for the drag-to-select controller.
"""

import pytest

from conftest import FakeSurface
from region_edit.geometry import CoordinateSpace
from region_edit.selection import SelectionController, SelectionState


class Recorder:
    def __init__(self):
        self.rects = []

    async def __call__(self, rect):
        self.rects.append(rect)


@pytest.fixture
def recorder():
    return Recorder()


class TestSelectionController:
    """Test cases for SelectionController."""

    def test_activate_attaches_overlay(self, surface, recorder):
        controller = SelectionController(surface, recorder)
        assert controller.activate() is True
        assert controller.active
        assert set(surface.handlers) == {"pointerdown", "pointermove", "pointerup", "pointerupoutside"}

    def test_second_activation_toggles_off(self, surface, recorder):
        controller = SelectionController(surface, recorder)
        controller.activate()
        assert controller.activate() is False
        assert not controller.active

    def test_toggle(self, surface, recorder):
        controller = SelectionController(surface, recorder)
        assert controller.toggle() is True
        assert controller.toggle() is False
        assert surface.calls.count("attach_overlay") == 1

    def test_drag_draws_selection(self, surface, recorder):
        controller = SelectionController(surface, recorder)
        controller.activate()
        controller.pointer_down(50, 60)
        controller.pointer_move(20, 10)

        assert controller.state is SelectionState.DRAGGING
        drawn = surface.calls[-1][1]
        assert (drawn.x, drawn.y, drawn.width, drawn.height) == (20, 10, 30, 50)

    def test_move_without_press_ignored(self, surface, recorder):
        controller = SelectionController(surface, recorder)
        controller.activate()
        controller.pointer_move(20, 10)
        assert surface.calls == ["attach_overlay"]

    @pytest.mark.anyio
    async def test_selection_delivered(self, surface, recorder):
        controller = SelectionController(surface, recorder)
        controller.activate()
        controller.pointer_down(10, 10)

        rect = await controller.pointer_up(110, 60)

        assert recorder.rects == [rect]
        assert (rect.x, rect.y, rect.width, rect.height) == (10, 10, 100, 50)
        assert rect.space is CoordinateSpace.SCENE
        assert not controller.active

    @pytest.mark.anyio
    async def test_small_selection_dropped(self, surface, recorder):
        """A 5x5 drag produces no callback and leaves the controller armed."""
        controller = SelectionController(surface, recorder)
        controller.activate()
        controller.pointer_down(10, 10)

        assert await controller.pointer_up(15, 15) is None
        assert recorder.rects == []
        assert controller.active
        assert controller.state is SelectionState.IDLE

    @pytest.mark.anyio
    async def test_device_space_surface(self, recorder):
        surface = FakeSurface(space=CoordinateSpace.DEVICE)
        controller = SelectionController(surface, recorder)
        controller.activate()
        controller.pointer_down(0, 0)
        rect = await controller.pointer_up(40, 40)
        assert rect.space is CoordinateSpace.DEVICE

    @pytest.mark.anyio
    async def test_release_without_press(self, surface, recorder):
        controller = SelectionController(surface, recorder)
        controller.activate()
        assert await controller.pointer_up(100, 100) is None
        assert recorder.rects == []

    def test_overlay_removed_on_next_frame(self, surface, recorder):
        """Listeners and references go first; the overlay itself only after the frame."""
        controller = SelectionController(surface, recorder)
        controller.activate()
        controller.deactivate()

        assert surface.calls == ["attach_overlay", "detach_listeners", "purge_references"]
        assert "remove_overlay" not in surface.calls

        surface.run_frame()
        assert surface.calls[-1] == "remove_overlay"

    def test_deactivate_when_idle_is_noop(self, surface, recorder):
        controller = SelectionController(surface, recorder)
        controller.deactivate()
        assert surface.calls == []
        assert surface.deferred == []


if __name__ == "__main__":
    pytest.main([__file__])
