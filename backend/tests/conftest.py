"""
Shared fixtures: in-memory stand-ins for the host application.
"""

from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from region_edit.geometry import CoordinateSpace, Rectangle, TransformSnapshot
from region_edit.host import SceneLayers, ViewPosition


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_png(width=8, height=8, color=(255, 255, 255, 255)):
    """Solid RGBA PNG bytes."""
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[:, :] = color
    success, encoded = cv2.imencode(".png", cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))
    assert success
    return encoded.tobytes()


class FakeTexture:
    def __init__(self, width, height, calls):
        self.pixels = np.zeros((height, width, 4), dtype=np.uint8)
        self.calls = calls
        self.destroyed = False

    def read_pixels(self):
        self.calls.append("texture.read_pixels")
        return self.pixels

    def destroy(self):
        self.destroyed = True
        self.calls.append("texture.destroy")


class FakeRenderer:
    """Records every call; the surface is filled with a solid colour."""

    def __init__(self, width=400, height=300, transform=None, color=(200, 100, 50, 255)):
        self.resolution = 1.0
        self.stage = SimpleNamespace(position=(0.0, 0.0), scale=(1.0, 1.0))
        self.surface = np.zeros((height, width, 4), dtype=np.uint8)
        self.surface[:, :] = color
        self._transform = transform or TransformSnapshot()
        self._view = ViewPosition(100.0, 80.0, 1.5)
        self.layers = SceneLayers()
        self.calls = []
        self.textures = []
        self.fail_offscreen = False
        self.fail_render_into = False
        self.frames = 0

    async def next_frame(self):
        self.frames += 1

    def transform(self):
        return self._transform

    def scene_rect(self):
        return Rectangle(0, 0, 40, 30, CoordinateSpace.SCENE)

    def render(self):
        self.calls.append("render")

    def read_pixels(self):
        self.calls.append("read_pixels")
        return self.surface

    def render_to_texture(self, node, width, height):
        self.calls.append(("render_to_texture", node.position, node.scale))
        if self.fail_offscreen:
            raise RuntimeError("framebuffer incomplete")
        pixels = np.zeros((height, width, 4), dtype=np.uint8)
        pixels[:, :] = (10, 20, 30, 255)
        return pixels

    def create_texture(self, width, height):
        texture = FakeTexture(width, height, self.calls)
        self.textures.append(texture)
        return texture

    def render_into(self, node, texture, clear=False):
        self.calls.append(("render_into", node, clear))
        if self.fail_render_into:
            raise RuntimeError("context lost")
        texture.pixels[:, :] = (1, 2, 3, 255)

    def resize(self, width, height):
        self.calls.append(("resize", width, height))

    def reset_screen(self):
        self.calls.append("reset_screen")

    def view_position(self):
        return self._view

    def pan(self, x, y, scale):
        self.calls.append(("pan", x, y, scale))
        self._view = ViewPosition(x, y, scale)

    def update_transforms(self):
        self.calls.append("update_transforms")

    def scene_layers(self):
        return self.layers


class FakeSurface:
    def __init__(self, space=CoordinateSpace.SCENE):
        self.coordinate_space = space
        self.calls = []
        self.deferred = []
        self.handlers = None

    def attach_overlay(self, handlers):
        self.handlers = handlers
        self.calls.append("attach_overlay")
        return "overlay"

    def draw_selection(self, overlay, rect):
        self.calls.append(("draw_selection", rect))

    def clear_selection(self, overlay):
        self.calls.append("clear_selection")

    def detach_listeners(self, overlay):
        self.calls.append("detach_listeners")

    def purge_references(self, overlay):
        self.calls.append("purge_references")

    def remove_overlay(self, overlay):
        self.calls.append("remove_overlay")

    def call_on_next_frame(self, callback):
        self.deferred.append(callback)

    def run_frame(self):
        callbacks, self.deferred = self.deferred, []
        for callback in callbacks:
            callback()


class FakeStore:
    def __init__(self, scene_id="scene-1"):
        self.scene_id = scene_id
        self.tiles = {}
        self.scene_updates = []
        self.actors = {}
        self.actor_updates = []
        self.tokens = {}
        self.token_updates = []
        self.deleted = []

    def active_scene_id(self):
        return self.scene_id

    async def create_tile(self, scene_id, data):
        tile = dict(data, _id=f"tile-{len(self.tiles) + 1}")
        self.tiles[tile["_id"]] = tile
        return tile

    async def list_tile_ids(self, scene_id):
        return list(self.tiles)

    async def delete_tiles(self, scene_id, tile_ids):
        self.deleted.extend(tile_ids)
        for tile_id in tile_ids:
            self.tiles.pop(tile_id, None)

    async def update_scene(self, scene_id, changes):
        self.scene_updates.append((scene_id, changes))

    async def get_actor(self, actor_id):
        return self.actors.get(actor_id)

    async def update_actor(self, actor_id, changes):
        self.actor_updates.append((actor_id, changes))

    async def list_token_ids(self, scene_id, actor_id):
        return list(self.tokens.get(actor_id, []))

    async def update_token(self, scene_id, token_id, changes):
        self.token_updates.append((scene_id, token_id, changes))


class FakeStorage:
    def __init__(self):
        self.files = {}
        self.uploads = []
        self.fail_upload = False

    async def ensure_directory(self, path):
        raise OSError("EEXIST")

    async def upload(self, directory, filename, data):
        if self.fail_upload:
            return None
        path = f"{directory}/{filename}"
        self.files[path] = data
        self.uploads.append(path)
        return path

    async def list_directory(self, path):
        prefix = path.rstrip("/") + "/"
        return [name for name in self.files if name.startswith(prefix)]

    async def read(self, path):
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path)


class FakeDialog:
    def __init__(self, instruction=None, confirmed=True):
        self.instruction = instruction
        self.confirmed = confirmed
        self.requests = []
        self.confirmations = []

    async def request_instruction(self, preview, title, examples=()):
        self.requests.append((preview, title, list(examples)))
        return self.instruction

    async def confirm(self, title, message):
        self.confirmations.append((title, message))
        return self.confirmed


class FakeNotifier:
    def __init__(self):
        self.infos = []
        self.warnings = []
        self.errors = []

    def info(self, message):
        self.infos.append(message)

    def warn(self, message):
        self.warnings.append(message)

    def error(self, message):
        self.errors.append(message)


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()
