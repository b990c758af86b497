"""
Placement of edited images into the host document store.
"""

import logging
import re
import time
from typing import Any, Dict, List, Optional

from region_edit.errors import RegionEditError, UploadFailed
from region_edit.geometry import CoordinateSpace, Rectangle
from region_edit.host import DocumentStore, FileStorage, TokenExample

logger = logging.getLogger(__name__)

FLAG_SCOPE = "region-edit"
IMAGE_EXTENSIONS = re.compile(r"\.(png|jpg|jpeg|webp)$", re.IGNORECASE)


class PlacementAdapter:
    """Uploads final images and creates or updates the documents that show them."""

    def __init__(self, store: DocumentStore, storage: FileStorage, upload_folder: str = "region-edit"):
        self.store = store
        self.storage = storage
        self.upload_folder = upload_folder

    async def upload(self, png: bytes, prefix: str = "region-edit") -> str:
        """Upload PNG bytes and return the stored path."""
        try:
            await self.storage.ensure_directory(self.upload_folder)
        except Exception as e:
            # Usually the folder already exists; the upload below reports real problems
            logger.debug(f"Could not create {self.upload_folder}: {e}")

        filename = f"{prefix}-{int(time.time() * 1000)}.png"
        try:
            path = await self.storage.upload(self.upload_folder, filename, png)
        except Exception as e:
            raise UploadFailed("Failed to upload image to server", str(e))
        if not path:
            raise UploadFailed("Failed to upload image to server", filename)

        logger.info(f"Uploaded {len(png)} bytes to {path}")
        return path

    async def read_image(self, path: str) -> bytes:
        try:
            return await self.storage.read(path)
        except Exception as e:
            raise RegionEditError("Failed to load image", f"{path}: {e}")

    async def place_tile(self, png: bytes, rect: Rectangle, scene_id: str) -> Dict[str, Any]:
        """Upload ``png`` and create a tile covering the scene-space ``rect``."""
        if rect.space is not CoordinateSpace.SCENE:
            raise ValueError(f"Tiles are placed in scene space, got {rect.space.value}")
        path = await self.upload(png, "region-edit-tile")
        area = rect.rounded()

        tile_data = {
            "texture": {"src": path},
            "x": area.x,
            "y": area.y,
            "width": area.width,
            "height": area.height,
            "hidden": False,
            "locked": False,
            "overhead": False,
            "elevation": 0,
            "sort": 0,
            "occlusion": {"mode": 0, "alpha": 0},
            "flags": {FLAG_SCOPE: {"generated": True, "timestamp": int(time.time() * 1000)}},
        }
        tile = await self.store.create_tile(scene_id, tile_data)
        logger.info(f"Placed tile at ({area.x}, {area.y}) size {area.width}x{area.height}")
        return tile

    async def update_portrait(self, actor_id: str, png: bytes) -> str:
        path = await self.upload(png, "region-edit-portrait")
        await self.store.update_actor(actor_id, {"img": path})
        return path

    async def update_token(self, actor_id: str, png: bytes, scene_id: Optional[str] = None,
                           prefix: str = "region-edit-token") -> str:
        """Update the prototype token image and every token of the actor on ``scene_id``."""
        path = await self.upload(png, prefix)
        await self.store.update_actor(actor_id, {"prototypeToken.texture.src": path})

        if scene_id:
            for token_id in await self.store.list_token_ids(scene_id, actor_id):
                await self.store.update_token(scene_id, token_id, {"texture.src": path})
        return path

    async def replace_background(self, scene_id: str, png: bytes) -> str:
        path = await self.upload(png, "region-edit-flatten")
        await self.store.update_scene(scene_id, {"background.src": path})
        return path

    async def delete_tiles(self, scene_id: str, tile_ids: List[str]) -> None:
        await self.store.delete_tiles(scene_id, tile_ids)

    async def scan_token_examples(self, directory: str) -> List[TokenExample]:
        """
        List example images in ``directory``.

        An example may have a companion ``.txt`` file with the same stem whose
        text describes its style.
        """
        try:
            await self.storage.ensure_directory(directory)
        except Exception as e:
            logger.debug(f"Could not create {directory}: {e}")

        try:
            files = await self.storage.list_directory(directory)
        except Exception as e:
            logger.warning(f"Could not browse token examples in {directory}: {e}")
            return []

        examples = []
        for path in files:
            if not IMAGE_EXTENSIONS.search(path):
                continue
            stem = path.rsplit("/", 1)[-1].rsplit(".", 1)[0]
            prompt_path = path.rsplit(".", 1)[0] + ".txt"

            prompt = ""
            if prompt_path in files:
                try:
                    prompt = (await self.storage.read(prompt_path)).decode("utf-8").strip()
                except (OSError, UnicodeDecodeError) as e:
                    logger.debug(f"Ignoring unreadable prompt file {prompt_path}: {e}")

            examples.append(TokenExample(path=path, name=stem, prompt=prompt))
        return examples
