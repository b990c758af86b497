"""
Workflow orchestration.

Sequences capture, operator instruction, remote edit, optional background
removal and placement. The workflow is the only place where a failure is
turned into a message for the operator; closing a dialog is a cancellation,
not a failure, and ends the workflow without side effects.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from prompts import PREVIEW_TITLES, assemble_reference_prompt
from region_edit.background import normalize_background
from region_edit.capture import RegionCaptureEngine
from region_edit.edit_client import EditBackend, EditOptions, EditRequest, EditResult
from region_edit.errors import NoActiveTarget, RegionEditError
from region_edit.geometry import CoordinateSpace, Rectangle, device_to_scene
from region_edit.host import (
    DocumentStore,
    EditDialog,
    EditInstruction,
    InteractionSurface,
    Notifier,
    SceneRenderer,
)
from region_edit.imaging import decode_rgba, encode_png
from region_edit.placement import PlacementAdapter
from region_edit.selection import SelectionController
from region_edit.settings import EditSettings

logger = logging.getLogger(__name__)

# Placeholder image the host assigns to actors without artwork
DEFAULT_ACTOR_IMAGE = "icons/svg/mystery-man.svg"


class WorkflowStatus(str, Enum):
    PLACED = "placed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class WorkflowOutcome:
    status: WorkflowStatus
    path: Optional[str] = None
    document: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None


def _is_cancelled(instruction: Optional[EditInstruction]) -> bool:
    return instruction is None or not (instruction.instruction or "").strip()


def _finish_image(result: EditResult, instruction: EditInstruction) -> bytes:
    """Decode the service image, optionally clear its background, return PNG."""
    image = result.image_bytes
    if instruction.remove_background:
        return normalize_background(
            image, instruction.background_method, instruction.background_threshold
        )
    return encode_png(decode_rgba(image))


class EditWorkflow:
    """Runs region, portrait, token and flatten operations, one at a time."""

    def __init__(
        self,
        settings: EditSettings,
        renderer: SceneRenderer,
        backend: EditBackend,
        store: DocumentStore,
        dialog: EditDialog,
        placement: PlacementAdapter,
        notifier: Notifier,
        capture_engine: Optional[RegionCaptureEngine] = None,
    ):
        self.settings = settings
        self.renderer = renderer
        self.backend = backend
        self.store = store
        self.dialog = dialog
        self.placement = placement
        self.notifier = notifier
        self.capture_engine = capture_engine or RegionCaptureEngine(renderer)
        self._lock = asyncio.Lock()

    def selection_controller(self, surface: InteractionSurface) -> SelectionController:
        """Controller whose finished selections run :meth:`edit_region`."""
        return SelectionController(surface, self.edit_region)

    async def edit_region(self, rect: Rectangle) -> WorkflowOutcome:
        return await self._run("Region edit", self._edit_region, rect)

    async def edit_portrait(self, actor_id: str) -> WorkflowOutcome:
        return await self._run("Portrait edit", self._edit_portrait, actor_id)

    async def edit_token(self, actor_id: str) -> WorkflowOutcome:
        return await self._run("Token edit", self._edit_token, actor_id)

    async def generate_token(self, actor_id: str) -> WorkflowOutcome:
        return await self._run("Token generation", self._generate_token, actor_id)

    async def flatten_tiles(self) -> WorkflowOutcome:
        return await self._run("Flatten", self._flatten_tiles)

    async def _run(self, label: str, operation: Callable[..., Awaitable[WorkflowOutcome]], *args) -> WorkflowOutcome:
        async with self._lock:
            try:
                return await operation(*args)
            except RegionEditError as e:
                logger.error(f"{label} failed: {e}")
                self.notifier.error(f"{label} failed: {e}")
                return WorkflowOutcome(WorkflowStatus.FAILED, error=e)
            except Exception as e:
                logger.exception(f"Unexpected error during {label.lower()}")
                self.notifier.error(f"{label} failed: {e}")
                return WorkflowOutcome(WorkflowStatus.FAILED, error=e)

    def _require_scene(self) -> str:
        scene_id = self.store.active_scene_id()
        if not scene_id:
            raise NoActiveTarget("No active scene")
        return scene_id

    async def _edit(self, request: EditRequest, instruction: EditInstruction) -> bytes:
        result = await self.backend.edit(request)
        return await asyncio.to_thread(_finish_image, result, instruction)

    async def _edit_region(self, rect: Rectangle) -> WorkflowOutcome:
        self.backend.ensure_configured()
        scene_id = self._require_scene()

        if rect.space is CoordinateSpace.DEVICE:
            rect = device_to_scene(rect, self.renderer.transform())

        captured = await self.capture_engine.capture(rect)

        instruction = await self.dialog.request_instruction(captured.png, PREVIEW_TITLES["region"])
        if _is_cancelled(instruction):
            logger.info("Region edit cancelled by operator")
            return WorkflowOutcome(WorkflowStatus.CANCELLED)

        width, height = rect.pixel_size()
        options = instruction.options or EditOptions()
        options = dataclasses.replace(
            options,
            target_width=options.target_width or width,
            target_height=options.target_height or height,
        )

        self.notifier.info("Generating edited image...")
        png = await self._edit(EditRequest(captured.png, instruction.instruction.strip(), options), instruction)

        tile = await self.placement.place_tile(png, rect, scene_id)
        self.notifier.info("Edited region placed as a tile")
        return WorkflowOutcome(WorkflowStatus.PLACED, document=tile)

    async def _actor_image(self, actor_id: str, token: bool = False) -> str:
        actor = await self.store.get_actor(actor_id)
        if not actor:
            raise NoActiveTarget(f"Actor {actor_id} not found")

        if token:
            path = ((actor.get("prototypeToken") or {}).get("texture") or {}).get("src")
        else:
            path = actor.get("img")
        if not path or path == DEFAULT_ACTOR_IMAGE:
            kind = "token" if token else "portrait"
            raise NoActiveTarget(f"{actor.get('name', actor_id)} has no {kind} image")
        return path

    async def _edit_portrait(self, actor_id: str) -> WorkflowOutcome:
        self.backend.ensure_configured()
        source = await self.placement.read_image(await self._actor_image(actor_id))

        instruction = await self.dialog.request_instruction(source, PREVIEW_TITLES["portrait"])
        if _is_cancelled(instruction):
            return WorkflowOutcome(WorkflowStatus.CANCELLED)

        self.notifier.info("Generating portrait...")
        request = EditRequest(source, instruction.instruction.strip(), instruction.options or EditOptions())
        png = await self._edit(request, instruction)

        path = await self.placement.update_portrait(actor_id, png)
        self.notifier.info("Portrait updated")
        return WorkflowOutcome(WorkflowStatus.PLACED, path=path)

    async def _edit_token(self, actor_id: str) -> WorkflowOutcome:
        self.backend.ensure_configured()
        source = await self.placement.read_image(await self._actor_image(actor_id, token=True))

        instruction = await self.dialog.request_instruction(source, PREVIEW_TITLES["token"])
        if _is_cancelled(instruction):
            return WorkflowOutcome(WorkflowStatus.CANCELLED)

        self.notifier.info("Generating token...")
        request = EditRequest(source, instruction.instruction.strip(), instruction.options or EditOptions())
        png = await self._edit(request, instruction)

        path = await self.placement.update_token(actor_id, png, self.store.active_scene_id())
        self.notifier.info("Token updated")
        return WorkflowOutcome(WorkflowStatus.PLACED, path=path)

    async def _generate_token(self, actor_id: str) -> WorkflowOutcome:
        self.backend.ensure_configured()
        source = await self.placement.read_image(await self._actor_image(actor_id))
        examples = await self.placement.scan_token_examples(self.settings.token_examples_folder)

        instruction = await self.dialog.request_instruction(
            source, PREVIEW_TITLES["token_generation"], examples
        )
        if _is_cancelled(instruction):
            return WorkflowOutcome(WorkflowStatus.CANCELLED)

        if instruction.selected_examples is None:
            selected = list(examples)
        else:
            selected = [examples[i] for i in instruction.selected_examples if 0 <= i < len(examples)]

        text = instruction.instruction.strip()
        options = instruction.options or EditOptions()
        if selected:
            references: List[bytes] = [await self.placement.read_image(ex.path) for ex in selected]
            request = EditRequest(
                source, assemble_reference_prompt(text, selected), options, reference_images=references
            )
        else:
            request = EditRequest(source, text, options)

        self.notifier.info("Generating token...")
        png = await self._edit(request, instruction)

        path = await self.placement.update_token(
            actor_id, png, self.store.active_scene_id(), prefix="region-edit-token-gen"
        )
        self.notifier.info("Token updated")
        return WorkflowOutcome(WorkflowStatus.PLACED, path=path)

    async def _flatten_tiles(self) -> WorkflowOutcome:
        scene_id = self._require_scene()
        tile_ids = await self.store.list_tile_ids(scene_id)
        if not tile_ids:
            self.notifier.warn("There are no tiles to flatten")
            return WorkflowOutcome(WorkflowStatus.CANCELLED)

        confirmed = await self.dialog.confirm(
            "Flatten tiles",
            f"Merge {len(tile_ids)} tiles into the scene background? The tiles will be deleted.",
        )
        if not confirmed:
            return WorkflowOutcome(WorkflowStatus.CANCELLED)

        self.notifier.info("Capturing the scene...")
        captured = await self.capture_engine.capture_full_scene()
        path = await self.placement.replace_background(scene_id, captured.png)
        await self.placement.delete_tiles(scene_id, tile_ids)

        self.notifier.info("Tiles flattened into the background")
        return WorkflowOutcome(WorkflowStatus.PLACED, path=path)
