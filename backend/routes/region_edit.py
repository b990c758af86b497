"""
Region edit API routes.

This module exposes the host-independent parts of the region edit pipeline:
remote editing of an image, background removal, defaults and a health probe.
"""

import asyncio
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from region_edit.background import (
    DEFAULT_BRIGHTNESS_THRESHOLD,
    DEFAULT_DISTANCE_THRESHOLD,
    FLOOD_FILL_METHOD,
    METHODS,
    normalize_background,
)
from region_edit.edit_client import EditBackend, EditOptions, EditRequest, create_backend
from region_edit.errors import (
    BackendError,
    DecodeError,
    MalformedResponse,
    MissingCredential,
    NetworkFailure,
    NoImageReturned,
    RegionEditError,
)
from region_edit.imaging import DATA_URL_PREFIX, b64decode_image, b64encode_image, to_data_url
from region_edit.settings import EditSettings

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings() -> EditSettings:
    return EditSettings.from_config()


def get_backend(settings: EditSettings = Depends(get_settings)) -> EditBackend:
    return create_backend(settings)


class EditImageRequest(BaseModel):
    """Request model for a remote image edit."""

    image_data_url: str = Field(..., description="Base64 encoded source image data URL")
    instruction: str = Field(..., description="Natural language edit instruction")
    options: Optional[Dict] = Field(None, description="Optional generation parameters")
    remove_background: bool = Field(False, description="Make the white background of the result transparent")
    background_method: str = Field(FLOOD_FILL_METHOD, description="Background removal method")
    background_threshold: Optional[int] = Field(None, description="Background removal threshold")


class BackgroundRequest(BaseModel):
    """Request model for background removal."""

    image_data_url: str = Field(..., description="Base64 encoded image data URL")
    method: str = Field(FLOOD_FILL_METHOD, description="Background removal method")
    threshold: Optional[int] = Field(None, description="Brightness or distance threshold")


class ImageResponse(BaseModel):
    """Response model carrying a single PNG image."""

    success: bool = Field(..., description="Whether the operation was successful")
    message: str = Field(..., description="Status message")
    image_data_url: Optional[str] = Field(None, description="Resulting PNG image as a data URL")


def _http_error(e: RegionEditError) -> HTTPException:
    if isinstance(e, (MissingCredential, DecodeError)):
        status = 400
    elif isinstance(e, NetworkFailure):
        status = 504
    elif isinstance(e, (BackendError, MalformedResponse, NoImageReturned)):
        status = 502
    else:
        status = 500
    return HTTPException(status_code=status, detail=str(e))


@router.post("/edit", response_model=ImageResponse)
async def edit_image(
    request: EditImageRequest,
    backend: EditBackend = Depends(get_backend),
) -> ImageResponse:
    """
    Edit an image with the configured remote service.

    Args:
        request: Source image, instruction and optional generation parameters

    Returns:
        ImageResponse with the edited image as a PNG data URL

    Raises:
        HTTPException: 400 for bad input, 502 for service errors, 504 on network failure
    """
    instruction = request.instruction.strip()
    if not instruction:
        raise HTTPException(status_code=400, detail="Instruction must not be empty")
    if request.remove_background and request.background_method not in METHODS:
        raise HTTPException(status_code=400, detail=f"Unknown background method: {request.background_method}")

    try:
        options = EditOptions.from_dict(request.options)
        source = b64decode_image(request.image_data_url)

        logger.info(f"Starting {backend.family} edit")
        result = await backend.edit(EditRequest(source, instruction, options))

        if request.remove_background:
            png = await asyncio.to_thread(
                normalize_background,
                result.image_bytes,
                request.background_method,
                request.background_threshold,
            )
            image_data_url = DATA_URL_PREFIX + b64encode_image(png)
        else:
            image_data_url = await asyncio.to_thread(to_data_url, result.image_bytes)

    except RegionEditError as e:
        logger.error(f"Edit failed: {e}")
        raise _http_error(e)

    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid edit options: {e}")

    return ImageResponse(success=True, message="Image edited", image_data_url=image_data_url)


@router.post("/background/remove", response_model=ImageResponse)
async def remove_background(request: BackgroundRequest) -> ImageResponse:
    """Make the white background of an image transparent."""
    if request.method not in METHODS:
        raise HTTPException(status_code=400, detail=f"Unknown background method: {request.method}")

    try:
        image = b64decode_image(request.image_data_url)
        png = await asyncio.to_thread(normalize_background, image, request.method, request.threshold)
    except RegionEditError as e:
        logger.error(f"Background removal failed: {e}")
        raise _http_error(e)

    return ImageResponse(
        success=True,
        message=f"Background removed with {request.method}",
        image_data_url=DATA_URL_PREFIX + b64encode_image(png),
    )


@router.get("/config/defaults")
async def get_default_config(settings: EditSettings = Depends(get_settings)) -> Dict:
    """
    Get the default generation parameters.

    Returns:
        Dictionary containing default values, descriptions and ranges
    """
    return {
        "config": {
            "strength": {
                "value": settings.strength,
                "description": "Denoising strength for img2img edits",
                "type": "float",
                "min": 0.0,
                "max": 1.0,
            },
            "step_count": {
                "value": settings.step_count,
                "description": "Number of sampling steps",
                "type": "integer",
                "min": 1,
                "max": 150,
            },
            "guidance_scale": {
                "value": settings.guidance_scale,
                "description": "How strongly the instruction steers generation",
                "type": "float",
                "min": 1.0,
                "max": 30.0,
            },
            "background_threshold": {
                "value": DEFAULT_DISTANCE_THRESHOLD,
                "description": "Maximum distance to white for flood fill background removal",
                "type": "integer",
                "min": 0,
                "max": 441,
            },
            "brightness_threshold": {
                "value": DEFAULT_BRIGHTNESS_THRESHOLD,
                "description": "Minimum channel value for threshold background removal",
                "type": "integer",
                "min": 0,
                "max": 255,
            },
        },
        "sampler_name": settings.sampler_name,
        "background_methods": list(METHODS),
        "supported_formats": [
            "image/png",
            "image/jpeg",
            "image/webp",
        ],
    }


@router.get("/health")
async def health_check(backend: EditBackend = Depends(get_backend)) -> Dict:
    """
    Check whether the configured remote service is reachable.

    Returns:
        Backend family, configuration state and probe result
    """
    configured = backend.settings.is_configured()
    connected = await backend.check_connection()

    if connected:
        status, message = "healthy", "Remote edit service is reachable"
    elif not configured:
        status, message = "unconfigured", "No endpoint or API key configured"
    else:
        status, message = "unhealthy", "Remote edit service did not respond"

    return {
        "status": status,
        "message": message,
        "backend": backend.family,
        "configured": configured,
        "connected": connected,
    }
