from fastapi import APIRouter, Depends
from typing import Dict, Any
from region_edit.settings import (
    BACKEND_FAMILIES,
    DEFAULT_MULTIMODAL_MODEL,
    MULTIMODAL_BACKEND,
    MULTIMODAL_MODELS,
    EditSettings,
)
from routes.region_edit import get_settings

router = APIRouter()


@router.get("/available-models")
def get_available_models(settings: EditSettings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Returns the backend families and the models of the multimodal backend.
    """
    available_models = []

    # Only the multimodal backend lets the caller choose a model
    if settings.backend == MULTIMODAL_BACKEND:
        for model_id, label in MULTIMODAL_MODELS.items():
            available_models.append({
                "id": model_id,
                "provider": MULTIMODAL_BACKEND,
                "display_name": label,
            })

    return {
        "backend": settings.backend,
        "backends": list(BACKEND_FAMILIES),
        "configured": settings.is_configured(),
        "models": available_models,
        "has_models": len(available_models) > 0,
    }


@router.get("/default-models")
def get_default_models(settings: EditSettings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Returns the model used when a request does not name one.
    """
    models = []

    if settings.backend == MULTIMODAL_BACKEND:
        model = settings.model if settings.model in MULTIMODAL_MODELS else DEFAULT_MULTIMODAL_MODEL
        models.append(model)

    return {
        "models": models,
        "count": len(models)
    }
