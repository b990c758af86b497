"""
Configuration for the remote edit client and the workflow.
"""

from typing import Optional

IMG2IMG_BACKEND = "img2img"
MULTIMODAL_BACKEND = "multimodal"
GENERIC_BACKEND = "generic"
BACKEND_FAMILIES = (IMG2IMG_BACKEND, MULTIMODAL_BACKEND, GENERIC_BACKEND)

MULTIMODAL_MODELS = {
    "gemini-2.5-flash-image": "Nano Banana (Gemini 2.5 Flash Image)",
    "gemini-3.1-flash-image-preview": "Nano Banana 2 (Gemini 3.1 Flash Image Preview)",
    "gemini-3-pro-image-preview": "Nano Banana Pro (Gemini 3 Pro Image Preview)",
}
DEFAULT_MULTIMODAL_MODEL = "gemini-2.5-flash-image"
DEFAULT_MULTIMODAL_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_IMG2IMG_URL = "http://127.0.0.1:7860/sdapi/v1/img2img"

PROBE_TIMEOUT_SECONDS = 5.0


class EditSettings:
    """Configuration for remote editing, placement and defaults for edit options."""

    def __init__(
        self,
        backend: str = MULTIMODAL_BACKEND,
        api_url: str = "",
        api_key: str = "",
        model: str = DEFAULT_MULTIMODAL_MODEL,
        multimodal_base_url: str = DEFAULT_MULTIMODAL_BASE_URL,
        upload_folder: str = "region-edit",
        token_examples_folder: str = "region-edit/token-examples",
        negative_instruction: str = "",
        strength: float = 0.75,      # img2img denoising strength
        step_count: int = 30,
        guidance_scale: float = 7.0,
        sampler_name: str = "Euler a",
        request_timeout: float = 120.0,
        probe_timeout: float = PROBE_TIMEOUT_SECONDS,
        network_retries: int = 0,
        retry_backoff: float = 1.0,
    ):
        if backend not in BACKEND_FAMILIES:
            raise ValueError(f"Unknown backend family: {backend}")
        self.backend = backend
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.multimodal_base_url = multimodal_base_url
        self.upload_folder = upload_folder
        self.token_examples_folder = token_examples_folder
        self.negative_instruction = negative_instruction
        self.strength = strength
        self.step_count = step_count
        self.guidance_scale = guidance_scale
        self.sampler_name = sampler_name
        self.request_timeout = request_timeout
        self.probe_timeout = probe_timeout
        self.network_retries = network_retries
        self.retry_backoff = retry_backoff

    @classmethod
    def from_config(cls, **overrides) -> "EditSettings":
        """Build settings from the environment-backed ``config`` module."""
        import config

        values = {
            "backend": config.REGION_EDIT_BACKEND,
            "api_url": config.REGION_EDIT_API_URL,
            "api_key": config.REGION_EDIT_API_KEY,
            "model": config.REGION_EDIT_MODEL,
            "upload_folder": config.REGION_EDIT_UPLOAD_FOLDER,
            "request_timeout": config.REGION_EDIT_REQUEST_TIMEOUT,
            "network_retries": config.REGION_EDIT_NETWORK_RETRIES,
        }
        values.update(overrides)
        return cls(**values)

    def is_configured(self) -> bool:
        if self.backend == MULTIMODAL_BACKEND:
            return bool(self.api_key)
        return bool(self.api_url)

    def model_label(self, model: Optional[str] = None) -> str:
        model = model or self.model
        return MULTIMODAL_MODELS.get(model, model)
