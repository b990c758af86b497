"""
Remote edit client.

Each supported image service contract is a backend family with its own request
builder and response decoder. The family is picked from configuration; the
response shape is never guessed at runtime.
"""

import asyncio
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import httpx

from region_edit.errors import (
    BackendError,
    DecodeError,
    MalformedResponse,
    MissingCredential,
    NetworkFailure,
    NoImageReturned,
)
from region_edit.imaging import (
    DATA_URL_PREFIX,
    b64decode_image,
    b64encode_image,
    image_size,
    sniff_mime_type,
    strip_data_url,
)
from region_edit.settings import (
    GENERIC_BACKEND,
    IMG2IMG_BACKEND,
    MULTIMODAL_BACKEND,
    EditSettings,
)

logger = logging.getLogger(__name__)

# Single-image result fields, in order of preference
RESULT_FIELDS = ("result", "image", "output", "generated_image")


@dataclass
class EditOptions:
    """Optional generation parameters; unset values fall back to EditSettings."""

    negative_instruction: Optional[str] = None
    strength: Optional[float] = None
    step_count: Optional[int] = None
    guidance_scale: Optional[float] = None
    sampler_name: Optional[str] = None
    target_width: Optional[int] = None
    target_height: Optional[int] = None
    model_id: Optional[str] = None

    def __post_init__(self):
        if self.strength is not None and not 0.0 <= self.strength <= 1.0:
            raise ValueError(f"strength must be between 0.0 and 1.0, got {self.strength}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EditOptions":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            if key in known:
                values[key] = value
            else:
                logger.warning(f"Unknown edit option: {key}")
        return cls(**values)


@dataclass
class EditRequest:
    source_image: bytes
    instruction: str
    options: EditOptions = field(default_factory=EditOptions)
    reference_images: List[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class EditResult:
    """The edited image as raw base64, without any data URL prefix."""

    image_base64: str

    @property
    def image_bytes(self) -> bytes:
        return b64decode_image(self.image_base64)

    def to_data_url(self) -> str:
        return DATA_URL_PREFIX + self.image_base64


def _display_url(url: str) -> str:
    """URL without its query string, so keys never reach logs or messages."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid URL>"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _check_url(url: str) -> None:
    """Reject endpoints that are not absolute http(s) URLs."""
    try:
        parts = urlsplit(url)
        parts.port  # raises on a non-numeric port
    except ValueError as e:
        raise MissingCredential("Invalid endpoint URL", str(e))
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise MissingCredential("Invalid endpoint URL", _display_url(url))


def _result_field(data: Dict[str, Any]) -> Optional[str]:
    for key in RESULT_FIELDS:
        value = data.get(key)
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, str) and value.strip():
            return strip_data_url(value)
    return None


class EditBackend:
    """Base class for one remote edit service contract."""

    family = ""

    def __init__(self, settings: EditSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    def ensure_configured(self) -> None:
        raise NotImplementedError

    def build_request(self, request: EditRequest) -> Tuple[str, Dict[str, str], Dict[str, Any], Dict[str, str]]:
        """Return (url, headers, json payload, query params)."""
        raise NotImplementedError

    def decode_response(self, data: Dict[str, Any]) -> str:
        raise NotImplementedError

    def probe_request(self) -> Tuple[str, Dict[str, str], Dict[str, str]]:
        """Return (url, headers, query params) of the connectivity probe."""
        raise NotImplementedError

    async def edit(self, request: EditRequest) -> EditResult:
        """
        Send the source image and instruction to the service.

        Raises:
            MissingCredential: before any network call when unconfigured
            NetworkFailure: on transport errors or timeouts
            BackendError: on a non-success HTTP status
            MalformedResponse: when the body has no recognizable image field
            NoImageReturned: when the service returned no image
        """
        self.ensure_configured()
        url, headers, payload, params = self.build_request(request)
        _check_url(url)

        attempt = 0
        while True:
            try:
                data = await self._post_json(url, headers, payload, params)
                break
            except NetworkFailure as e:
                if attempt >= self.settings.network_retries:
                    raise
                delay = self.settings.retry_backoff * (2 ** attempt)
                attempt += 1
                logger.warning(f"{e}; retrying in {delay:.1f}s (attempt {attempt})")
                await asyncio.sleep(delay)

        image_base64 = self.decode_response(data)
        logger.info(f"{self.family} backend returned an image ({len(image_base64)} base64 chars)")
        return EditResult(image_base64=image_base64)

    async def _post_json(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        params: Dict[str, str],
    ) -> Dict[str, Any]:
        endpoint = _display_url(url)
        logger.debug(f"POST {endpoint} with fields {sorted(payload)}")
        try:
            async with self._client(self.settings.request_timeout) as client:
                response = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"Request to {endpoint} timed out", str(e) or type(e).__name__)
        except httpx.RequestError as e:
            raise NetworkFailure(f"Could not reach {endpoint}", str(e) or type(e).__name__)
        except (httpx.InvalidURL, ValueError) as e:
            raise MissingCredential("Invalid endpoint URL", f"{endpoint}: {e}")

        if not response.is_success:
            raise BackendError(response.status_code, response.text.strip())

        try:
            data = response.json()
        except ValueError:
            raise MalformedResponse("Response body is not valid JSON")
        if not isinstance(data, dict):
            raise MalformedResponse("Response body is not a JSON object")
        return data

    async def check_connection(self) -> bool:
        """Probe the service; never raises, gives up after the probe timeout."""
        try:
            self.ensure_configured()
        except MissingCredential:
            return False

        url = ""
        timeout = self.settings.probe_timeout
        try:
            url, headers, params = self.probe_request()
            _check_url(url)
            async with self._client(timeout) as client:
                response = await asyncio.wait_for(
                    client.get(url, headers=headers, params=params), timeout=timeout
                )
        except (httpx.HTTPError, httpx.InvalidURL, MissingCredential, ValueError, asyncio.TimeoutError) as e:
            logger.info(f"Connectivity probe to {_display_url(url)} failed: {e!r}")
            return False
        return response.is_success


class Img2ImgBackend(EditBackend):
    """Stable-Diffusion-WebUI style ``img2img`` endpoint."""

    family = IMG2IMG_BACKEND

    def ensure_configured(self) -> None:
        if not self.settings.api_url:
            raise MissingCredential("No img2img endpoint configured")

    def build_request(self, request):
        options = request.options
        settings = self.settings
        if request.reference_images:
            logger.warning("img2img backend ignores reference images")

        width, height = options.target_width, options.target_height
        if not width or not height:
            try:
                width, height = image_size(request.source_image)
            except DecodeError:
                width = height = None

        payload = {
            "init_images": [b64encode_image(request.source_image)],
            "prompt": request.instruction,
            "negative_prompt": _pick(options.negative_instruction, settings.negative_instruction),
            "denoising_strength": _pick(options.strength, settings.strength),
            "steps": int(_pick(options.step_count, settings.step_count)),
            "cfg_scale": float(_pick(options.guidance_scale, settings.guidance_scale)),
            "sampler_name": _pick(options.sampler_name, settings.sampler_name),
        }
        if width and height:
            payload["width"] = int(width)
            payload["height"] = int(height)
        return settings.api_url, {}, payload, {}

    def decode_response(self, data):
        if "images" in data:
            images = data["images"]
            if not isinstance(images, list):
                raise MalformedResponse("'images' is not a list")
            for image in images:
                if isinstance(image, str) and image.strip():
                    return strip_data_url(image)
            raise NoImageReturned("Service returned no images")

        value = _result_field(data)
        if value is None:
            raise MalformedResponse("No image in response", f"keys: {', '.join(data) or 'none'}")
        return value

    def probe_request(self):
        parts = urlsplit(self.settings.api_url)
        return urlunsplit((parts.scheme, parts.netloc, "/sdapi/v1/sd-models", "", "")), {}, {}


class MultimodalBackend(EditBackend):
    """Gemini ``generateContent`` endpoint with inline image parts."""

    family = MULTIMODAL_BACKEND

    def ensure_configured(self) -> None:
        if not self.settings.api_key:
            raise MissingCredential("No API key configured for the multimodal backend")

    def build_request(self, request):
        model = request.options.model_id or self.settings.model
        base = self.settings.multimodal_base_url.rstrip("/")

        parts = []
        for image in [request.source_image, *request.reference_images]:
            parts.append({
                "inlineData": {
                    "mimeType": sniff_mime_type(image),
                    "data": b64encode_image(image),
                }
            })
        parts.append({"text": request.instruction})

        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        return f"{base}/models/{model}:generateContent", {}, payload, {"key": self.settings.api_key}

    def decode_response(self, data):
        candidates = data.get("candidates")
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            raise NoImageReturned("No candidates returned", feedback.get("blockReason"))
        if not isinstance(candidates, list):
            raise MalformedResponse("'candidates' is not a list")

        texts = []
        for candidate in candidates:
            content = candidate.get("content") if isinstance(candidate, dict) else None
            parts = content.get("parts") if isinstance(content, dict) else None
            for part in parts or []:
                if not isinstance(part, dict):
                    continue
                inline = part.get("inlineData") or part.get("inline_data") or {}
                if isinstance(inline, dict) and inline.get("data"):
                    return strip_data_url(inline["data"])
                if part.get("text"):
                    texts.append(part["text"])

        raise NoImageReturned("No image returned in response", " ".join(texts)[:500] or None)

    def probe_request(self):
        base = self.settings.multimodal_base_url.rstrip("/")
        return f"{base}/models", {}, {"key": self.settings.api_key}


class GenericEditBackend(EditBackend):
    """Plain ``POST {api_url}/edit`` service with optional bearer token."""

    family = GENERIC_BACKEND

    def ensure_configured(self) -> None:
        if not self.settings.api_url:
            raise MissingCredential("No edit service URL configured")

    def _headers(self) -> Dict[str, str]:
        if self.settings.api_key:
            return {"Authorization": f"Bearer {self.settings.api_key}"}
        return {}

    def build_request(self, request):
        endpoint = self.settings.api_url.rstrip("/") + "/edit"
        payload = {
            "image": b64encode_image(request.source_image),
            "prompt": request.instruction,
        }
        return endpoint, self._headers(), payload, {}

    def decode_response(self, data):
        value = _result_field(data)
        if value is None:
            raise MalformedResponse("No image in response", f"keys: {', '.join(data) or 'none'}")
        return value

    def probe_request(self):
        return self.settings.api_url, self._headers(), {}


BACKENDS = {
    IMG2IMG_BACKEND: Img2ImgBackend,
    MULTIMODAL_BACKEND: MultimodalBackend,
    GENERIC_BACKEND: GenericEditBackend,
}


def create_backend(settings: EditSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> EditBackend:
    """Instantiate the backend for the configured family."""
    try:
        backend_cls = BACKENDS[settings.backend]
    except KeyError:
        raise ValueError(f"Unknown backend family: {settings.backend}")
    return backend_cls(settings, transport=transport)


def _pick(value, default):
    return default if value is None else value
