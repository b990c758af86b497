# Environment-backed configuration.
import os

REGION_EDIT_BACKEND = os.environ.get("REGION_EDIT_BACKEND", "multimodal")

# Endpoint for the img2img and generic backends
REGION_EDIT_API_URL = os.environ.get("REGION_EDIT_API_URL", "")

# Bearer token for the generic backend, or the Gemini key for the multimodal one
REGION_EDIT_API_KEY = os.environ.get("REGION_EDIT_API_KEY") or os.environ.get("GEMINI_API_KEY", "")

REGION_EDIT_MODEL = os.environ.get("REGION_EDIT_MODEL", "gemini-2.5-flash-image")

REGION_EDIT_UPLOAD_FOLDER = os.environ.get("REGION_EDIT_UPLOAD_FOLDER", "region-edit")

REGION_EDIT_REQUEST_TIMEOUT = float(os.environ.get("REGION_EDIT_REQUEST_TIMEOUT", "120"))

REGION_EDIT_NETWORK_RETRIES = int(os.environ.get("REGION_EDIT_NETWORK_RETRIES", "0"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
