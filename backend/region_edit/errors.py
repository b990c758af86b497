"""
Error taxonomy shared by every stage of the region edit pipeline.
"""

from typing import Optional


class RegionEditError(Exception):
    """Base class for all region edit failures."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class InvalidTransform(RegionEditError):
    """Raised when a viewport transform cannot be used for coordinate math."""
    pass


class CaptureUnavailable(RegionEditError):
    """Raised when every capture strategy failed."""
    pass


class MissingCredential(RegionEditError):
    """Raised when the remote service has no endpoint or key configured."""
    pass


class NetworkFailure(RegionEditError):
    """Raised on transport-level failures, including timeouts."""
    pass


class BackendError(RegionEditError):
    """Raised when the remote service answers with a non-success status."""

    def __init__(self, status: int, detail: str = ""):
        super().__init__(f"Remote service returned HTTP {status}", detail or None)
        self.status = status


class MalformedResponse(RegionEditError):
    """Raised when a success response cannot be parsed or has no image field."""
    pass


class NoImageReturned(RegionEditError):
    """Raised when a parsed response contains no usable image."""
    pass


class DecodeError(RegionEditError):
    """Raised when image bytes cannot be decoded."""
    pass


class UploadFailed(RegionEditError):
    """Raised when the file storage does not accept an upload."""
    pass


class NoActiveTarget(RegionEditError):
    """Raised when there is no active scene or document to place into."""
    pass
