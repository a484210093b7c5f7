"""
Application errors for Renoir.

Each error carries the HTTP status and the user facing message that the
exception handlers in index.py render as ``{"error": ..., "details": ...}``.
"""
from typing import Any, Optional


class RenoirError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(RenoirError):
    status_code = 400
    message = "Invalid request"


class ConfigurationError(RenoirError):
    status_code = 500
    message = "Server configuration error"


class ProviderBillingError(RenoirError):
    """The inference provider refused the call for billing or credit reasons."""
    status_code = 402
    message = "The image generation provider requires credits."


class ProviderUnavailableError(RenoirError):
    status_code = 503
    message = "Image generation service unavailable"


class StorageError(RenoirError):
    status_code = 500
    message = "Failed to upload image"


class NoUsableOutputError(RenoirError):
    status_code = 500
    message = "No image URL returned from the model"


class BookkeepingError(RenoirError):
    """Generation succeeded but its project record could not be saved."""
    status_code = 500
    message = "Failed to save project"


class NotFoundError(RenoirError):
    status_code = 404
    message = "Not found"
