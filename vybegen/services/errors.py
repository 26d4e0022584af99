"""Exception types shared by the generation services."""

from __future__ import annotations

from typing import Optional


class GenerationError(Exception):
    """Base class for failures of a single generation request."""

    default_message = "An unknown error occurred."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidCredentialError(GenerationError):
    default_message = "Invalid API key. Please check your OpenAI API key."


class InvalidImageError(GenerationError):
    default_message = "The source image is invalid."


class InvalidPromptError(GenerationError):
    default_message = "Please describe the image you want to create."


class InvalidResponseError(GenerationError):
    default_message = "Invalid response from the API."


class RateLimitedError(GenerationError):
    default_message = "Rate limit exceeded. Please try again later."


class ServerError(GenerationError):
    default_message = "Server error. Please try again later."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteError(GenerationError):
    """Non-2xx response carrying an ``error.message`` from the API."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(GenerationError):
    """Network level failure (DNS, TLS, timeout); the cause is chained."""

    default_message = "Network error. Please check your connection and try again."


class UnknownGenerationError(GenerationError):
    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GenerationBusyError(RuntimeError):
    """A generation is already running for this model."""


class SaveError(Exception):
    """Base class for failures while exporting an image."""

    default_message = "Failed to save image."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class NoImageToSaveError(SaveError):
    default_message = "No image available to save"


class SaveFailedError(SaveError):
    default_message = "Failed to save image to photo library"


class PermissionDeniedError(SaveError):
    default_message = "Cannot save image - photo library access denied"


class BillingError(Exception):
    """Raised by billing providers when a purchase or restore fails."""
