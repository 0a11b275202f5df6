"""Service error taxonomy.

Every error that can reach a client is a ``ServiceError``. It carries the HTTP
status and the short public message rendered as ``{"error": message}``. The
underlying cause is logged where the error is raised and never exposed.
"""


class ServiceError(Exception):
    """Base exception for errors surfaced to API clients."""

    status_code: int = 500
    default_message: str = "internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Missing or malformed client input."""

    status_code = 400
    default_message = "invalid request"


class InvalidToken(ValidationError):
    """A pagination token that cannot be decoded into a resume key."""

    default_message = "invalid pagination token"


class NotFoundError(ServiceError):
    """A mission record or image object does not exist."""

    status_code = 404
    default_message = "not found"


class UpstreamError(ServiceError):
    """A store call failed."""

    status_code = 500
    default_message = "upstream request failed"


class ImageProcessingError(ServiceError):
    """Base exception for image decode/encode failures."""

    status_code = 500
    default_message = "failed to process image"


class DecodeError(ImageProcessingError):
    """Source bytes could not be decoded as a raster image."""


class EncodeError(ImageProcessingError):
    """A transformed image could not be encoded."""
