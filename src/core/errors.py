"""Error taxonomy for the public upload surface.

Every ``UploadError`` carries the HTTP status it maps to and a message that is
safe to show to the uploader. Messages must never include API keys, storage
paths, or other internal identifiers.
"""

from __future__ import annotations


class UploadError(RuntimeError):
    """Base class for errors rendered as ``{"message": ...}`` responses."""

    status_code: int = 500

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason


class ValidationError(UploadError):
    status_code = 400


class AuthorizationError(UploadError):
    """Token or operator credential problems."""

    status_code = 401


class ForbiddenError(AuthorizationError):
    """Valid credential without the capability for this request."""

    status_code = 403


class NotFoundError(UploadError):
    status_code = 404


class RateLimitedError(UploadError):
    status_code = 429

    def __init__(self, message: str, *, reset_seconds: int = 0) -> None:
        super().__init__(message, reason="rate_limited")
        self.reset_seconds = reset_seconds


class ProcessingError(UploadError):
    status_code = 500


class HostingUploadFailed(ProcessingError):
    """The image host rejected the upload or could not be reached."""


class CorruptArchive(ProcessingError):
    """The uploaded archive could not be read as a ZIP file."""


class NoMarkupFound(ProcessingError):
    """The archive extracted cleanly but holds no HTML file."""


class SyncWarning(RuntimeError):
    """External record update failed; logged, never surfaced to the uploader."""
