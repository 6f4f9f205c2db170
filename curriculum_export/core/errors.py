"""
Error taxonomy for the export pipeline.

- ConfigurationError: fatal setup problem, raised before any work starts
- RateLimitedError: upstream quota exhausted, retried by the scheduler
- NotionAPIError: any other upstream failure, item-level
- ImageDownloadError: image fetch failure, caught by the localizer
"""

from __future__ import annotations


class ExportError(Exception):
    """Base class for all export errors."""


class ConfigurationError(ExportError):
    """Missing credentials or required arguments."""


class RateLimitedError(ExportError):
    """Upstream signalled quota exhaustion.

    Attributes:
        retry_after: Raw ``Retry-After`` header value, if the server sent one
    """

    def __init__(self, message: str = "Rate limited", retry_after: str | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class NotionAPIError(ExportError):
    """Non-rate-limit error response from the Notion API."""

    def __init__(self, status_code: int, code: str | None, message: str):
        super().__init__(f"Notion API error {status_code} ({code or 'unknown'}): {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class ImageDownloadError(ExportError):
    """An image could not be downloaded."""
