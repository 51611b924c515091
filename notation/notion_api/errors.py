"""Typed exception hierarchy for Notion-related errors.

This module defines all custom exceptions used by the Notion client library.
All exceptions inherit from NotionError (itself a SyncError) for easy catching
and include descriptive messages with context to help with debugging.

Transient errors (RateLimited, TransientNetworkFailure) are retried by the
gateway and only reach callers once retries are exhausted. PermanentAPIFailure
is raised immediately.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for all notation errors.

    Use this to catch any application-level error from the publish tool.
    """
    pass


class NotionError(SyncError):
    """Base exception for all Notion-related errors."""
    pass


class RateLimited(NotionError):
    """Raised on HTTP 429 responses.

    Attributes:
        retry_after: Server supplied delay in seconds, if the response had one
    """

    def __init__(self, message: str = "Notion API rate limit hit", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransientNetworkFailure(NotionError):
    """Raised on 5xx responses, connection resets and timeouts."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PermanentAPIFailure(NotionError):
    """Raised on non-retryable 4xx responses (malformed payload, etc)."""

    def __init__(self, status: int, code: str = "", message: str = ""):
        text = f"Notion API rejected request (status={status}"
        if code:
            text += f", code={code}"
        text += ")"
        if message:
            text += f": {message}"
        super().__init__(text)
        self.status = status
        self.code = code
        self.api_message = message


class InvalidCredentialsError(PermanentAPIFailure):
    """Raised when the integration token is missing or rejected."""

    def __init__(self, reason: str = "Notion integration token is missing or invalid"):
        super().__init__(status=401, code="unauthorized", message=reason)
        self.reason = reason


class PageNotFoundError(PermanentAPIFailure):
    """Raised when a page or block does not exist or is not shared with the integration."""

    def __init__(self, page_id: str):
        super().__init__(
            status=404,
            code="object_not_found",
            message=f"Page {page_id} not found (is it shared with the integration?)",
        )
        self.page_id = page_id


class ParentPageNotFoundError(NotionError):
    """Raised when the configured parent page cannot be resolved to exactly one page."""

    def __init__(self, reference: str, matches: int = 0, urls: Optional[list] = None):
        if matches == 0:
            message = f"No page matches parent page reference '{reference}'"
        else:
            listing = ", ".join(urls or [])
            message = (
                f"Need to match exactly one parent page for '{reference}', "
                f"found {matches} ({listing})"
            )
        super().__init__(message)
        self.reference = reference
        self.matches = matches


class PartiallyPublished(NotionError):
    """Raised when a chunked upload stops partway through.

    The page exists remotely but holds only the first ``chunks_written``
    chunks of its content. Re-running the publish repairs it.
    """

    def __init__(self, page_id: str, chunks_written: int, chunks_total: int, cause: Optional[Exception] = None):
        super().__init__(
            f"Page {page_id} partially published: {chunks_written}/{chunks_total} chunks written"
            + (f" ({cause})" if cause else "")
        )
        self.page_id = page_id
        self.chunks_written = chunks_written
        self.chunks_total = chunks_total
        self.cause = cause
