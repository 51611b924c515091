"""Notion client library for publishing markdown.

This package provides Python abstractions over the Notion REST API v1: a
rate limited, retrying gateway with chunked page uploads.
"""

from .api_wrapper import APIWrapper, chunk_blocks, extract_page_id, page_title, page_url
from .auth import Authenticator, Credentials
from .errors import (
    SyncError,
    NotionError,
    RateLimited,
    TransientNetworkFailure,
    PermanentAPIFailure,
    InvalidCredentialsError,
    PageNotFoundError,
    ParentPageNotFoundError,
    PartiallyPublished,
)
from .rate_limiter import RateLimiter
from .retry_logic import RetryPolicy, retry_on_transient

__all__ = [
    "APIWrapper",
    "Authenticator",
    "Credentials",
    "RateLimiter",
    "RetryPolicy",
    "retry_on_transient",
    "chunk_blocks",
    "extract_page_id",
    "page_title",
    "page_url",
    "SyncError",
    "NotionError",
    "RateLimited",
    "TransientNetworkFailure",
    "PermanentAPIFailure",
    "InvalidCredentialsError",
    "PageNotFoundError",
    "ParentPageNotFoundError",
    "PartiallyPublished",
]
