"""API wrapper for the Notion REST API v1.

This module is the only place that talks to the network. It wraps a
requests Session and provides:

1. Bearer authentication using the Authenticator
2. Translation of HTTP responses to our typed exception hierarchy
3. A shared token bucket rate limiter and retry with backoff
4. Cursor pagination for list endpoints
5. Chunking of block payloads to the per-call block limit
"""

import logging
import re
import threading
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import ChunkedEncodingError, ConnectionError, Timeout

from .auth import Authenticator
from .errors import (
    InvalidCredentialsError,
    NotionError,
    PageNotFoundError,
    ParentPageNotFoundError,
    PartiallyPublished,
    PermanentAPIFailure,
    RateLimited,
    TransientNetworkFailure,
)
from .rate_limiter import RateLimiter
from .retry_logic import RetryPolicy, retry_on_transient

logger = logging.getLogger(__name__)

NOTION_VERSION = "2022-06-28"
NOTION_BASE_URL = "https://api.notion.com/v1"

# Notion rejects more than 100 children in one request
DEFAULT_MAX_BLOCKS_PER_REQUEST = 100
LIST_PAGE_SIZE = 100

# Block types that belong to the page tree rather than the page content
PRESERVED_BLOCK_TYPES = frozenset({'child_page', 'child_database'})

PAGE_ID_PATTERN = re.compile(
    r'([0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12})(?![0-9a-fA-F])'
)


def extract_page_id(value: str) -> Optional[str]:
    """Extract a page id from a raw id or a notion.so URL.

    Args:
        value: Page id (dashed or compact) or page URL

    Returns:
        Dashed lowercase page id, or None if the value holds no id
    """
    if not value:
        return None
    matches = PAGE_ID_PATTERN.findall(value.strip())
    if not matches:
        return None
    # URLs end with the id (".../Title-<id>"), so the last match wins
    compact = matches[-1].replace('-', '').lower()
    return f"{compact[0:8]}-{compact[8:12]}-{compact[12:16]}-{compact[16:20]}-{compact[20:32]}"


def compact_id(page_id: str) -> str:
    """Return the id without dashes, as used in notion.so URLs."""
    return page_id.replace('-', '').lower()


def page_url(page_id: str) -> str:
    """Build the canonical notion.so URL for a page id."""
    return f"https://www.notion.so/{compact_id(page_id)}"


def page_title(page: Dict[str, Any]) -> str:
    """Extract the plain text title from a page object or child_page block."""
    if page.get('type') == 'child_page':
        return page.get('child_page', {}).get('title', '')
    for prop in page.get('properties', {}).values():
        if prop.get('type') == 'title':
            return ''.join(part.get('plain_text', '') for part in prop.get('title', []))
    return ''


def chunk_blocks(blocks: List[Dict[str, Any]], size: int) -> List[List[Dict[str, Any]]]:
    """Split a block list into ordered chunks of at most ``size`` blocks.

    Args:
        blocks: Blocks in page order
        size: Maximum number of blocks per chunk

    Returns:
        List of chunks; empty when there are no blocks
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [blocks[i:i + size] for i in range(0, len(blocks), size)]


class APIWrapper:
    """Wrapper around the Notion REST API with error translation.

    This class is the API gateway: every network call goes through
    ``_request``, which waits on the shared rate limiter, retries transient
    failures and translates responses into typed exceptions. One instance is
    shared by all worker threads.

    Example:
        >>> api = APIWrapper(Authenticator())
        >>> parent_id = api.resolve_parent_page("Engineering Docs")
        >>> page_id = api.publish_page(parent_id, "Intro", blocks)
    """

    def __init__(
        self,
        authenticator: Authenticator,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        max_blocks_per_request: int = DEFAULT_MAX_BLOCKS_PER_REQUEST,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        base_url: str = NOTION_BASE_URL,
    ):
        """Initialize the API wrapper.

        Args:
            authenticator: Authenticator instance for loading the token
            rate_limiter: Shared limiter (defaults to 3 requests/s)
            retry_policy: Backoff configuration (defaults to RetryPolicy())
            max_blocks_per_request: Per-call block limit used for chunking
            timeout: Per-request timeout in seconds
            session: Optional pre-built session (tests inject a fake one)
            base_url: API root URL
        """
        if max_blocks_per_request <= 0:
            raise ValueError("max_blocks_per_request must be positive")

        self._authenticator = authenticator
        self._session = session
        self._session_ready = False
        self._session_lock = threading.Lock()
        self._rate_limiter = rate_limiter or RateLimiter(rate=3.0)
        self._retry_policy = retry_policy or RetryPolicy()
        if self._retry_policy.on_retry is None:
            self._retry_policy.on_retry = self._count_retry
        self.max_blocks_per_request = max_blocks_per_request
        self._timeout = timeout
        self._base_url = base_url.rstrip('/')

        self._stats_lock = threading.Lock()
        self._calls = 0
        self._retries = 0

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    def _get_session(self) -> requests.Session:
        """Get or create the HTTP session with auth headers.

        Returns:
            requests.Session configured for the Notion API

        Raises:
            InvalidCredentialsError: If the token is missing
        """
        with self._session_lock:
            if not self._session_ready:
                creds = self._authenticator.get_credentials()
                if self._session is None:
                    self._session = requests.Session()
                self._session.headers.update({
                    'Authorization': f"Bearer {creds.token}",
                    'Notion-Version': NOTION_VERSION,
                    'Content-Type': 'application/json',
                })
                self._session_ready = True
            return self._session

    def _count_retry(self, error: Exception) -> None:
        with self._stats_lock:
            self._retries += 1

    @property
    def stats(self) -> Dict[str, int]:
        """Snapshot of call and retry counters."""
        with self._stats_lock:
            return {'calls': self._calls, 'retries': self._retries}

    def _sanitize_credentials(self, text: str) -> str:
        """Mask bearer tokens and integration secrets in error text.

        Example:
            >>> api._sanitize_credentials("Bearer secret_abc123 rejected")
            'Bearer ***REDACTED*** rejected'
        """
        if not text:
            return text
        sanitized = re.sub(r'Bearer\s+[^\s\n\r]+', 'Bearer ***REDACTED***', text, flags=re.IGNORECASE)
        sanitized = re.sub(r'\b(secret|ntn)_[A-Za-z0-9]+', '***REDACTED***', sanitized)
        return sanitized

    def _translate_response(self, response: Any, operation: str) -> Dict[str, Any]:
        """Return the JSON body of a 2xx response or raise a typed error.

        Args:
            response: Response object from the session
            operation: Description of the call (for messages)

        Returns:
            Decoded JSON body (empty dict for empty bodies)
        """
        status = response.status_code
        if 200 <= status < 300:
            if not response.content:
                return {}
            return response.json()

        body: Dict[str, Any] = {}
        try:
            body = response.json() or {}
        except ValueError:
            body = {}
        code = body.get('code', '') if isinstance(body, dict) else ''
        message = self._sanitize_credentials(body.get('message', '') if isinstance(body, dict) else '')

        if status == 429:
            retry_after = None
            header = response.headers.get('Retry-After')
            if header is not None:
                try:
                    retry_after = float(header)
                except (TypeError, ValueError):
                    logger.debug(f"Ignoring unparseable Retry-After header: {header!r}")
            raise RateLimited(f"Rate limited during {operation}", retry_after=retry_after)

        if 500 <= status <= 599:
            raise TransientNetworkFailure(
                f"Notion API server error {status} during {operation}: {message}", status=status
            )

        if status == 401:
            raise InvalidCredentialsError(message or "Notion rejected the integration token")

        if status == 404:
            match = re.search(r'\(([^)]+)\)', operation)
            raise PageNotFoundError(page_id=match.group(1) if match else "unknown")

        logger.error(f"API operation failed: {operation} - {status} {code} {message}")
        raise PermanentAPIFailure(status=status, code=code, message=message)

    def _send(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform exactly one HTTP attempt (rate limited, not retried)."""
        session = self._get_session()
        self._rate_limiter.acquire()
        with self._stats_lock:
            self._calls += 1

        logger.debug(f"Notion API: {method} {path}")
        try:
            response = session.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                params=params,
                timeout=self._timeout,
            )
        except (ConnectionError, Timeout, ChunkedEncodingError) as e:
            raise TransientNetworkFailure(
                f"Connection failure during {operation}: {self._sanitize_credentials(str(e))}"
            ) from e

        return self._translate_response(response, operation)

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform a call with rate limiting and retry on transient failures."""
        return retry_on_transient(
            self._send, method, path, operation,
            json=json, params=params, policy=self._retry_policy,
        )

    # ------------------------------------------------------------------
    # raw endpoints
    # ------------------------------------------------------------------

    def create_page(
        self,
        parent_id: str,
        title: str,
        children: Optional[List[Dict[str, Any]]] = None,
        icon: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a page under a parent page.

        Args:
            parent_id: Parent page id
            title: Page title
            children: Pre-chunked content blocks (at most max_blocks_per_request)
            icon: Optional emoji icon

        Returns:
            Created page object

        Raises:
            ValueError: If children exceed the per-call block limit
        """
        children = children or []
        self._check_chunk(children)
        payload: Dict[str, Any] = {
            'parent': {'type': 'page_id', 'page_id': parent_id},
            'properties': {
                'title': {'title': [{'type': 'text', 'text': {'content': title}}]},
            },
            'children': children,
        }
        if icon:
            payload['icon'] = {'type': 'emoji', 'emoji': icon}
        return self._request('POST', '/pages', f"create_page({title})", json=payload)

    def append_blocks(self, block_id: str, children: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Append pre-chunked blocks to a page or block.

        Raises:
            ValueError: If children exceed the per-call block limit
        """
        self._check_chunk(children)
        return self._request(
            'PATCH', f"/blocks/{block_id}/children", f"append_blocks({block_id})",
            json={'children': children},
        )

    def list_children(self, block_id: str) -> List[Dict[str, Any]]:
        """List every child block of a page or block, following pagination."""
        results: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            params: Dict[str, Any] = {'page_size': LIST_PAGE_SIZE}
            if cursor:
                params['start_cursor'] = cursor
            response = self._request(
                'GET', f"/blocks/{block_id}/children", f"list_children({block_id})", params=params,
            )
            results.extend(response.get('results', []))
            if not response.get('has_more'):
                return results
            cursor = response.get('next_cursor')
            if not cursor:
                return results

    def retrieve_page(self, page_id: str) -> Dict[str, Any]:
        """Fetch a page object (title, icon, parent, archived flag)."""
        return self._request('GET', f"/pages/{page_id}", f"retrieve_page({page_id})")

    def update_page(
        self,
        page_id: str,
        title: Optional[str] = None,
        icon: Optional[str] = None,
        archived: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Update page properties: title, emoji icon or archived flag."""
        payload: Dict[str, Any] = {}
        if title is not None:
            payload['properties'] = {
                'title': {'title': [{'type': 'text', 'text': {'content': title}}]},
            }
        if icon is not None:
            payload['icon'] = {'type': 'emoji', 'emoji': icon}
        if archived is not None:
            payload['archived'] = archived
        if not payload:
            raise ValueError("update_page needs at least one of title, icon, archived")
        return self._request('PATCH', f"/pages/{page_id}", f"update_page({page_id})", json=payload)

    def delete_block(self, block_id: str) -> Dict[str, Any]:
        """Archive (delete) a block."""
        return self._request('DELETE', f"/blocks/{block_id}", f"delete_block({block_id})")

    def search_pages(self, query: str) -> List[Dict[str, Any]]:
        """Search pages shared with the integration by title text."""
        results: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            payload: Dict[str, Any] = {
                'query': query,
                'filter': {'value': 'page', 'property': 'object'},
                'page_size': LIST_PAGE_SIZE,
            }
            if cursor:
                payload['start_cursor'] = cursor
            response = self._request('POST', '/search', f"search_pages({query})", json=payload)
            results.extend(response.get('results', []))
            if not response.get('has_more') or not response.get('next_cursor'):
                return results
            cursor = response.get('next_cursor')

    # ------------------------------------------------------------------
    # composite operations
    # ------------------------------------------------------------------

    def find_pages_by_title(self, title: str) -> List[Dict[str, Any]]:
        """Return non-archived pages whose title equals ``title`` (case-insensitive)."""
        wanted = title.strip().lower()
        return [
            page for page in self.search_pages(title)
            if not page.get('archived') and page_title(page).strip().lower() == wanted
        ]

    def resolve_parent_page(self, reference: str) -> str:
        """Resolve a parent page reference to a page id.

        Args:
            reference: Page id, notion.so URL, or exact page title

        Returns:
            Dashed page id

        Raises:
            ParentPageNotFoundError: If a title matches zero or several pages
            PageNotFoundError: If an id/URL does not name an accessible page
        """
        page_id = extract_page_id(reference)
        if page_id:
            page = self.retrieve_page(page_id)
            return page.get('id', page_id)

        matches = self.find_pages_by_title(reference)
        if len(matches) != 1:
            raise ParentPageNotFoundError(
                reference, matches=len(matches), urls=[m.get('url', m.get('id', '')) for m in matches]
            )
        return matches[0]['id']

    def publish_page(
        self,
        parent_id: str,
        title: str,
        blocks: List[Dict[str, Any]],
        icon: Optional[str] = None,
    ) -> str:
        """Create a page and upload all of its content in ordered chunks.

        The first chunk rides on the create call; later chunks are appended
        in order.

        Returns:
            The new page id

        Raises:
            PartiallyPublished: If an append fails after the page was created
        """
        chunks = chunk_blocks(blocks, self.max_blocks_per_request)
        page = self.create_page(parent_id, title, children=chunks[0] if chunks else [], icon=icon)
        page_id = page['id']
        logger.info(f"Created page '{title}' ({page_id}) with {len(chunks)} chunk(s)")
        self._append_chunks(page_id, chunks[1:], written=1 if chunks else 0, total=len(chunks))
        return page_id

    def replace_page_content(self, page_id: str, blocks: List[Dict[str, Any]]) -> int:
        """Replace the content of an existing page, keeping its child pages.

        Returns:
            Number of append calls made

        Raises:
            PartiallyPublished: If removing old content or appending new content fails midway
        """
        chunks = chunk_blocks(blocks, self.max_blocks_per_request)
        existing = self.list_children(page_id)
        removed = 0
        for block in existing:
            if block.get('type') in PRESERVED_BLOCK_TYPES:
                continue
            try:
                self.delete_block(block['id'])
            except NotionError as e:
                if removed == 0:
                    raise
                raise PartiallyPublished(page_id, 0, len(chunks), cause=e) from e
            removed += 1
        logger.debug(f"Removed {removed} old block(s) from page {page_id}")
        self._append_chunks(page_id, chunks, written=0, total=len(chunks))
        return len(chunks)

    def _append_chunks(self, page_id: str, chunks: List[List[Dict[str, Any]]], written: int, total: int) -> None:
        for chunk in chunks:
            try:
                self.append_blocks(page_id, chunk)
            except NotionError as e:
                logger.error(f"Append failed for page {page_id} after {written}/{total} chunks: {e}")
                raise PartiallyPublished(page_id, written, total, cause=e) from e
            written += 1

    def _check_chunk(self, children: List[Dict[str, Any]]) -> None:
        if len(children) > self.max_blocks_per_request:
            raise ValueError(
                f"{len(children)} blocks exceed the per-call limit of {self.max_blocks_per_request}; "
                f"chunk the payload first"
            )
