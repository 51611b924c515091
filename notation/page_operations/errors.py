"""Exceptions raised while planning and executing page operations."""

from typing import List, Optional

from ..notion_api.errors import SyncError


class PageOperationError(SyncError):
    """Base exception for reconciliation and link resolution errors."""
    pass


class BrokenInternalLink(PageOperationError):
    """Raised when a relative link names no page of the corpus."""

    def __init__(self, page_path: str, targets: List[str]):
        listing = ", ".join(sorted(targets))
        super().__init__(f"{page_path} links to unknown document(s): {listing}")
        self.page_path = page_path
        self.targets = sorted(targets)


class DuplicateTitle(PageOperationError):
    """Raised when sibling pages cannot be matched unambiguously by title.

    Either two local siblings share a title (case-insensitive), or two remote
    pages under the same parent carry the title of one local page.
    """

    def __init__(self, title: str, parent_path: Optional[str], paths: Optional[List[str]] = None, remote: bool = False):
        where = f"under '{parent_path}'" if parent_path else "at the top level"
        if remote:
            message = f"Several remote pages titled '{title}' exist {where}; cannot pick one to update"
        else:
            message = f"Sibling pages {where} share the title '{title}': {', '.join(paths or [])}"
        super().__init__(message)
        self.title = title
        self.parent_path = parent_path
        self.paths = paths or []
        self.remote = remote
