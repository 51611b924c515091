"""Data models for page operations module.

This module defines the remote snapshot, the operation plan produced by the
reconciler and the per-page outcome report of a publish run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from ..file_mapper.models import PageNode


@dataclass
class RemotePageSnapshot:
    """A remote page directly under one parent.

    Attributes:
        page_id: Notion page id
        title: Page title as stored remotely
        position: Index among the parent's child pages
        icon: Emoji icon, if the page has one
        fingerprint: Content fingerprint (None until fetched)
        children: Snapshots of the page's own child pages
        children_fetched: True once ``children`` and ``fingerprint`` were loaded
        error: Failure while loading this page's content or children
    """
    page_id: str
    title: str
    position: int = 0
    icon: Optional[str] = None
    fingerprint: Optional[str] = None
    children: List['RemotePageSnapshot'] = field(default_factory=list)
    children_fetched: bool = False
    error: Optional[Exception] = None


@dataclass
class CreateOp:
    """Create ``node`` under the page of ``parent_path`` (None: the target parent page)."""
    node: PageNode
    parent_path: Optional[str]


@dataclass
class UpdateOp:
    """Bring an existing remote page in line with ``node``."""
    remote_id: str
    node: PageNode
    content: bool = True
    title: bool = False
    icon: bool = False
    fingerprint: Optional[str] = None


@dataclass
class ReorderOp:
    """Move a matched page to ``position`` among its siblings."""
    remote_id: str
    node: PageNode
    position: int


@dataclass
class SkipOp:
    """Remote page already matches ``node``."""
    remote_id: str
    node: PageNode
    fingerprint: Optional[str] = None


SyncOperation = Union[CreateOp, UpdateOp, ReorderOp, SkipOp]


class OutcomeStatus(Enum):
    """Final state of one page after a run."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"
    PARTIALLY_PUBLISHED = "partially_published"
    CANCELLED = "cancelled"


FAILURE_STATUSES = frozenset({
    OutcomeStatus.FAILED,
    OutcomeStatus.PARTIALLY_PUBLISHED,
    OutcomeStatus.CANCELLED,
})


@dataclass
class PageOutcome:
    """Outcome of one page.

    Attributes:
        path: Page path in the corpus
        title: Page title
        status: Final status
        reason: Error message for failures
        remote_id: Notion page id, when the page exists remotely
    """
    path: str
    title: str
    status: OutcomeStatus
    reason: Optional[str] = None
    remote_id: Optional[str] = None


@dataclass
class SyncReport:
    """Aggregate result of a publish run.

    Attributes:
        outcomes: Per-page outcomes in tree order
        dry_run: True when no write was issued; statuses are the planned ones
        follow_up_updates: Number of second-pass link updates issued
        api_calls: HTTP calls made during the run
        retries: Retries performed by the gateway
    """
    outcomes: List[PageOutcome] = field(default_factory=list)
    dry_run: bool = False
    follow_up_updates: int = 0
    api_calls: int = 0
    retries: int = 0

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def counts(self) -> Dict[str, int]:
        return {status.value: self.count(status) for status in OutcomeStatus}

    @property
    def partially_published(self) -> List[PageOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.PARTIALLY_PUBLISHED]

    @property
    def failures(self) -> List[PageOutcome]:
        return [o for o in self.outcomes if o.status in FAILURE_STATUSES]

    @property
    def succeeded(self) -> bool:
        """True when every page was created, updated or skipped."""
        return not self.failures
