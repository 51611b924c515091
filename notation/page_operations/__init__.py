"""Page operations for publishing a page tree to Notion.

This package holds the remote side of a publish run: snapshot fetching,
reconciliation into an operation plan, two-phase link resolution and plan
execution.
"""

from .errors import BrokenInternalLink, DuplicateTitle, PageOperationError
from .link_resolver import LinkResolver
from .models import (
    CreateOp,
    OutcomeStatus,
    PageOutcome,
    RemotePageSnapshot,
    ReorderOp,
    SkipOp,
    SyncOperation,
    SyncReport,
    UpdateOp,
)
from .plan_executor import PlanExecutor
from .reconciler import Reconciler, check_duplicate_titles
from .snapshot_fetcher import SnapshotFetcher

__all__ = [
    'LinkResolver',
    'PlanExecutor',
    'Reconciler',
    'SnapshotFetcher',
    'check_duplicate_titles',
    'CreateOp',
    'UpdateOp',
    'ReorderOp',
    'SkipOp',
    'SyncOperation',
    'RemotePageSnapshot',
    'OutcomeStatus',
    'PageOutcome',
    'SyncReport',
    'PageOperationError',
    'BrokenInternalLink',
    'DuplicateTitle',
]
