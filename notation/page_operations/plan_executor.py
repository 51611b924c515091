"""Execution of an operation plan through the API gateway.

The root page's operation runs first, then the operations of the root's
direct children, one after another in local order. The rest of each
top-level subtree then runs as one task on a bounded thread pool, executing
its operations sequentially in plan (pre-order) order, so a child call is
never issued before its parent's call completed. Sibling subtrees run in
any relative order below the top level.

All calls run on pool threads; the calling thread only waits, so Ctrl-C
becomes cancellation instead of aborting a request.

Failures are isolated: a failed page fails its own descendants, nothing
else. Once the cancel event is set no new operation is dispatched; calls in
flight finish and every undispatched page is reported cancelled.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Set, Tuple

from ..content_converter.fingerprint import content_fingerprint
from ..content_converter.notion_renderer import NotionRenderer
from ..file_mapper.models import PageNode
from ..notion_api.api_wrapper import APIWrapper
from ..notion_api.errors import PartiallyPublished, SyncError
from .link_resolver import LinkResolver
from .models import (
    CreateOp,
    OutcomeStatus,
    PageOutcome,
    ReorderOp,
    SkipOp,
    SyncOperation,
    UpdateOp,
)

logger = logging.getLogger(__name__)

MAX_WORKERS = 10


class PlanExecutor:
    """Runs operation plans and records one PageOutcome per page.

    Example:
        >>> executor = PlanExecutor(api, renderer, resolver, parent_id, workers=4)
        >>> executor.execute(root, plan)
        >>> executor.execute_follow_ups(resolver.follow_up_updates(executor.published_nodes(), renderer))
        >>> outcomes = executor.outcomes
    """

    def __init__(
        self,
        api: APIWrapper,
        renderer: NotionRenderer,
        resolver: LinkResolver,
        parent_page_id: str,
        workers: int = MAX_WORKERS,
        cancel_event: Optional[threading.Event] = None,
    ):
        self._api = api
        self._renderer = renderer
        self._resolver = resolver
        self._parent_page_id = parent_page_id
        self._workers = max(1, workers)
        self._cancel = cancel_event or threading.Event()
        self._lock = threading.Lock()
        self.outcomes: Dict[str, PageOutcome] = {}

    # ------------------------------------------------------------------
    # outcome bookkeeping
    # ------------------------------------------------------------------

    def _record(self, node: PageNode, status: OutcomeStatus, reason: Optional[str] = None) -> None:
        with self._lock:
            self.outcomes[node.path] = PageOutcome(
                path=node.path,
                title=node.title,
                status=status,
                reason=reason,
                remote_id=node.remote_id,
            )

    def cancel(self) -> None:
        """Stop dispatching new operations; calls in flight still finish."""
        if not self._cancel.is_set():
            logger.warning("Cancelling: no new page operations will be started")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def status_of(self, node: PageNode) -> Optional[OutcomeStatus]:
        with self._lock:
            outcome = self.outcomes.get(node.path)
            return outcome.status if outcome else None

    def published_nodes(self) -> List[PageNode]:
        """Pages created, updated or skipped so far."""
        ok = {OutcomeStatus.CREATED, OutcomeStatus.UPDATED, OutcomeStatus.SKIPPED}
        with self._lock:
            paths = {path for path, outcome in self.outcomes.items() if outcome.status in ok}
        nodes = []
        for path in paths:
            node = self._resolver.lookup(path)
            if node is not None:
                nodes.append(node)
        return sorted(nodes, key=lambda n: n.path)

    # ------------------------------------------------------------------
    # first pass
    # ------------------------------------------------------------------

    def execute(self, root: PageNode, plan: List[SyncOperation]) -> None:
        """Execute a plan produced for ``root``."""
        root_ops = [op for op in plan if op.node is root]
        subtree_ops = self._group_by_subtree(root, plan)

        with ThreadPoolExecutor(max_workers=self._workers) as executor:
            # The root call also runs on the pool so Ctrl-C never aborts it mid-request
            self._wait({executor.submit(self._run_sequence, root_ops, set()): root.path})
            if root.remote_id is None:
                self._fail_unplaced(subtree_ops)
                return

            failed: Dict[str, Set[str]] = {path: set() for path in subtree_ops}
            heads = [
                (path, [op for op in ops if op.node.path == path])
                for path, ops in subtree_ops.items()
            ]
            self._wait({executor.submit(self._run_heads, heads, failed): root.path})

            futures = {
                executor.submit(
                    self._run_sequence, [op for op in ops if op.node.path != path], failed[path],
                ): path
                for path, ops in subtree_ops.items()
            }
            self._wait(futures)

    def _run_heads(self, heads: List[Tuple[str, List[SyncOperation]]], failed: Dict[str, Set[str]]) -> None:
        """Run the root's direct children one after another, in local order.

        Notion appends new child pages at the end, so sequential creation
        keeps the remote sibling order equal to the local one.
        """
        for path, ops in heads:
            self._run_sequence(ops, failed[path])

    def _fail_unplaced(self, subtree_ops: Dict[str, List[SyncOperation]]) -> None:
        """Nothing below an unpublished root can be placed."""
        reason = "parent page was not published"
        status = OutcomeStatus.CANCELLED if self._cancel.is_set() else OutcomeStatus.FAILED
        for ops in subtree_ops.values():
            for op in ops:
                if not isinstance(op, ReorderOp):
                    self._record(op.node, status, reason if status == OutcomeStatus.FAILED else None)

    def _group_by_subtree(self, root: PageNode, plan: List[SyncOperation]) -> Dict[str, List[SyncOperation]]:
        owner: Dict[str, str] = {}
        for child in root.children:
            for node in child.walk():
                owner[node.path] = child.path
        groups: Dict[str, List[SyncOperation]] = {}
        for op in plan:
            if op.node is root:
                continue
            groups.setdefault(owner[op.node.path], []).append(op)
        return groups

    def _wait(self, futures: Dict[Future, Any]) -> List[Any]:
        """Collect pool results; Ctrl-C cancels instead of abandoning workers."""
        results = []
        pending = set(futures)
        while pending:
            try:
                for future in as_completed(pending):
                    pending.discard(future)
                    results.append(future.result())
            except KeyboardInterrupt:
                self.cancel()
        return results

    def _run_sequence(self, ops: List[SyncOperation], failed_paths: Set[str]) -> None:
        """Run one subtree's operations in order."""
        for index, op in enumerate(ops):
            node = op.node
            if self._cancel.is_set():
                self._cancel_remaining(ops[index:])
                return
            if isinstance(op, ReorderOp):
                self._reorder(op)
                continue
            if node.parent_path in failed_paths:
                failed_paths.add(node.path)
                self._record(node, OutcomeStatus.FAILED, "parent page was not published")
                continue

            try:
                status = self._apply(op)
            except PartiallyPublished as e:
                node.remote_id = e.page_id
                logger.error(f"  ⚠ {node.path}: {e}")
                self._record(node, OutcomeStatus.PARTIALLY_PUBLISHED, str(e))
            except SyncError as e:
                logger.error(f"  ✗ {node.path}: {e}")
                if node.remote_id is None:
                    failed_paths.add(node.path)
                self._record(node, OutcomeStatus.FAILED, str(e))
            else:
                self._record(node, status)

    def _cancel_remaining(self, ops: List[SyncOperation]) -> None:
        for op in ops:
            if not isinstance(op, ReorderOp) and self.status_of(op.node) is None:
                self._record(op.node, OutcomeStatus.CANCELLED)

    def _apply(self, op: SyncOperation) -> OutcomeStatus:
        node = op.node
        if isinstance(op, CreateOp):
            parent_id = self._parent_id(op)
            payload = self._renderer.render(node.blocks, self._resolver.resolve)
            node.remote_id = self._api.publish_page(parent_id, node.title, payload, icon=node.icon)
            node.sent_fingerprint = content_fingerprint(payload)
            logger.info(f"  ✓ {node.path} (created)")
            return OutcomeStatus.CREATED

        if isinstance(op, UpdateOp):
            self._update(op)
            logger.info(f"  ✓ {node.path} (updated)")
            return OutcomeStatus.UPDATED

        if isinstance(op, SkipOp):
            node.sent_fingerprint = op.fingerprint
            logger.debug(f"  - {node.path} (unchanged)")
            return OutcomeStatus.SKIPPED

        raise TypeError(f"Unknown operation: {type(op).__name__}")

    def _parent_id(self, op: CreateOp) -> str:
        if op.parent_path is None:
            return self._parent_page_id
        parent = self._resolver.lookup(op.parent_path)
        if parent is None or parent.remote_id is None:
            raise SyncError(f"Parent page {op.parent_path} has no remote id")
        return parent.remote_id

    def _update(self, op: UpdateOp) -> None:
        node = op.node
        if op.title or op.icon:
            self._api.update_page(
                op.remote_id,
                title=node.title if op.title else None,
                icon=node.icon if op.icon else None,
            )
        if op.content:
            payload = self._renderer.render(node.blocks, self._resolver.resolve)
            self._api.replace_page_content(op.remote_id, payload)
            node.sent_fingerprint = content_fingerprint(payload)
        else:
            node.sent_fingerprint = op.fingerprint

    def _reorder(self, op: ReorderOp) -> None:
        # The public API has no call to move a child page among its siblings
        logger.warning(
            f"{op.node.path}: remote position differs from local order (wanted {op.position}); "
            f"Notion cannot reorder pages through the API, leaving it in place"
        )

    # ------------------------------------------------------------------
    # second pass
    # ------------------------------------------------------------------

    def execute_follow_ups(self, updates: List[UpdateOp]) -> int:
        """Send link follow-up updates; returns the number sent successfully."""
        if not updates:
            return 0
        logger.info(f"Updating {len(updates)} page(s) with resolved links")

        with ThreadPoolExecutor(max_workers=self._workers) as executor:
            futures = {executor.submit(self._follow_up, op): op for op in updates}
            results = self._wait(futures)
        return sum(1 for result in results if result)

    def _follow_up(self, op: UpdateOp) -> bool:
        node = op.node
        previous = self.status_of(node)
        if self._cancel.is_set():
            self._record(node, OutcomeStatus.CANCELLED, "link update was not sent")
            return False
        try:
            self._update(op)
        except PartiallyPublished as e:
            logger.error(f"  ⚠ {node.path}: {e}")
            self._record(node, OutcomeStatus.PARTIALLY_PUBLISHED, str(e))
            return False
        except SyncError as e:
            logger.error(f"  ✗ {node.path}: link update failed: {e}")
            self._record(node, OutcomeStatus.FAILED, f"link update failed: {e}")
            return False

        if previous == OutcomeStatus.SKIPPED:
            self._record(node, OutcomeStatus.UPDATED)
        logger.debug(f"  ✓ {node.path} (links resolved)")
        return True
