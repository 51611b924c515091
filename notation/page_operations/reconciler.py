"""Reconciliation of the local page tree against the remote snapshot.

Matching is by title, case-insensitive, within one parent scope; Notion has
no notion of a corpus path. Diffing happens in two steps over the tree:

1. Every local page matching exactly one remote page receives that page's
   id, so that links between matched pages already render resolved.
2. A pre-order walk emits the plan. Parents always come before their
   children, so a child is never created before its parent.

Remote pages without a local counterpart are left alone.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..content_converter.fingerprint import content_fingerprint
from ..content_converter.notion_renderer import NotionRenderer, Resolver
from ..file_mapper.models import PageNode
from .errors import DuplicateTitle
from .models import CreateOp, RemotePageSnapshot, ReorderOp, SkipOp, SyncOperation, UpdateOp

logger = logging.getLogger(__name__)


def title_key(title: str) -> str:
    return title.strip().lower()


def check_duplicate_titles(root: PageNode) -> List[DuplicateTitle]:
    """Record DuplicateTitle on sibling pages sharing a title.

    Runs before any network call. All pages of a clashing group fail,
    since none of them could be matched reliably.

    Returns:
        The recorded errors, one per clashing group
    """
    errors: List[DuplicateTitle] = []
    for node in root.walk():
        groups: Dict[str, List[PageNode]] = {}
        for child in node.children:
            groups.setdefault(title_key(child.title), []).append(child)
        for group in groups.values():
            if len(group) < 2:
                continue
            error = DuplicateTitle(group[0].title, node.path, [child.path for child in group])
            logger.error(f"  ✗ {error}")
            errors.append(error)
            for child in group:
                if not child.failed:
                    child.failure = error
    return errors


class Reconciler:
    """Computes the operation plan converging remote pages to the local tree.

    Example:
        >>> reconciler = Reconciler(NotionRenderer())
        >>> plan = reconciler.diff(root, snapshots, resolver.resolve)
    """

    def __init__(self, renderer: NotionRenderer):
        self._renderer = renderer

    def diff(
        self,
        root: PageNode,
        remote: List[RemotePageSnapshot],
        resolve: Resolver,
    ) -> List[SyncOperation]:
        """Diff the local tree against the snapshots under the target parent.

        Args:
            root: Local page tree root
            remote: Snapshots of the target parent's child pages
            resolve: Corpus path to remote id lookup used for rendering

        Returns:
            Operations in pre-order (parents before children)
        """
        matches: Dict[str, RemotePageSnapshot] = {}
        self._match([root], remote, None, matches)

        plan: List[SyncOperation] = []
        self._plan(root, None, matches, resolve, plan)

        kinds = [type(op).__name__ for op in plan]
        logger.info(
            f"Plan: {kinds.count('CreateOp')} create, {kinds.count('UpdateOp')} update, "
            f"{kinds.count('SkipOp')} skip, {kinds.count('ReorderOp')} reorder"
        )
        return plan

    def _match(
        self,
        nodes: List[PageNode],
        snapshots: List[RemotePageSnapshot],
        parent_path: Optional[str],
        matches: Dict[str, RemotePageSnapshot],
    ) -> None:
        by_title: Dict[str, List[RemotePageSnapshot]] = {}
        for snapshot in snapshots:
            by_title.setdefault(title_key(snapshot.title), []).append(snapshot)

        for node in nodes:
            if node.failed:
                continue
            candidates = by_title.get(title_key(node.title), [])
            if len(candidates) > 1:
                node.failure = DuplicateTitle(node.title, parent_path, remote=True)
                logger.error(f"  ✗ {node.failure}")
                continue
            if not candidates:
                continue

            snapshot = candidates[0]
            if snapshot.error is not None:
                node.failure = snapshot.error
                continue
            node.remote_id = snapshot.page_id
            matches[node.path] = snapshot
            self._match(node.children, snapshot.children, node.path, matches)

    def _plan(
        self,
        node: PageNode,
        parent_path: Optional[str],
        matches: Dict[str, RemotePageSnapshot],
        resolve: Resolver,
        plan: List[SyncOperation],
        position: Optional[int] = None,
    ) -> None:
        if node.failed:
            return

        snapshot = matches.get(node.path)
        if snapshot is None:
            plan.append(CreateOp(node=node, parent_path=parent_path))
        else:
            plan.append(self._compare(node, snapshot, resolve))
            if position is not None:
                plan.append(ReorderOp(remote_id=snapshot.page_id, node=node, position=position))

        reorders = self._reorders(node, matches)
        for child in node.children:
            self._plan(child, node.path, matches, resolve, plan, reorders.get(child.path))

    def _compare(self, node: PageNode, snapshot: RemotePageSnapshot, resolve: Resolver) -> SyncOperation:
        payload = self._renderer.render(node.blocks, resolve)
        fingerprint = content_fingerprint(payload)

        content_changed = fingerprint != snapshot.fingerprint
        title_changed = node.title != snapshot.title
        icon_changed = node.icon is not None and node.icon != snapshot.icon

        if content_changed or title_changed or icon_changed:
            logger.debug(
                f"{node.path}: update (content={content_changed}, title={title_changed}, icon={icon_changed})"
            )
            return UpdateOp(
                remote_id=snapshot.page_id,
                node=node,
                content=content_changed,
                title=title_changed,
                icon=icon_changed,
                fingerprint=fingerprint,
            )
        return SkipOp(remote_id=snapshot.page_id, node=node, fingerprint=snapshot.fingerprint)

    def _reorders(self, node: PageNode, matches: Dict[str, RemotePageSnapshot]) -> Dict[str, int]:
        """Find matched children whose remote order differs from the local order."""
        matched: List[Tuple[PageNode, int]] = [
            (child, matches[child.path].position)
            for child in node.children
            if not child.failed and child.path in matches
        ]
        remote_order = sorted(matched, key=lambda pair: pair[1])
        moved: Dict[str, int] = {}
        for local_index, (child, _) in enumerate(matched):
            if remote_order[local_index][0] is not child:
                moved[child.path] = local_index
        return moved

