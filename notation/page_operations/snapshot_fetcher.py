"""Fetching of the remote page tree under the target parent.

Only what reconciliation needs is fetched: the child pages of the target
parent, and for every remote page matching a local page its content
fingerprint and child pages. Remote pages without a local counterpart are
never descended into.
"""

import logging
from typing import Any, Dict, List, Optional

from ..content_converter.fingerprint import IGNORED_BLOCK_TYPES, content_fingerprint
from ..file_mapper.models import PageNode
from ..notion_api.api_wrapper import APIWrapper, page_title
from ..notion_api.errors import NotionError
from .models import RemotePageSnapshot

logger = logging.getLogger(__name__)

# Guards against pathological block nesting
MAX_BLOCK_DEPTH = 10


class SnapshotFetcher:
    """Loads RemotePageSnapshot trees through the API gateway."""

    def __init__(self, api: APIWrapper):
        self._api = api

    def fetch(self, parent_id: str, root: PageNode) -> List[RemotePageSnapshot]:
        """Fetch the snapshots of the pages under the target parent.

        Args:
            parent_id: Target parent page id
            root: Local page tree (decides which remote pages are expanded)

        Returns:
            Snapshots of the parent's child pages

        Raises:
            NotionError: If the parent's children cannot be listed (run-fatal)
        """
        top_level = self._child_pages(self._api.list_children(parent_id))
        logger.info(f"Found {len(top_level)} existing page(s) under the parent page")
        self._expand_matches(top_level, [root])
        return top_level

    def _child_pages(self, blocks: List[Dict[str, Any]]) -> List[RemotePageSnapshot]:
        pages = [block for block in blocks if block.get('type') == 'child_page' and not block.get('archived')]
        return [
            RemotePageSnapshot(page_id=block['id'], title=page_title(block), position=position)
            for position, block in enumerate(pages)
        ]

    def _expand_matches(self, snapshots: List[RemotePageSnapshot], nodes: List[PageNode]) -> None:
        by_title: Dict[str, List[RemotePageSnapshot]] = {}
        for snapshot in snapshots:
            by_title.setdefault(snapshot.title.strip().lower(), []).append(snapshot)

        for node in nodes:
            if node.failed:
                continue
            matches = by_title.get(node.title.strip().lower(), [])
            if len(matches) != 1:
                # No match, or ambiguous (reported by the reconciler)
                continue
            snapshot = matches[0]
            try:
                self._load_page(snapshot, node)
            except NotionError as e:
                logger.error(f"  ✗ Failed to fetch remote page '{snapshot.title}' ({snapshot.page_id}): {e}")
                snapshot.error = e
                continue
            self._expand_matches(snapshot.children, node.children)

    def _load_page(self, snapshot: RemotePageSnapshot, node: PageNode) -> None:
        """Load content fingerprint, child pages and (if needed) icon of one page."""
        blocks = self._api.list_children(snapshot.page_id)
        content = [block for block in blocks if block.get('type') not in IGNORED_BLOCK_TYPES]
        self._load_nested(content, depth=1)
        snapshot.fingerprint = content_fingerprint(content)
        snapshot.children = self._child_pages(blocks)

        # The icon is only compared when the local page sets one
        if node.icon is not None:
            page = self._api.retrieve_page(snapshot.page_id)
            snapshot.icon = self._emoji(page.get('icon'))

        snapshot.children_fetched = True
        logger.debug(
            f"Fetched remote page '{snapshot.title}': {len(content)} block(s), "
            f"{len(snapshot.children)} child page(s)"
        )

    def _load_nested(self, blocks: List[Dict[str, Any]], depth: int) -> None:
        for block in blocks:
            if not block.get('has_children') or block.get('type') in IGNORED_BLOCK_TYPES:
                continue
            if depth >= MAX_BLOCK_DEPTH:
                logger.warning(f"Not descending into block {block.get('id')}: nesting too deep")
                continue
            children = self._api.list_children(block['id'])
            self._load_nested(children, depth + 1)
            kind = block.get('type')
            block.setdefault(kind, {})['children'] = children

    @staticmethod
    def _emoji(icon: Optional[Dict[str, Any]]) -> Optional[str]:
        if icon and icon.get('type') == 'emoji':
            return icon.get('emoji')
        return None
