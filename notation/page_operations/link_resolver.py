"""Two-phase resolution of links between corpus documents.

Remote ids only exist once pages are matched or created, and a document may
link to a page that is created after it. Links are therefore handled in two
explicit passes over the same page tree:

1. ``validate`` (before any write): every internal link target must name a
   page of the local tree. Pages with unknown targets are still published,
   so their children keep a parent, but are reported failed.
2. ``follow_up_updates`` (after the plan ran): every published page with
   internal links is rendered again with the now complete id map; pages
   whose content differs from what was sent get one more update.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..content_converter.fingerprint import content_fingerprint
from ..content_converter.notion_renderer import NotionRenderer
from ..file_mapper.models import PageNode
from .errors import BrokenInternalLink
from .models import UpdateOp

logger = logging.getLogger(__name__)


class LinkResolver:
    """Maps corpus paths to page nodes and their remote ids.

    A page can be named by its own path, and a directory page also by the
    path of its index file (``guide`` and ``guide/index.md``).

    Example:
        >>> resolver = LinkResolver(root)
        >>> resolver.validate(root)
        []
        >>> resolver.resolve("guide/setup.md")  # None until the page has an id
    """

    def __init__(self, root: PageNode):
        self._nodes: Dict[str, PageNode] = {}
        for node in root.walk():
            self._nodes[node.path] = node
            if node.document is not None:
                self._nodes.setdefault(node.document.path, node)

    def lookup(self, path: str) -> Optional[PageNode]:
        """Return the page node named by a corpus path."""
        return self._nodes.get(path)

    def resolve(self, path: str) -> Optional[str]:
        """Return the remote id known so far for a corpus path."""
        node = self._nodes.get(path)
        return node.remote_id if node is not None else None

    def validate(self, root: PageNode) -> List[BrokenInternalLink]:
        """Check every internal link target against the local tree.

        Pages with unknown targets get a BrokenInternalLink recorded as their
        link error. They are still planned and published; the unknown links
        render as plain text. Other pages are unaffected.

        Returns:
            The recorded errors
        """
        errors: List[BrokenInternalLink] = []
        for node in root.walk():
            if node.failed or not node.internal_targets:
                continue
            unknown = [target for target in node.internal_targets if target not in self._nodes]
            if unknown:
                error = BrokenInternalLink(node.path, unknown)
                logger.error(f"  ✗ {error}")
                node.link_error = error
                errors.append(error)
        return errors

    def follow_up_updates(
        self,
        nodes: Iterable[PageNode],
        renderer: NotionRenderer,
    ) -> List[UpdateOp]:
        """Re-render published pages with internal links and collect the stale ones.

        Args:
            nodes: Pages that were published successfully in the first pass
            renderer: Renderer used for the first pass

        Returns:
            One UpdateOp per page whose resolved content differs from what was sent
        """
        updates: List[UpdateOp] = []
        for node in nodes:
            if not node.internal_targets or node.remote_id is None or node.sent_fingerprint is None:
                continue

            unresolved = sorted(target for target in node.internal_targets if not self.resolve(target))
            if unresolved:
                logger.warning(
                    f"{node.path}: link target(s) without a remote page, left as plain text: "
                    f"{', '.join(unresolved)}"
                )

            payload = renderer.render(node.blocks, self.resolve)
            fingerprint = content_fingerprint(payload)
            if fingerprint != node.sent_fingerprint:
                logger.debug(f"{node.path}: links resolved after first pass, scheduling update")
                updates.append(UpdateOp(remote_id=node.remote_id, node=node, content=True, fingerprint=fingerprint))
        return updates
