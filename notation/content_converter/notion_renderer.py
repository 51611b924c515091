"""Rendering of content blocks to Notion API block payloads.

The renderer is pure: the same blocks and the same link resolution always
produce the same payload. It is called once per page in the first publish
pass (with whatever remote ids are known at that point) and again in the
follow-up pass with the complete id map.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .block_models import (
    Code,
    ContentBlock,
    Divider,
    ExternalLink,
    Heading,
    Image,
    InternalLink,
    LinkBlock,
    LinkTarget,
    ListBlock,
    Paragraph,
    Quote,
    Span,
    Table,
)

logger = logging.getLogger(__name__)

# Notion API content limits
MAX_TEXT_LENGTH = 2000
MAX_RICH_TEXT_ITEMS = 100
MAX_NESTING_DEPTH = 2
MAX_HEADING_LEVEL = 3

NOTION_PAGE_URL = "https://www.notion.so/{}"

Resolver = Callable[[str], Optional[str]]


def _no_links(path: str) -> Optional[str]:
    return None


def _block(kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'object': 'block', 'type': kind, kind: body}


def _chunk_text(text: str) -> List[str]:
    if not text:
        return []
    return [text[i:i + MAX_TEXT_LENGTH] for i in range(0, len(text), MAX_TEXT_LENGTH)]


class NotionRenderer:
    """Turns ContentBlock lists into Notion block payloads.

    Args:
        max_blocks_per_request: Per-call block limit; tables with more rows
            are split into consecutive tables

    Example:
        >>> renderer = NotionRenderer()
        >>> payload = renderer.render(doc.blocks, resolve=lambda path: ids.get(path))
    """

    def __init__(self, max_blocks_per_request: int = 100):
        if max_blocks_per_request <= 0:
            raise ValueError("max_blocks_per_request must be positive")
        self.max_blocks_per_request = max_blocks_per_request

    def render(self, blocks: List[ContentBlock], resolve: Optional[Resolver] = None) -> List[Dict[str, Any]]:
        """Render blocks in order.

        Args:
            blocks: Mapped content blocks
            resolve: Function returning the remote page id for a corpus path,
                or None while the page has no id yet

        Returns:
            List of Notion block payload dicts
        """
        resolve = resolve or _no_links
        rendered: List[Dict[str, Any]] = []
        for block in blocks:
            rendered.extend(self._render_block(block, resolve, depth=0))
        return rendered

    # -- rich text -----------------------------------------------------

    def link_url(self, target: Optional[LinkTarget], resolve: Resolver) -> Optional[str]:
        """URL for a link target, or None for unresolved internal links."""
        if target is None:
            return None
        if isinstance(target, ExternalLink):
            return target.url
        page_id = resolve(target.path)
        if not page_id:
            return None
        return NOTION_PAGE_URL.format(page_id.replace('-', ''))

    def rich_text(self, spans: List[Span], resolve: Resolver) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for span in spans:
            url = self.link_url(span.link, resolve)
            annotations = {
                name: True
                for name in ('bold', 'italic', 'strikethrough', 'code')
                if getattr(span, name)
            }
            for chunk in _chunk_text(span.text):
                item: Dict[str, Any] = {
                    'type': 'text',
                    'text': {'content': chunk, 'link': {'url': url} if url else None},
                }
                if annotations:
                    item['annotations'] = dict(annotations)
                items.append(item)
        return items

    def _text_blocks(
        self, kind: str, rich_text: List[Dict[str, Any]], extra: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Build one block per MAX_RICH_TEXT_ITEMS rich text items."""
        groups = [
            rich_text[i:i + MAX_RICH_TEXT_ITEMS] for i in range(0, len(rich_text), MAX_RICH_TEXT_ITEMS)
        ] or [[]]
        blocks = []
        for group in groups:
            body: Dict[str, Any] = {'rich_text': group}
            if extra:
                body.update(extra)
            blocks.append(_block(kind, body))
        return blocks

    # -- blocks --------------------------------------------------------

    def _render_block(self, block: ContentBlock, resolve: Resolver, depth: int) -> List[Dict[str, Any]]:
        if isinstance(block, Heading):
            level = min(max(block.level, 1), MAX_HEADING_LEVEL)
            return self._text_blocks(f"heading_{level}", self.rich_text(block.spans, resolve))
        if isinstance(block, Paragraph):
            return self._text_blocks('paragraph', self.rich_text(block.spans, resolve))
        if isinstance(block, Code):
            return self._text_blocks(
                'code',
                [{'type': 'text', 'text': {'content': chunk, 'link': None}} for chunk in _chunk_text(block.text)],
                {'language': block.language},
            )
        if isinstance(block, ListBlock):
            return self._render_list(block, resolve, depth)
        if isinstance(block, Table):
            return self._render_table(block, resolve, depth)
        if isinstance(block, Image):
            return [_block('image', {
                'type': 'external',
                'external': {'url': block.url},
                'caption': self.rich_text(block.caption, resolve)[:MAX_RICH_TEXT_ITEMS],
            })]
        if isinstance(block, LinkBlock):
            return self._render_link_block(block, resolve)
        if isinstance(block, Quote):
            blocks = self._text_blocks('quote', self.rich_text(block.spans, resolve))
            return self._attach_children(blocks, block.children, resolve, depth)
        if isinstance(block, Divider):
            return [_block('divider', {})]
        raise TypeError(f"Unknown content block: {type(block).__name__}")

    def _attach_children(
        self,
        blocks: List[Dict[str, Any]],
        children: List[ContentBlock],
        resolve: Resolver,
        depth: int,
    ) -> List[Dict[str, Any]]:
        """Nest children under the last block, or flatten them past the depth limit.

        A children array longer than the per-call block limit is spread over
        the last block and empty continuation blocks of the same type that
        follow it, so every nested array fits in one request.
        """
        if not children:
            return blocks
        if depth >= MAX_NESTING_DEPTH:
            flattened = list(blocks)
            for child in children:
                flattened.extend(self._render_block(child, resolve, depth))
            return flattened
        rendered: List[Dict[str, Any]] = []
        for child in children:
            rendered.extend(self._render_block(child, resolve, depth + 1))
        if not rendered:
            return blocks

        size = self.max_blocks_per_request
        groups = [rendered[i:i + size] for i in range(0, len(rendered), size)]
        last = blocks[-1]
        kind = last['type']
        last[kind]['children'] = groups[0]
        for group in groups[1:]:
            blocks.append(_block(kind, {'rich_text': [], 'children': group}))
        if len(groups) > 1:
            logger.debug(f"Split {len(rendered)} nested {kind} children over {len(groups)} blocks")
        return blocks

    def _render_list(self, block: ListBlock, resolve: Resolver, depth: int) -> List[Dict[str, Any]]:
        kind = 'numbered_list_item' if block.ordered else 'bulleted_list_item'
        rendered: List[Dict[str, Any]] = []
        for item in block.items:
            item_blocks = self._text_blocks(kind, self.rich_text(item.spans, resolve))
            rendered.extend(self._attach_children(item_blocks, item.children, resolve, depth))
        return rendered

    def _render_table(self, block: Table, resolve: Resolver, depth: int) -> List[Dict[str, Any]]:
        if not block.rows:
            return []
        rows = [
            {
                'object': 'block',
                'type': 'table_row',
                'table_row': {'cells': [self.rich_text(cell, resolve) for cell in row]},
            }
            for row in block.rows
        ]
        if depth >= MAX_NESTING_DEPTH:
            # Rows are children of the table, so there is no room for them here
            return [
                _block('paragraph', {'rich_text': self._join_cells(row['table_row']['cells'])})
                for row in rows
            ]

        size = self.max_blocks_per_request
        tables = []
        for index, start in enumerate(range(0, len(rows), size)):
            tables.append(_block('table', {
                'table_width': block.width,
                'has_column_header': block.has_header and index == 0,
                'has_row_header': False,
                'children': rows[start:start + size],
            }))
        if len(tables) > 1:
            logger.debug(f"Split table of {len(rows)} rows into {len(tables)} tables")
        return tables

    def _join_cells(self, cells: List[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        joined: List[Dict[str, Any]] = []
        for index, cell in enumerate(cells):
            if index:
                joined.append({'type': 'text', 'text': {'content': ' | ', 'link': None}})
            joined.extend(cell)
        return joined[:MAX_RICH_TEXT_ITEMS]

    def _render_link_block(self, block: LinkBlock, resolve: Resolver) -> List[Dict[str, Any]]:
        if isinstance(block.target, ExternalLink):
            return [_block('bookmark', {'url': block.target.url, 'caption': []})]
        if isinstance(block.target, InternalLink):
            page_id = resolve(block.target.path)
            if page_id:
                return [_block('link_to_page', {'type': 'page_id', 'page_id': page_id})]
        # Placeholder until the target page has an id
        return self._text_blocks('paragraph', self.rich_text([Span(block.text)], resolve))
