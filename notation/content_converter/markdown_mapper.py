"""Markdown to content block mapping.

Markdown is parsed by mistune into its AST token list; MarkdownMapper walks
that list and produces the ContentBlock model, collecting the internal link
targets it sees on the way. Links are classified at mapping time but never
checked for existence here; that is the LinkResolver's job.
"""

import logging
import posixpath
import threading
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlsplit

import mistune

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
    ListItem,
    MappedDocument,
    Paragraph,
    Quote,
    Span,
    Table,
)
from .code_languages import notion_language
from .errors import UnsupportedLocalAsset

logger = logging.getLogger(__name__)

MARKDOWN_PLUGINS = ['table', 'strikethrough', 'url']

_parsers = threading.local()


def parse_markdown(text: str) -> List[Dict[str, Any]]:
    """Parse markdown text into a mistune AST token list.

    Each thread keeps its own parser instance, so documents can be parsed
    on a worker pool.
    """
    parser = getattr(_parsers, 'markdown', None)
    if parser is None:
        parser = mistune.create_markdown(renderer=None, plugins=MARKDOWN_PLUGINS)
        _parsers.markdown = parser
    return parser(text)


def classify_link(url: str, document_path: str) -> LinkTarget:
    """Classify a link URL as external or corpus-internal.

    Args:
        url: Link destination as written in the document
        document_path: Corpus-relative path of the document holding the link

    Returns:
        ExternalLink for anything with a scheme or host, otherwise an
        InternalLink with a normalised corpus-relative path

    Example:
        >>> classify_link("../setup.md#install", "guide/intro.md")
        InternalLink(path='setup.md', anchor='install')
    """
    if url.startswith('#'):
        return InternalLink(path=document_path, anchor=unquote(url[1:]) or None)

    parts = urlsplit(url)
    if parts.scheme or parts.netloc:
        return ExternalLink(url=url)

    path = unquote(parts.path)
    anchor = unquote(parts.fragment) or None
    if not path:
        return InternalLink(path=document_path, anchor=anchor)
    if path.startswith('/'):
        joined = path.lstrip('/')
    else:
        joined = posixpath.join(posixpath.dirname(document_path), path)
    return InternalLink(path=posixpath.normpath(joined), anchor=anchor)


def is_hosted_url(url: str) -> bool:
    return urlsplit(url).scheme.lower() in ('http', 'https')


def spans_text(spans: List[Span]) -> str:
    return ''.join(span.text for span in spans)


def _merge_spans(spans: List[Span]) -> List[Span]:
    """Join neighbouring spans that share formatting and link."""
    merged: List[Span] = []
    for span in spans:
        if not span.text:
            continue
        if merged:
            last = merged[-1]
            if (last.bold, last.italic, last.strikethrough, last.code, last.link) == \
                    (span.bold, span.italic, span.strikethrough, span.code, span.link):
                last.text += span.text
                continue
        merged.append(Span(span.text, span.bold, span.italic, span.strikethrough, span.code, span.link))
    return merged


class _DocumentMapping:
    """State for mapping a single document."""

    def __init__(self, document_path: str):
        self.document_path = document_path
        self.internal_targets = set()
        self.title: Optional[str] = None

    # -- inline --------------------------------------------------------

    def link_target(self, url: str) -> LinkTarget:
        target = classify_link(url, self.document_path)
        if isinstance(target, InternalLink):
            self.internal_targets.add(target.path)
        return target

    def inline(self, tokens: List[Dict[str, Any]], style: Optional[Dict[str, Any]] = None) -> List[Span]:
        style = style or {}
        spans: List[Span] = []
        for token in tokens:
            kind = token.get('type')
            if kind == 'text':
                spans.append(Span(token.get('raw', ''), **style))
            elif kind == 'codespan':
                spans.append(Span(token.get('raw', ''), **dict(style, code=True)))
            elif kind == 'softbreak':
                spans.append(Span(' ', **style))
            elif kind == 'linebreak':
                spans.append(Span('\n', **style))
            elif kind == 'emphasis':
                spans.extend(self.inline(token.get('children', []), dict(style, italic=True)))
            elif kind == 'strong':
                spans.extend(self.inline(token.get('children', []), dict(style, bold=True)))
            elif kind == 'strikethrough':
                spans.extend(self.inline(token.get('children', []), dict(style, strikethrough=True)))
            elif kind == 'link':
                url = token.get('attrs', {}).get('url', '')
                spans.extend(self.inline(token.get('children', []), dict(style, link=self.link_target(url))))
            elif kind == 'image':
                # Images outside a paragraph's top level keep only their alt text, linked to the source
                url = token.get('attrs', {}).get('url', '')
                if not is_hosted_url(url):
                    raise UnsupportedLocalAsset(unquote(url), self.document_path)
                alt = self.inline(token.get('children', []), style) or [Span(url, **style)]
                for span in alt:
                    span.link = ExternalLink(url)
                spans.extend(alt)
            elif kind == 'inline_html':
                logger.debug(f"Dropping inline HTML in {self.document_path}: {token.get('raw', '')!r}")
            elif 'children' in token:
                spans.extend(self.inline(token['children'], style))
            elif 'raw' in token:
                spans.append(Span(token['raw'], **style))
        return _merge_spans(spans)

    # -- blocks --------------------------------------------------------

    def blocks(self, tokens: List[Dict[str, Any]]) -> List[ContentBlock]:
        result: List[ContentBlock] = []
        for token in tokens:
            result.extend(self.block(token))
        return result

    def block(self, token: Dict[str, Any]) -> List[ContentBlock]:
        kind = token.get('type')
        if kind == 'heading':
            level = token.get('attrs', {}).get('level', 1)
            spans = self.inline(token.get('children', []))
            if level == 1 and self.title is None:
                self.title = spans_text(spans).strip() or None
            return [Heading(level=level, spans=spans)]
        if kind in ('paragraph', 'block_text'):
            return self.paragraph(token.get('children', []))
        if kind == 'block_code':
            info = token.get('attrs', {}).get('info', '') or ''
            text = token.get('raw', '')
            if text.endswith('\n'):
                text = text[:-1]
            return [Code(language=notion_language(info), text=text)]
        if kind == 'list':
            return [self.list_block(token)]
        if kind == 'table':
            return [self.table(token)]
        if kind == 'block_quote':
            return [self.quote(token)]
        if kind == 'thematic_break':
            return [Divider()]
        if kind == 'block_html':
            logger.debug(f"Dropping HTML block in {self.document_path}")
            return []
        if kind == 'blank_line':
            return []
        logger.debug(f"Skipping unsupported markdown token '{kind}' in {self.document_path}")
        return []

    def paragraph(self, children: List[Dict[str, Any]]) -> List[ContentBlock]:
        bare_link = self._bare_link(children)
        if bare_link is not None:
            return [bare_link]

        result: List[ContentBlock] = []
        pending: List[Dict[str, Any]] = []

        def flush():
            spans = self.inline(pending)
            if spans_text(spans).strip():
                result.append(Paragraph(spans=spans))
            pending.clear()

        for child in children:
            if child.get('type') == 'image':
                flush()
                url = child.get('attrs', {}).get('url', '')
                if not is_hosted_url(url):
                    raise UnsupportedLocalAsset(unquote(url), self.document_path)
                result.append(Image(url=url, caption=self.inline(child.get('children', []))))
            else:
                pending.append(child)
        flush()
        return result

    def _bare_link(self, children: List[Dict[str, Any]]) -> Optional[LinkBlock]:
        meaningful = [c for c in children if not (c.get('type') == 'text' and not c.get('raw', '').strip())]
        if len(meaningful) != 1 or meaningful[0].get('type') != 'link':
            return None
        link = meaningful[0]
        url = link.get('attrs', {}).get('url', '')
        text = spans_text(self.inline(link.get('children', []))).strip()
        if text not in (url, unquote(url)):
            return None
        return LinkBlock(target=self.link_target(url), text=text)

    def list_block(self, token: Dict[str, Any]) -> ListBlock:
        ordered = bool(token.get('attrs', {}).get('ordered', False))
        items: List[ListItem] = []
        for item in token.get('children', []):
            if item.get('type') != 'list_item':
                continue
            spans: List[Span] = []
            children = list(item.get('children', []))
            if children and children[0].get('type') in ('block_text', 'paragraph'):
                spans = self.inline(children.pop(0).get('children', []))
            items.append(ListItem(spans=spans, children=self.blocks(children)))
        return ListBlock(ordered=ordered, items=items)

    def table(self, token: Dict[str, Any]) -> Table:
        rows: List[List[List[Span]]] = []
        has_header = False
        for part in token.get('children', []):
            if part.get('type') == 'table_head':
                has_header = True
                rows.append([self.inline(cell.get('children', [])) for cell in part.get('children', [])])
            elif part.get('type') == 'table_body':
                for row in part.get('children', []):
                    rows.append([self.inline(cell.get('children', [])) for cell in row.get('children', [])])

        width = max((len(row) for row in rows), default=0)
        for row in rows:
            row.extend([] for _ in range(width - len(row)))
        return Table(rows=rows, has_header=has_header)

    def quote(self, token: Dict[str, Any]) -> Quote:
        spans: List[Span] = []
        children: List[ContentBlock] = []
        for child in token.get('children', []):
            if child.get('type') in ('paragraph', 'block_text') and not children:
                if spans:
                    spans.append(Span('\n'))
                spans.extend(self.inline(child.get('children', [])))
            elif child.get('type') != 'blank_line':
                children.extend(self.block(child))
        return Quote(spans=_merge_spans(spans), children=children)


class MarkdownMapper:
    """Maps a mistune AST to content blocks.

    Example:
        >>> mapper = MarkdownMapper()
        >>> doc = mapper.map(parse_markdown("# Intro\\n\\nSee [setup](setup.md)."), "guide/intro.md")
        >>> doc.title, sorted(doc.internal_targets)
        ('Intro', ['guide/setup.md'])
    """

    def map(self, ast: List[Dict[str, Any]], document_path: str) -> MappedDocument:
        """Map one document's AST.

        Args:
            ast: Token list from parse_markdown
            document_path: Corpus-relative POSIX path of the document

        Returns:
            MappedDocument with blocks in source order

        Raises:
            UnsupportedLocalAsset: If an image source is not an http(s) URL
        """
        mapping = _DocumentMapping(document_path)
        blocks = mapping.blocks(ast)
        logger.debug(
            f"Mapped {document_path}: {len(blocks)} blocks, "
            f"{len(mapping.internal_targets)} internal link target(s)"
        )
        return MappedDocument(blocks=blocks, internal_targets=mapping.internal_targets, title=mapping.title)

    def map_text(self, text: str, document_path: str) -> MappedDocument:
        """Parse and map markdown text in one step."""
        return self.map(parse_markdown(text), document_path)


def first_heading_text(ast: List[Dict[str, Any]]) -> Optional[str]:
    """Return the plain text of the first level-1 heading of an AST."""
    for token in ast:
        if token.get('type') == 'heading' and token.get('attrs', {}).get('level') == 1:
            text = _plain_text(token.get('children', [])).strip()
            if text:
                return text
    return None


def _plain_text(tokens: List[Dict[str, Any]]) -> str:
    parts = []
    for token in tokens:
        kind = token.get('type')
        if kind in ('softbreak', 'linebreak'):
            parts.append(' ')
        elif 'children' in token:
            parts.append(_plain_text(token['children']))
        elif kind != 'inline_html':
            parts.append(token.get('raw', ''))
    return ''.join(parts)
