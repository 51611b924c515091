"""Content conversion from markdown to Notion blocks.

This module provides the MarkdownMapper (mistune AST to content blocks), the
NotionRenderer (content blocks to API payloads) and content fingerprints used
to decide whether a remote page is up to date.
"""

from .block_models import ExternalLink, InternalLink, MappedDocument, Span
from .errors import ConversionError, UnsupportedLocalAsset
from .fingerprint import content_fingerprint, normalize_blocks
from .markdown_mapper import MarkdownMapper, classify_link, parse_markdown
from .notion_renderer import NotionRenderer

__all__ = [
    'MarkdownMapper',
    'NotionRenderer',
    'MappedDocument',
    'ExternalLink',
    'InternalLink',
    'Span',
    'ConversionError',
    'UnsupportedLocalAsset',
    'classify_link',
    'parse_markdown',
    'content_fingerprint',
    'normalize_blocks',
]
