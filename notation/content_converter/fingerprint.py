"""Content fingerprints for comparing local and remote page content.

Notion exposes no content hash, so both sides are reduced to the same
normalised form and hashed: payloads we are about to send, and block trees
read back from the API. Only what we control survives normalisation (block
type, text, the annotations that are set, link targets, a few per-type
attributes); ids, timestamps, colours left at default and child pages are
dropped.
"""

import hashlib
import json
import re
from typing import Any, Dict, List, Optional

# Blocks that are part of the page tree, not the page content
IGNORED_BLOCK_TYPES = frozenset({'child_page', 'child_database'})

ANNOTATION_FLAGS = ('bold', 'italic', 'strikethrough', 'underline', 'code')

NOTION_ID_PATTERN = re.compile(
    r'([0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12})(?![0-9a-f])', re.IGNORECASE
)


def normalize_link(url: Optional[str]) -> Optional[str]:
    """Reduce links to Notion pages to ``notion:<id>``.

    Notion returns links to its own pages as ``/<id>`` while we send
    ``https://www.notion.so/<id>``; both must compare equal.
    """
    if not url:
        return None
    if url.startswith('/') or 'notion.so' in url or 'notion.site' in url:
        match = NOTION_ID_PATTERN.search(url)
        if match:
            return f"notion:{match.group(1).replace('-', '').lower()}"
    return url


def normalize_rich_text(items: List[Dict[str, Any]]) -> List[List[Any]]:
    """Normalise a rich text array to merged ``[text, link, flags]`` runs."""
    runs: List[List[Any]] = []
    for item in items or []:
        text_part = item.get('text') or {}
        content = text_part.get('content')
        if content is None:
            content = item.get('plain_text', '')
        link = (text_part.get('link') or {}).get('url') if text_part else None
        if link is None:
            link = item.get('href')
        annotations = item.get('annotations') or {}
        flags = [name for name in ANNOTATION_FLAGS if annotations.get(name)]
        color = annotations.get('color')
        if color and color != 'default':
            flags.append(f"color:{color}")
        link = normalize_link(link)

        if runs and runs[-1][1] == link and runs[-1][2] == flags:
            runs[-1][0] += content
        elif content:
            runs.append([content, link, flags])
    return runs


def _normalize_block(block: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    kind = block.get('type')
    if not kind or kind in IGNORED_BLOCK_TYPES:
        return None
    body = block.get(kind) or {}
    normalized: Dict[str, Any] = {'type': kind}

    if 'rich_text' in body:
        normalized['text'] = normalize_rich_text(body['rich_text'])
    if kind == 'code':
        normalized['language'] = body.get('language', 'plain text')
    elif kind == 'image':
        source = body.get('type', 'external')
        normalized['url'] = (body.get(source) or {}).get('url')
        normalized['caption'] = normalize_rich_text(body.get('caption', []))
    elif kind == 'bookmark':
        normalized['url'] = body.get('url')
    elif kind == 'link_to_page':
        target = body.get(body.get('type', 'page_id'), '') or ''
        normalized['page'] = target.replace('-', '').lower()
    elif kind == 'table':
        normalized['width'] = body.get('table_width')
        normalized['column_header'] = bool(body.get('has_column_header'))
        normalized['row_header'] = bool(body.get('has_row_header'))
    elif kind == 'table_row':
        normalized['cells'] = [normalize_rich_text(cell) for cell in body.get('cells', [])]
    elif kind == 'to_do':
        normalized['checked'] = bool(body.get('checked'))

    children = body.get('children') or block.get('children')
    if children:
        normalized['children'] = normalize_blocks(children)
    return normalized


def normalize_blocks(blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Normalise a block list (outgoing payloads or API responses)."""
    normalized = []
    for block in blocks or []:
        item = _normalize_block(block)
        if item is not None:
            normalized.append(item)
    return normalized


def content_fingerprint(blocks: List[Dict[str, Any]]) -> str:
    """Return the sha256 hex digest of the normalised block list.

    Example:
        >>> content_fingerprint(rendered) == content_fingerprint(fetched_from_notion)
        True
    """
    canonical = json.dumps(normalize_blocks(blocks), sort_keys=True, ensure_ascii=False, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()
