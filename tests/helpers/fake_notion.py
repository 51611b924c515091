"""In-memory Notion workspace for tests.

FakeNotion stands in for the ``requests.Session`` used by APIWrapper: it
implements ``request(method, url, json=, params=, timeout=)`` for the
endpoints notation calls and keeps pages and blocks in dictionaries.

It mirrors the API behaviours the publisher depends on:
    - creating a page adds a ``child_page`` block to its parent
    - nested ``children`` in payloads are stored as separate child blocks
    - links to Notion pages come back as ``/<id>``
    - annotations come back fully populated with ``color: default``
    - listing is paginated with ``start_cursor`` / ``next_cursor``
    - archived pages and deleted blocks disappear from listings

Failures can be scheduled with ``fail_next``.
"""

import copy
import json as jsonlib
import re
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

MAX_CHILDREN = 100

NOTION_URL_PATTERN = re.compile(r'^https://www\.notion\.so/([0-9a-f]{32})$')

DEFAULT_ANNOTATIONS = {
    'bold': False,
    'italic': False,
    'strikethrough': False,
    'underline': False,
    'code': False,
    'color': 'default',
}


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int, body: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}
        self.content = b'' if body is None else jsonlib.dumps(body).encode('utf-8')

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeNotion:
    """In-memory Notion API served through a requests-like session."""

    def __init__(self, page_size: int = 100):
        self.headers: Dict[str, str] = {}
        self.page_size = page_size
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.blocks: Dict[str, Dict[str, Any]] = {}
        self.children: Dict[str, List[str]] = {}
        self.calls: List[Tuple[str, str, Any]] = []
        self._failures: List[Tuple[Callable[[str, str, Any], bool], FakeResponse]] = []
        self._lock = threading.RLock()
        self.on_request: Optional[Callable[[str, str, Any], None]] = None

    # ------------------------------------------------------------------
    # test setup
    # ------------------------------------------------------------------

    def add_page(self, title: str, parent_id: Optional[str] = None, icon: Optional[str] = None) -> str:
        """Create a page directly (no call is recorded)."""
        with self._lock:
            return self._create_page(title, parent_id, icon, [])

    def fail_next(
        self,
        method: str,
        path_fragment: str,
        status: int,
        times: int = 1,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
        when: Optional[Callable[[Any], bool]] = None,
    ) -> None:
        """Answer the next ``times`` matching requests with an error status."""
        def matches(m: str, path: str, payload: Any) -> bool:
            if m != method or path_fragment not in path:
                return False
            return when is None or when(payload)

        error_body = body if body is not None else {'object': 'error', 'code': 'fake_error', 'message': 'failure'}
        for _ in range(times):
            self._failures.append((matches, FakeResponse(status, error_body, headers)))

    # ------------------------------------------------------------------
    # inspection helpers
    # ------------------------------------------------------------------

    def child_pages(self, parent_id: str) -> List[Dict[str, Any]]:
        """Non-archived child pages of a page, in order."""
        with self._lock:
            return [
                self.pages[block_id] for block_id in self.children.get(parent_id, [])
                if self.blocks[block_id]['type'] == 'child_page'
            ]

    def child_page_titles(self, parent_id: str) -> List[str]:
        return [page['title'] for page in self.child_pages(parent_id)]

    def find_child(self, parent_id: str, title: str) -> Dict[str, Any]:
        for page in self.child_pages(parent_id):
            if page['title'] == title:
                return page
        raise KeyError(f"No child page '{title}' under {parent_id}")

    def content_blocks(self, page_id: str) -> List[Dict[str, Any]]:
        """Stored content blocks of a page (child pages excluded)."""
        with self._lock:
            return [
                copy.deepcopy(self.blocks[block_id]) for block_id in self.children.get(page_id, [])
                if self.blocks[block_id]['type'] != 'child_page'
            ]

    def writes(self) -> List[Tuple[str, str, Any]]:
        """Recorded calls that modify the workspace."""
        return [call for call in self.calls if call[0] in ('POST', 'PATCH', 'DELETE') and call[1] != '/search']

    # ------------------------------------------------------------------
    # session interface
    # ------------------------------------------------------------------

    def request(self, method: str, url: str, json: Any = None, params: Any = None, timeout: Any = None) -> FakeResponse:
        path = '/' + url.split('/v1/', 1)[1] if '/v1/' in url else url
        with self._lock:
            self.calls.append((method, path, copy.deepcopy(json)))
            if self.on_request is not None:
                self.on_request(method, path, json)
            for index, (matches, response) in enumerate(self._failures):
                if matches(method, path, json):
                    del self._failures[index]
                    return response
            return self._dispatch(method, path, json or {}, params or {})

    def _dispatch(self, method: str, path: str, payload: Dict[str, Any], params: Dict[str, Any]) -> FakeResponse:
        parts = path.strip('/').split('/')
        if method == 'POST' and parts == ['pages']:
            return self._post_page(payload)
        if method == 'POST' and parts == ['search']:
            return self._search(payload)
        if parts[0] == 'pages' and len(parts) == 2:
            if method == 'GET':
                return self._get_page(parts[1])
            if method == 'PATCH':
                return self._patch_page(parts[1], payload)
        if parts[0] == 'blocks' and len(parts) == 3 and parts[2] == 'children':
            if method == 'GET':
                return self._list_children(parts[1], params)
            if method == 'PATCH':
                return self._append(parts[1], payload)
        if parts[0] == 'blocks' and len(parts) == 2 and method == 'DELETE':
            return self._delete_block(parts[1])
        return FakeResponse(400, {'object': 'error', 'code': 'invalid_request_url', 'message': path})

    # ------------------------------------------------------------------
    # endpoints
    # ------------------------------------------------------------------

    def _post_page(self, payload: Dict[str, Any]) -> FakeResponse:
        parent_id = payload.get('parent', {}).get('page_id')
        if parent_id not in self.pages or self.pages[parent_id]['archived']:
            return self._not_found(parent_id)
        title = ''.join(
            item['text']['content'] for item in payload['properties']['title']['title']
        )
        if self._oversized(payload.get('children', [])):
            return self._too_many_blocks()
        icon = (payload.get('icon') or {}).get('emoji')
        page_id = self._create_page(title, parent_id, icon, payload.get('children', []))
        return FakeResponse(200, self._page_object(page_id))

    def _search(self, payload: Dict[str, Any]) -> FakeResponse:
        query = (payload.get('query') or '').lower()
        results = [
            self._page_object(page_id) for page_id, page in self.pages.items()
            if not page['archived'] and query in page['title'].lower()
        ]
        return FakeResponse(200, {'object': 'list', 'results': results, 'has_more': False, 'next_cursor': None})

    def _get_page(self, page_id: str) -> FakeResponse:
        page_id = self._dashed(page_id)
        if page_id not in self.pages:
            return self._not_found(page_id)
        return FakeResponse(200, self._page_object(page_id))

    def _patch_page(self, page_id: str, payload: Dict[str, Any]) -> FakeResponse:
        if page_id not in self.pages:
            return self._not_found(page_id)
        page = self.pages[page_id]
        if 'properties' in payload:
            page['title'] = ''.join(
                item['text']['content'] for item in payload['properties']['title']['title']
            )
            self.blocks[page_id]['child_page']['title'] = page['title']
        if 'icon' in payload:
            page['icon'] = (payload['icon'] or {}).get('emoji')
        if payload.get('archived'):
            self._archive(page_id)
        return FakeResponse(200, self._page_object(page_id))

    def _list_children(self, block_id: str, params: Dict[str, Any]) -> FakeResponse:
        if block_id not in self.children:
            return self._not_found(block_id)
        ids = self.children[block_id]
        start = int(params.get('start_cursor') or 0)
        size = min(int(params.get('page_size') or self.page_size), self.page_size)
        window = ids[start:start + size]
        has_more = start + size < len(ids)
        return FakeResponse(200, {
            'object': 'list',
            'results': [self._block_object(child_id) for child_id in window],
            'has_more': has_more,
            'next_cursor': str(start + size) if has_more else None,
        })

    def _append(self, block_id: str, payload: Dict[str, Any]) -> FakeResponse:
        if block_id not in self.children:
            return self._not_found(block_id)
        children = payload.get('children', [])
        if self._oversized(children):
            return self._too_many_blocks()
        new_ids = self._store_blocks(block_id, children)
        return FakeResponse(200, {'object': 'list', 'results': [self._block_object(i) for i in new_ids]})

    def _delete_block(self, block_id: str) -> FakeResponse:
        if block_id not in self.blocks:
            return self._not_found(block_id)
        if self.blocks[block_id]['type'] == 'child_page':
            self._archive(block_id)
        else:
            self._detach(block_id)
        return FakeResponse(200, self._block_object(block_id))

    # ------------------------------------------------------------------
    # storage
    # ------------------------------------------------------------------

    def _create_page(self, title: str, parent_id: Optional[str], icon: Optional[str], children: List[Any]) -> str:
        page_id = str(uuid.uuid4())
        self.pages[page_id] = {'id': page_id, 'title': title, 'icon': icon, 'archived': False, 'parent': parent_id}
        self.blocks[page_id] = {
            'object': 'block',
            'id': page_id,
            'type': 'child_page',
            'child_page': {'title': title},
            'parent': parent_id,
        }
        self.children[page_id] = []
        if parent_id is not None:
            self.children[parent_id].append(page_id)
        self._store_blocks(page_id, children)
        return page_id

    def _store_blocks(self, parent_id: str, blocks: List[Dict[str, Any]]) -> List[str]:
        new_ids = []
        for block in blocks:
            stored = copy.deepcopy(block)
            kind = stored['type']
            body = stored.get(kind, {})
            nested = body.pop('children', None) or []
            self._convert_links(body)
            block_id = str(uuid.uuid4())
            stored.update({'object': 'block', 'id': block_id, 'parent': parent_id})
            self.blocks[block_id] = stored
            self.children[block_id] = []
            self.children[parent_id].append(block_id)
            self._store_blocks(block_id, nested)
            new_ids.append(block_id)
        return new_ids

    def _convert_links(self, body: Dict[str, Any]) -> None:
        """Store rich text the way Notion returns it."""
        arrays = []
        if 'rich_text' in body:
            arrays.append(body['rich_text'])
        if 'caption' in body:
            arrays.append(body['caption'])
        arrays.extend(body.get('cells', []))
        for items in arrays:
            for item in items:
                text = item.get('text') or {}
                link = text.get('link')
                if link and link.get('url'):
                    match = NOTION_URL_PATTERN.match(link['url'])
                    if match:
                        link['url'] = f"/{match.group(1)}"
                annotations = dict(DEFAULT_ANNOTATIONS)
                annotations.update(item.get('annotations') or {})
                item['annotations'] = annotations
                item['plain_text'] = text.get('content', '')
                item['href'] = link.get('url') if link else None

    def _archive(self, page_id: str) -> None:
        self.pages[page_id]['archived'] = True
        self._detach(page_id)

    def _detach(self, block_id: str) -> None:
        parent_id = self.blocks[block_id].get('parent')
        if parent_id is not None and block_id in self.children.get(parent_id, []):
            self.children[parent_id].remove(block_id)

    # ------------------------------------------------------------------
    # response objects
    # ------------------------------------------------------------------

    def _page_object(self, page_id: str) -> Dict[str, Any]:
        page = self.pages[page_id]
        result = {
            'object': 'page',
            'id': page_id,
            'archived': page['archived'],
            'url': f"https://www.notion.so/{page_id.replace('-', '')}",
            'icon': {'type': 'emoji', 'emoji': page['icon']} if page['icon'] else None,
            'properties': {
                'title': {
                    'id': 'title',
                    'type': 'title',
                    'title': [{'type': 'text', 'text': {'content': page['title']}, 'plain_text': page['title']}],
                },
            },
        }
        if page['parent'] is not None:
            result['parent'] = {'type': 'page_id', 'page_id': page['parent']}
        else:
            result['parent'] = {'type': 'workspace', 'workspace': True}
        return result

    def _block_object(self, block_id: str) -> Dict[str, Any]:
        block = copy.deepcopy(self.blocks[block_id])
        block.pop('parent', None)
        block['has_children'] = bool(self.children.get(block_id))
        block['archived'] = False
        return block

    def _dashed(self, page_id: str) -> str:
        compact = page_id.replace('-', '')
        for known in self.pages:
            if known.replace('-', '') == compact:
                return known
        return page_id

    def _oversized(self, blocks: List[Dict[str, Any]]) -> bool:
        """True if this or any nested children array holds more than 100 blocks."""
        if len(blocks) > MAX_CHILDREN:
            return True
        for block in blocks:
            body = block.get(block.get('type'), {}) or {}
            if self._oversized(body.get('children') or []):
                return True
        return False

    def _too_many_blocks(self) -> FakeResponse:
        return FakeResponse(400, {'object': 'error', 'code': 'validation_error', 'message': 'too many blocks'})

    def _not_found(self, object_id: Optional[str]) -> FakeResponse:
        return FakeResponse(404, {
            'object': 'error',
            'code': 'object_not_found',
            'message': f"Could not find block with ID: {object_id}",
        })
