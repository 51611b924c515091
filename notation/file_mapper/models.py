"""Data models for file mapper.

This module defines the data models describing the local corpus: source
documents, the page tree built from them and the publish configuration.
All models use dataclasses for clean, type-safe data structures.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set

# Page path of the corpus root directory
ROOT_PATH = "."


@dataclass
class DocumentMetadata:
    """Per-document settings read from YAML frontmatter.

    Attributes:
        title: Page title override
        emoji: Page icon (a single emoji)
    """
    title: Optional[str] = None
    emoji: Optional[str] = None


@dataclass
class SourceDocument:
    """One markdown file of the corpus.

    Rebuilt on every run; identity is the corpus-relative path.

    Attributes:
        path: Corpus-relative POSIX path (e.g. "guide/intro.md")
        raw_text: File content as read from disk
        content: Markdown content without frontmatter
        metadata: Parsed frontmatter
        ast: mistune token list for ``content``
    """
    path: str
    raw_text: str
    content: str = ""
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    ast: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class PageNode:
    """One node of the local page tree.

    Children are stored inline; a node refers to its parent only through
    ``parent_path``, the parent's page path.

    Attributes:
        title: Page title
        path: Page path: the file path for file pages, the directory path
            for directory pages, "." for the corpus root
        is_directory: True for pages created from directories
        parent_path: Page path of the parent (None for the root)
        children: Child pages in lexicographic source order
        document: Source document providing the content (None for a
            directory without an index file)
        icon: Emoji icon from frontmatter
        blocks: Mapped content blocks
        internal_targets: Corpus-relative paths named by internal links
        remote_id: Notion page id, set once matched or created
        failure: Error recorded against this page; a failed page and its
            subtree are not published
        link_error: Broken internal links of this page; the page is still
            published, with unknown targets as plain text, but reported failed
        sent_fingerprint: Fingerprint of the content last sent (or found
            up to date) during this run
    """
    title: str
    path: str
    is_directory: bool = False
    parent_path: Optional[str] = None
    children: List['PageNode'] = field(default_factory=list)
    document: Optional[SourceDocument] = None
    icon: Optional[str] = None
    blocks: List[Any] = field(default_factory=list)
    internal_targets: Set[str] = field(default_factory=set)
    remote_id: Optional[str] = None
    failure: Optional[Exception] = None
    link_error: Optional[Exception] = None
    sent_fingerprint: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.failure is not None

    def walk(self) -> Iterator['PageNode']:
        """Yield this node and its descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class PublishSettings:
    """Tuning for the publish run.

    Attributes:
        max_blocks_per_request: Per-call block limit of the Notion API
        requests_per_second: Shared rate limit for all API calls
        max_retries: Attempt ceiling for transient failures
        workers: Worker pool size for parsing and publishing
        timeout: Per-request HTTP timeout in seconds
    """
    max_blocks_per_request: int = 100
    requests_per_second: float = 3.0
    max_retries: int = 5
    workers: int = 4
    timeout: float = 30.0


@dataclass
class SyncConfig:
    """Overall publish configuration.

    Attributes:
        parent_page: Target parent page (title, page id or notion.so URL)
        publish: Publish tuning options
    """
    parent_page: str
    publish: PublishSettings = field(default_factory=PublishSettings)
