"""Hierarchy builder for turning a markdown directory into a page tree.

Directories become pages and their markdown files become child pages. The
tree is built in two steps: a deterministic filesystem scan producing the
page skeleton, then concurrent reading and parsing of every document on a
bounded thread pool. A document that cannot be read or parsed does not stop
the build; the failure is recorded on its page.
"""

import logging
import os
import posixpath
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Tuple

from ..content_converter.markdown_mapper import first_heading_text, parse_markdown
from .errors import EmptyCorpusError, FilesystemError, FrontmatterError, ParseFailure
from .frontmatter_handler import FrontmatterHandler
from .models import ROOT_PATH, PageNode, SourceDocument

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ('.md', '.markdown')

# Files holding the content of their directory's page
INDEX_FILE_NAMES = ('index.md', 'index.markdown')

# Maximum file size to prevent memory exhaustion
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB in bytes

# Maximum directory depth to prevent runaway recursion
MAX_RECURSION_DEPTH = 50

MAX_WORKERS = 10


def title_from_name(name: str) -> str:
    """Derive a title from a file or directory name.

    Example:
        >>> title_from_name("getting-started.md")
        'getting started'
    """
    stem = name
    for ext in MARKDOWN_EXTENSIONS:
        if stem.lower().endswith(ext):
            stem = stem[:-len(ext)]
            break
    title = stem.replace('-', ' ').replace('_', ' ').strip()
    return title or name


def is_markdown_file(name: str) -> bool:
    return name.lower().endswith(MARKDOWN_EXTENSIONS)


def is_index_file(name: str) -> bool:
    return name.lower() in INDEX_FILE_NAMES


class HierarchyBuilder:
    """Builds the local page tree from a source directory.

    Rules:
        - Entries are visited in lexicographic order of their names
        - Hidden entries (leading dot) are skipped, symlinked directories
          are not followed
        - ``index.md`` (any case) is the content of its directory's page
        - Directories without markdown, directly or transitively, are omitted

    Example:
        >>> builder = HierarchyBuilder(workers=4)
        >>> root = builder.build("./docs")
        >>> [child.title for child in root.children]
        ['guide']
    """

    def __init__(
        self,
        workers: int = MAX_WORKERS,
        max_file_size: int = MAX_FILE_SIZE,
        max_depth: int = MAX_RECURSION_DEPTH,
    ):
        """Initialize the hierarchy builder.

        Args:
            workers: Thread pool size for reading and parsing documents
            max_file_size: Largest document accepted, in bytes
            max_depth: Deepest directory level scanned
        """
        self._workers = max(1, workers)
        self._max_file_size = max_file_size
        self._max_depth = max_depth

    def build(self, source: str) -> PageNode:
        """Build the page tree for a directory or a single markdown file.

        Args:
            source: Path of the corpus directory, or of one markdown file

        Returns:
            Root PageNode of the tree

        Raises:
            FilesystemError: If the source does not exist or cannot be listed
            EmptyCorpusError: If no markdown document was found
        """
        if not os.path.exists(source):
            raise FilesystemError(source, 'read', 'Source path does not exist')

        pending: List[Tuple[PageNode, str]] = []
        if os.path.isfile(source):
            if not is_markdown_file(source):
                raise FilesystemError(source, 'read', 'Source file is not a markdown file')
            name = os.path.basename(source)
            root = PageNode(title=title_from_name(name), path=name)
            root.document = SourceDocument(path=name, raw_text="")
            pending.append((root, source))
        else:
            root = self._scan_directory(source, ROOT_PATH, 0, pending)
            if root is None:
                raise EmptyCorpusError(source)
            root.title = title_from_name(os.path.basename(os.path.abspath(source)))

        logger.info(f"Found {len(pending)} markdown document(s) in {source}")
        self._load_documents(pending)
        self._assign_parent_paths(root)
        return root

    def _scan_directory(
        self,
        abs_dir: str,
        rel_dir: str,
        depth: int,
        pending: List[Tuple[PageNode, str]],
    ) -> Optional[PageNode]:
        """Scan one directory; returns None when it holds no markdown."""
        if depth > self._max_depth:
            logger.warning(f"Skipping {abs_dir}: deeper than {self._max_depth} levels")
            return None

        try:
            entries = sorted(os.scandir(abs_dir), key=lambda entry: entry.name)
        except OSError as e:
            raise FilesystemError(abs_dir, 'list', str(e))

        children: List[PageNode] = []
        index_entry = None
        for entry in entries:
            if entry.name.startswith('.'):
                continue
            rel_path = entry.name if rel_dir == ROOT_PATH else posixpath.join(rel_dir, entry.name)

            if entry.is_dir(follow_symlinks=False):
                child = self._scan_directory(entry.path, rel_path, depth + 1, pending)
                if child is not None:
                    children.append(child)
            elif entry.is_symlink() and entry.is_dir():
                logger.debug(f"Not following symlinked directory {entry.path}")
            elif entry.is_file() and is_markdown_file(entry.name):
                if is_index_file(entry.name):
                    if index_entry is not None:
                        logger.warning(f"Ignoring {rel_path}: {rel_dir} already has an index file")
                        continue
                    index_entry = (entry, rel_path)
                    continue
                node = PageNode(title=title_from_name(entry.name), path=rel_path)
                node.document = SourceDocument(path=rel_path, raw_text="")
                pending.append((node, entry.path))
                children.append(node)

        if not children and index_entry is None:
            return None

        node = PageNode(
            title=title_from_name(os.path.basename(os.path.abspath(abs_dir))),
            path=rel_dir,
            is_directory=True,
            children=children,
        )
        if index_entry is not None:
            entry, rel_path = index_entry
            node.document = SourceDocument(path=rel_path, raw_text="")
            pending.append((node, entry.path))
        return node

    def _load_documents(self, pending: List[Tuple[PageNode, str]]) -> None:
        """Read, split and parse every document on the worker pool."""
        with ThreadPoolExecutor(max_workers=self._workers) as executor:
            futures = {
                executor.submit(self._load_document, node.document.path, abs_path): node
                for node, abs_path in pending
            }
            for future in as_completed(futures):
                node = futures[future]
                try:
                    document = future.result()
                except ParseFailure as e:
                    logger.error(f"  ✗ {e}")
                    node.failure = e
                    continue
                node.document = document
                if document.metadata.emoji:
                    node.icon = document.metadata.emoji
                title = document.metadata.title or first_heading_text(document.ast)
                if title:
                    node.title = title
                logger.debug(f"  ✓ Parsed {document.path} as '{node.title}'")

    def _load_document(self, rel_path: str, abs_path: str) -> SourceDocument:
        """Load one document.

        Raises:
            ParseFailure: If the file is too large, unreadable, not UTF-8,
                has invalid frontmatter or cannot be parsed
        """
        try:
            size = os.path.getsize(abs_path)
        except OSError as e:
            raise ParseFailure(rel_path, f"Failed to check file size: {e}")
        if size > self._max_file_size:
            size_mb = size / (1024 * 1024)
            max_mb = self._max_file_size / (1024 * 1024)
            raise ParseFailure(
                rel_path, f"File size ({size_mb:.2f} MB) exceeds maximum allowed size ({max_mb:.0f} MB)"
            )

        try:
            with open(abs_path, 'r', encoding='utf-8-sig') as f:
                raw_text = f.read()
        except UnicodeDecodeError as e:
            raise ParseFailure(rel_path, f"File is not valid UTF-8: {e}")
        except OSError as e:
            raise ParseFailure(rel_path, f"Failed to read file: {e}")

        try:
            metadata, content = FrontmatterHandler.parse(rel_path, raw_text)
        except FrontmatterError as e:
            raise ParseFailure(rel_path, e.message)

        try:
            ast = parse_markdown(content)
        except (ValueError, RecursionError) as e:
            raise ParseFailure(rel_path, f"Markdown parser failed: {e}")

        return SourceDocument(path=rel_path, raw_text=raw_text, content=content, metadata=metadata, ast=ast)

    def _assign_parent_paths(self, node: PageNode) -> None:
        for child in node.children:
            child.parent_path = node.path
            self._assign_parent_paths(child)
