"""Data models for the content block representation.

A mapped markdown document is an ordered list of ContentBlock values. The
block model is independent of both the markdown parser and the Notion wire
format: the MarkdownMapper produces it, the NotionRenderer turns it into API
payloads.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set, Union


@dataclass(frozen=True)
class ExternalLink:
    """Link to anything outside the corpus (http, mailto, ...)."""
    url: str


@dataclass(frozen=True)
class InternalLink:
    """Link to another document of the corpus.

    Attributes:
        path: Corpus-relative POSIX path of the target (normalised, no ``..``)
        anchor: Optional fragment from the original link
    """
    path: str
    anchor: Optional[str] = None


LinkTarget = Union[ExternalLink, InternalLink]


@dataclass
class Span:
    """One inline run of text with uniform formatting."""
    text: str
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    code: bool = False
    link: Optional[LinkTarget] = None


@dataclass
class Heading:
    level: int
    spans: List[Span]


@dataclass
class Paragraph:
    spans: List[Span]


@dataclass
class Code:
    language: str
    text: str


@dataclass
class ListItem:
    """One list item: its own text plus nested blocks (usually sub-lists)."""
    spans: List[Span]
    children: List['ContentBlock'] = field(default_factory=list)


@dataclass
class ListBlock:
    ordered: bool
    items: List[ListItem]


@dataclass
class Table:
    """Table with rows of cells; every row has the same number of cells."""
    rows: List[List[List[Span]]]
    has_header: bool = True

    @property
    def width(self) -> int:
        return len(self.rows[0]) if self.rows else 0


@dataclass
class Image:
    url: str
    caption: List[Span] = field(default_factory=list)


@dataclass
class LinkBlock:
    """A paragraph consisting of a single bare link."""
    target: LinkTarget
    text: str


@dataclass
class Quote:
    spans: List[Span]
    children: List['ContentBlock'] = field(default_factory=list)


@dataclass
class Divider:
    pass


ContentBlock = Union[Heading, Paragraph, Code, ListBlock, Table, Image, LinkBlock, Quote, Divider]


@dataclass
class MappedDocument:
    """Result of mapping one markdown AST.

    Attributes:
        blocks: Content blocks in source order
        internal_targets: Corpus-relative paths named by internal links
        title: Text of the first level-1 heading, if any
    """
    blocks: List[ContentBlock] = field(default_factory=list)
    internal_targets: Set[str] = field(default_factory=set)
    title: Optional[str] = None
