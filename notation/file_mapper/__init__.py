"""File mapper library for reading the local markdown corpus.

This package provides the local side of a publish run: configuration
loading, frontmatter parsing and the filesystem-to-page-tree hierarchy
builder.
"""

from .config_loader import ConfigLoader
from .errors import (
    ConfigError,
    EmptyCorpusError,
    FileMapperError,
    FilesystemError,
    FrontmatterError,
    ParseFailure,
)
from .frontmatter_handler import FrontmatterHandler
from .hierarchy_builder import HierarchyBuilder
from .models import DocumentMetadata, PageNode, PublishSettings, SourceDocument, SyncConfig

__all__ = [
    'ConfigLoader',
    'FrontmatterHandler',
    'HierarchyBuilder',
    'DocumentMetadata',
    'PageNode',
    'PublishSettings',
    'SourceDocument',
    'SyncConfig',
    'FileMapperError',
    'FilesystemError',
    'ConfigError',
    'FrontmatterError',
    'ParseFailure',
    'EmptyCorpusError',
]
