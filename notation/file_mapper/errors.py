"""Typed exception hierarchy for file mapper errors.

This module defines all custom exceptions raised while reading the local
corpus and its configuration. All exceptions inherit from FileMapperError for
easy catching and include descriptive messages with context.
"""

from typing import Optional

from ..notion_api.errors import SyncError


class FileMapperError(SyncError):
    """Base exception for all file mapper errors."""
    pass


class FilesystemError(FileMapperError):
    """Raised when filesystem operations fail (read, permissions, etc)."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Filesystem operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class ConfigError(FileMapperError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, config_field: Optional[str] = None):
        if config_field:
            full_message = f"Configuration error in field '{config_field}': {message}"
        else:
            full_message = f"Configuration error: {message}"
        super().__init__(full_message)
        self.config_field = config_field
        self.original_message = message


class FrontmatterError(FileMapperError):
    """Raised when YAML frontmatter parsing or validation fails."""

    def __init__(self, file_path: str, message: str):
        super().__init__(f"Frontmatter error in {file_path}: {message}")
        self.file_path = file_path
        self.message = message


class ParseFailure(FileMapperError):
    """Raised when one document cannot be read or mapped.

    Recorded on the document's PageNode; only that page's subtree is skipped.
    """

    def __init__(self, file_path: str, reason: str):
        super().__init__(f"Failed to parse {file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason


class EmptyCorpusError(FileMapperError):
    """Raised when the source path holds no markdown documents."""

    def __init__(self, source: str):
        super().__init__(f"No markdown documents found in {source}")
        self.source = source
