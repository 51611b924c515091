"""Exceptions raised while mapping markdown to content blocks."""

from ..notion_api.errors import SyncError


class ConversionError(SyncError):
    """Raised when a markdown document cannot be mapped to content blocks."""
    pass


class UnsupportedLocalAsset(ConversionError):
    """Raised when an image references a local file instead of a hosted URL.

    Binary assets are never uploaded; only http(s) image URLs are accepted.
    """

    def __init__(self, source: str, document_path: str):
        super().__init__(
            f"Image '{source}' in {document_path} is not an http(s) URL; "
            f"local assets cannot be published"
        )
        self.source = source
        self.document_path = document_path
