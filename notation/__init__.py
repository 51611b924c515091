"""notation: publish a markdown directory tree as hierarchical Notion pages."""

__version__ = "0.1.0"
