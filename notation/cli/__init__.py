"""Command-line interface for publishing markdown to Notion.

This package provides the `notation` CLI tool that orchestrates a publish
run: it wires file mapping, content conversion and page operations into a
command-line workflow with progress indication and error handling.
"""

from .clear_command import ClearCommand
from .errors import CLIError, ConfigNotFoundError
from .models import ExitCode
from .output import OutputHandler
from .sync_command import SyncCommand

__all__ = [
    'SyncCommand',
    'ClearCommand',
    'OutputHandler',
    'ExitCode',
    'CLIError',
    'ConfigNotFoundError',
]
