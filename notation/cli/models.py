"""Data models for CLI operations."""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for CLI operations.

    These exit codes provide meaningful feedback about the operation result:
    - SUCCESS (0): Every page was created, updated or skipped
    - GENERAL_ERROR (1): General error (config issues, missing source, parent page not found)
    - PAGE_FAILURES (2): One or more pages failed, were partially published or cancelled
    - AUTH_ERROR (3): Authentication or authorization failure
    - NETWORK_ERROR (4): Network connectivity or API availability issues

    Example:
        >>> exit_code = ExitCode.SUCCESS
        >>> sys.exit(exit_code)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    PAGE_FAILURES = 2
    AUTH_ERROR = 3
    NETWORK_ERROR = 4
