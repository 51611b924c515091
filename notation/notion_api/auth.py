"""Authentication module for loading the Notion integration token.

This module handles loading the Notion integration secret from environment
variables using python-dotenv. It validates that the token is present and
raises an appropriate error if it is missing.
"""

import os
from typing import NamedTuple

from dotenv import load_dotenv

from .errors import InvalidCredentialsError


class Credentials(NamedTuple):
    """Notion API credentials."""
    token: str


class Authenticator:
    """Loads and validates the Notion token from environment variables.

    The token is loaded from a .env file using python-dotenv and is never
    cached or logged.

    Required environment variables:
        NOTION_TOKEN: Internal integration secret (starts with ``secret_`` or ``ntn_``)

    Raises:
        InvalidCredentialsError: If the token is missing

    Example:
        >>> auth = Authenticator()
        >>> creds = auth.get_credentials()
    """

    TOKEN_VARIABLE = 'NOTION_TOKEN'

    def __init__(self):
        """Initialize the authenticator by loading environment variables from .env file."""
        load_dotenv()

    def get_credentials(self) -> Credentials:
        """Get Notion credentials from environment variables.

        Returns:
            Credentials: A named tuple containing the token

        Raises:
            InvalidCredentialsError: If NOTION_TOKEN is missing or blank
        """
        token = os.getenv(self.TOKEN_VARIABLE)

        if not token or not token.strip():
            raise InvalidCredentialsError(
                f"Environment variable {self.TOKEN_VARIABLE} is not set"
            )

        return Credentials(token=token.strip())
