"""YAML configuration loading and validation.

This module loads the publish configuration. The file names the target
parent page and optionally tunes the publish run; the Notion token is not
part of it (see Authenticator).
"""

import logging
import os
from typing import Any, Dict, Optional
import yaml

from .errors import ConfigError, FilesystemError
from .models import PublishSettings, SyncConfig

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Handles configuration file loading and validation.

    Configuration file structure:
        notion:
          parent_page: "Engineering Docs"   # title, page id or URL
        publish:
          max_blocks_per_request: 100
          requests_per_second: 3
          max_retries: 5
          workers: 4
          timeout: 30
    """

    DEFAULT_CONFIG_PATH = 'notation.yaml'
    CONFIG_PATH_VARIABLE = 'NOTATION_CONFIG'

    # Allowed publish fields with their types and minimum values
    PUBLISH_FIELDS = {
        'max_blocks_per_request': (int, 1),
        'requests_per_second': (float, 0.1),
        'max_retries': (int, 1),
        'workers': (int, 1),
        'timeout': (float, 1),
    }

    @classmethod
    def resolve_path(cls, config_path: Optional[str] = None) -> str:
        """Pick the config file: explicit path, then NOTATION_CONFIG, then the default."""
        if config_path:
            return config_path
        return os.getenv(cls.CONFIG_PATH_VARIABLE) or cls.DEFAULT_CONFIG_PATH

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> SyncConfig:
        """Load and parse configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file (optional)

        Returns:
            SyncConfig object with parsed configuration

        Raises:
            FilesystemError: If file cannot be read
            ConfigError: If configuration is invalid or malformed
        """
        config_path = cls.resolve_path(config_path)
        logger.debug(f"Loading configuration from {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise FilesystemError(config_path, 'read', 'Configuration file not found')
        except PermissionError:
            raise FilesystemError(config_path, 'read', 'Permission denied')
        except OSError as e:
            raise FilesystemError(config_path, 'read', str(e))

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {str(e)}")

        if config_dict is None:
            raise ConfigError("Configuration file is empty")

        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )

        return cls._parse_config(config_dict)

    @classmethod
    def _parse_config(cls, config_dict: Dict[str, Any]) -> SyncConfig:
        """Parse and validate configuration dictionary.

        Raises:
            ConfigError: If configuration is invalid
        """
        notion = config_dict.get('notion')
        if not isinstance(notion, dict):
            raise ConfigError("Missing required section 'notion'", 'notion')

        parent_page = notion.get('parent_page')
        if parent_page is None or not str(parent_page).strip():
            raise ConfigError("Field 'parent_page' is required", 'notion.parent_page')

        publish_raw = config_dict.get('publish') or {}
        if not isinstance(publish_raw, dict):
            raise ConfigError("Section 'publish' must be a dictionary", 'publish')

        unknown = set(publish_raw) - set(cls.PUBLISH_FIELDS)
        if unknown:
            raise ConfigError(f"Unknown fields: {', '.join(sorted(unknown))}", 'publish')

        settings = PublishSettings()
        for name, (kind, minimum) in cls.PUBLISH_FIELDS.items():
            if name not in publish_raw:
                continue
            raw = publish_raw[name]
            if isinstance(raw, bool):
                raise ConfigError(f"Expected a number, got {raw!r}", f'publish.{name}')
            try:
                value = kind(raw)
            except (ValueError, TypeError):
                raise ConfigError(f"Expected a number, got {raw!r}", f'publish.{name}')
            if value < minimum:
                raise ConfigError(f"Must be at least {minimum}, got {value}", f'publish.{name}')
            setattr(settings, name, value)

        # Notion rejects more than 100 children per request
        if settings.max_blocks_per_request > 100:
            raise ConfigError(
                f"Must be at most 100, got {settings.max_blocks_per_request}",
                'publish.max_blocks_per_request'
            )

        return SyncConfig(parent_page=str(parent_page).strip(), publish=settings)
