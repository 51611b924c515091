"""Clear command: remove everything below the target parent page.

Child pages are archived (they stay restorable from Notion's trash); any
other block directly under the parent is deleted. This is the only
destructive operation of notation and never runs as part of ``ship``.
"""

import logging
from pathlib import Path
from typing import Optional

from ..file_mapper.config_loader import ConfigLoader
from ..file_mapper.errors import FileMapperError
from ..file_mapper.models import SyncConfig
from ..notion_api.api_wrapper import APIWrapper, page_title
from ..notion_api.auth import Authenticator
from ..notion_api.errors import InvalidCredentialsError, NotionError, PageNotFoundError, ParentPageNotFoundError
from .errors import ConfigNotFoundError
from .models import ExitCode
from .output import OutputHandler
from .sync_command import build_api

logger = logging.getLogger(__name__)


class ClearCommand:
    """Archives every child of the configured parent page.

    Example:
        >>> cmd = ClearCommand(config_path="notation.yaml")
        >>> cmd.run()
        <ExitCode.SUCCESS: 0>
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        output_handler: Optional[OutputHandler] = None,
        authenticator: Optional[Authenticator] = None,
        api: Optional[APIWrapper] = None,
        config: Optional[SyncConfig] = None,
    ):
        self.config_path = ConfigLoader.resolve_path(config_path)
        self.output_handler = output_handler or OutputHandler()
        self.authenticator = authenticator
        self.api = api
        self.config = config
        self.archived = 0
        self.deleted = 0
        self.failed = 0

    def run(self) -> ExitCode:
        """Clear the parent page.

        Returns:
            ExitCode.SUCCESS when every child was removed, PAGE_FAILURES when
            some could not be removed, or the code of a run-fatal error
        """
        try:
            if self.config is None:
                if not Path(self.config_path).exists():
                    raise ConfigNotFoundError(self.config_path)
                self.config = ConfigLoader.load(self.config_path)
            if self.api is None:
                self.api = build_api(self.config.publish, self.authenticator)

            parent_id = self.api.resolve_parent_page(self.config.parent_page)
            with self.output_handler.spinner("Clearing parent page..."):
                self._clear(parent_id)

        except InvalidCredentialsError as e:
            logger.error(f"Authentication failed: {e}")
            self.output_handler.error(f"Authentication failed: {e}")
            return ExitCode.AUTH_ERROR

        except (ParentPageNotFoundError, PageNotFoundError) as e:
            logger.error(f"Parent page not found: {e}")
            self.output_handler.error(f"Parent page not found: {e}")
            return ExitCode.GENERAL_ERROR

        except NotionError as e:
            logger.error(f"API error: {e}")
            self.output_handler.error(f"API error: {e}")
            return ExitCode.NETWORK_ERROR

        except (ConfigNotFoundError, FileMapperError) as e:
            logger.error(f"Configuration error: {e}")
            self.output_handler.error(f"Configuration error: {e}")
            return ExitCode.GENERAL_ERROR

        self.output_handler.print_clear_summary(self.archived, self.deleted)
        if self.failed:
            self.output_handler.error(f"{self.failed} item(s) could not be removed")
            return ExitCode.PAGE_FAILURES
        return ExitCode.SUCCESS

    def _clear(self, parent_id: str) -> None:
        blocks = self.api.list_children(parent_id)
        logger.info(f"Clearing {len(blocks)} block(s) under {parent_id}")
        for block in blocks:
            try:
                if block.get('type') == 'child_page':
                    self.api.update_page(block['id'], archived=True)
                    self.archived += 1
                    logger.info(f"  ✓ Archived page '{page_title(block)}'")
                else:
                    self.api.delete_block(block['id'])
                    self.deleted += 1
                    logger.debug(f"  ✓ Deleted {block.get('type')} block {block['id']}")
            except InvalidCredentialsError:
                raise
            except NotionError as e:
                self.failed += 1
                logger.error(f"  ✗ Failed to remove block {block['id']}: {e}")
