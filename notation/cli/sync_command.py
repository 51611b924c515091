"""Publish command orchestration for notation.

This module provides the SyncCommand class that runs one publish of a
markdown corpus into Notion:

1. Load configuration and build the API gateway
2. Build the page tree and parse every document (parallel)
3. Map documents to content blocks (parallel)
4. Validate internal links and sibling titles
5. Resolve the target parent page and fetch the remote snapshot
6. Reconcile into an operation plan (a dry run stops here)
7. Execute the plan, then the link follow-up updates
8. Report one outcome per page
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional

from ..content_converter.errors import ConversionError
from ..content_converter.markdown_mapper import MarkdownMapper
from ..content_converter.notion_renderer import NotionRenderer
from ..file_mapper.config_loader import ConfigLoader
from ..file_mapper.errors import FileMapperError
from ..file_mapper.hierarchy_builder import HierarchyBuilder
from ..file_mapper.models import PageNode, PublishSettings, SyncConfig
from ..notion_api.api_wrapper import APIWrapper
from ..notion_api.auth import Authenticator
from ..notion_api.errors import (
    InvalidCredentialsError,
    NotionError,
    PageNotFoundError,
    ParentPageNotFoundError,
)
from ..notion_api.rate_limiter import RateLimiter
from ..notion_api.retry_logic import RetryPolicy
from ..page_operations.link_resolver import LinkResolver
from ..page_operations.models import (
    CreateOp,
    OutcomeStatus,
    PageOutcome,
    SkipOp,
    SyncOperation,
    SyncReport,
    UpdateOp,
)
from ..page_operations.plan_executor import PlanExecutor
from ..page_operations.reconciler import Reconciler, check_duplicate_titles
from ..page_operations.snapshot_fetcher import SnapshotFetcher
from .errors import CLIError, ConfigNotFoundError
from .models import ExitCode
from .output import OutputHandler

logger = logging.getLogger(__name__)

# Bucket capacity of the shared rate limiter
RATE_LIMIT_BURST = 3

PARENT_FAILED = "parent page failed"

PUBLISHED = frozenset({OutcomeStatus.CREATED, OutcomeStatus.UPDATED, OutcomeStatus.SKIPPED})


def build_api(settings: PublishSettings, authenticator: Optional[Authenticator] = None) -> APIWrapper:
    """Build the API gateway from publish settings."""
    return APIWrapper(
        authenticator or Authenticator(),
        rate_limiter=RateLimiter(rate=settings.requests_per_second, burst=RATE_LIMIT_BURST),
        retry_policy=RetryPolicy(max_attempts=settings.max_retries),
        max_blocks_per_request=settings.max_blocks_per_request,
        timeout=settings.timeout,
    )


class SyncCommand:
    """Orchestrates one publish run.

    Dependencies are injectable for testing; anything not given is built
    from the configuration.

    Example:
        >>> cmd = SyncCommand(config_path="notation.yaml")
        >>> exit_code = cmd.run("./docs")
        >>> cmd.report.succeeded
        True
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        output_handler: Optional[OutputHandler] = None,
        authenticator: Optional[Authenticator] = None,
        api: Optional[APIWrapper] = None,
        config: Optional[SyncConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize sync command with optional dependencies.

        Args:
            config_path: Path to the YAML configuration (default: notation.yaml)
            output_handler: Terminal output (default: new OutputHandler)
            authenticator: Token loader (default: new Authenticator)
            api: Pre-built API gateway (default: built from config)
            config: Pre-loaded configuration (skips loading the file)
            cancel_event: Event that cancels the run when set
        """
        self.config_path = ConfigLoader.resolve_path(config_path)
        self.output_handler = output_handler or OutputHandler()
        self.authenticator = authenticator
        self.api = api
        self.config = config
        self.cancel_event = cancel_event or threading.Event()
        self.report: Optional[SyncReport] = None

    def run(
        self,
        source: str,
        dry_run: bool = False,
        workers: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> ExitCode:
        """Publish a corpus and map the result to an exit code.

        Args:
            source: Corpus directory or single markdown file
            dry_run: Plan only; no write is issued
            workers: Worker pool size override
            timeout: Seconds after which the run is cancelled

        Returns:
            ExitCode indicating success or specific failure type
        """
        timer: Optional[threading.Timer] = None
        if timeout:
            timer = threading.Timer(timeout, self._on_timeout)
            timer.daemon = True
            timer.start()

        try:
            self.report = self.publish(source, dry_run=dry_run, workers=workers)
            self.output_handler.print_report(self.report)
            if self.report.succeeded:
                return ExitCode.SUCCESS
            return ExitCode.PAGE_FAILURES

        except InvalidCredentialsError as e:
            logger.error(f"Authentication failed: {e}")
            self.output_handler.error(f"Authentication failed: {e}")
            self.output_handler.info(
                f"Check the {Authenticator.TOKEN_VARIABLE} environment variable and that the "
                f"parent page is shared with the integration"
            )
            return ExitCode.AUTH_ERROR

        except (ParentPageNotFoundError, PageNotFoundError) as e:
            logger.error(f"Parent page not found: {e}")
            self.output_handler.error(f"Parent page not found: {e}")
            return ExitCode.GENERAL_ERROR

        except NotionError as e:
            logger.error(f"API error: {e}")
            self.output_handler.error(f"API error: {e}")
            self.output_handler.info("Check your internet connection and try again")
            return ExitCode.NETWORK_ERROR

        except ConfigNotFoundError as e:
            logger.error(f"Configuration error: {e}")
            self.output_handler.error(f"Configuration error: {e}")
            self.output_handler.print("\nCreate a notation.yaml next to your documents:\n")
            self.output_handler.print("  notion:")
            self.output_handler.print("    parent_page: \"Engineering Docs\"\n")
            self.output_handler.print("Required environment variables:")
            self.output_handler.print(f"  {Authenticator.TOKEN_VARIABLE}    - Notion integration secret")
            return ExitCode.GENERAL_ERROR

        except FileMapperError as e:
            logger.error(f"Error: {e}")
            self.output_handler.error(f"Error: {e}")
            return ExitCode.GENERAL_ERROR

        except CLIError as e:
            logger.error(f"CLI error: {e}")
            self.output_handler.error(f"Error: {e}")
            return ExitCode.GENERAL_ERROR

        except KeyboardInterrupt:
            logger.warning("Interrupted before publishing started")
            self.output_handler.warning("Interrupted, nothing was published")
            return ExitCode.GENERAL_ERROR

        except Exception as e:
            logger.exception("Unexpected error during publish")
            self.output_handler.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

        finally:
            if timer is not None:
                timer.cancel()

    def _on_timeout(self) -> None:
        logger.warning("Timeout reached, cancelling the run")
        self.cancel_event.set()

    def publish(self, source: str, dry_run: bool = False, workers: Optional[int] = None) -> SyncReport:
        """Run the publish pipeline.

        Per-page failures are recorded in the report; only run-fatal errors
        are raised.

        Args:
            source: Corpus directory or single markdown file
            dry_run: Stop after reconciliation
            workers: Worker pool size override

        Returns:
            SyncReport with one outcome per page, in tree order

        Raises:
            ConfigNotFoundError: If no configuration file exists
            FileMapperError: For config, source path or empty corpus errors
            NotionError: For run-fatal API errors (credentials, parent page, snapshot)
        """
        config = self._load_config()
        settings = config.publish
        pool_size = workers or settings.workers

        if self.api is None:
            self.api = build_api(settings, self.authenticator)
        api = self.api

        # Steps 1-2: local tree
        logger.info(f"Building page tree from {source}")
        root = HierarchyBuilder(workers=pool_size).build(source)
        self._map_documents(root, pool_size)

        resolver = LinkResolver(root)
        resolver.validate(root)
        check_duplicate_titles(root)

        # Steps 3-4: remote snapshot
        logger.info(f"Resolving parent page '{config.parent_page}'")
        parent_id = api.resolve_parent_page(config.parent_page)
        logger.info(f"Publishing under parent page {parent_id}")
        remote = SnapshotFetcher(api).fetch(parent_id, root)

        # Step 5: plan
        renderer = NotionRenderer(max_blocks_per_request=api.max_blocks_per_request)
        plan = Reconciler(renderer).diff(root, remote, resolver.resolve)

        if dry_run:
            report = SyncReport(outcomes=self._planned_outcomes(root, plan), dry_run=True)
            self._add_stats(report)
            return report

        # Steps 6-7: execute both passes
        executor = PlanExecutor(
            api, renderer, resolver, parent_id, workers=pool_size, cancel_event=self.cancel_event,
        )
        with self.output_handler.spinner("Publishing pages..."):
            try:
                executor.execute(root, plan)
                updates = resolver.follow_up_updates(executor.published_nodes(), renderer)
            except KeyboardInterrupt:
                executor.cancel()
                # Pending link updates are reported as not sent
                updates = resolver.follow_up_updates(executor.published_nodes(), renderer)
            follow_ups = executor.execute_follow_ups(updates)

        report = SyncReport(outcomes=self._outcomes(root, executor), follow_up_updates=follow_ups)
        self._add_stats(report)
        logger.info(f"Publish finished: {report.counts}")
        return report

    def _load_config(self) -> SyncConfig:
        if self.config is not None:
            return self.config
        logger.info(f"Loading configuration from {self.config_path}")
        if not Path(self.config_path).exists():
            raise ConfigNotFoundError(self.config_path)
        self.config = ConfigLoader.load(self.config_path)
        return self.config

    def _map_documents(self, root: PageNode, workers: int) -> None:
        """Map every parsed document to content blocks on the worker pool."""
        mapper = MarkdownMapper()
        nodes = [node for node in root.walk() if node.document is not None and not node.failed]
        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            futures = {
                executor.submit(mapper.map, node.document.ast, node.document.path): node
                for node in nodes
            }
            for future in as_completed(futures):
                node = futures[future]
                try:
                    mapped = future.result()
                except ConversionError as e:
                    logger.error(f"  ✗ {node.path}: {e}")
                    node.failure = e
                    continue
                node.blocks = mapped.blocks
                node.internal_targets = mapped.internal_targets

    def _add_stats(self, report: SyncReport) -> None:
        stats = self.api.stats
        report.api_calls = stats['calls']
        report.retries = stats['retries']

    def _planned_outcomes(self, root: PageNode, plan: List[SyncOperation]) -> List[PageOutcome]:
        statuses: Dict[str, OutcomeStatus] = {}
        for op in plan:
            if isinstance(op, CreateOp):
                statuses[op.node.path] = OutcomeStatus.CREATED
            elif isinstance(op, UpdateOp):
                statuses[op.node.path] = OutcomeStatus.UPDATED
            elif isinstance(op, SkipOp):
                statuses[op.node.path] = OutcomeStatus.SKIPPED

        outcomes = []
        for node, failure in self._walk_with_failures(root):
            if failure is not None:
                outcomes.append(self._outcome(node, OutcomeStatus.FAILED, failure))
            else:
                outcomes.append(self._with_link_error(node, self._outcome(node, statuses[node.path])))
        return outcomes

    def _outcomes(self, root: PageNode, executor: PlanExecutor) -> List[PageOutcome]:
        outcomes = []
        for node, failure in self._walk_with_failures(root):
            if failure is not None:
                outcomes.append(self._outcome(node, OutcomeStatus.FAILED, failure))
                continue
            outcome = executor.outcomes.get(node.path)
            if outcome is None:
                status = OutcomeStatus.CANCELLED if executor.cancelled else OutcomeStatus.FAILED
                outcome = self._outcome(node, status, None if executor.cancelled else "page was not processed")
            outcomes.append(self._with_link_error(node, outcome))
        return outcomes

    def _with_link_error(self, node: PageNode, outcome: PageOutcome) -> PageOutcome:
        """Report a published page with broken links as failed."""
        if node.link_error is None or outcome.status not in PUBLISHED:
            return outcome
        return self._outcome(node, OutcomeStatus.FAILED, str(node.link_error))

    def _walk_with_failures(self, root: PageNode):
        """Yield (node, failure reason) in pre-order; descendants of failed pages fail too."""
        def walk(node: PageNode, parent_failed: bool):
            if node.failed:
                yield node, str(node.failure)
            elif parent_failed:
                yield node, PARENT_FAILED
            else:
                yield node, None
            for child in node.children:
                yield from walk(child, parent_failed or node.failed)
        return walk(root, False)

    @staticmethod
    def _outcome(node: PageNode, status: OutcomeStatus, reason: Optional[str] = None) -> PageOutcome:
        return PageOutcome(path=node.path, title=node.title, status=status, reason=reason, remote_id=node.remote_id)
