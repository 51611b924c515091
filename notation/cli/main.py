"""Main CLI entry point for the notation command.

This module provides the Typer application that serves as the entry point
for the notation command-line tool.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from .clear_command import ClearCommand
from .models import ExitCode
from .output import OutputHandler
from .sync_command import SyncCommand

app = typer.Typer(
    name="notation",
    help="""Publish a directory of Markdown files as a tree of Notion pages.

QUICK START:
  notation ship ./docs              # Publish ./docs under the configured parent page
  notation ship ./docs --dry-run    # Preview changes
  notation clear                    # Archive everything under the parent page

Configuration is read from notation.yaml (or $NOTATION_CONFIG); the
integration token from NOTION_TOKEN (a .env file is supported).""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# Namespace logger configured by the CLI; third-party loggers are left alone
APP_LOGGER = "notation"


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'notation' namespace logger to avoid affecting
    third-party libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(level)
    app_logger.handlers.clear()

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"notation_{timestamp}.log"

        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"notation {__version__}")
        raise typer.Exit(ExitCode.SUCCESS)


@app.callback()
def callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Publish a directory of Markdown files as a tree of Notion pages."""


@app.command()
def ship(
    source: str = typer.Argument(
        ...,
        help="Markdown directory (or single file) to publish",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: notation.yaml or $NOTATION_CONFIG)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "--dryrun",
        help="Preview changes without applying them",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Worker threads for parsing and publishing (overrides publish.workers)",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        min=0,
        help="Cancel the run after this many seconds; pages not started are reported cancelled",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
) -> None:
    """Publish SOURCE under the configured Notion parent page.

    \b
    Exit codes:
      0  every page was created, updated or unchanged
      1  configuration, source or parent page error
      2  one or more pages failed, were partially published or cancelled
      3  authentication error
      4  network or API error
    """
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    sync_cmd = SyncCommand(config_path=config, output_handler=output)
    exit_code = sync_cmd.run(source, dry_run=dry_run, workers=workers, timeout=timeout)

    raise typer.Exit(exit_code)


@app.command()
def clear(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: notation.yaml or $NOTATION_CONFIG)",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
) -> None:
    """Archive every page and block under the configured parent page."""
    _configure_logging(verbosity)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    if not yes:
        confirmed = typer.confirm(
            "This archives every page under the configured parent page. Continue?",
            default=False,
        )
        if not confirmed:
            output.warning("Aborted, nothing was changed")
            raise typer.Exit(ExitCode.GENERAL_ERROR)

    exit_code = ClearCommand(config_path=config, output_handler=output).run()
    raise typer.Exit(exit_code)


def main() -> None:
    """Entry point for the notation command."""
    app()


if __name__ == "__main__":
    main()
