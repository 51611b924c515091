"""Unit tests for main CLI entry point (main.py).

Tests the Typer CLI application using CliRunner.
"""

import logging
from unittest.mock import Mock, patch

import pytest
from typer.testing import CliRunner

from notation import __version__
from notation.cli.main import APP_LOGGER, _configure_logging, app
from notation.cli.models import ExitCode

runner = CliRunner()


@pytest.fixture
def restore_app_logger():
    """Drop handlers added by _configure_logging after the test."""
    app_logger = logging.getLogger(APP_LOGGER)
    level = app_logger.level
    yield app_logger
    for handler in list(app_logger.handlers):
        handler.close()
        app_logger.removeHandler(handler)
    app_logger.setLevel(level)


class TestConfigureLogging:
    """Test cases for _configure_logging function."""

    @pytest.mark.parametrize("verbosity,level", [
        (0, logging.WARNING),
        (1, logging.INFO),
        (2, logging.DEBUG),
        (5, logging.DEBUG),
    ])
    def test_verbosity_sets_level(self, restore_app_logger, verbosity, level):
        _configure_logging(verbosity)

        assert restore_app_logger.level == level
        assert len(restore_app_logger.handlers) == 1

    def test_root_logger_untouched(self, restore_app_logger):
        root_handlers = list(logging.getLogger().handlers)

        _configure_logging(2)

        assert logging.getLogger().handlers == root_handlers

    def test_logdir_adds_file_handler(self, restore_app_logger, tmp_path):
        _configure_logging(1, str(tmp_path / "logs"))

        log_files = list((tmp_path / "logs").glob("notation_*.log"))
        assert len(log_files) == 1
        assert len(restore_app_logger.handlers) == 2

    def test_repeated_calls_do_not_stack_handlers(self, restore_app_logger):
        _configure_logging(0)
        _configure_logging(0)
        assert len(restore_app_logger.handlers) == 1


class TestVersion:

    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == ExitCode.SUCCESS
        assert f"notation {__version__}" in result.output


@patch('notation.cli.main._configure_logging')
@patch('notation.cli.main.OutputHandler')
@patch('notation.cli.main.SyncCommand')
class TestShipCommand:
    """Test cases for the ship command."""

    def _command(self, mock_sync_cmd, exit_code=ExitCode.SUCCESS):
        instance = Mock()
        instance.run.return_value = exit_code
        mock_sync_cmd.return_value = instance
        return instance

    def test_ship_defaults(self, mock_sync_cmd, mock_output, mock_logging):
        instance = self._command(mock_sync_cmd)

        result = runner.invoke(app, ["ship", "./docs"])

        assert result.exit_code == ExitCode.SUCCESS
        mock_sync_cmd.assert_called_once_with(config_path=None, output_handler=mock_output.return_value)
        instance.run.assert_called_once_with("./docs", dry_run=False, workers=None, timeout=None)
        mock_logging.assert_called_once_with(0, None)

    def test_ship_all_options(self, mock_sync_cmd, mock_output, mock_logging):
        instance = self._command(mock_sync_cmd)

        result = runner.invoke(app, [
            "ship", "./docs", "--config", "team.yaml", "--dry-run", "--workers", "8",
            "--timeout", "60", "--logdir", "logs", "-v", "2", "--no-color",
        ])

        assert result.exit_code == ExitCode.SUCCESS
        mock_sync_cmd.assert_called_once_with(config_path="team.yaml", output_handler=mock_output.return_value)
        instance.run.assert_called_once_with("./docs", dry_run=True, workers=8, timeout=60.0)
        mock_output.assert_called_once_with(verbosity=2, no_color=True)
        mock_logging.assert_called_once_with(2, "logs")

    def test_dryrun_alias(self, mock_sync_cmd, mock_output, mock_logging):
        instance = self._command(mock_sync_cmd)

        runner.invoke(app, ["ship", "./docs", "--dryrun"])

        assert instance.run.call_args.kwargs['dry_run'] is True

    @pytest.mark.parametrize("exit_code", list(ExitCode))
    def test_exit_code_propagated(self, mock_sync_cmd, mock_output, mock_logging, exit_code):
        self._command(mock_sync_cmd, exit_code)

        result = runner.invoke(app, ["ship", "./docs"])

        assert result.exit_code == exit_code

    def test_zero_workers_rejected(self, mock_sync_cmd, mock_output, mock_logging):
        result = runner.invoke(app, ["ship", "./docs", "--workers", "0"])

        assert result.exit_code != ExitCode.SUCCESS
        mock_sync_cmd.assert_not_called()

    def test_source_required(self, mock_sync_cmd, mock_output, mock_logging):
        result = runner.invoke(app, ["ship"])

        assert result.exit_code != ExitCode.SUCCESS
        mock_sync_cmd.assert_not_called()


@patch('notation.cli.main._configure_logging')
@patch('notation.cli.main.OutputHandler')
@patch('notation.cli.main.ClearCommand')
class TestClearCommand:
    """Test cases for the clear command."""

    def test_yes_skips_confirmation(self, mock_clear_cmd, mock_output, mock_logging):
        mock_clear_cmd.return_value.run.return_value = ExitCode.SUCCESS

        result = runner.invoke(app, ["clear", "--yes", "-c", "team.yaml"])

        assert result.exit_code == ExitCode.SUCCESS
        mock_clear_cmd.assert_called_once_with(config_path="team.yaml", output_handler=mock_output.return_value)

    def test_confirmation_accepted(self, mock_clear_cmd, mock_output, mock_logging):
        mock_clear_cmd.return_value.run.return_value = ExitCode.SUCCESS

        result = runner.invoke(app, ["clear"], input="y\n")

        assert result.exit_code == ExitCode.SUCCESS
        mock_clear_cmd.return_value.run.assert_called_once()

    def test_confirmation_declined(self, mock_clear_cmd, mock_output, mock_logging):
        result = runner.invoke(app, ["clear"], input="n\n")

        assert result.exit_code == ExitCode.GENERAL_ERROR
        mock_clear_cmd.assert_not_called()
        mock_output.return_value.warning.assert_called_once()

    def test_failures_propagated(self, mock_clear_cmd, mock_output, mock_logging):
        mock_clear_cmd.return_value.run.return_value = ExitCode.PAGE_FAILURES

        result = runner.invoke(app, ["clear", "-y"])

        assert result.exit_code == ExitCode.PAGE_FAILURES
