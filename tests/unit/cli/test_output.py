"""Unit tests for cli.output module."""

import io

from rich.console import Console

from notation.cli.output import OutputHandler
from notation.page_operations.models import OutcomeStatus, PageOutcome, SyncReport


def make_handler(verbosity=0):
    handler = OutputHandler(verbosity=verbosity, no_color=True)
    handler.console = Console(file=io.StringIO(), no_color=True, width=200, highlight=False)
    return handler


def output_of(handler):
    return handler.console.file.getvalue()


def outcome(path, status, reason=None, remote_id=None):
    return PageOutcome(path=path, title=path.title(), status=status, reason=reason, remote_id=remote_id)


class TestOutputHandlerInit:

    def test_defaults(self):
        handler = OutputHandler()
        assert handler.verbosity == 0
        assert handler.console.no_color is False

    def test_no_color(self):
        assert OutputHandler(no_color=True).console.no_color is True


class TestMessages:
    """Test cases for verbosity-gated messages."""

    def test_info_hidden_at_verbosity_0(self):
        handler = make_handler(0)
        handler.info("details")
        assert "details" not in output_of(handler)

    def test_info_shown_at_verbosity_1(self):
        handler = make_handler(1)
        handler.info("details")
        handler.debug("internals")
        assert "details" in output_of(handler)
        assert "internals" not in output_of(handler)

    def test_debug_shown_at_verbosity_2(self):
        handler = make_handler(2)
        handler.debug("internals")
        assert "internals" in output_of(handler)

    def test_success_error_warning_always_shown(self):
        handler = make_handler(0)
        handler.success("done")
        handler.error("broken")
        handler.warning("careful")
        text = output_of(handler)
        assert "✓ done" in text
        assert "✗ broken" in text
        assert "⚠ careful" in text

    def test_spinner_context(self):
        handler = make_handler()
        with handler.spinner("Working..."):
            pass


class TestPrintReport:
    """Test cases for the outcome table and summary."""

    def test_publish_report(self):
        handler = make_handler()
        report = SyncReport(outcomes=[
            outcome(".", OutcomeStatus.CREATED),
            outcome("a.md", OutcomeStatus.UPDATED),
            outcome("b.md", OutcomeStatus.FAILED, reason="links to unknown document(s): c.md"),
        ])

        handler.print_report(report)

        text = output_of(handler)
        assert "Publish Report" in text
        assert "created" in text
        assert "links to unknown document(s): c.md" in text
        assert "Created: 1 page(s)" in text
        assert "Updated: 1 page(s)" in text
        assert "Failed: 1 page(s)" in text
        assert "Publish completed with failures" in text

    def test_partially_published_listed_after_table(self):
        handler = make_handler()
        report = SyncReport(outcomes=[
            outcome("big.md", OutcomeStatus.PARTIALLY_PUBLISHED, reason="1/3 chunks written", remote_id="page-1"),
        ])

        handler.print_report(report)

        text = output_of(handler)
        assert "PARTIALLY PUBLISHED" in text
        assert "1 page(s) were only partially published" in text
        assert "big.md (page-1): 1/3 chunks written" in text

    def test_dry_run_labels(self):
        handler = make_handler()
        report = SyncReport(outcomes=[outcome(".", OutcomeStatus.CREATED)], dry_run=True)

        handler.print_report(report)

        text = output_of(handler)
        assert "Dry Run - Planned Changes" in text
        assert "would create" in text
        assert "Would create: 1 page(s)" in text
        assert "Dry run: no changes were made" in text

    def test_up_to_date(self):
        handler = make_handler()
        report = SyncReport(outcomes=[outcome(".", OutcomeStatus.SKIPPED)])

        handler.print_report(report)

        assert "Already up to date" in output_of(handler)

    def test_cancelled_counted(self):
        handler = make_handler()
        report = SyncReport(outcomes=[outcome(".", OutcomeStatus.CREATED), outcome("a.md", OutcomeStatus.CANCELLED)])

        handler.print_report(report)

        assert "Cancelled: 1 page(s)" in output_of(handler)

    def test_clear_summary(self):
        handler = make_handler()
        handler.print_clear_summary(archived=3, deleted=2)
        text = output_of(handler)
        assert "Archived: 3 page(s)" in text
        assert "Deleted: 2 block(s)" in text
