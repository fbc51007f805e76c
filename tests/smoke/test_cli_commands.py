"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They drive the typer app in-process against a temporary database, with
the clock pinned through the global --now option.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import sqlite3

import pytest
from typer.testing import CliRunner

from hifz_planner.delivery.cli import app
from hifz_planner.delivery.item_store import ItemStore

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

NOW = "2025-01-08T09:00"

runner = CliRunner()


@pytest.fixture
def db(tmp_path):
    return tmp_path / "state.db"


def run_cli(db, *args, now=NOW, input=None):
    """Run a command against the test database and return the result."""
    return runner.invoke(app, ["--db", str(db), "--now", now, *args], input=input)


@pytest.fixture
def configured(db):
    """Database with a 20-page progression started on 2025-01-01."""
    result = run_cli(db, "setup", "--start", "2025-01-01", "--units", "20")
    assert result.exit_code == 0, result.output
    return db


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "today" in result.output
        assert "backlog" in result.output

    @pytest.mark.parametrize("command", ["setup", "today", "done", "undo", "skip", "calendar", "stats", "archive", "delete", "reset", "export"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0, result.output

    def test_backlog_help(self):
        result = runner.invoke(app, ["backlog", "--help"])
        assert result.exit_code == 0
        assert "spread" in result.output


class TestCLISetup:
    """Test setup and the missing-config path."""

    def test_today_before_setup(self, db):
        result = run_cli(db, "today")
        assert result.exit_code == 1
        assert "hifz setup" in result.output

    def test_setup(self, db):
        result = run_cli(db, "setup", "--start", "2025-01-01", "--units", "20")
        assert result.exit_code == 0
        assert "Progression saved" in result.output
        assert "Items so far: 8" in result.output

    def test_setup_rejects_bad_date(self, db):
        result = run_cli(db, "setup", "--start", "01/01/2025")
        assert result.exit_code == 1
        assert "Invalid date" in result.output

    def test_setup_rejects_out_of_range_hour(self, db):
        result = run_cli(db, "setup", "--morning-hour", "25")
        assert result.exit_code != 0


class TestCLIToday:
    """Test the day view and completions."""

    def test_today_lists_tasks(self, configured):
        result = run_cli(configured, "today")
        assert result.exit_code == 0, result.output
        assert "item-page-8-2025-01-08" in result.output
        assert "Overdue" in result.output
        assert "backlog spread" in result.output

    def test_today_hidden_before_morning(self, configured):
        result = run_cli(configured, "today", now="2025-01-08T05:00")
        assert result.exit_code == 0, result.output
        assert "item-page-8-2025-01-08" not in result.output

    def test_selected_date_ignores_morning_cutoff(self, configured):
        result = run_cli(configured, "today", "--date", "2025-01-08", now="2025-01-08T05:00")
        assert result.exit_code == 0, result.output
        assert "item-page-8-2025-01-08" in result.output

    def test_today_invalid_date(self, configured):
        result = run_cli(configured, "today", "--date", "someday")
        assert result.exit_code == 1
        assert "Invalid date" in result.output

    def test_done_overdue_uses_original_due_date(self, configured):
        result = run_cli(configured, "done", "item-page-1-2025-01-01", "4")
        assert result.exit_code == 0, result.output
        assert "2025-01-05" in result.output

    def test_done_and_undo_with_date(self, configured):
        result = run_cli(configured, "done", "item-page-8-2025-01-08", "1", "--date", "2025-01-08")
        assert result.exit_code == 0, result.output
        assert "1/13 done" in run_cli(configured, "today").output

        result = run_cli(configured, "undo", "item-page-8-2025-01-08", "1", "--date", "2025-01-08")
        assert result.exit_code == 0, result.output
        assert "0/13 done" in run_cli(configured, "today").output

    def test_done_unknown_item(self, configured):
        result = run_cli(configured, "done", "item-page-99-2025-01-01", "4")
        assert result.exit_code == 1
        assert "No item" in result.output

    def test_done_rejects_unknown_station(self, configured):
        result = run_cli(configured, "done", "item-page-1-2025-01-01", "9")
        assert result.exit_code != 0

    def test_undo_overdue_without_date(self, configured):
        assert run_cli(configured, "done", "item-page-1-2025-01-01", "4").exit_code == 0

        result = run_cli(configured, "undo", "item-page-1-2025-01-01", "4")

        assert result.exit_code == 0, result.output
        assert "2025-01-05" in result.output
        with ItemStore(configured) as store:
            assert not store.is_review_completed("item-page-1-2025-01-01", 4, "2025-01-05")
        assert "0/13 done" in run_cli(configured, "today").output

    def test_undo_catchup_without_date(self, configured):
        assert run_cli(configured, "backlog", "spread", "--days", "3").exit_code == 0
        assert run_cli(configured, "done", "item-page-6-2025-01-06", "3").exit_code == 0

        result = run_cli(configured, "undo", "item-page-6-2025-01-06", "3")

        assert result.exit_code == 0, result.output
        assert "2025-01-07" in result.output
        with ItemStore(configured) as store:
            assert not store.is_review_completed("item-page-6-2025-01-06", 3, "2025-01-07")

    def test_undo_nothing_recorded(self, configured):
        result = run_cli(configured, "undo", "item-page-1-2025-01-01", "4")
        assert result.exit_code == 1
        assert "Nothing to undo" in result.output

    def test_undo_unknown_item(self, configured):
        result = run_cli(configured, "undo", "item-page-99-2025-01-01", "4")
        assert result.exit_code == 1
        assert "No item" in result.output

    def test_skip_records_missed(self, configured):
        result = run_cli(configured, "skip", "item-page-1-2025-01-01", "4")
        assert result.exit_code == 0, result.output
        assert "2025-01-05" in result.output
        with ItemStore(configured) as store:
            item = store.get_item("item-page-1-2025-01-01")
        assert item.reviews_missed == {"4-2025-01-05"}
        assert "9 overdue reviews" in run_cli(configured, "backlog", "status").output


class TestCLIOverview:
    """Test calendar and stats."""

    def test_calendar(self, configured):
        result = run_cli(configured, "calendar", "--year", "2025", "--month", "1")
        assert result.exit_code == 0, result.output
        assert "2025-01-05" in result.output

    def test_calendar_empty_month(self, configured):
        result = run_cli(configured, "calendar", "--year", "2024", "--month", "6")
        assert result.exit_code == 0
        assert "No tasks" in result.output

    def test_stats(self, configured):
        result = run_cli(configured, "stats")
        assert result.exit_code == 0, result.output
        assert "Units memorized" in result.output
        assert "8/20" in result.output

    def test_stats_for_one_progression(self, db):
        run_cli(db, "setup", "--start", "2025-01-01", "--units", "20", "--name", "Juz Amma")

        result = run_cli(db, "stats", "--progression", "Juz Amma")

        assert result.exit_code == 0, result.output
        assert "Juz Amma" in result.output
        assert "8/20" in result.output

    @pytest.mark.parametrize("command", ["stats", "calendar"])
    def test_unknown_progression(self, configured, command):
        result = run_cli(configured, command, "--progression", "Yasin")
        assert result.exit_code == 0, result.output
        assert "No items in progression Yasin" in result.output

    def test_calendar_for_one_progression(self, db):
        run_cli(db, "setup", "--start", "2025-01-01", "--units", "20", "--name", "Juz Amma")
        result = run_cli(db, "calendar", "-p", "Juz Amma", "--year", "2025", "--month", "1")
        assert result.exit_code == 0, result.output
        assert "2025-01-05" in result.output

    def test_stats_lists_progressions(self, db):
        run_cli(db, "setup", "--start", "2025-01-01", "--units", "20", "--name", "Juz Amma")
        run_cli(db, "setup", "--start", "2025-01-06", "--units", "20", "--name", "Tabarak")

        result = run_cli(db, "stats")

        assert result.exit_code == 0, result.output
        assert "Progressions" in result.output
        assert "Juz Amma" in result.output
        assert "Tabarak" in result.output


class TestCLIBacklog:
    """Test backlog commands."""

    def test_status_without_queue(self, configured):
        result = run_cli(configured, "backlog", "status")
        assert result.exit_code == 0, result.output
        assert "9 overdue reviews" in result.output

    def test_spread_then_status(self, configured):
        result = run_cli(configured, "backlog", "spread", "--days", "3")
        assert result.exit_code == 0, result.output
        assert "Spread 9 reviews over 3 days" in result.output

        result = run_cli(configured, "backlog", "status")
        assert result.exit_code == 0, result.output
        assert "0/9 done" in result.output

        result = run_cli(configured, "today")
        assert "Catch-up progress" in result.output

    def test_clear(self, configured):
        run_cli(configured, "backlog", "spread")
        result = run_cli(configured, "backlog", "clear")
        assert result.exit_code == 0
        assert "no catch-up queue" in run_cli(configured, "backlog", "status").output

    def test_malformed_queue(self, configured):
        with sqlite3.connect(configured) as conn:
            conn.execute("INSERT INTO backlog_queue (id, data) VALUES (1, ?)", ('{"items": "broken"}',))
        result = run_cli(configured, "today")
        assert result.exit_code == 1
        assert "malformed" in result.output


class TestCLIItems:
    """Test archive, delete and reset."""

    def test_archive(self, configured):
        result = run_cli(configured, "archive", "item-page-1-2025-01-01")
        assert result.exit_code == 0, result.output
        assert "Archived" in result.output

        # Stations 3 and 4 of the first page no longer count as overdue
        assert "7 overdue reviews" in run_cli(configured, "backlog", "status").output
        with ItemStore(configured) as store:
            assert not store.get_item("item-page-1-2025-01-01").is_active

    def test_archive_unknown_item(self, configured):
        result = run_cli(configured, "archive", "item-page-99-2025-01-01")
        assert result.exit_code == 1
        assert "No item" in result.output

    def test_delete_forgets_history(self, configured):
        run_cli(configured, "done", "item-page-1-2025-01-01", "4")

        result = run_cli(configured, "delete", "item-page-1-2025-01-01")
        assert result.exit_code == 0, result.output
        assert run_cli(configured, "delete", "item-page-1-2025-01-01").exit_code == 1

        run_cli(configured, "today")
        with ItemStore(configured) as store:
            item = store.get_item("item-page-1-2025-01-01")
        assert item is not None
        assert item.reviews_completed == set()

    def test_reset(self, configured):
        result = run_cli(configured, "reset", "--yes")
        assert result.exit_code == 0, result.output

        result = run_cli(configured, "today")
        assert result.exit_code == 1
        assert "hifz setup" in result.output

    def test_reset_can_be_declined(self, configured):
        result = run_cli(configured, "reset", input="n\n")
        assert result.exit_code == 1
        assert run_cli(configured, "today").exit_code == 0


class TestCLIExportImport:
    """Test JSON export and import."""

    def test_export_stdout(self, configured):
        result = run_cli(configured, "export")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert len(data["items"]) == 8
        assert data["config"]["start_date"] == "2025-01-01"

    def test_export_then_import(self, configured, tmp_path):
        export_file = tmp_path / "backup.json"
        result = run_cli(configured, "export", "--output", str(export_file))
        assert result.exit_code == 0, result.output

        fresh = tmp_path / "fresh.db"
        result = run_cli(fresh, "import", str(export_file))
        assert result.exit_code == 0, result.output
        assert "Imported 8 items" in result.output
        assert "item-page-8-2025-01-08" in run_cli(fresh, "today").output

    def test_import_invalid_json(self, db, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        result = run_cli(db, "import", str(bad))
        assert result.exit_code == 1
        assert "Not a valid export" in result.output

    def test_import_unreadable_item(self, db, tmp_path):
        bad = tmp_path / "bad_item.json"
        item = {"id": "x", "unit_type": "page", "sequence_number": 1, "date_memorized": "2025-01-01", "status": "bogus"}
        bad.write_text(json.dumps({"items": [item]}), encoding="utf-8")

        result = run_cli(db, "import", str(bad))

        assert result.exit_code == 1
        assert "Not a valid export" in result.output
