"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import date, datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hifz_planner.config import Settings
from hifz_planner.core.dates import FixedClock
from hifz_planner.core.models import MemorizationItem, ProgressionConfig
from hifz_planner.delivery.item_store import ItemStore


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (temporary SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture
def clock():
    """Clock frozen at 2025-01-08 09:00 (after the default morning cutoff)."""
    return FixedClock(datetime(2025, 1, 8, 9, 0))


@pytest.fixture
def settings():
    """Settings with the documented defaults, independent of the environment."""
    return Settings(
        _env_file=None,
        backlog_daily_capacity=10,
        backlog_default_spread_days=5,
        backlog_overdue_threshold_days=1,
        backlog_min_overdue_count=1,
    )


@pytest.fixture
def config():
    """Twenty page units starting 2025-01-01."""
    return ProgressionConfig(start_date=date(2025, 1, 1), total_units=20, unit_type="page")


@pytest.fixture
def make_item():
    """Factory for active page items."""

    def _make(sequence_number=1, memorized="2025-01-01", completed=()):
        item = MemorizationItem.create(
            unit_type="page",
            sequence_number=sequence_number,
            date_memorized=memorized,
            content_reference=f"Page {sequence_number}",
        )
        item.reviews_completed.update(completed)
        return item

    return _make


@pytest.fixture
def store(tmp_path, clock):
    """ItemStore on a temporary database."""
    item_store = ItemStore(tmp_path / "state.db", clock=clock)
    yield item_store
    item_store.close()
