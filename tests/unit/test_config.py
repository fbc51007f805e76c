"""
Unit tests for application settings.

Run: pytest tests/unit/test_config.py -v
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from hifz_planner.config import Settings


class TestSettings:
    """Test Settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("HIFZ_BACKLOG_DAILY_CAPACITY", raising=False)
        settings = Settings(_env_file=None)
        assert settings.backlog_daily_capacity == 10
        assert settings.default_total_units == 30
        assert settings.schedule_cache_size == 50
        assert settings.log_level == "WARNING"

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HIFZ_DB_PATH", str(tmp_path / "other.db"))
        monkeypatch.setenv("HIFZ_BACKLOG_DAILY_CAPACITY", "4")
        settings = Settings(_env_file=None)
        assert settings.db_path == Path(tmp_path / "other.db")
        assert settings.backlog_daily_capacity == 4

    def test_rejects_invalid_hour(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_morning_hour=24)

    def test_spread_options(self):
        settings = Settings(_env_file=None, backlog_spread_options="7, 3,x,5,3,0")
        assert settings.get_spread_options() == [3, 5, 7]

    def test_spread_options_fall_back_to_default(self):
        settings = Settings(_env_file=None, backlog_spread_options="", backlog_default_spread_days=4)
        assert settings.get_spread_options() == [4]

    def test_progression_defaults(self):
        defaults = Settings(_env_file=None, default_unit_type="verse").get_progression_defaults()
        assert defaults["unit_type"] == "verse"
        assert defaults["morning_hour"] == 6
