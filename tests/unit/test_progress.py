"""
Unit tests for progress statistics and calendar counts.

Run: pytest tests/unit/test_progress.py -v
"""

from hifz_planner.core.models import ItemStatus
from hifz_planner.scheduling.progress import (
    filter_by_progression,
    get_next_unit_number,
    get_progress_stats,
    get_task_counts_for_month,
    group_by_progression,
)
from hifz_planner.scheduling.schedule_engine import ScheduleEngine


class TestProgressStats:
    """Test get_progress_stats."""

    def test_no_config(self, make_item):
        stats = get_progress_stats([make_item()], None, "2025-01-08")
        assert stats.total_items == 0
        assert stats.completion_rate == 0.0

    def test_before_start(self, config):
        assert get_progress_stats([], config, "2024-12-31").total_items == 0

    def test_counts_reviews_due_so_far(self, config, make_item):
        # On 2025-01-02 unit 1 had stations 1, 2 and 3 due, unit 2 had 1 and 2
        items = [
            make_item(1, "2025-01-01", completed={"1-2025-01-01", "2-2025-01-01", "3-2025-01-02"}),
            make_item(2, "2025-01-02", completed={"1-2025-01-02"}),
        ]

        stats = get_progress_stats(items, config, "2025-01-02")

        assert stats.total_items == 2
        assert stats.total_reviews == 5
        assert stats.completed_reviews == 4
        assert stats.completion_rate == 80.0

    def test_expected_units_capped_at_total(self, config):
        assert get_progress_stats([], config, "2025-06-01").total_items == 20


class TestMonthCounts:
    """Test get_task_counts_for_month."""

    def test_counts_per_day(self, clock, config, make_item):
        engine = ScheduleEngine(clock=clock, cache_size=4)
        items = [make_item(1, "2025-01-01")]

        counts = get_task_counts_for_month(engine, items, config, 2025, 1)

        assert counts["2025-01-01"] == {"new_memorization": 2, "yesterday_review": 0, "spaced_review": 0}
        assert counts["2025-01-02"]["yesterday_review"] == 1
        assert counts["2025-01-05"]["spaced_review"] == 1
        # Placeholders fill the days whose unit is not stored yet
        assert counts["2025-01-03"]["new_memorization"] == 2
        # 20 units end on 2025-01-20; later days only have reviews
        assert "2025-01-21" not in counts
        assert counts["2025-01-26"]["spaced_review"] == 1

    def test_ignores_archived_items(self, clock, config, make_item):
        engine = ScheduleEngine(clock=clock, cache_size=4)
        item = make_item(1, "2025-01-01")
        item.status = ItemStatus.ARCHIVED
        counts = get_task_counts_for_month(engine, [item], config, 2025, 1)
        assert "2025-01-05" in counts
        assert counts["2025-01-05"]["spaced_review"] == 0
        # The archived unit is still stored, so its own day has no placeholder
        assert "2025-01-01" not in counts

    def test_no_config(self, clock):
        engine = ScheduleEngine(clock=clock, cache_size=4)
        assert get_task_counts_for_month(engine, [], None, 2025, 1) == {}


class TestNextUnit:
    """Test get_next_unit_number."""

    def test_empty(self):
        assert get_next_unit_number([]) == 1

    def test_after_highest_active(self, make_item):
        archived = make_item(9, "2025-01-09")
        archived.status = ItemStatus.ARCHIVED
        assert get_next_unit_number([make_item(1), make_item(4, "2025-01-04"), archived]) == 5


class TestProgressions:
    """Test filtering and grouping by progression name."""

    def _items(self, make_item):
        amma = make_item(1, "2025-01-01")
        amma.progression_name = "Juz Amma"
        baqarah = make_item(2, "2025-01-02")
        baqarah.progression_name = "Al-Baqarah"
        unnamed = make_item(3, "2025-01-03")
        return [amma, baqarah, unnamed]

    def test_filter(self, make_item):
        items = self._items(make_item)
        assert [i.sequence_number for i in filter_by_progression(items, "Juz Amma")] == [1]
        assert [i.sequence_number for i in filter_by_progression(items, "")] == [3]
        assert filter_by_progression(items, "Yasin") == []

    def test_no_filter_keeps_everything(self, make_item):
        items = self._items(make_item)
        assert filter_by_progression(items, None) == items

    def test_group_skips_archived(self, make_item):
        items = self._items(make_item)
        items[1].status = ItemStatus.ARCHIVED
        groups = group_by_progression(items)
        assert list(groups) == ["Juz Amma", ""]
        assert [i.sequence_number for i in groups["Juz Amma"]] == [1]
