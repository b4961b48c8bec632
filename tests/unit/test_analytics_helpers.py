"""Unit tests for analytics bucketing helpers"""
from datetime import date

from counselboard.services.analytics import (
    _month_bounds,
    _percentage,
    iter_days,
    month_label,
    week_label,
)


class TestBucketing:
    """Test day iteration and week/month labels"""

    def test_iter_days_inclusive(self):
        days = list(iter_days(date(2024, 1, 1), date(2024, 1, 5)))
        assert len(days) == 5
        assert days[0] == date(2024, 1, 1)
        assert days[-1] == date(2024, 1, 5)

    def test_iter_days_single_day(self):
        assert list(iter_days(date(2024, 2, 29), date(2024, 2, 29))) == [date(2024, 2, 29)]

    def test_iter_days_empty_when_reversed(self):
        assert list(iter_days(date(2024, 1, 5), date(2024, 1, 1))) == []

    def test_week_label_uses_iso_weeks(self):
        assert week_label(date(2024, 1, 1)) == "2024-W01"
        assert week_label(date(2024, 1, 7)) == "2024-W01"
        assert week_label(date(2024, 1, 8)) == "2024-W02"
        # 2021-01-01 belongs to the last ISO week of 2020
        assert week_label(date(2021, 1, 1)) == "2020-W53"

    def test_month_label(self):
        assert month_label(date(2024, 3, 15)) == "2024-03"

    def test_month_bounds(self):
        assert _month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
        assert _month_bounds(date(2024, 12, 31)) == (date(2024, 12, 1), date(2024, 12, 31))


class TestPercentage:
    def test_rounds_to_two_places(self):
        assert _percentage(1, 3) == 33.33
        assert _percentage(2, 3) == 66.67

    def test_zero_total(self):
        assert _percentage(0, 0) == 0.0
