"""Unit tests for MoM/YoY window alignment"""

from datetime import date

import pytest

from commercial_core.exceptions import InvalidConfigurationError
from commercial_core.periods import (
    PeriodShape,
    PeriodWindow,
    comparison_windows,
    current_period,
    filter_window,
    period_shape,
    prior_period,
    same_period_last_year,
    variation,
)


def test_partial_month_uses_same_cutoff():
    """1-19 Feb compares with 1-19 Jan and 1-19 Feb of the previous year"""
    start, end = date(2025, 2, 1), date(2025, 2, 19)
    mom = prior_period(start, end)
    assert (mom.start, mom.end) == (date(2025, 1, 1), date(2025, 1, 19))
    assert mom.is_partial and mom.cutoff_day == 19
    assert mom.label == "January 2025 (1-19)"

    yoy = same_period_last_year(start, end)
    assert (yoy.start, yoy.end) == (date(2024, 2, 1), date(2024, 2, 19))
    assert yoy.is_partial and yoy.cutoff_day == 19


def test_full_month_compares_full_months():
    start, end = date(2025, 3, 1), date(2025, 3, 31)
    mom = prior_period(start, end)
    assert (mom.start, mom.end) == (date(2025, 2, 1), date(2025, 2, 28))
    assert not mom.is_partial
    assert mom.label == "February 2025"
    yoy = same_period_last_year(start, end)
    assert (yoy.start, yoy.end) == (date(2024, 3, 1), date(2024, 3, 31))


def test_cutoff_clamped_to_shorter_month():
    mom = prior_period(date(2025, 3, 1), date(2025, 3, 30))
    assert mom.end == date(2025, 2, 28)
    assert mom.cutoff_day == 28
    assert mom.label == "February 2025 (1-28)"


def test_january_rolls_back_to_december():
    mom = prior_period(date(2025, 1, 1), date(2025, 1, 31))
    assert (mom.start, mom.end) == (date(2024, 12, 1), date(2024, 12, 31))


def test_range_slides_back_by_same_duration():
    start, end = date(2025, 1, 5), date(2025, 1, 14)
    mom = prior_period(start, end)
    assert (mom.start, mom.end) == (date(2024, 12, 26), date(2025, 1, 4))
    assert mom.duration_days == 10
    assert mom.label == "2024-12-26 to 2025-01-04"


def test_range_year_back_clamps_leap_day():
    yoy = same_period_last_year(date(2024, 2, 29), date(2024, 3, 10))
    assert (yoy.start, yoy.end) == (date(2023, 2, 28), date(2023, 3, 10))


def test_period_shape_detection():
    assert period_shape(date(2025, 2, 1), date(2025, 2, 28)) is PeriodShape.FULL_MONTH
    assert period_shape(date(2025, 2, 1), date(2025, 2, 19)) is PeriodShape.PARTIAL_MONTH
    assert period_shape(date(2025, 2, 2), date(2025, 2, 19)) is PeriodShape.RANGE
    assert period_shape(date(2025, 1, 1), date(2025, 2, 28)) is PeriodShape.RANGE


def test_string_dates_accepted():
    current, mom, yoy = comparison_windows("2025-02-01", "2025-02-19")
    assert current.label == "February 2025 (1-19)"
    assert mom.start == date(2025, 1, 1)
    assert yoy.start == date(2024, 2, 1)


def test_inverted_window_rejected():
    with pytest.raises(InvalidConfigurationError):
        PeriodWindow(date(2025, 2, 2), date(2025, 2, 1), "bad")
    with pytest.raises(ValueError):
        prior_period(date(2025, 2, 2), date(2025, 2, 1))


def test_filter_window_inclusive_and_drops_undated(sales_records):
    window = current_period(date(2025, 2, 1), date(2025, 2, 19))
    rows = filter_window(sales_records, window)
    assert len(rows) == 4
    edge = filter_window([{"date": "2025-02-19"}, {"date": "2025-02-20"}, {"date": None}], window)
    assert edge == [{"date": "2025-02-19"}]


def test_variation_rules():
    assert variation(120, 100).value == pytest.approx(20)
    assert variation(120, 100).label == "+20.0%"
    assert variation(80, 100).positive is False
    assert variation(50, 0).value == 100
    assert variation(-5, 0).value == -100
    zero = variation(0, 0)
    assert zero.value == 0 and zero.positive is None
    assert variation(-50, -100).value == pytest.approx(50)
