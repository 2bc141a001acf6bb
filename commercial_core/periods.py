"""Calendar-aligned comparison windows (MoM and YoY).

A window that starts on the 1st and ends before the month's last day is a
partial month: comparisons reuse the same day cutoff (clamped to the target
month's length) instead of a sliding window.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from commercial_core.exceptions import InvalidConfigurationError
from commercial_core.fields import ColumnMapping, Record, as_date, as_records, parse_date


logger = logging.getLogger(__name__)


class PeriodShape(str, Enum):
    FULL_MONTH = "full_month"
    PARTIAL_MONTH = "partial_month"
    RANGE = "range"


@dataclass(frozen=True)
class PeriodWindow:
    start: date
    end: date
    label: str
    is_partial: bool = False
    cutoff_day: Optional[int] = None

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidConfigurationError(f"window start {self.start} is after end {self.end}")

    @property
    def duration_days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: Optional[date]) -> bool:
        return day is not None and self.start <= day <= self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "label": self.label,
            "is_partial": self.is_partial,
            "cutoff_day": self.cutoff_day,
            "duration_days": self.duration_days,
        }


@dataclass(frozen=True)
class Variation:
    value: float
    label: str
    positive: Optional[bool]

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "label": self.label, "positive": self.positive}


def _last_day(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _month_label(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def _range_label(start: date, end: date) -> str:
    return f"{start.isoformat()} to {end.isoformat()}"


def _coerce(day: Any, name: str) -> date:
    parsed = parse_date(day)
    if parsed is None:
        raise InvalidConfigurationError(f"{name} is not a valid date: {day!r}")
    return parsed


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def period_shape(start: date, end: date) -> PeriodShape:
    start, end = _coerce(start, "start"), _coerce(end, "end")
    if start > end:
        raise InvalidConfigurationError(f"window start {start} is after end {end}")
    if (start.year, start.month) != (end.year, end.month) or start.day != 1:
        return PeriodShape.RANGE
    if end.day >= _last_day(end.year, end.month):
        return PeriodShape.FULL_MONTH
    return PeriodShape.PARTIAL_MONTH


def _month_window(year: int, month: int, cutoff: Optional[int]) -> PeriodWindow:
    last = _last_day(year, month)
    if cutoff is None:
        return PeriodWindow(date(year, month, 1), date(year, month, last), _month_label(year, month))
    day = min(cutoff, last)
    return PeriodWindow(
        date(year, month, 1),
        date(year, month, day),
        f"{_month_label(year, month)} (1-{day})",
        is_partial=True,
        cutoff_day=day,
    )


def current_period(start: date, end: date) -> PeriodWindow:
    start, end = _coerce(start, "start"), _coerce(end, "end")
    shape = period_shape(start, end)
    if shape is PeriodShape.FULL_MONTH:
        return _month_window(start.year, start.month, None)
    if shape is PeriodShape.PARTIAL_MONTH:
        return _month_window(start.year, start.month, end.day)
    return PeriodWindow(start, end, _range_label(start, end))


def prior_period(start: date, end: date) -> PeriodWindow:
    """Month-over-month comparison window."""
    start, end = _coerce(start, "start"), _coerce(end, "end")
    shape = period_shape(start, end)
    if shape is not PeriodShape.RANGE:
        year, month = _shift_month(start.year, start.month, -1)
        cutoff = end.day if shape is PeriodShape.PARTIAL_MONTH else None
        return _month_window(year, month, cutoff)

    duration = (end - start).days + 1
    prior_end = start - timedelta(days=1)
    prior_start = prior_end - timedelta(days=duration - 1)
    return PeriodWindow(prior_start, prior_end, _range_label(prior_start, prior_end))


def same_period_last_year(start: date, end: date) -> PeriodWindow:
    """Year-over-year comparison window."""
    start, end = _coerce(start, "start"), _coerce(end, "end")
    shape = period_shape(start, end)
    if shape is not PeriodShape.RANGE:
        cutoff = end.day if shape is PeriodShape.PARTIAL_MONTH else None
        return _month_window(start.year - 1, start.month, cutoff)

    # DateOffset clamps 29 Feb to 28 Feb
    year_back = pd.DateOffset(years=1)
    ly_start = (pd.Timestamp(start) - year_back).date()
    ly_end = (pd.Timestamp(end) - year_back).date()
    return PeriodWindow(ly_start, ly_end, _range_label(ly_start, ly_end))


def comparison_windows(start: date, end: date) -> Tuple[PeriodWindow, PeriodWindow, PeriodWindow]:
    """(current, MoM, YoY) windows for a selected date range."""
    return current_period(start, end), prior_period(start, end), same_period_last_year(start, end)


def filter_window(
    records: Iterable[Record],
    window: PeriodWindow,
    mapping: Optional[ColumnMapping] = None,
) -> List[Record]:
    """Records whose date falls inside the window (inclusive); undated rows are dropped."""
    out: List[Record] = []
    undated = 0
    for record in as_records(records):
        day = as_date(record, mapping)
        if day is None:
            undated += 1
            continue
        if window.contains(day):
            out.append(record)
    if undated:
        logger.debug("filter_window(%s) dropped %d undated records", window.label, undated)
    return out


def variation(current: float, previous: float) -> Variation:
    """Percentage change; with no previous value the change is +100 or -100 (0 and ``positive=None`` when both are zero)."""
    current = float(current or 0.0)
    previous = float(previous or 0.0)
    if previous == 0:
        if current == 0:
            return Variation(value=0.0, label="0%", positive=None)
        value = 100.0 if current > 0 else -100.0
    else:
        value = (current - previous) / abs(previous) * 100
    sign = "+" if value > 0 else ""
    return Variation(value=value, label=f"{sign}{value:.1f}%", positive=value >= 0)
