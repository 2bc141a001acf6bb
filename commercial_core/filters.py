from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Tuple

from commercial_core.abc import CATEGORY_THRESHOLDS, ITEM_THRESHOLDS, AbcThresholds
from commercial_core.customers import RecencyThresholds
from commercial_core.exceptions import InvalidConfigurationError
from commercial_core.fields import parse_date, parse_text
from commercial_core.hierarchy import COMMERCIAL_PATH, resolve_path


@dataclass(frozen=True)
class AnalysisFilters:
    start: Optional[date] = None
    end: Optional[date] = None
    reference_date: Optional[date] = None
    dimension_path: Tuple[str, ...] = field(default_factory=lambda: tuple(f.value for f in COMMERCIAL_PATH))
    top_n: int = 10
    category: str = ""
    abc_boundary: str = "start"
    category_thresholds: AbcThresholds = CATEGORY_THRESHOLDS
    item_thresholds: AbcThresholds = ITEM_THRESHOLDS
    recency: RecencyThresholds = field(default_factory=RecencyThresholds)
    critical_max_percentage: float = 1.0


def _month_bounds(day: date) -> Tuple[date, date]:
    return day.replace(day=1), day.replace(day=calendar.monthrange(day.year, day.month)[1])


def _thresholds(raw: object, default: AbcThresholds) -> AbcThresholds:
    if not raw:
        return default
    if isinstance(raw, AbcThresholds):
        return raw
    if isinstance(raw, dict):
        try:
            return AbcThresholds.from_bounds(raw)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigurationError(f"invalid ABC thresholds {raw!r}: {exc}") from exc
    try:
        return AbcThresholds(tuple((str(label), float(bound)) for label, bound in raw))  # type: ignore[union-attr]
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"invalid ABC thresholds {raw!r}: {exc}") from exc


def normalize_filters(raw: Optional[dict], available_dates: Optional[Iterable[date]] = None) -> AnalysisFilters:
    """Coerce loosely-typed filter input into ``AnalysisFilters``.

    Without an explicit window, the latest month present in ``available_dates``
    is selected (up to its latest date, so a running month stays partial).
    """
    raw = raw or {}
    dates = sorted(d for d in (parse_date(x) for x in (available_dates or [])) if d is not None)

    start = parse_date(raw.get("start"))
    end = parse_date(raw.get("end"))
    if start is None and end is None and dates:
        start, end = _month_bounds(dates[-1])[0], dates[-1]
    elif start is not None and end is None:
        end = _month_bounds(start)[1]
    elif end is not None and start is None:
        start = end.replace(day=1)
    if start is not None and end is not None and start > end:
        raise InvalidConfigurationError(f"start {start} is after end {end}")

    reference_date = parse_date(raw.get("reference_date"))

    path = resolve_path(raw.get("dimension_path") or raw.get("preset") or "commercial")
    dimension_path = tuple(p.value if hasattr(p, "value") else str(p) for p in path)

    top_n = raw.get("top_n", 10)
    try:
        top_n = int(top_n)
    except (TypeError, ValueError):
        top_n = 10
    top_n = max(1, min(200, top_n))

    boundary = parse_text(raw.get("abc_boundary"), "start").lower()
    if boundary not in ("start", "end"):
        raise InvalidConfigurationError(f"unknown ABC boundary rule: {boundary!r}")

    r = raw.get("recency") or {}
    try:
        recency = RecencyThresholds(
            active_days=int(r.get("active_days", 60)),
            at_risk_days=int(r.get("at_risk_days", 90)),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"invalid recency thresholds {r!r}: {exc}") from exc

    try:
        critical_max_percentage = float(raw.get("critical_max_percentage", 1.0))
    except (TypeError, ValueError):
        critical_max_percentage = 1.0

    return AnalysisFilters(
        start=start,
        end=end,
        reference_date=reference_date,
        dimension_path=dimension_path,
        top_n=top_n,
        category=parse_text(raw.get("category")),
        abc_boundary=boundary,
        category_thresholds=_thresholds(raw.get("category_thresholds"), CATEGORY_THRESHOLDS),
        item_thresholds=_thresholds(raw.get("item_thresholds"), ITEM_THRESHOLDS),
        recency=recency,
        critical_max_percentage=critical_max_percentage,
    )
