"""Customer base health: recency buckets, cohort deltas, churn and positivation.

A customer is a distinct tax id (falling back to the customer name). Records
with no customer identity or no parseable date never enter a bucket; they
are only counted.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from commercial_core.cascade import cascade_one
from commercial_core.exceptions import InvalidConfigurationError
from commercial_core.fields import (
    ColumnMapping,
    Record,
    as_date,
    as_records,
    customer_key,
    customer_label,
    latest_date,
    parse_date,
)


logger = logging.getLogger(__name__)


class RecencyBucket(str, Enum):
    ACTIVE = "active"
    AT_RISK = "at_risk"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class RecencyThresholds:
    active_days: int = 60
    at_risk_days: int = 90

    def __post_init__(self) -> None:
        if self.active_days < 0 or self.at_risk_days <= self.active_days:
            raise InvalidConfigurationError(
                f"recency thresholds must satisfy 0 <= active_days < at_risk_days, got "
                f"{self.active_days}/{self.at_risk_days}"
            )

    def bucket(self, days: int) -> RecencyBucket:
        if days <= self.active_days:
            return RecencyBucket.ACTIVE
        if days <= self.at_risk_days:
            return RecencyBucket.AT_RISK
        return RecencyBucket.INACTIVE


@dataclass
class CustomerActivity:
    key: str
    label: str
    first_purchase: date
    last_purchase: date
    total_value: float = 0.0
    transaction_count: int = 0
    days_since_last_purchase: int = 0
    bucket: RecencyBucket = RecencyBucket.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["first_purchase"] = self.first_purchase.isoformat()
        out["last_purchase"] = self.last_purchase.isoformat()
        out["bucket"] = self.bucket.value
        return out


def _share(part: int, whole: int) -> float:
    return part / whole * 100 if whole > 0 else 0.0


@dataclass
class CustomerBase:
    reference_date: Optional[date] = None
    detail: List[CustomerActivity] = field(default_factory=list)
    skipped_without_date: int = 0
    skipped_without_customer: int = 0

    @property
    def total(self) -> int:
        return len(self.detail)

    def _count(self, bucket: RecencyBucket) -> int:
        return sum(1 for c in self.detail if c.bucket is bucket)

    @property
    def active(self) -> int:
        return self._count(RecencyBucket.ACTIVE)

    @property
    def at_risk(self) -> int:
        return self._count(RecencyBucket.AT_RISK)

    @property
    def inactive(self) -> int:
        return self._count(RecencyBucket.INACTIVE)

    @property
    def active_pct(self) -> float:
        return _share(self.active, self.total)

    @property
    def at_risk_pct(self) -> float:
        return _share(self.at_risk, self.total)

    @property
    def inactive_pct(self) -> float:
        return _share(self.inactive, self.total)

    def to_dict(self, include_detail: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "reference_date": self.reference_date.isoformat() if self.reference_date else None,
            "total": self.total,
            "active": self.active,
            "at_risk": self.at_risk,
            "inactive": self.inactive,
            "active_pct": self.active_pct,
            "at_risk_pct": self.at_risk_pct,
            "inactive_pct": self.inactive_pct,
            "skipped_without_date": self.skipped_without_date,
            "skipped_without_customer": self.skipped_without_customer,
        }
        if include_detail:
            out["detail"] = [c.to_dict() for c in self.detail]
        return out


def _row_value(record: Record, mapping: Optional[ColumnMapping]) -> float:
    try:
        return cascade_one(record, mapping).gross_revenue_with_tax
    except TypeError:
        return 0.0


def classify_customers(
    records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
    reference_date: Optional[date] = None,
    thresholds: RecencyThresholds = RecencyThresholds(),
) -> CustomerBase:
    """Bucket every identified customer by days since their last purchase.

    ``reference_date`` defaults to the latest purchase date in ``records``.
    """
    rows = as_records(records)
    ref = parse_date(reference_date) if reference_date is not None else latest_date(rows, mapping)
    base = CustomerBase(reference_date=ref)
    if not rows or ref is None:
        return base

    customers: Dict[str, CustomerActivity] = {}
    for record in rows:
        day = as_date(record, mapping)
        if day is None:
            base.skipped_without_date += 1
            continue
        key = customer_key(record, mapping)
        if key is None:
            base.skipped_without_customer += 1
            continue
        activity = customers.get(key)
        if activity is None:
            activity = CustomerActivity(
                key=key,
                label=customer_label(record, mapping, key),
                first_purchase=day,
                last_purchase=day,
            )
            customers[key] = activity
        elif activity.label == key:
            activity.label = customer_label(record, mapping, key)
        activity.first_purchase = min(activity.first_purchase, day)
        activity.last_purchase = max(activity.last_purchase, day)
        activity.total_value += _row_value(record, mapping)
        activity.transaction_count += 1

    for activity in customers.values():
        activity.days_since_last_purchase = (ref - activity.last_purchase).days
        activity.bucket = thresholds.bucket(activity.days_since_last_purchase)

    base.detail = list(customers.values())
    logger.info(
        "customer base ref=%s total=%d active=%d at_risk=%d inactive=%d skipped_date=%d skipped_customer=%d",
        ref,
        base.total,
        base.active,
        base.at_risk,
        base.inactive,
        base.skipped_without_date,
        base.skipped_without_customer,
    )
    return base


def _distinct_keys(records: Iterable[Record], mapping: Optional[ColumnMapping]) -> List[str]:
    return list(dict.fromkeys(k for k in (customer_key(r, mapping) for r in as_records(records)) if k))


@dataclass(frozen=True)
class CohortDelta:
    new: List[str]
    recovered: List[str]
    current_size: int
    prior_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new": list(self.new),
            "recovered": list(self.recovered),
            "new_count": len(self.new),
            "recovered_count": len(self.recovered),
            "current_size": self.current_size,
            "prior_size": self.prior_size,
        }


def cohort_delta(
    current_records: Iterable[Record],
    prior_records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
) -> CohortDelta:
    """Customers present now but not before (``new``) and before but not now (``recovered``)."""
    current = _distinct_keys(current_records, mapping)
    prior = _distinct_keys(prior_records, mapping)
    current_set, prior_set = set(current), set(prior)
    return CohortDelta(
        new=[k for k in current if k not in prior_set],
        recovered=[k for k in prior if k not in current_set],
        current_size=len(current),
        prior_size=len(prior),
    )


def _months_back(day: date, months: int) -> date:
    return (pd.Timestamp(day) - pd.DateOffset(months=months)).date()


def _dated_keys(records: Iterable[Record], mapping: Optional[ColumnMapping]) -> List[tuple]:
    out = []
    for record in records:
        day = as_date(record, mapping)
        key = customer_key(record, mapping)
        if day is not None and key is not None:
            out.append((key, day))
    return out


def churn(
    records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
    reference_date: Optional[date] = None,
    months: int = 3,
) -> Dict[str, Any]:
    """Customers who bought in ``[ref - 2*months, ref - months)`` and not since."""
    if months < 1:
        raise InvalidConfigurationError(f"churn months must be >= 1, got {months}")
    rows = as_records(records)
    ref = parse_date(reference_date) if reference_date is not None else latest_date(rows, mapping)
    empty = {"reference_date": None, "previous_customers": 0, "current_customers": 0, "lost": [], "lost_customers": 0, "churn_rate": 0.0}
    if not rows or ref is None:
        return empty

    recent_start = _months_back(ref, months)
    previous_start = _months_back(ref, months * 2)
    previous: Dict[str, None] = {}
    current: Dict[str, None] = {}
    for key, day in _dated_keys(rows, mapping):
        if previous_start <= day < recent_start:
            previous[key] = None
        elif recent_start <= day <= ref:
            current[key] = None

    lost = [k for k in previous if k not in current]
    return {
        "reference_date": ref.isoformat(),
        "previous_customers": len(previous),
        "current_customers": len(current),
        "lost": lost,
        "lost_customers": len(lost),
        "churn_rate": _share(len(lost), len(previous)),
    }


def monthly_positivation(
    records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
    months: int = 12,
    reference_date: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Distinct buying customers per month, oldest first.

    Each month also reports customers active in the trailing 3 and 6 months
    up to the end of that month.
    """
    rows = as_records(records)
    ref = parse_date(reference_date) if reference_date is not None else latest_date(rows, mapping)
    if not rows or ref is None or months < 1:
        return []

    dated = _dated_keys(rows, mapping)
    ref_month = pd.Timestamp(ref.year, ref.month, 1)
    out: List[Dict[str, Any]] = []
    for offset in range(months - 1, -1, -1):
        month_start = (ref_month - pd.DateOffset(months=offset)).date()
        next_month = (pd.Timestamp(month_start) + pd.DateOffset(months=1)).date()
        start_3m = _months_back(month_start, 3)
        start_6m = _months_back(month_start, 6)

        in_month, in_3m, in_6m = set(), set(), set()
        for key, day in dated:
            if day >= next_month or day < start_6m:
                continue
            in_6m.add(key)
            if day >= start_3m:
                in_3m.add(key)
            if day >= month_start:
                in_month.add(key)

        out.append(
            {
                "month": f"{month_start.year:04d}-{month_start.month:02d}",
                "month_start": month_start.isoformat(),
                "positive_customers": len(in_month),
                "active_3_months": len(in_3m),
                "active_6_months": len(in_6m),
            }
        )
    return out
