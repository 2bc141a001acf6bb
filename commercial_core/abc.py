from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

import pandas as pd

from commercial_core.cascade import cascade_one
from commercial_core.exceptions import InvalidConfigurationError
from commercial_core.fields import (
    ColumnMapping,
    Field,
    FieldName,
    UNSPECIFIED,
    Record,
    as_number,
    as_records,
    as_text,
    field_name,
    parse_number,
)


logger = logging.getLogger(__name__)

Boundary = Literal["start", "end"]
_EPS = 1e-9


@dataclass(frozen=True)
class AbcThresholds:
    """Ordered (class, upper cumulative %) bands, e.g. A up to 50%, B up to 75%."""

    bands: Tuple[Tuple[str, float], ...] = (("A", 50.0), ("B", 75.0), ("C", 90.0), ("D", 100.0))

    def __post_init__(self) -> None:
        if not self.bands:
            raise InvalidConfigurationError("ABC thresholds need at least one band")
        previous = 0.0
        for label, bound in self.bands:
            if not label:
                raise InvalidConfigurationError("ABC class labels must be non-empty")
            if bound <= previous:
                raise InvalidConfigurationError(f"ABC bounds must be positive and ascending, got {bound} after {previous}")
            previous = bound

    @classmethod
    def from_bounds(cls, bounds: Mapping[str, float]) -> "AbcThresholds":
        """Build from ``{"A": 50, "B": 75, ...}``; order follows the bound values."""
        pairs = sorted(((str(k), float(v)) for k, v in bounds.items()), key=lambda kv: kv[1])
        return cls(tuple(pairs))

    @property
    def classes(self) -> Tuple[str, ...]:
        return tuple(label for label, _ in self.bands)

    @property
    def lowest_class(self) -> str:
        return self.bands[-1][0]


CATEGORY_THRESHOLDS = AbcThresholds()
ITEM_THRESHOLDS = AbcThresholds((("A", 70.0), ("B", 80.0), ("C", 90.0), ("D", 100.0)))


@dataclass(frozen=True)
class AbcItem:
    key: str
    value: float
    percentage: float
    cumulative_percentage: float
    abc_class: str
    critical: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        extra = out.pop("extra")
        out.update(extra)
        return out


def _class_for(cumulative_before: float, cumulative: float, thresholds: AbcThresholds, boundary: Boundary) -> str:
    for label, bound in thresholds.bands:
        if boundary == "start":
            if cumulative_before + _EPS < bound:
                return label
        elif cumulative <= bound + _EPS:
            return label
    return thresholds.lowest_class


def _coerce_items(items: Iterable[Any]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for item in items:
        if isinstance(item, AbcItem):
            rows.append({"key": item.key, "value": item.value, "extra": dict(item.extra)})
        elif isinstance(item, Mapping):
            extra = {k: v for k, v in item.items() if k not in ("key", "value")}
            rows.append({"key": str(item.get("key")), "value": parse_number(item.get("value")), "extra": extra})
        else:
            key, value = item
            rows.append({"key": str(key), "value": parse_number(value), "extra": {}})
    return rows


def classify(
    items: Iterable[Any],
    thresholds: AbcThresholds = CATEGORY_THRESHOLDS,
    *,
    boundary: Boundary = "start",
) -> List[AbcItem]:
    """Rank items by value (descending, stable) and assign cumulative-share classes.

    ``items`` are ``{"key", "value"}`` mappings or ``(key, value)`` pairs; any
    other mapping keys travel along in ``AbcItem.extra``.

    With ``boundary="start"`` an item takes the band in which its share
    starts, so the item crossing a cutpoint stays in the upper band.
    With ``boundary="end"`` the band is chosen by the cumulative share
    including the item itself. This is how the original commercial
    dashboard classifies, so 50/30/10/10 gives A, C, C, D there.
    """
    if boundary not in ("start", "end"):
        raise InvalidConfigurationError(f"unknown ABC boundary rule: {boundary!r}")

    rows = _coerce_items(items)
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df = df.sort_values("value", ascending=False, kind="mergesort").reset_index(drop=True)
    running = df["value"].cumsum()
    total = float(running.iloc[-1])
    if total <= 0:
        logger.debug("ABC total is %s; nothing to classify", total)
        return []

    df["percentage"] = df["value"] * 100.0 / total
    df["cumulative_percentage"] = running * 100.0 / total
    df["cumulative_before"] = df["cumulative_percentage"].shift(1, fill_value=0.0)

    out: List[AbcItem] = []
    for row in df.itertuples(index=False):
        out.append(
            AbcItem(
                key=row.key,
                value=float(row.value),
                percentage=float(row.percentage),
                cumulative_percentage=float(row.cumulative_percentage),
                abc_class=_class_for(float(row.cumulative_before), float(row.cumulative_percentage), thresholds, boundary),
                extra=row.extra,
            )
        )
    return out


CriticalPredicate = Callable[[AbcItem], bool]


def lowest_class_below(thresholds: AbcThresholds = ITEM_THRESHOLDS, max_percentage: float = 1.0) -> CriticalPredicate:
    lowest = thresholds.lowest_class

    def _predicate(item: AbcItem) -> bool:
        return item.abc_class == lowest and item.percentage < max_percentage

    return _predicate


def flag_critical(items: Sequence[AbcItem], predicate: CriticalPredicate) -> List[AbcItem]:
    return [replace(item, critical=bool(predicate(item))) for item in items]


def abc_stats(items: Sequence[AbcItem], thresholds: Optional[AbcThresholds] = None) -> Dict[str, int]:
    classes = thresholds.classes if thresholds else tuple(dict.fromkeys(i.abc_class for i in items))
    stats: Dict[str, int] = {f"class_{c}": 0 for c in classes}
    for item in items:
        stats[f"class_{item.abc_class}"] = stats.get(f"class_{item.abc_class}", 0) + 1
    stats["critical"] = sum(1 for i in items if i.critical)
    stats["total"] = len(items)
    return stats


def group_values(
    records: Iterable[Record],
    dimension: FieldName,
    mapping: Optional[ColumnMapping] = None,
    *,
    metric: str = "gross_revenue_with_tax",
    missing_label: str = UNSPECIFIED,
) -> List[Dict[str, Any]]:
    """Sum one cascade metric per dimension value, keeping first-seen order.

    Each entry also carries the row ``count`` and the summed ``quantity``.
    """
    groups: Dict[str, Dict[str, Any]] = {}
    skipped = 0
    for row in as_records(records):
        try:
            m = cascade_one(row, mapping)
        except TypeError:
            skipped += 1
            continue
        key = as_text(row, dimension, mapping, missing_label)
        bucket = groups.setdefault(key, {"key": key, "value": 0.0, "count": 0, "quantity": 0.0})
        bucket["value"] += m.metric(metric)
        bucket["count"] += 1
        bucket["quantity"] += as_number(row, Field.QUANTITY, mapping, 1.0)
    if skipped:
        logger.debug("group_values(%s) skipped %d non-mapping rows", field_name(dimension), skipped)
    return list(groups.values())
