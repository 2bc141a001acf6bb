from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from commercial_core.fields import ColumnMapping, Field, Record, as_date, as_records, as_text, normalize_mapping
from commercial_core.filters import AnalysisFilters, normalize_filters
from commercial_core.periods import comparison_windows, filter_window


logger = logging.getLogger(__name__)


def available_dates(records: Iterable[Record], mapping: Optional[ColumnMapping] = None) -> List:
    """Distinct parseable record dates, ascending."""
    days = {as_date(r, mapping) for r in as_records(records)}
    days.discard(None)
    return sorted(days)


def load_context(
    records: Iterable[Record],
    raw_mapping: Optional[Dict[str, Any]] = None,
    raw_filters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Normalise mapping and filters against the data, then build the analysis context."""
    rows = as_records(records)
    mapping = normalize_mapping(raw_mapping)
    filters = normalize_filters(raw_filters or {}, available_dates=available_dates(rows, mapping))
    return prepare_context(filters, rows, mapping)


def prepare_context(
    filters: AnalysisFilters,
    records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
) -> Dict[str, Any]:
    """Split records into the current, MoM and YoY windows selected by ``filters``."""
    rows = as_records(records)
    ctx: Dict[str, Any] = {
        "filters": filters,
        "mapping": dict(mapping or {}),
        "all_records": rows,
        "windows": None,
        "current_records": [],
        "mom_records": [],
        "yoy_records": [],
        "category_records": [],
    }
    if filters.start is None or filters.end is None:
        logger.info("no dated records; analysis window is empty")
        return ctx

    current, mom, yoy = comparison_windows(filters.start, filters.end)
    ctx["windows"] = {"current": current, "mom": mom, "yoy": yoy}
    ctx["current_records"] = filter_window(rows, current, mapping)
    ctx["mom_records"] = filter_window(rows, mom, mapping)
    ctx["yoy_records"] = filter_window(rows, yoy, mapping)

    if filters.category:
        wanted = filters.category.casefold()
        ctx["category_records"] = [
            r for r in ctx["current_records"] if as_text(r, Field.CATEGORY, mapping).casefold() == wanted
        ]
    else:
        ctx["category_records"] = ctx["current_records"]

    logger.info(
        "context window=%s current=%d mom=%d yoy=%d total=%d",
        current.label,
        len(ctx["current_records"]),
        len(ctx["mom_records"]),
        len(ctx["yoy_records"]),
        len(rows),
    )
    return ctx


def windows_payload(ctx: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    windows = ctx.get("windows")
    if not windows:
        return None
    return {name: w.to_dict() for name, w in windows.items()}
