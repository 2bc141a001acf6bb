from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

from commercial_core.abc import abc_stats, classify, flag_critical, group_values, lowest_class_below
from commercial_core.data import windows_payload
from commercial_core.fields import Field
from commercial_core.filters import AnalysisFilters


def compute_abc(filters: AnalysisFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    """Category curve over the whole window and product curve inside the selected category."""
    mapping = ctx.get("mapping")

    categories = classify(
        group_values(ctx.get("current_records", []), Field.CATEGORY, mapping),
        filters.category_thresholds,
        boundary=filters.abc_boundary,
    )

    items = classify(
        group_values(ctx.get("category_records", []), Field.PRODUCT, mapping),
        filters.item_thresholds,
        boundary=filters.abc_boundary,
    )
    items = flag_critical(items, lowest_class_below(filters.item_thresholds, filters.critical_max_percentage))

    critical: List[Dict[str, Any]] = [i.to_dict() for i in items if i.critical]
    return {
        "filters": asdict(filters),
        "windows": windows_payload(ctx),
        "categories": [c.to_dict() for c in categories],
        "category_stats": abc_stats(categories, filters.category_thresholds),
        "items": [i.to_dict() for i in items],
        "item_stats": abc_stats(items, filters.item_thresholds),
        "critical_items": critical,
    }
