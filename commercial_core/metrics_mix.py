from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from commercial_core.commercial import product_mix, regional_growth
from commercial_core.data import windows_payload
from commercial_core.filters import AnalysisFilters


def compute_mix(filters: AnalysisFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    mapping = ctx.get("mapping")
    current = ctx.get("current_records", [])
    return {
        "filters": asdict(filters),
        "windows": windows_payload(ctx),
        "mix": product_mix(current, mapping, filters.top_n),
        "regional": regional_growth(current, ctx.get("yoy_records", []), mapping),
    }
