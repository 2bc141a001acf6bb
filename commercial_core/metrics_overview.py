from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

from commercial_core.cascade import cascade_many
from commercial_core.data import windows_payload
from commercial_core.filters import AnalysisFilters
from commercial_core.periods import variation
from commercial_core.projection import GoalRepository, project_month


VARIATION_METRICS = (
    "gross_revenue_with_tax",
    "gross_revenue",
    "net_revenue",
    "gross_profit",
    "gross_margin_pct",
    "contribution_margin_pct",
)


def compute_overview(
    filters: AnalysisFilters,
    ctx: Dict[str, Any],
    goals: Optional[GoalRepository] = None,
) -> Dict[str, Any]:
    mapping = ctx.get("mapping")
    current = cascade_many(ctx.get("current_records", []), mapping)
    mom = cascade_many(ctx.get("mom_records", []), mapping)
    yoy = cascade_many(ctx.get("yoy_records", []), mapping)

    variations: Dict[str, Dict[str, Any]] = {}
    for name in VARIATION_METRICS:
        variations[name] = {
            "mom": variation(current.metric(name), mom.metric(name)).to_dict(),
            "yoy": variation(current.metric(name), yoy.metric(name)).to_dict(),
        }

    projection = None
    windows = ctx.get("windows")
    if windows:
        ref = filters.reference_date or windows["current"].end
        projection = project_month(current.gross_revenue, ref, goals).to_dict()

    return {
        "filters": asdict(filters),
        "windows": windows_payload(ctx),
        "current": current.to_dict(),
        "mom": mom.to_dict(),
        "yoy": yoy.to_dict(),
        "variations": variations,
        "projection": projection,
        "data_flags": {
            "has_tax_substitution": current.has_tax_substitution,
            "has_cost": current.has_cost,
            "has_commission": current.has_commission,
            "has_output_tax": current.has_output_tax,
        },
    }
