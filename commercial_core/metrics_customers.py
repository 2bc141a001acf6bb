from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from commercial_core.commercial import customer_concentration, portfolio_summary
from commercial_core.customers import churn, classify_customers, cohort_delta, monthly_positivation
from commercial_core.data import windows_payload
from commercial_core.fields import as_date
from commercial_core.filters import AnalysisFilters


def _on_or_before(record, reference, mapping) -> bool:
    # undated rows pass through so classify_customers can count them
    day = as_date(record, mapping)
    return day is None or day <= reference



def compute_customers(filters: AnalysisFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    mapping = ctx.get("mapping")
    all_records = ctx.get("all_records", [])
    current = ctx.get("current_records", [])
    mom = ctx.get("mom_records", [])

    # Recency looks at the full history up to the reference date, not just the window.
    reference = filters.reference_date
    if reference is None and ctx.get("windows"):
        reference = ctx["windows"]["current"].end
    history = all_records
    if reference is not None:
        history = [r for r in all_records if _on_or_before(r, reference, mapping)]

    base = classify_customers(history, mapping, reference, filters.recency)
    return {
        "filters": asdict(filters),
        "windows": windows_payload(ctx),
        "base": base.to_dict(),
        "cohort": cohort_delta(current, mom, mapping).to_dict(),
        "portfolio": portfolio_summary(current, mom, mapping),
        "churn": churn(history, mapping, reference),
        "positivation": monthly_positivation(history, mapping, 12, reference),
        "concentration": customer_concentration(current, mapping, filters.top_n),
    }
