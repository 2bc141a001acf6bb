from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from commercial_core.cascade import cascade_one
from commercial_core.customers import cohort_delta
from commercial_core.fields import ColumnMapping, Field, Record, as_records, as_text, customer_key


NOT_INFORMED = "-"


def _risk_level(dependency_index: float) -> str:
    if dependency_index > 50:
        return "high"
    if dependency_index > 30:
        return "medium"
    return "low"


def _rank(df: pd.DataFrame, column: str, ascending: bool = False) -> pd.DataFrame:
    return df.sort_values(column, ascending=ascending, kind="mergesort").reset_index(drop=True)


def customer_concentration(
    records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
    top_n: int = 10,
) -> Dict[str, Any]:
    """Revenue concentration in the largest customers.

    The dependency index is the top-3 share of ROBST. Salesperson, manager and
    state come from each customer's highest-ROB transaction; MC% is derived
    from the customer's summed totals.
    """
    acc: Dict[str, Dict[str, Any]] = {}
    for row in as_records(records):
        key = customer_key(row, mapping)
        if key is None:
            continue
        m = cascade_one(row, mapping)
        entry = acc.get(key)
        if entry is None:
            entry = acc[key] = {
                "customer": key,
                "value": 0.0,
                "gross_revenue": 0.0,
                "gross_profit": 0.0,
                "commission": 0.0,
                "other_expenses": 0.0,
                "rebate": 0.0,
                "_max_rob": None,
                "salesperson": NOT_INFORMED,
                "manager": NOT_INFORMED,
                "state": NOT_INFORMED,
            }
        entry["value"] += m.gross_revenue_with_tax
        entry["gross_revenue"] += m.gross_revenue
        entry["gross_profit"] += m.gross_profit
        entry["commission"] += m.commission_value
        entry["other_expenses"] += m.other_expenses
        entry["rebate"] += m.rebate
        if entry["_max_rob"] is None or m.gross_revenue > entry["_max_rob"]:
            entry["_max_rob"] = m.gross_revenue
            entry["salesperson"] = as_text(row, Field.SALESPERSON, mapping, NOT_INFORMED)
            entry["manager"] = as_text(row, Field.MANAGER, mapping, NOT_INFORMED)
            entry["state"] = as_text(row, Field.STATE, mapping, NOT_INFORMED)

    empty = {
        "top": [],
        "top_share": 0.0,
        "top3_share": 0.0,
        "dependency_index": 0.0,
        "risk_level": "low",
        "total_customers": 0,
    }
    if not acc:
        return empty

    df = pd.DataFrame(list(acc.values())).drop(columns=["_max_rob"])
    total = float(df["value"].sum())
    if total == 0:
        return empty

    contribution = df["gross_profit"] - df["commission"] - df["other_expenses"] + df["rebate"]
    df["contribution_margin_pct"] = (contribution / df["gross_revenue"].where(df["gross_revenue"] > 0) * 100).fillna(0.0)
    df["percentage"] = df["value"] / total * 100
    df = _rank(df, "value")

    top = df.head(top_n)
    top3_share = float(top["percentage"].head(3).sum())
    columns = ["customer", "value", "percentage", "salesperson", "manager", "state", "contribution_margin_pct"]
    return {
        "top": top[columns].to_dict(orient="records"),
        "top_share": float(top["percentage"].sum()),
        "top3_share": top3_share,
        "dependency_index": top3_share,
        "risk_level": _risk_level(top3_share),
        "total_customers": int(len(df)),
    }


def portfolio_summary(
    current_records: Iterable[Record],
    prior_records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
) -> Dict[str, Any]:
    current = as_records(current_records)
    prior = as_records(prior_records)
    delta = cohort_delta(current, prior, mapping)

    revenue = 0.0
    for row in current:
        try:
            revenue += cascade_one(row, mapping).gross_revenue_with_tax
        except TypeError:
            continue
    return {
        "new_customers": len(delta.new),
        "recovered_customers": len(delta.recovered),
        "average_ticket": revenue / len(current) if current else 0.0,
        "current_customers": delta.current_size,
        "prior_customers": delta.prior_size,
    }


def _per_product(records: Iterable[Record], mapping: Optional[ColumnMapping]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for row in as_records(records):
        product = as_text(row, Field.PRODUCT, mapping)
        if not product:
            continue
        m = cascade_one(row, mapping)
        rows.append({"product": product, "revenue": m.gross_revenue_with_tax, "gross_profit": m.gross_profit})
    if not rows:
        return pd.DataFrame(columns=["product", "revenue", "gross_profit"])
    return pd.DataFrame(rows).groupby("product", sort=False, as_index=False).sum()


def product_mix(
    records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
    top_n: int = 10,
) -> Dict[str, Any]:
    """Top products by revenue and by gross profit, and loss-making products."""
    df = _per_product(records, mapping)
    if df.empty:
        return {"top_revenue": [], "top_margin": [], "low_profitability": []}

    total = float(df["revenue"].sum())
    df["percentage"] = df["revenue"] / total * 100 if total > 0 else 0.0

    top_revenue = _rank(df, "revenue").head(top_n)
    top_margin = _rank(df, "gross_profit").head(top_n)
    losses = _rank(df[(df["revenue"] > 0) & (df["gross_profit"] < 0)], "gross_profit", ascending=True).head(top_n)
    return {
        "top_revenue": top_revenue[["product", "revenue", "percentage"]].to_dict(orient="records"),
        "top_margin": top_margin[["product", "gross_profit"]].to_dict(orient="records"),
        "low_profitability": losses[["product", "gross_profit", "revenue"]].to_dict(orient="records"),
    }


def _revenue_by_state(records: Iterable[Record], mapping: Optional[ColumnMapping]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for row in as_records(records):
        state = as_text(row, Field.STATE, mapping).upper()
        if not state:
            continue
        out[state] = out.get(state, 0.0) + cascade_one(row, mapping).gross_revenue_with_tax
    return out


def regional_growth(
    current_records: Iterable[Record],
    previous_year_records: Iterable[Record],
    mapping: Optional[ColumnMapping] = None,
) -> List[Dict[str, Any]]:
    """ROBST per state against the same period last year, largest first."""
    current = _revenue_by_state(current_records, mapping)
    previous = _revenue_by_state(previous_year_records, mapping)
    out: List[Dict[str, Any]] = []
    for state, value in current.items():
        before = previous.get(state, 0.0)
        if before > 0:
            growth = (value - before) / before * 100
        else:
            growth = 100.0 if value > 0 else 0.0
        out.append({"state": state, "current": value, "previous": before, "growth_pct": growth})
    out.sort(key=lambda r: r["current"], reverse=True)
    return out
