"""Revenue-to-margin financial cascade.

ROBST = unit price x quantity (or the direct value field)
ROB   = ROBST - tax substitution
ROL   = ROB - ROB x output tax rate / 100
LOB   = ROL - net cost x quantity
MB%   = LOB / ROL x 100
MC%   = (LOB - commission - other expenses + rebate) / ROB x 100
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from commercial_core.fields import ColumnMapping, Field, Record, as_number, as_records


logger = logging.getLogger(__name__)

MAX_LOGGED_ROW_ERRORS = 5

MONETARY_FIELDS: Tuple[str, ...] = (
    "gross_revenue_with_tax",
    "gross_revenue",
    "output_tax_value",
    "net_revenue",
    "cost_value",
    "gross_profit",
    "commission_value",
    "other_expenses",
    "rebate",
)


def _pct(numerator: float, denominator: float) -> float:
    return (numerator / denominator) * 100 if denominator > 0 else 0.0


@dataclass(frozen=True)
class CascadeResult:
    gross_revenue_with_tax: float = 0.0  # ROBST
    gross_revenue: float = 0.0  # ROB
    output_tax_value: float = 0.0
    net_revenue: float = 0.0  # ROL
    cost_value: float = 0.0  # CMV
    gross_profit: float = 0.0  # LOB
    commission_value: float = 0.0
    other_expenses: float = 0.0
    rebate: float = 0.0
    gross_margin_pct: float = 0.0  # MB%
    contribution_margin_pct: float = 0.0  # MC%
    count: int = 0
    error_count: int = 0

    @classmethod
    def from_totals(cls, count: int = 0, error_count: int = 0, **totals: float) -> "CascadeResult":
        """Build a result from monetary totals, deriving both percentages from them."""
        base = cls(count=count, error_count=error_count, **totals)
        return replace(
            base,
            gross_margin_pct=_pct(base.gross_profit, base.net_revenue),
            contribution_margin_pct=_pct(base.contribution_margin, base.gross_revenue),
        )

    @property
    def contribution_margin(self) -> float:
        return self.gross_profit - self.commission_value - self.other_expenses + self.rebate

    @property
    def has_tax_substitution(self) -> bool:
        return self.gross_revenue_with_tax != self.gross_revenue

    @property
    def has_cost(self) -> bool:
        return self.cost_value > 0

    @property
    def has_commission(self) -> bool:
        return self.commission_value > 0

    @property
    def has_output_tax(self) -> bool:
        return self.output_tax_value > 0

    def metric(self, name: str) -> float:
        return float(getattr(self, name))

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["contribution_margin"] = self.contribution_margin
        return out


EMPTY_CASCADE = CascadeResult()


def cascade_one(record: Record, mapping: Optional[ColumnMapping] = None) -> CascadeResult:
    if not isinstance(record, Mapping):
        raise TypeError(f"record must be a mapping, got {type(record).__name__}")

    unit_price = as_number(record, Field.UNIT_PRICE, mapping, 0.0)
    quantity = as_number(record, Field.QUANTITY, mapping, 1.0)
    tax_substitution = as_number(record, Field.TAX_SUBSTITUTION, mapping, 0.0)
    output_tax_rate = as_number(record, Field.OUTPUT_TAX_RATE, mapping, 0.0)
    net_cost = as_number(record, Field.NET_COST, mapping, 0.0)
    commission_rate = as_number(record, Field.COMMISSION_RATE, mapping, 0.0)
    other_expenses = as_number(record, Field.OTHER_EXPENSES, mapping, 0.0)
    rebate = as_number(record, Field.REBATE, mapping, 0.0)

    robst = unit_price * quantity
    if robst == 0:
        robst = as_number(record, Field.GROSS_VALUE, mapping, 0.0)

    rob = robst - tax_substitution
    output_tax_value = rob * (output_tax_rate / 100)
    rol = rob - output_tax_value
    cost_value = net_cost * quantity
    lob = rol - cost_value
    commission_value = rob * (commission_rate / 100)

    return CascadeResult.from_totals(
        count=1,
        gross_revenue_with_tax=robst,
        gross_revenue=rob,
        output_tax_value=output_tax_value,
        net_revenue=rol,
        cost_value=cost_value,
        gross_profit=lob,
        commission_value=commission_value,
        other_expenses=other_expenses,
        rebate=rebate,
    )


def combine(results: Iterable[CascadeResult]) -> CascadeResult:
    """Field-wise sum of monetary totals and counters; percentages re-derived."""
    totals = {name: 0.0 for name in MONETARY_FIELDS}
    count = 0
    error_count = 0
    for result in results:
        for name in MONETARY_FIELDS:
            totals[name] += getattr(result, name)
        count += result.count
        error_count += result.error_count
    return CascadeResult.from_totals(count=count, error_count=error_count, **totals)


def cascade_many(records: Iterable[Record], mapping: Optional[ColumnMapping] = None) -> CascadeResult:
    rows = as_records(records)
    if not rows:
        return EMPTY_CASCADE

    totals = {name: 0.0 for name in MONETARY_FIELDS}
    error_count = 0
    for index, row in enumerate(rows):
        try:
            m = cascade_one(row, mapping)
        except Exception as exc:
            error_count += 1
            if error_count <= MAX_LOGGED_ROW_ERRORS:
                logger.debug("cascade failed for row %d: %s", index, exc)
            continue
        for name in MONETARY_FIELDS:
            totals[name] += getattr(m, name)

    result = CascadeResult.from_totals(count=len(rows), error_count=error_count, **totals)
    logger.debug(
        "cascade consolidated rows=%d errors=%d robst=%.2f rob=%.2f lob=%.2f",
        result.count,
        result.error_count,
        result.gross_revenue_with_tax,
        result.gross_revenue,
        result.gross_profit,
    )
    return result
