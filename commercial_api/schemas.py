from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class RecencyModel(BaseModel):
    active_days: int = 60
    at_risk_days: int = 90


class AnalysisFiltersModel(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None
    reference_date: Optional[str] = None
    # Preset name ("commercial", "supplier", "customer", "regional") or explicit field list.
    dimension_path: Optional[Union[str, List[str]]] = None
    top_n: int = 10
    category: str = ""
    abc_boundary: str = "start"
    category_thresholds: Optional[Dict[str, float]] = None
    item_thresholds: Optional[Dict[str, float]] = None
    recency: RecencyModel = Field(default_factory=RecencyModel)
    critical_max_percentage: float = 1.0


class AnalysisRequest(BaseModel):
    records: List[Dict[str, Any]] = Field(default_factory=list)
    mapping: Dict[str, str] = Field(default_factory=dict)
    filters: AnalysisFiltersModel = Field(default_factory=AnalysisFiltersModel)
    goals: Optional[Dict[str, float]] = None
    working_days: Optional[Dict[str, int]] = None
    include_transactions: bool = False


class ErrorResponse(BaseModel):
    error: str
    type: str
