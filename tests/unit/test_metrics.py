"""Unit tests for filters, context preparation and page payloads"""

import json
from datetime import date

import pytest

from commercial_core.data import available_dates, load_context, prepare_context
from commercial_core.exceptions import InvalidConfigurationError
from commercial_core.filters import normalize_filters
from commercial_core.metrics_abc import compute_abc
from commercial_core.metrics_customers import compute_customers
from commercial_core.metrics_hierarchy import compute_hierarchy
from commercial_core.metrics_mix import compute_mix
from commercial_core.metrics_overview import compute_overview
from commercial_core.projection import InMemoryGoalRepository


def test_normalize_filters_defaults_to_latest_month(sales_records):
    filters = normalize_filters({}, available_dates=available_dates(sales_records))
    assert (filters.start, filters.end) == (date(2025, 2, 1), date(2025, 2, 18))
    assert filters.dimension_path == ("state", "manager", "salesperson", "product")
    assert filters.top_n == 10


def test_normalize_filters_coerces_and_clamps():
    filters = normalize_filters(
        {
            "start": "01/03/2025",
            "top_n": "5000",
            "dimension_path": "supplier",
            "abc_boundary": "END",
            "item_thresholds": {"A": 60, "B": 85, "C": 95, "D": 100},
            "recency": {"active_days": "30", "at_risk_days": 45},
        }
    )
    assert (filters.start, filters.end) == (date(2025, 3, 1), date(2025, 3, 31))
    assert filters.top_n == 200
    assert filters.dimension_path == ("supplier", "product")
    assert filters.abc_boundary == "end"
    assert filters.item_thresholds.bands[0] == ("A", 60.0)
    assert filters.recency.active_days == 30
    assert normalize_filters({"top_n": "abc"}).top_n == 10
    assert normalize_filters({"top_n": -3}).top_n == 1


def test_normalize_filters_rejects_bad_configuration():
    with pytest.raises(InvalidConfigurationError):
        normalize_filters({"start": "2025-02-10", "end": "2025-02-01"})
    with pytest.raises(InvalidConfigurationError):
        normalize_filters({"abc_boundary": "middle"})
    with pytest.raises(InvalidConfigurationError):
        normalize_filters({"item_thresholds": {"A": 90, "B": 90}})
    with pytest.raises(InvalidConfigurationError):
        normalize_filters({"recency": {"active_days": 90, "at_risk_days": 10}})


def test_prepare_context_splits_windows(sales_records, february_filters):
    ctx = load_context(sales_records, {}, february_filters)
    assert len(ctx["current_records"]) == 4
    assert len(ctx["mom_records"]) == 2
    assert len(ctx["yoy_records"]) == 1
    assert len(ctx["all_records"]) == len(sales_records)
    assert ctx["windows"]["mom"].label == "January 2025 (1-19)"


def test_prepare_context_without_dates():
    filters = normalize_filters({})
    ctx = prepare_context(filters, [{"value": 1}])
    assert ctx["windows"] is None
    assert ctx["current_records"] == []


def test_category_filter(sales_records):
    ctx = load_context(sales_records, {}, {"start": "2025-02-01", "end": "2025-02-19", "category": "cat2"})
    assert [r["product"] for r in ctx["category_records"]] == ["P3"]


def test_overview_payload(sales_records, february_filters):
    ctx = load_context(sales_records, {}, february_filters)
    goals = InMemoryGoalRepository(goals={"2025-02": 500.0})
    out = compute_overview(ctx["filters"], ctx, goals)
    assert out["current"]["gross_revenue_with_tax"] == pytest.approx(140)
    assert out["mom"]["gross_revenue_with_tax"] == pytest.approx(40)
    assert out["yoy"]["gross_revenue_with_tax"] == pytest.approx(30)
    assert out["variations"]["gross_revenue_with_tax"]["mom"]["value"] == pytest.approx(250)
    assert out["projection"]["goal"] == 500.0
    assert out["projection"]["realized"] == pytest.approx(135)
    assert out["data_flags"]["has_cost"] is True
    assert out["filters"]["start"] == date(2025, 2, 1)


def test_hierarchy_payload(sales_records, february_filters):
    ctx = load_context(sales_records, {}, dict(february_filters, dimension_path="supplier"))
    out = compute_hierarchy(ctx["filters"], ctx)
    assert out["dimension_path"] == ["supplier", "product"]
    assert out["total"]["gross_revenue"] == pytest.approx(135)
    # roots S1, S2 and Unspecified; leaves P1, P2 | P3 | P1
    assert out["node_count"] == 3 + 4


def test_abc_payload(sales_records, february_filters):
    ctx = load_context(sales_records, {}, february_filters)
    out = compute_abc(ctx["filters"], ctx)
    assert [c["key"] for c in out["categories"]] == ["Cat1", "Cat2"]
    assert [c["abc_class"] for c in out["categories"]] == ["A", "C"]
    assert out["item_stats"]["total"] == 3
    assert out["category_stats"]["total"] == 2


def test_customers_payload(sales_records, february_filters):
    ctx = load_context(sales_records, {}, february_filters)
    out = compute_customers(ctx["filters"], ctx)
    assert out["base"]["reference_date"] == "2025-02-19"
    assert out["base"]["total"] == 5
    assert out["base"]["skipped_without_date"] == 1
    assert out["base"]["skipped_without_customer"] == 1
    assert out["cohort"]["new"] == ["C2", "C3"]
    assert out["cohort"]["recovered"] == ["C4"]
    assert out["concentration"]["top"][0]["customer"] == "C2"
    assert len(out["positivation"]) == 12


def test_mix_payload(sales_records, february_filters):
    ctx = load_context(sales_records, {}, february_filters)
    out = compute_mix(ctx["filters"], ctx)
    assert out["mix"]["low_profitability"][0]["product"] == "P3"
    assert out["regional"][0]["state"] == "SP"
    json.dumps(out["regional"])
