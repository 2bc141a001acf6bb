"""Core (UI-agnostic) commercial analytics logic.

This package contains:
- field resolution (heterogeneous record keys -> logical fields)
- the revenue-to-margin financial cascade
- drill-down hierarchies, ABC/Pareto curves and customer recency buckets
- calendar-aligned comparison windows (MoM / YoY)
- page compute functions (JSON-serializable payloads)
"""
