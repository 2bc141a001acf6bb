"""Pytest fixtures shared by unit and integration tests"""

from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient


def _sale(day: str, customer_id: str, name: str, state: str, manager: str, seller: str, product: str, category: str, **values: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "date": day,
        "customer_id": customer_id,
        "customer_name": name,
        "state": state,
        "manager": manager,
        "salesperson": seller,
        "region": "South" if state == "SP" else "Southeast",
        "product": product,
        "category": category,
        "supplier": "S1" if category == "Cat1" else "S2",
    }
    row.update(values)
    return row


@pytest.fixture
def sales_records() -> List[Dict[str, Any]]:
    """Small sales history spanning Feb 2024, Jan 2025 and Feb 2025.

    Current window 2025-02-01..19 holds ROBST 140 (A, B, C, H); MoM holds 40
    (D, E); YoY holds 30 (F). G falls after the YoY cutoff and I has no date.
    """
    return [
        # A: the reference cascade row
        _sale("2025-02-03", "C1", "Alpha", "SP", "Ana", "Bruno", "P1", "Cat1",
              unit_price=10, quantity=5, tax_substitution=5, output_tax_rate=10, net_cost=4, commission_rate=5),
        # B
        _sale("2025-02-10", "C2", "Beta", "SP", "Ana", "Carla", "P2", "Cat1", unit_price=20, quantity=3),
        # C: sold below cost
        _sale("2025-02-15", "C3", "Gamma", "RJ", "Davi", "Eva", "P3", "Cat2", unit_price=5, quantity=4, net_cost=6),
        # D
        _sale("2025-01-12", "C1", "Alpha", "SP", "Ana", "Bruno", "P1", "Cat1", unit_price=10, quantity=2),
        # E
        _sale("2025-01-18", "C4", "Delta", "MG", "Davi", "Eva", "P2", "Cat1", unit_price=20, quantity=1),
        # F
        _sale("2024-02-05", "C1", "Alpha", "SP", "Ana", "Bruno", "P1", "Cat1", unit_price=10, quantity=3),
        # G
        _sale("2024-02-25", "C5", "Epsilon", "RJ", "Davi", "Eva", "P3", "Cat2", unit_price=5, quantity=2),
        # H: no customer, no manager
        {"date": "2025-02-18", "state": "SP", "salesperson": "Bruno", "product": "P1", "category": "Cat1",
         "unit_price": 10, "quantity": 1},
        # I: undated
        {"customer_id": "C2", "customer_name": "Beta", "product": "P2", "unit_price": 1, "quantity": 1},
    ]


@pytest.fixture
def february_filters() -> Dict[str, Any]:
    return {"start": "2025-02-01", "end": "2025-02-19"}


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client"""
    from commercial_api.main import app

    return TestClient(app)
