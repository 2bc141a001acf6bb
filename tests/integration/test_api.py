"""Integration tests for the HTTP endpoints"""

import pytest
from fastapi.testclient import TestClient

from commercial_api import main


@pytest.fixture
def payload(sales_records, february_filters):
    return {"records": sales_records, "mapping": {}, "filters": february_filters}


def test_health_endpoint(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_error_model_documented(client: TestClient):
    schema = client.get("/openapi.json").json()
    responses = schema["paths"]["/abc"]["post"]["responses"]
    assert {"413", "422", "500"} <= set(responses)
    assert "ErrorResponse" in schema["components"]["schemas"]


def test_cascade_endpoint(client: TestClient, payload):
    response = client.post("/cascade", json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["current"]["gross_revenue_with_tax"] == pytest.approx(140)
    assert body["all_records"]["count"] == 9
    assert body["windows"]["current"]["label"] == "February 2025 (1-19)"
    assert body["filters"]["start"] == "2025-02-01"


def test_cascade_honours_mapping(client: TestClient):
    records = [{"Data Emissao": "2025-02-03", "Preco Liq": 8, "Qtd Vendida": 2}]
    mapping = {"date": "Data Emissao", "unit_price": "Preco Liq", "quantity": "Qtd Vendida"}
    response = client.post("/cascade", json={"records": records, "mapping": mapping})
    assert response.status_code == 200
    assert response.json()["current"]["gross_revenue_with_tax"] == pytest.approx(16)


def test_periods_endpoint(client: TestClient, payload):
    body = client.post("/periods", json=payload).json()
    assert body["shape"] == "partial_month"
    assert body["windows"]["mom"]["start"] == "2025-01-01"
    assert body["windows"]["mom"]["end"] == "2025-01-19"
    assert body["windows"]["yoy"]["end"] == "2024-02-19"
    assert body["record_counts"] == {"current": 4, "mom": 2, "yoy": 1, "total": 9}


def test_overview_endpoint_with_goals(client: TestClient, payload):
    payload["goals"] = {"2025-02": 270}
    payload["working_days"] = {"2025-02": 20}
    body = client.post("/overview", json=payload).json()
    assert body["projection"]["attainment_pct"] == pytest.approx(50)
    assert body["variations"]["gross_revenue_with_tax"]["yoy"]["label"] == "+366.7%"


def test_hierarchy_endpoint(client: TestClient, payload):
    payload["filters"]["dimension_path"] = ["state", "product"]
    payload["include_transactions"] = True
    body = client.post("/hierarchy", json=payload).json()
    assert [n["key"] for n in body["tree"]] == ["SP", "RJ"]
    assert len(body["tree"][0]["transactions"]) == 3


def test_abc_endpoint(client: TestClient, payload):
    body = client.post("/abc", json=payload).json()
    assert body["categories"][0]["abc_class"] == "A"
    assert "critical_items" in body


def test_customers_endpoint(client: TestClient, payload):
    body = client.post("/customers", json=payload).json()
    base = body["base"]
    assert base["active"] + base["at_risk"] + base["inactive"] == base["total"]
    assert body["cohort"]["new_count"] == 2


def test_mix_endpoint(client: TestClient, payload):
    body = client.post("/mix", json=payload).json()
    assert [p["product"] for p in body["mix"]["top_revenue"]] == ["P1", "P2", "P3"]


def test_invalid_filters_return_422(client: TestClient, payload):
    payload["filters"] = {"start": "2025-02-19", "end": "2025-02-01"}
    response = client.post("/overview", json=payload)
    assert response.status_code == 422
    assert response.json()["type"] == "InvalidConfigurationError"


def test_unknown_boundary_returns_422(client: TestClient, payload):
    payload["filters"]["abc_boundary"] = "middle"
    response = client.post("/abc", json=payload)
    assert response.status_code == 422


def test_too_many_records_returns_413(client: TestClient, payload, monkeypatch):
    monkeypatch.setattr(main.settings, "max_records", 3)
    response = client.post("/cascade", json=payload)
    assert response.status_code == 413
    assert response.json()["type"] == "PayloadTooLarge"


def test_unexpected_failure_returns_500(client: TestClient, payload, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(main, "compute_mix", boom)
    response = client.post("/mix", json=payload)
    assert response.status_code == 500
    assert response.json() == {"error": "kaboom", "type": "RuntimeError"}
