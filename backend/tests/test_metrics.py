import pytest
from rest_framework.test import APIClient


def test_metrics_endpoint():
    client = APIClient()
    res = client.get("/metrics/")

    assert res.status_code == 200
    content_type = res.headers.get("Content-Type", "")
    assert "text/plain" in content_type
    content = res.content.decode("utf-8", errors="ignore")
    assert "restocore_orders_finalized_total" in content
    assert "restocore_ledger_oversells_total" in content
    assert "restocore_order_conflicts_total" in content


def test_health_endpoint():
    res = APIClient().get("/health/")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


@pytest.mark.django_db
def test_health_db_endpoint():
    res = APIClient().get("/health/db/")
    assert res.status_code == 200
    assert res.json()["db"] == "ok"
