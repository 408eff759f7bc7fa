import json
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.reconciliation import router


NOMAD_FIXTURES = Path(__file__).resolve().parents[1] / "covenant_engine" / "fixtures" / "nomad_foods"


@pytest.fixture
def client(monkeypatch):
    for name in (
        "COVENANT_DEFAULT_LEVERAGE_MAX",
        "COVENANT_DEFAULT_INTEREST_MIN",
        "COVENANT_DEFAULT_TRIGGER_THRESHOLD",
        "COVENANT_DEFAULT_CAP_PERCENTAGE",
    ):
        monkeypatch.delenv(name, raising=False)
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


@pytest.fixture
def nomad_request() -> dict:
    ledger = json.loads((NOMAD_FIXTURES / "ledger.json").read_text(encoding="utf-8"))
    rules = json.loads((NOMAD_FIXTURES / "covenant_rules.json").read_text(encoding="utf-8"))
    return {
        "period": "2025-12-31",
        "ledger_entries": ledger["entries"],
        "covenant_rules": rules,
        "issued_on": "2026-01-15",
    }


def test_reconciliation_endpoint_returns_run_report(client, nomad_request):
    resp = client.post("/covenants/reconciliation", json=nomad_request)
    assert resp.status_code == 200

    payload = resp.json()
    assert payload["period"] == "2025-12-31"
    assert payload["run_id"]
    assert payload["result"]["headroom"]["status"] == "Healthy"
    assert Decimal(payload["result"]["health"]["adjusted_ebitda"]) == Decimal("376300000")
    assert Decimal(payload["result"]["health"]["net_debt"]) == Decimal("1670000000")
    tracked = {r["recommendation_id"]: r for r in payload["recommendations"]}
    assert tracked["rec_margin_stepdown"]["is_met"] is False
    assert tracked["rec_equity_cure"]["is_tracked"] is False


def test_certificate_endpoint_uses_aliases(client, nomad_request):
    resp = client.post("/covenants/certificate", json=nomad_request)
    assert resp.status_code == 200

    cert = resp.json()
    assert cert["header"]["from"] == "Nomad Foods Limited"
    assert cert["header"]["to"] == "Demo Agent Bank"
    assert cert["header"]["date"] == "2026-01-15"
    assert cert["period"] == "2025-12-31"
    assert cert["covenants"][0]["actual_value"] == "4.44:1.00"
    assert cert["covenants"][0]["compliant"] is True


def test_invalid_ledger_entry_returns_422(client, nomad_request):
    nomad_request["ledger_entries"] = [{"id": "1", "amount": 10, "category": "Goodwill"}]
    resp = client.post("/covenants/reconciliation", json=nomad_request)
    assert resp.status_code == 422
    assert "category" in resp.json()["detail"]


def test_invalid_engine_config_returns_500(client, nomad_request, monkeypatch):
    monkeypatch.setenv("COVENANT_DEFAULT_LEVERAGE_MAX", "lots")
    resp = client.post("/covenants/reconciliation", json=nomad_request)
    assert resp.status_code == 500
    assert "COVENANT_DEFAULT_LEVERAGE_MAX" in resp.json()["detail"]
