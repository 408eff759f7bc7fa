from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from adapters.covenant_rules import CovenantRulesAdapterError, covenant_rules_from_payload
from adapters.ledger import LedgerAdapterError, ledger_entries_from_payload
from common.covenant_engine.certificate import build_certificate_data
from common.covenant_engine.config import load_engine_defaults
from common.covenant_engine.runner import CovenantRunner


router = APIRouter(prefix="/covenants", tags=["covenants"])


class ReconciliationRequest(BaseModel):
    period: str
    ledger_entries: list[dict[str, Any]] = Field(default_factory=list)
    covenant_rules: dict[str, Any] = Field(default_factory=dict)
    issued_on: Optional[date] = None


def _run(request: ReconciliationRequest):
    try:
        entries = ledger_entries_from_payload(request.ledger_entries)
        rules = covenant_rules_from_payload(request.covenant_rules)
    except (LedgerAdapterError, CovenantRulesAdapterError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    try:
        defaults = load_engine_defaults()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    report = CovenantRunner(defaults).run(entries, rules, period=request.period)
    return report, rules


@router.post("/reconciliation")
def run_covenant_reconciliation(request: ReconciliationRequest):
    report, _ = _run(request)
    return report.model_dump(mode="json")


@router.post("/certificate")
def build_compliance_certificate(request: ReconciliationRequest):
    report, rules = _run(request)
    certificate = build_certificate_data(
        report.result,
        rules,
        period=request.period,
        issued_on=request.issued_on or report.generated_at.date(),
    )
    return certificate.model_dump(mode="json", by_alias=True)
