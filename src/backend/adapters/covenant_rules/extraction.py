from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from common.covenant_engine.models import CovenantRules


class CovenantRulesAdapterError(ValueError):
    pass


_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_LESS_THAN_OPERATORS = {"LESS_THAN", "LESS_THAN_OR_EQUAL", "<", "<=", "LTE", "LT"}
_GREATER_THAN_OPERATORS = {"GREATER_THAN", "GREATER_THAN_OR_EQUAL", ">", ">=", "GTE", "GT"}


def covenant_rules_from_payload(payload: Any) -> CovenantRules:
    """
    Build CovenantRules from a rule-extractor response.

    `payload` may be a dict or the raw response text (markdown ```json fences are stripped).
    Both the camelCase model shape and the extractor prompt's snake_case shape are accepted:
      - deal_metadata.currency              -> base_currency
      - covenant_trigger.calculation        -> trigger_metric
      - financial_covenants[].type          -> name
      - financial_covenants[].limit         -> max_limit / min_limit by operator direction
      - ebitda_rules.permitted_add_backs[].logic -> legal_logic
      - sustainability_kpis.kpis[].target   -> kpi_targets[].target_value
    """
    if isinstance(payload, (str, bytes)):
        payload = _parse_text(payload.decode("utf-8") if isinstance(payload, bytes) else payload)
    if not isinstance(payload, dict):
        raise CovenantRulesAdapterError("Covenant rules payload must be a JSON object.")

    normalized = _normalize(payload)
    try:
        return CovenantRules.model_validate(normalized)
    except ValidationError as exc:
        raise CovenantRulesAdapterError(f"Invalid covenant rules payload: {exc}") from exc


def _parse_text(text: str) -> Any:
    cleaned = _FENCE_RE.sub("", text).strip()
    if not cleaned:
        return {}
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise CovenantRulesAdapterError(f"Covenant rules response is not valid JSON: {exc.msg}") from exc


def _normalize(payload: dict[str, Any]) -> dict[str, Any]:
    out = dict(payload)

    meta = out.get("deal_metadata")
    if isinstance(meta, dict) and "currency" in meta and "base_currency" not in meta:
        meta = dict(meta)
        meta["base_currency"] = meta.pop("currency")
        out["deal_metadata"] = meta

    trigger = out.get("covenant_trigger")
    if isinstance(trigger, dict):
        trigger = dict(trigger)
        if "calculation" in trigger and "trigger_metric" not in trigger:
            trigger["trigger_metric"] = trigger.pop("calculation")
        trigger.pop("name", None)
        out["covenant_trigger"] = trigger

    covenants = out.get("financial_covenants")
    if isinstance(covenants, list):
        out["financial_covenants"] = [_normalize_covenant(c) for c in covenants]

    ebitda = out.get("ebitda_rules")
    if isinstance(ebitda, dict):
        ebitda = dict(ebitda)
        add_backs = ebitda.get("permitted_add_backs")
        if isinstance(add_backs, list):
            ebitda["permitted_add_backs"] = [_normalize_add_back(a) for a in add_backs]
        if ebitda.get("exclusions") is None:
            ebitda.pop("exclusions", None)
        out["ebitda_rules"] = ebitda

    kpis = out.get("sustainability_kpis")
    if isinstance(kpis, dict) and "kpis" in kpis and "kpi_targets" not in kpis:
        kpis = dict(kpis)
        kpis["kpi_targets"] = [
            _rename(k, {"target": "target_value"}) if isinstance(k, dict) else k
            for k in kpis.pop("kpis") or []
        ]
        out["sustainability_kpis"] = kpis

    for key in ("facilities", "recommendations", "financialCovenants"):
        if key in out and out[key] is None:
            out[key] = []
    return out


def _normalize_covenant(covenant: Any) -> Any:
    if not isinstance(covenant, dict):
        return covenant
    out = _rename(covenant, {"type": "name"})
    if "limit" in out:
        limit = out.pop("limit")
        op = str(out.get("operator") or "").strip().upper()
        if op in _GREATER_THAN_OPERATORS:
            out.setdefault("min_limit", limit)
        elif op in _LESS_THAN_OPERATORS or not op:
            out.setdefault("max_limit", limit)
        else:
            raise CovenantRulesAdapterError(f"Unknown covenant operator: {out.get('operator')!r}")
    return out


def _normalize_add_back(add_back: Any) -> Any:
    if not isinstance(add_back, dict):
        return add_back
    return _rename(add_back, {"logic": "legal_logic"})


def _rename(data: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    out = dict(data)
    for old, new in mapping.items():
        if old in out and new not in out:
            out[new] = out.pop(old)
    return out
