import json
from decimal import Decimal
from pathlib import Path

import pytest

from adapters.covenant_rules import CovenantRulesAdapterError, covenant_rules_from_payload


FIXTURE_DIR = Path(__file__).parent / "fixtures"


def _extractor_response() -> dict:
    return json.loads((FIXTURE_DIR / "extractor_response.json").read_text(encoding="utf-8"))


def test_snake_case_extractor_response_is_normalized():
    rules = covenant_rules_from_payload(_extractor_response())

    assert rules.deal_metadata.base_currency == "EUR"
    assert rules.deal_metadata.facility_agent == "Demo Agent Bank"
    assert rules.covenant_trigger.is_springing is True
    assert rules.covenant_trigger.trigger_metric == "Total RCF Drawings / Total RCF Commitments"
    assert rules.covenant_trigger.threshold_percentage == Decimal("0.4")
    assert rules.covenant_trigger.total_rcf_amount == Decimal("175000000")

    leverage = rules.find_covenant("leverage")
    assert leverage.max_limit == Decimal("7.25")
    assert leverage.min_limit is None
    interest = rules.find_covenant("interest")
    assert interest.min_limit == Decimal("3.0")
    assert interest.max_limit is None

    assert rules.ebitda_rules.starting_point == "Consolidated Net Income"
    assert rules.ebitda_rules.permitted_add_backs[0].legal_logic == "Non-cash charge"
    assert rules.ebitda_rules.permitted_add_backs[1].cap == "20% of EBITDA"
    assert rules.sustainability_kpis.kpi_targets[0].target_value == Decimal("0.95")
    assert rules.recommendations[0].condition_threshold == Decimal("3.00")


def test_camel_case_payload_is_accepted_as_is():
    rules = covenant_rules_from_payload(
        {
            "dealMetadata": {"borrower": "Demo Corp", "baseCurrency": "USD"},
            "financialCovenants": [{"name": "Leverage Ratio", "maxLimit": 4.0}],
            "ebitdaRules": {
                "startingPoint": "Operating Profit",
                "permittedAddBacks": [{"item": "Transaction Costs", "legalLogic": "One-off fees"}],
            },
        }
    )
    assert rules.deal_metadata.base_currency == "USD"
    assert rules.financial_covenants[0].max_limit == Decimal("4.0")
    assert rules.ebitda_rules.permitted_add_backs[0].legal_logic == "One-off fees"
    assert rules.covenant_trigger is None


def test_fenced_response_text_is_parsed():
    text = "```json\n" + json.dumps(_extractor_response()) + "\n```"
    rules = covenant_rules_from_payload(text)
    assert rules.deal_metadata.borrower == "Nomad Foods Limited"


def test_invalid_json_text_raises():
    with pytest.raises(CovenantRulesAdapterError, match="not valid JSON"):
        covenant_rules_from_payload("```json\n{not json\n```")


def test_unknown_operator_raises():
    payload = {"financial_covenants": [{"type": "Leverage", "limit": 4, "operator": "ROUGHLY"}]}
    with pytest.raises(CovenantRulesAdapterError, match="operator"):
        covenant_rules_from_payload(payload)


def test_schema_violation_is_wrapped():
    with pytest.raises(CovenantRulesAdapterError):
        covenant_rules_from_payload({"ebitdaRules": {"permittedAddBacks": [{"legalLogic": "missing item"}]}})


def test_non_object_payload_raises():
    with pytest.raises(CovenantRulesAdapterError):
        covenant_rules_from_payload([1, 2, 3])
