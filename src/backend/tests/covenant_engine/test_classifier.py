import pytest

from common.covenant_engine.classifier import classify_add_back, mentions_fx
from common.covenant_engine.models import LedgerCategory


@pytest.mark.parametrize(
    "item, expected",
    [
        ("Depreciation", {LedgerCategory.DEPRECIATION_AMORTIZATION}),
        ("Amortization of intangibles", {LedgerCategory.DEPRECIATION_AMORTIZATION}),
        ("IMPAIRMENT charges", {LedgerCategory.DEPRECIATION_AMORTIZATION}),
        ("Transaction Costs", {LedgerCategory.TRANSACTION}),
        ("Legal and professional fees", {LedgerCategory.TRANSACTION}),
        ("Acquisition costs", {LedgerCategory.TRANSACTION}),
        ("Restructuring Costs", {LedgerCategory.RESTRUCTURING}),
        ("Redundancy payments", {LedgerCategory.RESTRUCTURING}),
        ("Exceptional items", {LedgerCategory.RESTRUCTURING}),
        ("Unrealized FX losses", {LedgerCategory.FX}),
        ("Foreign exchange movements", {LedgerCategory.FX}),
    ],
)
def test_classify_add_back_maps_keywords(item, expected):
    assert classify_add_back(item) == frozenset(expected)


def test_classify_add_back_returns_empty_set_when_nothing_matches():
    assert classify_add_back("Pension contributions") == frozenset()
    assert classify_add_back("") == frozenset()


def test_classify_add_back_returns_union_when_families_overlap():
    categories = classify_add_back("Restructuring-related legal fees")
    assert categories == {LedgerCategory.RESTRUCTURING, LedgerCategory.TRANSACTION}


def test_mentions_fx_is_case_insensitive():
    assert mentions_fx("Unrealized FX Gains")
    assert mentions_fx("foreign EXCHANGE gains")
    assert not mentions_fx("Extraordinary Gains")
