from __future__ import annotations

from typing import FrozenSet, Tuple

from .models import LedgerCategory

# Keyword families, matched as case-insensitive substrings of an add-back item name.
ADD_BACK_KEYWORDS: Tuple[Tuple[LedgerCategory, Tuple[str, ...]], ...] = (
    (LedgerCategory.DEPRECIATION_AMORTIZATION, ("depreciation", "amortization", "impairment")),
    (LedgerCategory.TRANSACTION, ("transaction", "legal", "professional", "acquisition")),
    (LedgerCategory.RESTRUCTURING, ("restructuring", "redundancy", "reorganization", "exceptional")),
    (LedgerCategory.FX, ("fx", "exchange")),
)

FX_EXCLUSION_KEYWORDS: Tuple[str, ...] = ("fx", "exchange")


def classify_add_back(item: str) -> FrozenSet[LedgerCategory]:
    """Return every ledger category whose keywords appear in the add-back item name."""
    lower = (item or "").lower()
    return frozenset(
        category
        for category, keywords in ADD_BACK_KEYWORDS
        if any(keyword in lower for keyword in keywords)
    )


def mentions_fx(text: str) -> bool:
    lower = (text or "").lower()
    return any(keyword in lower for keyword in FX_EXCLUSION_KEYWORDS)
