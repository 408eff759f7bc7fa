import json
import os
import sys
from pathlib import Path


# Ensure `src/backend` is on sys.path so imports like `import common...` work.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

import pytest

from adapters.ledger import ledger_entries_from_payload
from common.covenant_engine.models import CovenantRules, LedgerEntry


NOMAD_FIXTURES = Path(__file__).parent / "fixtures" / "nomad_foods"


@pytest.fixture
def make_entry():
    counter = {"n": 0}

    def _make(category, amount, *, account_name: str = "", entry_id: str | None = None) -> LedgerEntry:
        counter["n"] += 1
        return LedgerEntry(
            id=entry_id or f"E{counter['n']}",
            account_code=f"AC{counter['n']}",
            account_name=account_name or f"{category} account",
            source_system="General Ledger",
            amount=amount,
            category=category,
        )

    return _make


@pytest.fixture
def make_rules():
    def _make(
        *,
        add_backs=None,
        exclusions=None,
        covenants=None,
        trigger=None,
        starting_point: str | None = None,
        recommendations=None,
    ) -> CovenantRules:
        return CovenantRules.model_validate(
            {
                "dealMetadata": {"borrower": "Test Borrower", "baseCurrency": "EUR"},
                "financialCovenants": covenants or [],
                "covenantTrigger": trigger,
                "ebitdaRules": {
                    "startingPoint": starting_point,
                    "permittedAddBacks": add_backs or [],
                    "exclusions": exclusions or [],
                },
                "recommendations": recommendations or [],
            }
        )

    return _make


@pytest.fixture
def nomad_entries() -> list[LedgerEntry]:
    payload = json.loads((NOMAD_FIXTURES / "ledger.json").read_text(encoding="utf-8"))
    return ledger_entries_from_payload(payload)


@pytest.fixture
def nomad_rules() -> CovenantRules:
    payload = json.loads((NOMAD_FIXTURES / "covenant_rules.json").read_text(encoding="utf-8"))
    return CovenantRules.model_validate(payload)
