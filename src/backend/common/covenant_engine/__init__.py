"""Source-agnostic covenant reconciliation engine.

This package intentionally contains only domain logic:
- Inputs are categorized ledger entries + covenant rules extracted from a facility agreement.
- No LLM, storage, or network calls live here.
"""

from .config import EngineDefaults
from .engine import run_reconciliation
from .models import (
    BridgeSection,
    CovenantRules,
    CovenantRunReport,
    CovenantStatus,
    FinancialHealth,
    HeadroomMetrics,
    LedgerCategory,
    LedgerEntry,
    ReconciliationLine,
    ReconciliationResult,
)
from .runner import CovenantRunner
