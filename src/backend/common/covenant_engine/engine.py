from __future__ import annotations

import logging
from typing import Iterable, Optional

from .bridge import build_ebitda_bridge, build_finance_charges_bridge, build_net_debt_bridge
from .compliance import build_headroom
from .config import EngineDefaults
from .models import CovenantRules, FinancialHealth, LedgerEntry, ReconciliationResult
from .pool import EntryPool

logger = logging.getLogger(__name__)


def run_reconciliation(
    entries: Iterable[LedgerEntry],
    rules: CovenantRules,
    *,
    defaults: Optional[EngineDefaults] = None,
) -> ReconciliationResult:
    """
    Reconcile categorized ledger entries against extracted covenant rules.

    Pure: no I/O, and the consumed-entry pool lives only for this call. Running it
    twice on the same inputs yields equal results.
    """
    defaults = defaults or EngineDefaults()
    pool = EntryPool.from_entries(entries)

    ebitda, pool = build_ebitda_bridge(pool, rules, defaults)
    finance = build_finance_charges_bridge(pool)
    debt = build_net_debt_bridge(pool)

    headroom = build_headroom(
        adjusted_ebitda=ebitda.adjusted_ebitda,
        net_debt=debt.net_debt,
        net_finance_charges=finance.net_finance_charges,
        debt_entries=debt.debt_entries,
        rules=rules,
        defaults=defaults,
    )
    logger.debug(
        "Reconciliation complete: adjusted_ebitda=%s net_debt=%s status=%s",
        ebitda.adjusted_ebitda,
        debt.net_debt,
        headroom.status.value,
    )

    health = FinancialHealth(
        adjusted_ebitda=ebitda.adjusted_ebitda,
        net_debt=debt.net_debt,
        net_finance_charges=finance.net_finance_charges,
        gross_debt=debt.gross_debt,
        cash_at_bank=debt.cash,
        operating_profit=ebitda.operating_profit,
        depreciation=ebitda.depreciation,
        restructuring_costs=ebitda.restructuring,
        transaction_costs=ebitda.transaction,
        unrealized_fx=ebitda.unrealized_fx,
        interest_expense=finance.finance_costs,
    )
    return ReconciliationResult(
        reconciliation=[*ebitda.lines, *finance.lines, *debt.lines],
        health=health,
        headroom=headroom,
    )
