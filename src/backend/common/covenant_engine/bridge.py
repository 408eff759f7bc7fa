from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .classifier import classify_add_back, mentions_fx
from .config import EngineDefaults
from .models import (
    BridgeSection,
    CovenantRules,
    EBITDAAddBack,
    LedgerCategory,
    LedgerEntry,
    ReconciliationLine,
)
from .pool import EntryPool

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
_CAP_PERCENT_RE = re.compile(r"(\d+)%")


def _sum_abs(entries: Iterable[LedgerEntry]) -> Decimal:
    return sum((abs(e.amount) for e in entries), ZERO)


def _sum_signed(entries: Iterable[LedgerEntry]) -> Decimal:
    return sum((e.amount for e in entries), ZERO)


def has_cap(cap: Optional[str]) -> bool:
    if not cap:
        return False
    return "%" in cap or "cap" in cap.lower()


def parse_cap_percentage(cap: str, default: int) -> int:
    match = _CAP_PERCENT_RE.search(cap)
    return int(match.group(1)) if match else default


@dataclass
class EbitdaBridge:
    lines: List[ReconciliationLine] = field(default_factory=list)
    operating_profit: Decimal = ZERO
    adjusted_ebitda: Decimal = ZERO
    depreciation: Decimal = ZERO
    restructuring: Decimal = ZERO
    transaction: Decimal = ZERO
    unrealized_fx: Decimal = ZERO


def build_ebitda_bridge(
    pool: EntryPool,
    rules: CovenantRules,
    defaults: EngineDefaults,
) -> Tuple[EbitdaBridge, EntryPool]:
    """
    Build the EBITDA section of the bridge.

    Order matters: add-backs are applied in the order the agreement lists them, and the
    cap base for a capped add-back only includes D&A add-backs processed before (or by) it.
    """
    ebitda_rules = rules.ebitda_rules
    bridge = EbitdaBridge()

    revenue_entries, pool = pool.take({LedgerCategory.REVENUE})
    opex_entries, pool = pool.take({LedgerCategory.OPEX})
    revenue = _sum_signed(revenue_entries)
    opex = _sum_abs(opex_entries)
    operating_profit = revenue - opex
    bridge.operating_profit = operating_profit

    start_label = ebitda_rules.starting_point or defaults.starting_point_label
    bridge.lines.append(
        ReconciliationLine(
            label=f"A. {start_label}",
            source_entries=[*revenue_entries, *opex_entries],
            raw_amount=operating_profit,
            final_amount=operating_profit,
            section=BridgeSection.EBITDA,
        )
    )

    running = operating_profit
    for rule in ebitda_rules.permitted_add_backs:
        line, pool = _apply_add_back(rule, pool, bridge, defaults)
        if line is None:
            continue
        bridge.lines.append(line)
        running += line.final_amount

    if any(mentions_fx(ex) for ex in ebitda_rules.exclusions):
        fx_entries, pool = pool.take({LedgerCategory.FX})
        net_fx = _sum_signed(fx_entries)
        # Only a net unrealized gain is excluded; a net loss is left in the base as-is.
        if fx_entries and net_fx > 0:
            bridge.unrealized_fx = net_fx
            bridge.lines.append(
                ReconciliationLine(
                    label="(-) Unrealized FX Gain",
                    source_entries=list(fx_entries),
                    raw_amount=net_fx,
                    is_deduction=True,
                    final_amount=-net_fx,
                    adjustment_reason="Excluded Gain",
                    section=BridgeSection.EBITDA,
                )
            )
            running -= net_fx
        elif fx_entries:
            logger.debug("Net FX %s is not a gain; no exclusion applied.", net_fx)

    bridge.adjusted_ebitda = running
    return bridge, pool


def _apply_add_back(
    rule: EBITDAAddBack,
    pool: EntryPool,
    bridge: EbitdaBridge,
    defaults: EngineDefaults,
) -> Tuple[Optional[ReconciliationLine], EntryPool]:
    categories = classify_add_back(rule.item)
    matches, pool = pool.take(categories)
    if not matches:
        logger.debug("Add-back %r matched no unconsumed ledger entries; skipped.", rule.item)
        return None, pool

    raw_amount = _sum_abs(matches)
    final_amount = raw_amount
    capped_amount: Optional[Decimal] = None
    reason: Optional[str] = rule.legal_logic or None

    if LedgerCategory.DEPRECIATION_AMORTIZATION in categories:
        bridge.depreciation += raw_amount
    if LedgerCategory.TRANSACTION in categories:
        bridge.transaction += raw_amount

    if has_cap(rule.cap):
        cap_base = bridge.operating_profit + bridge.depreciation
        pct = parse_cap_percentage(rule.cap or "", defaults.cap_percentage)
        max_allowed = cap_base * Decimal(pct) / Decimal(100)
        if raw_amount > max_allowed:
            final_amount = max_allowed
            capped_amount = max_allowed
            reason = f"Capped at {pct}% of Base"
        else:
            reason = "Permitted (Within Cap)"
        logger.debug(
            "Add-back %r: raw=%s cap_base=%s pct=%s final=%s", rule.item, raw_amount, cap_base, pct, final_amount
        )
        if LedgerCategory.RESTRUCTURING in categories:
            bridge.restructuring += final_amount
    elif LedgerCategory.RESTRUCTURING in categories:
        bridge.restructuring += final_amount

    quote = rule.legal_logic or ""
    if rule.sap_mapping_hint:
        quote = f"{quote} (Hint: {rule.sap_mapping_hint})".strip()

    line = ReconciliationLine(
        label=f"(+) {rule.item}",
        source_entries=list(matches),
        raw_amount=raw_amount,
        is_add_back=True,
        capped_amount=capped_amount,
        final_amount=final_amount,
        adjustment_reason=reason,
        supporting_quote=quote or None,
        section=BridgeSection.EBITDA,
    )
    return line, pool


@dataclass
class FinanceChargesBridge:
    lines: List[ReconciliationLine]
    finance_costs: Decimal
    finance_income: Decimal

    @property
    def net_finance_charges(self) -> Decimal:
        return self.finance_costs - self.finance_income


def build_finance_charges_bridge(pool: EntryPool) -> FinanceChargesBridge:
    cost_entries = pool.all_of({LedgerCategory.INTEREST_EXPENSE})
    income_entries = pool.all_of({LedgerCategory.INTEREST_INCOME})
    costs = _sum_abs(cost_entries)
    income = _sum_abs(income_entries)
    lines = [
        ReconciliationLine(
            label="B. Finance Costs",
            source_entries=list(cost_entries),
            raw_amount=costs,
            final_amount=costs,
            section=BridgeSection.FINANCE_CHARGES,
        ),
        ReconciliationLine(
            label="(-) Finance Income",
            source_entries=list(income_entries),
            raw_amount=income,
            is_deduction=True,
            final_amount=-income,
            section=BridgeSection.FINANCE_CHARGES,
        ),
    ]
    return FinanceChargesBridge(lines=lines, finance_costs=costs, finance_income=income)


@dataclass
class NetDebtBridge:
    lines: List[ReconciliationLine]
    gross_debt: Decimal
    cash: Decimal
    debt_entries: Tuple[LedgerEntry, ...]

    @property
    def net_debt(self) -> Decimal:
        return self.gross_debt - self.cash


def build_net_debt_bridge(pool: EntryPool) -> NetDebtBridge:
    debt_entries = pool.all_of({LedgerCategory.GROSS_DEBT})
    lease_entries = pool.all_of({LedgerCategory.LEASES})
    cash_entries = pool.all_of({LedgerCategory.CASH})
    gross_debt = _sum_signed(debt_entries) + _sum_signed(lease_entries)
    cash = _sum_signed(cash_entries)
    lines = [
        ReconciliationLine(
            label="A. Gross Borrowings",
            source_entries=[*debt_entries, *lease_entries],
            raw_amount=gross_debt,
            final_amount=gross_debt,
            section=BridgeSection.NET_DEBT,
        ),
        ReconciliationLine(
            label="(-) Cash & Cash Equivalents",
            source_entries=list(cash_entries),
            raw_amount=cash,
            is_deduction=True,
            final_amount=-cash,
            section=BridgeSection.NET_DEBT,
        ),
    ]
    return NetDebtBridge(lines=lines, gross_debt=gross_debt, cash=cash, debt_entries=debt_entries)
