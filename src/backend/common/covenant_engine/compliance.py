from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from .config import EngineDefaults
from .models import (
    CovenantRules,
    CovenantStatus,
    CovenantTrigger,
    HeadroomMetrics,
    LedgerEntry,
    TriggerDetails,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
_RCF_NAME_MARKERS = ("rcf", "revolving")


def safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    # A zero denominator yields a zero ratio rather than an error.
    if denominator == 0:
        return ZERO
    return numerator / denominator


@dataclass(frozen=True)
class Thresholds:
    leverage_max: Decimal
    interest_min: Decimal


def resolve_thresholds(rules: CovenantRules, defaults: EngineDefaults) -> Thresholds:
    leverage = rules.find_covenant("leverage")
    interest = rules.find_covenant("interest")
    # Missing, null and zero limits all fall back to the defaults.
    leverage_max = (leverage.max_limit if leverage else None) or defaults.leverage_max
    interest_min = (interest.min_limit if interest else None) or defaults.interest_min
    return Thresholds(leverage_max=leverage_max, interest_min=interest_min)


def find_rcf_drawdown(debt_entries: Iterable[LedgerEntry]) -> Decimal:
    for entry in debt_entries:
        name = (entry.account_name or "").lower()
        if any(marker in name for marker in _RCF_NAME_MARKERS):
            return entry.amount
    return ZERO


def evaluate_trigger(
    trigger: Optional[CovenantTrigger],
    debt_entries: Iterable[LedgerEntry],
    defaults: EngineDefaults,
) -> Tuple[bool, Optional[TriggerDetails]]:
    """Return (test_condition_active, details). Without a springing trigger covenants are always tested."""
    if trigger is None or not trigger.is_springing:
        return True, None

    capacity = trigger.total_rcf_amount or ZERO
    drawdown = find_rcf_drawdown(debt_entries)
    utilization = drawdown / capacity if capacity > 0 else ZERO
    threshold = trigger.threshold_percentage or defaults.trigger_threshold
    active = utilization > threshold
    logger.debug(
        "Springing test: drawdown=%s capacity=%s utilization=%s threshold=%s active=%s",
        drawdown,
        capacity,
        utilization,
        threshold,
        active,
    )
    return active, TriggerDetails(
        metric_name=trigger.trigger_metric or defaults.trigger_metric_name,
        current_value=utilization,
        threshold=threshold,
        capacity=capacity,
    )


def resolve_status(
    *,
    leverage_ratio: Decimal,
    interest_coverage_ratio: Decimal,
    thresholds: Thresholds,
    test_condition_active: bool,
    defaults: EngineDefaults,
) -> CovenantStatus:
    """
    Leverage is checked before interest cover and the first signal set wins:
    an interest shortfall never overrides a leverage Breach, and an interest
    warning does not replace a leverage Warning.
    """
    if not test_condition_active:
        return CovenantStatus.SKIPPED

    status = CovenantStatus.HEALTHY
    if leverage_ratio > thresholds.leverage_max:
        status = CovenantStatus.BREACH
    elif leverage_ratio > thresholds.leverage_max * defaults.leverage_warning_factor:
        status = CovenantStatus.WARNING

    if status != CovenantStatus.BREACH:
        if interest_coverage_ratio < thresholds.interest_min:
            status = CovenantStatus.BREACH
        elif (
            interest_coverage_ratio < thresholds.interest_min * defaults.interest_warning_factor
            and status != CovenantStatus.WARNING
        ):
            status = CovenantStatus.WARNING
    return status


def build_headroom(
    *,
    adjusted_ebitda: Decimal,
    net_debt: Decimal,
    net_finance_charges: Decimal,
    debt_entries: Iterable[LedgerEntry],
    rules: CovenantRules,
    defaults: EngineDefaults,
) -> HeadroomMetrics:
    leverage_ratio = safe_ratio(net_debt, adjusted_ebitda)
    interest_coverage_ratio = safe_ratio(adjusted_ebitda, net_finance_charges)
    thresholds = resolve_thresholds(rules, defaults)
    active, details = evaluate_trigger(rules.covenant_trigger, debt_entries, defaults)
    status = resolve_status(
        leverage_ratio=leverage_ratio,
        interest_coverage_ratio=interest_coverage_ratio,
        thresholds=thresholds,
        test_condition_active=active,
        defaults=defaults,
    )
    return HeadroomMetrics(
        leverage_ratio=leverage_ratio,
        leverage_threshold=thresholds.leverage_max,
        interest_coverage_ratio=interest_coverage_ratio,
        interest_threshold=thresholds.interest_min,
        status=status,
        leverage_headroom=thresholds.leverage_max - leverage_ratio,
        interest_headroom=interest_coverage_ratio - thresholds.interest_min,
        test_condition_active=active,
        trigger_details=details,
    )
