from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _category_key(value: str) -> str:
    return re.sub(r"[^a-z&]", "", value.lower())


class LedgerCategory(str, Enum):
    REVENUE = "Revenue"
    OPEX = "OpEx"
    DEPRECIATION_AMORTIZATION = "D&A"
    RESTRUCTURING = "Restructuring"
    TRANSACTION = "Transaction"
    FX = "FX"
    INTEREST_EXPENSE = "Interest Expense"
    INTEREST_INCOME = "Interest Income"
    GROSS_DEBT = "Gross Debt"
    CASH = "Cash"
    LEASES = "Leases"

    @classmethod
    def _missing_(cls, value: object) -> Optional["LedgerCategory"]:
        # Ledger exports spell categories inconsistently ("InterestExpense", "gross_debt").
        if not isinstance(value, str):
            return None
        key = _category_key(value)
        for member in cls:
            if _category_key(member.value) == key:
                return member
        return None


class LedgerSourceSystem(str, Enum):
    GL = "General Ledger"
    ASSET_SUBLEDGER = "Asset Subledger"
    COST_CENTER = "Cost Center"
    INTERNAL_ORDER = "Internal Order"
    PNL = "P&L"
    TREASURY = "Treasury System"
    AP = "Accounts Payable"
    AR = "Accounts Receivable"


class BridgeSection(str, Enum):
    EBITDA = "EBITDA"
    NET_DEBT = "NET_DEBT"
    FINANCE_CHARGES = "FINANCE_CHARGES"


class CovenantStatus(str, Enum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    BREACH = "Breach"
    SKIPPED = "Skipped"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LedgerEntry(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    account_code: str = ""
    account_name: str = ""
    source_system: str = ""
    amount: Decimal
    category: LedgerCategory

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, LedgerCategory):
            return LedgerCategory(value)
        return value


# --- Covenant rules (extractor output) ---


class DealMetadata(_CamelModel):
    borrower: Optional[str] = None
    facility_agent: Optional[str] = None
    agreement_date: Optional[str] = None
    base_currency: str = "EUR"


class Facility(_CamelModel):
    name: str
    amount: Decimal = Decimal("0")
    currency: str = ""


class CovenantTrigger(_CamelModel):
    is_springing: bool = False
    trigger_metric: Optional[str] = None
    threshold_percentage: Optional[Decimal] = None
    total_rcf_amount: Optional[Decimal] = None
    source_quote: Optional[str] = None


class FinancialCovenantRule(_CamelModel):
    name: str = ""
    metric: Optional[str] = None
    max_limit: Optional[Decimal] = None
    min_limit: Optional[Decimal] = None
    operator: Optional[str] = None
    source_quote: Optional[str] = None


class EBITDAAddBack(_CamelModel):
    item: str
    legal_logic: Optional[str] = None
    sap_mapping_hint: Optional[str] = None
    cap: Optional[str] = None


class EBITDARules(_CamelModel):
    starting_point: Optional[str] = None
    permitted_add_backs: List[EBITDAAddBack] = Field(default_factory=list)
    exclusions: List[str] = Field(default_factory=list)


class KpiTarget(_CamelModel):
    id: str
    description: Optional[str] = None
    target_value: Optional[Decimal] = None
    unit: Optional[str] = None


class SustainabilityKpis(_CamelModel):
    step_down_margin_max: Optional[Decimal] = None
    kpi_targets: List[KpiTarget] = Field(default_factory=list)


class Recommendation(_CamelModel):
    id: str
    title: str
    description: str = ""
    action_type: str = "Strategic"
    potential_savings: Optional[str] = None
    condition_metric: Optional[str] = None
    condition_operator: Optional[str] = None
    condition_threshold: Optional[Decimal] = None


class CovenantRules(_CamelModel):
    deal_metadata: DealMetadata = Field(default_factory=DealMetadata)
    facilities: List[Facility] = Field(default_factory=list)
    covenant_trigger: Optional[CovenantTrigger] = None
    financial_covenants: List[FinancialCovenantRule] = Field(default_factory=list)
    ebitda_rules: EBITDARules = Field(default_factory=EBITDARules)
    sustainability_kpis: Optional[SustainabilityKpis] = None
    recommendations: List[Recommendation] = Field(default_factory=list)

    def find_covenant(self, keyword: str) -> Optional[FinancialCovenantRule]:
        needle = keyword.lower()
        for covenant in self.financial_covenants:
            if covenant.name and needle in covenant.name.lower():
                return covenant
        return None


# --- Engine output ---


class ReconciliationLine(_CamelModel):
    label: str
    source_entries: List[LedgerEntry] = Field(default_factory=list)
    raw_amount: Decimal
    is_add_back: bool = False
    is_deduction: bool = False
    capped_amount: Optional[Decimal] = None
    final_amount: Decimal
    adjustment_reason: Optional[str] = None
    supporting_quote: Optional[str] = None
    section: BridgeSection


class FinancialHealth(_CamelModel):
    adjusted_ebitda: Decimal
    net_debt: Decimal
    net_finance_charges: Decimal
    gross_debt: Decimal
    cash_at_bank: Decimal
    operating_profit: Decimal
    depreciation: Decimal = Decimal("0")
    restructuring_costs: Decimal = Decimal("0")
    transaction_costs: Decimal = Decimal("0")
    unrealized_fx: Decimal = Decimal("0")
    interest_expense: Decimal = Decimal("0")


class TriggerDetails(_CamelModel):
    metric_name: str
    current_value: Decimal
    threshold: Decimal
    capacity: Decimal


class HeadroomMetrics(_CamelModel):
    leverage_ratio: Decimal
    leverage_threshold: Decimal
    interest_coverage_ratio: Decimal
    interest_threshold: Decimal
    status: CovenantStatus
    leverage_headroom: Decimal
    interest_headroom: Decimal
    test_condition_active: bool
    trigger_details: Optional[TriggerDetails] = None


class ReconciliationResult(_CamelModel):
    reconciliation: List[ReconciliationLine] = Field(default_factory=list)
    health: FinancialHealth
    headroom: HeadroomMetrics

    def lines_for(self, section: BridgeSection) -> List[ReconciliationLine]:
        return [line for line in self.reconciliation if line.section == section]


class RecommendationStatus(_CamelModel):
    recommendation_id: str
    title: str
    is_tracked: bool = False
    condition_metric: Optional[str] = None
    condition_operator: Optional[str] = None
    condition_threshold: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    is_met: Optional[bool] = None


class CovenantRunReport(_CamelModel):
    run_id: str
    generated_at: datetime
    period: str
    result: ReconciliationResult
    recommendations: List[RecommendationStatus] = Field(default_factory=list)
    section_totals: Dict[BridgeSection, Decimal] = Field(default_factory=dict)
