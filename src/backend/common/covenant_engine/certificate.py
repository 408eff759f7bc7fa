from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import BridgeSection, CovenantRules, CovenantStatus, ReconciliationResult

_CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£", "JPY": "¥", "CHF": "CHF "}

DEFAULT_LEVERAGE_FORMULA = "Consolidated Total Net Debt / Consolidated EBITDA"
DEFAULT_INTEREST_FORMULA = "Consolidated EBITDA / Net Finance Charges"


class CertificateHeader(BaseModel):
    to: str
    from_: str = Field(alias="from")
    date: str
    agreement_title: str

    model_config = ConfigDict(populate_by_name=True)


class CertificateCovenant(BaseModel):
    name: str
    formula: str
    actual_value: str
    required_value: str
    compliant: bool
    tested: bool = True


class CertificateEbitdaRow(BaseModel):
    item: str
    amount: str
    is_add_back: bool


class CertificateNetDebtRow(BaseModel):
    item: str
    amount: str


class CertificateSustainabilityRow(BaseModel):
    kpi: str
    target: str
    actual: Optional[str] = None
    status: str


class ComplianceCertificateData(BaseModel):
    """Structured content of a Schedule 7 style compliance certificate, ready for rendering."""

    header: CertificateHeader
    period: str
    covenants: List[CertificateCovenant] = Field(default_factory=list)
    ebitda_reconciliation: List[CertificateEbitdaRow] = Field(default_factory=list)
    ebitda_total: str
    net_debt_reconciliation: List[CertificateNetDebtRow] = Field(default_factory=list)
    net_debt_total: str
    sustainability: List[CertificateSustainabilityRow] = Field(default_factory=list)
    confirmation_text: str


def quantize_amount(value: Decimal, quantize: Decimal = Decimal("0.01")) -> Decimal:
    return value.quantize(quantize, rounding=ROUND_HALF_UP)


def format_currency(value: Decimal, currency: str) -> str:
    code = (currency or "").upper()
    symbol = _CURRENCY_SYMBOLS.get(code, f"{code} " if code else "")
    q = quantize_amount(value)
    sign = "-" if q < 0 else ""
    return f"{sign}{symbol}{abs(q):,.2f}"


def format_ratio(value: Decimal) -> str:
    return f"{quantize_amount(value):.2f}:1.00"


def _confirmation_text(status: CovenantStatus) -> str:
    if status == CovenantStatus.SKIPPED:
        return (
            "We confirm that the Test Condition was not met for the Relevant Period and the "
            "Financial Covenants were accordingly not tested. We confirm that no Default is continuing."
        )
    if status == CovenantStatus.BREACH:
        return (
            "We confirm that the Financial Covenants set out above were not complied with for the "
            "Relevant Period. A Default is continuing and we set out the steps being taken to remedy it."
        )
    return "We confirm that the Financial Covenants set out above were complied with and that no Default is continuing."


def build_certificate_data(
    result: ReconciliationResult,
    rules: CovenantRules,
    *,
    period: str,
    issued_on: date,
) -> ComplianceCertificateData:
    meta = rules.deal_metadata
    currency = meta.base_currency
    headroom = result.headroom
    tested = headroom.test_condition_active

    agreement_title = "Facility Agreement"
    if meta.agreement_date:
        agreement_title = f"Facility Agreement dated {meta.agreement_date}"

    leverage_rule = rules.find_covenant("leverage")
    covenants = [
        CertificateCovenant(
            name=leverage_rule.name if leverage_rule else "Leverage Ratio",
            formula=(leverage_rule.metric if leverage_rule and leverage_rule.metric else DEFAULT_LEVERAGE_FORMULA),
            actual_value=format_ratio(headroom.leverage_ratio),
            required_value=f"≤ {format_ratio(headroom.leverage_threshold)}",
            compliant=not tested or headroom.leverage_ratio <= headroom.leverage_threshold,
            tested=tested,
        )
    ]
    interest_rule = rules.find_covenant("interest")
    if interest_rule is not None:
        covenants.append(
            CertificateCovenant(
                name=interest_rule.name,
                formula=interest_rule.metric or DEFAULT_INTEREST_FORMULA,
                actual_value=format_ratio(headroom.interest_coverage_ratio),
                required_value=f"≥ {format_ratio(headroom.interest_threshold)}",
                compliant=not tested or headroom.interest_coverage_ratio >= headroom.interest_threshold,
                tested=tested,
            )
        )

    ebitda_rows = [
        CertificateEbitdaRow(
            item=line.label,
            amount=format_currency(abs(line.final_amount), currency),
            is_add_back=line.final_amount >= 0,
        )
        for line in result.lines_for(BridgeSection.EBITDA)
    ]
    net_debt_rows = [
        CertificateNetDebtRow(item=line.label, amount=format_currency(line.final_amount, currency))
        for line in result.lines_for(BridgeSection.NET_DEBT)
    ]

    sustainability: List[CertificateSustainabilityRow] = []
    if rules.sustainability_kpis is not None:
        for kpi in rules.sustainability_kpis.kpi_targets:
            target = "N/A"
            if kpi.target_value is not None:
                target = f"{kpi.target_value}{(' ' + kpi.unit) if kpi.unit else ''}"
            sustainability.append(
                CertificateSustainabilityRow(
                    kpi=kpi.description or kpi.id,
                    target=target,
                    status="Not Reported",
                )
            )

    return ComplianceCertificateData(
        header=CertificateHeader(
            to=meta.facility_agent or "The Facility Agent",
            from_=meta.borrower or "The Company",
            date=issued_on.isoformat(),
            agreement_title=agreement_title,
        ),
        period=period,
        covenants=covenants,
        ebitda_reconciliation=ebitda_rows,
        ebitda_total=format_currency(result.health.adjusted_ebitda, currency),
        net_debt_reconciliation=net_debt_rows,
        net_debt_total=format_currency(result.health.net_debt, currency),
        sustainability=sustainability,
        confirmation_text=_confirmation_text(headroom.status),
    )
