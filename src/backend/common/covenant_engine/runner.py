from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from .config import EngineDefaults
from .engine import run_reconciliation
from .models import BridgeSection, CovenantRules, CovenantRunReport, LedgerEntry
from .recommendations import track_recommendations


class CovenantRunner:
    def __init__(self, defaults: Optional[EngineDefaults] = None):
        self._defaults = defaults or EngineDefaults()

    def run(
        self,
        entries: Iterable[LedgerEntry],
        rules: CovenantRules,
        *,
        period: str,
    ) -> CovenantRunReport:
        result = run_reconciliation(entries, rules, defaults=self._defaults)

        section_totals: dict[BridgeSection, Decimal] = {}
        for line in result.reconciliation:
            section_totals[line.section] = section_totals.get(line.section, Decimal("0")) + line.final_amount

        return CovenantRunReport(
            run_id=str(uuid.uuid4()),
            generated_at=datetime.now(timezone.utc),
            period=period,
            result=result,
            recommendations=track_recommendations(rules.recommendations, result),
            section_totals=section_totals,
        )
