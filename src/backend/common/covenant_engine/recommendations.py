from __future__ import annotations

import operator
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from .models import Recommendation, RecommendationStatus, ReconciliationResult

_OPERATORS: Dict[str, Callable[[Decimal, Decimal], bool]] = {
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}


def metric_value(metric: str, result: ReconciliationResult) -> Optional[Decimal]:
    key = (metric or "").strip().lower()
    if key == "leverage ratio":
        return result.headroom.leverage_ratio
    if key == "interest cover":
        return result.headroom.interest_coverage_ratio
    if key == "ebitda":
        return result.health.adjusted_ebitda
    if key == "net debt":
        return result.health.net_debt
    return None


def track_recommendation(
    recommendation: Recommendation, result: ReconciliationResult
) -> RecommendationStatus:
    status = RecommendationStatus(
        recommendation_id=recommendation.id,
        title=recommendation.title,
        condition_metric=recommendation.condition_metric,
        condition_operator=recommendation.condition_operator,
        condition_threshold=recommendation.condition_threshold,
    )
    compare = _OPERATORS.get((recommendation.condition_operator or "").strip())
    if (
        compare is None
        or recommendation.condition_metric is None
        or recommendation.condition_threshold is None
    ):
        return status

    current = metric_value(recommendation.condition_metric, result)
    if current is None:
        return status

    status.is_tracked = True
    status.current_value = current
    status.is_met = compare(current, recommendation.condition_threshold)
    return status


def track_recommendations(
    recommendations: Iterable[Recommendation], result: ReconciliationResult
) -> List[RecommendationStatus]:
    return [track_recommendation(rec, result) for rec in recommendations]
