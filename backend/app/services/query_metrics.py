"""Aggregate metrics over query rows.

Pure functions shared by cluster generation, the suggestion store and
group metric recomputation. Inputs may be ORM rows or QueryRecord values;
anything exposing impressions, clicks and avg_position works.
"""

import math
from collections.abc import Iterable
from typing import Any, Protocol

from app.schemas.ai_cluster import AggregatedMetrics

CTR_DECIMALS = 4
POSITION_DECIMALS = 1

OPPORTUNITY_MIN_IMPRESSIONS = 1000
OPPORTUNITY_MAX_CTR = 0.01
OPPORTUNITY_MIN_POSITION = 5
OPPORTUNITY_MAX_POSITION = 15


class HasQueryMetrics(Protocol):
    impressions: Any
    clicks: Any
    avg_position: Any


def to_valid_number(value: Any) -> float:
    """Coerce to a finite float; missing, non-numeric or non-finite gives 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _to_count(value: Any) -> int:
    return max(int(to_valid_number(value)), 0)


def calculate_ctr(clicks: Any, impressions: Any) -> float:
    """clicks / impressions rounded to 4 places, 0 when there are no impressions."""
    total_impressions = _to_count(impressions)
    if total_impressions == 0:
        return 0.0
    ratio = _to_count(clicks) / total_impressions
    return round(min(ratio, 1.0), CTR_DECIMALS)


def compute_is_opportunity(impressions: Any, ctr: Any, avg_position: Any) -> bool:
    """High impressions, low CTR and a page-one-to-two position."""
    if avg_position is None:
        return False
    position = to_valid_number(avg_position)
    return (
        to_valid_number(impressions) > OPPORTUNITY_MIN_IMPRESSIONS
        and to_valid_number(ctr) < OPPORTUNITY_MAX_CTR
        and OPPORTUNITY_MIN_POSITION <= position <= OPPORTUNITY_MAX_POSITION
    )


def calculate_group_metrics(queries: Iterable[HasQueryMetrics]) -> tuple[AggregatedMetrics, int]:
    """Reduce queries to summed impressions/clicks, derived CTR and mean position.

    Each row contributes at most as many clicks as it has impressions.
    CTR is computed from the sums rather than averaged per row. The mean
    position skips rows whose position is missing or non-finite and is 0
    when none remain. Rounding happens once, on the result.

    Returns:
        (metrics, query_count)
    """
    impressions = 0
    clicks = 0
    positions: list[float] = []
    count = 0

    for query in queries:
        count += 1
        row_impressions = _to_count(query.impressions)
        impressions += row_impressions
        clicks += min(_to_count(query.clicks), row_impressions)

        position = query.avg_position
        if position is None or isinstance(position, bool):
            continue
        try:
            position_value = float(position)
        except (TypeError, ValueError):
            continue
        if math.isfinite(position_value):
            positions.append(position_value)

    # fsum keeps the mean independent of input order
    avg_position = (
        round(max(math.fsum(positions) / len(positions), 0.0), POSITION_DECIMALS)
        if positions
        else 0.0
    )

    metrics = AggregatedMetrics(
        impressions=impressions,
        clicks=clicks,
        ctr=calculate_ctr(clicks, impressions),
        avg_position=avg_position,
    )
    return metrics, count
