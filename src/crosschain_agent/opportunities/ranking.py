"""Ranking and filtering of detected opportunities."""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from .models import Opportunity

logger = logging.getLogger(__name__)


def _sort_key(opportunity: Opportunity) -> Tuple[Decimal, int, Tuple[str, ...], str]:
    return (
        -opportunity.expected_return_percent,
        opportunity.risk.rank,
        tuple(opportunity.networks),
        opportunity.identity,
    )


def _preference(opportunity: Opportunity) -> Tuple[Decimal, int, str]:
    # Among duplicates: highest return, then lowest risk, then description
    return (-opportunity.expected_return_percent, opportunity.risk.rank, opportunity.description)


def rank(opportunities: Iterable[Opportunity], min_profit_percent: Decimal) -> List[Opportunity]:
    """
    Filter, deduplicate and order opportunities.

    Opportunities below ``min_profit_percent`` are dropped. Duplicates (same
    kind, networks and metadata) collapse to the one with the highest expected
    return. The result is sorted by expected return descending, then risk tier
    ascending, then the networks list, then identity, so identical inputs in
    any order always produce the same output.
    """
    threshold = Decimal(str(min_profit_percent))
    best: Dict[str, Opportunity] = {}
    dropped = 0

    for opportunity in opportunities:
        if opportunity.expected_return_percent < threshold:
            dropped += 1
            continue
        key = opportunity.identity
        current = best.get(key)
        if current is None or _preference(opportunity) < _preference(current):
            best[key] = opportunity

    ranked = sorted(best.values(), key=_sort_key)
    logger.debug(f"Ranked {len(ranked)} opportunities ({dropped} below {threshold}%)")
    return ranked
