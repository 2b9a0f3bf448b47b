"""
Rank assignment for scored quotes.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Sequence

from app.services.sourcing.scoring import Number


@dataclass(frozen=True)
class RankingEntry:
    quote_id: int
    total_price: Number
    benchmark_score: float
    submitted_at: Optional[datetime] = None


@dataclass(frozen=True)
class QuoteRanking:
    overall_rank: int
    price_rank: int


def _submission_key(entry: RankingEntry):
    """Earliest submission first; unknown submission times sort last, then by id."""
    submitted = entry.submitted_at
    if submitted is None:
        return (1, datetime.min, entry.quote_id)
    # SQLite hands back naive datetimes for values written as aware ones
    if submitted.tzinfo is not None:
        submitted = submitted.astimezone(timezone.utc).replace(tzinfo=None)
    return (0, submitted, entry.quote_id)


def assign_ranks(entries: Sequence[RankingEntry]) -> Dict[int, QuoteRanking]:
    """
    Assign 1-based overall and price ranks.

    Overall rank orders by raw benchmark score descending, price rank by raw
    total price ascending. Equal values fall back to earliest submission and
    then to the lower quote id, so the result never depends on input order.
    """
    by_score = sorted(entries, key=lambda e: (-float(e.benchmark_score), _submission_key(e)))
    by_price = sorted(entries, key=lambda e: (float(e.total_price), _submission_key(e)))

    price_positions = {e.quote_id: position for position, e in enumerate(by_price, start=1)}

    return {
        e.quote_id: QuoteRanking(overall_rank=position, price_rank=price_positions[e.quote_id])
        for position, e in enumerate(by_score, start=1)
    }
