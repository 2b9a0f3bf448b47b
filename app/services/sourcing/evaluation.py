"""
Benchmark evaluation: score every quote of an RFQ, rank them, persist the result.
"""
from typing import List

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging import get_logger, audit_logger
from app.db.models import Rfq, RfqQuote, RFQStatus, OPEN_RFQ_STATUSES
from app.services.sourcing.lifecycle import require_status
from app.services.sourcing.ranking import RankingEntry, assign_ranks
from app.services.sourcing.repository import SourcingRepository, utcnow
from app.services.sourcing.scoring import CriteriaWeights, QuoteAttributes, score_quotes

logger = get_logger(__name__)


def weights_for(rfq: Rfq) -> CriteriaWeights:
    return CriteriaWeights(
        price=rfq.price_weight,
        quality=rfq.quality_weight,
        delivery=rfq.delivery_weight,
        compliance=rfq.compliance_weight,
    )


def calculate_benchmarks(db: Session, rfq_id: int) -> List[RfqQuote]:
    """
    Recompute benchmark scores and ranks for every quote of an RFQ.

    All ranks are computed in memory and written back in a single update;
    previous values are overwritten, never patched. The RFQ moves to
    ``evaluating``. Running it again simply recomputes.

    Returns:
        The RFQ's quotes in overall-rank order.
    """
    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_status(rfq, OPEN_RFQ_STATUSES, "calculate_benchmarks")

        quotes = repo.list_quotes(rfq.id)
        scores = score_quotes(
            [
                QuoteAttributes(
                    quote_id=q.id,
                    total_price=q.total_price,
                    quality_score=q.quality_score,
                    delivery_days=q.delivery_days,
                    compliance_score=q.compliance_score,
                    esg_score=q.esg_score,
                )
                for q in quotes
            ],
            weights_for(rfq),
            min_quotes=settings.RFQ_MIN_QUOTES_FOR_BENCHMARK,
        )

        prices = {q.id: q.total_price for q in quotes}
        submitted = {q.id: q.submitted_at for q in quotes}
        rankings = assign_ranks([
            RankingEntry(
                quote_id=s.quote_id,
                total_price=prices[s.quote_id],
                benchmark_score=s.benchmark_score,
                submitted_at=submitted[s.quote_id],
            )
            for s in scores
        ])

        now = utcnow()
        repo.write_rankings(
            {
                "id": s.quote_id,
                "benchmark_score": s.rounded_benchmark,
                "overall_rank": rankings[s.quote_id].overall_rank,
                "price_rank": rankings[s.quote_id].price_rank,
                "evaluated_at": now,
                "updated_at": now,
            }
            for s in scores
        )

        previous = rfq.status
        rfq.status = RFQStatus.EVALUATING
        winner = min(scores, key=lambda s: rankings[s.quote_id].overall_rank)
        repo.record_activity(
            "rfq", rfq.id, "benchmarks_calculated",
            {
                "quote_count": len(scores),
                "weights": weights_for(rfq).as_dict(),
                "top_quote_id": winner.quote_id,
                "top_score": str(winner.rounded_benchmark),
            },
        )

    logger.info(
        f"Benchmarked {len(scores)} quotes for RFQ {rfq_id} ({previous.value} -> evaluating)",
        extra={"rfq_id": rfq_id, "action": "calculate_benchmarks"},
    )
    audit_logger.log("calculate_benchmarks", entity_type="rfq", entity_id=rfq_id, rfq_id=rfq_id,
                     details={"quote_count": len(scores), "top_quote_id": winner.quote_id})

    # Bulk update bypasses the identity map; reload the committed rows
    db.expire_all()
    return repo.list_quotes(rfq_id)
