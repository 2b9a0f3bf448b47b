"""
Award transaction: pick the winning quote and close the RFQ.

Accepting the winner, rejecting every other quote and marking the RFQ
awarded happen in one transaction. Readers never observe a partial award.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger, audit_logger
from app.db.models import Rfq, RFQStatus, OPEN_RFQ_STATUSES
from app.services.sourcing.lifecycle import require_status
from app.services.sourcing.repository import SourcingRepository, utcnow

logger = get_logger(__name__)


def award_rfq(db: Session, rfq_id: int, supplier_id: int, reason: Optional[str] = None) -> Rfq:
    """
    Award an RFQ to the supplier whose quote wins.

    Raises:
        NotFoundError: RFQ missing, or the supplier has no quote on it
        ValidationError: RFQ already awarded, cancelled or still a draft
    """
    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        if rfq.status == RFQStatus.AWARDED:
            logger.warning(
                f"Rejected award on RFQ {rfq.id}: already awarded to supplier {rfq.awarded_supplier_id}",
                extra={"rfq_id": rfq.id, "supplier_id": supplier_id, "action": "award"},
            )
            raise ValidationError(
                "RFQ has already been awarded",
                {"rfq_id": rfq.id, "awarded_supplier_id": rfq.awarded_supplier_id},
            )
        require_status(rfq, OPEN_RFQ_STATUSES, "award")

        winning_quote = repo.find_quote(rfq.id, supplier_id)
        if winning_quote is None:
            raise NotFoundError(
                f"Supplier {supplier_id} has no quote for this RFQ",
                {"rfq_id": rfq.id, "supplier_id": supplier_id},
            )

        accepted = repo.accept_quote(rfq.id, supplier_id)
        rejected = repo.reject_other_quotes(rfq.id, supplier_id)

        rfq.status = RFQStatus.AWARDED
        rfq.awarded_supplier_id = supplier_id
        rfq.award_reason = reason
        rfq.closed_at = utcnow()

        repo.record_activity(
            "rfq", rfq.id, "awarded",
            {
                "supplier_id": supplier_id,
                "quote_id": winning_quote.id,
                "reason": reason,
                "rejected_quotes": rejected,
            },
        )
        repo.flush()

    logger.info(
        f"RFQ {rfq_id} awarded to supplier {supplier_id} ({accepted} accepted, {rejected} rejected)",
        extra={"rfq_id": rfq_id, "supplier_id": supplier_id, "action": "award"},
    )
    audit_logger.log("award_rfq", entity_type="rfq", entity_id=rfq_id, rfq_id=rfq_id,
                     supplier_id=supplier_id, details={"reason": reason})
    return rfq
