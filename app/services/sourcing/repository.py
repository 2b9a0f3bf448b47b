"""
Persistence boundary for RFQs, invitations and quotes.

All writes of one sourcing operation go through a single ``transaction()``
block: either everything commits or the session is rolled back.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConflictError, NotFoundError, SourcingError
from app.core.logging import get_logger
from app.db.models import (
    ActivityLog, Rfq, RfqInvitation, RfqQuote, RfqScopeItem, SequenceCounter,
    Supplier, QuoteStatus, RFQStatus,
)

logger = get_logger(__name__)

# PostgreSQL SQLSTATEs for lock_timeout / statement_timeout expiry
_TIMEOUT_SQLSTATES = {"55P03", "57014"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_timeout(exc: OperationalError) -> bool:
    return getattr(exc.orig, "pgcode", None) in _TIMEOUT_SQLSTATES


class SourcingRepository:
    """Queries and set-based writes for the sourcing engine."""

    def __init__(self, db: Session):
        self.db = db

    # ============= TRANSACTIONS =============

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back on any failure.

        Concurrency failures are surfaced as ConflictError; typed sourcing
        errors and everything else propagate unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SourcingError:
            self.db.rollback()
            raise
        except StaleDataError as e:
            self.db.rollback()
            raise ConflictError("RFQ was modified concurrently; reload and retry") from e
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(
                "Write conflicts with an existing record",
                {"constraint": str(e.orig)},
            ) from e
        except OperationalError as e:
            self.db.rollback()
            if _is_timeout(e):
                raise ConflictError("Timed out waiting for a lock on the RFQ") from e
            raise
        except Exception:
            self.db.rollback()
            raise

    # ============= RFQ =============

    def get_rfq(self, rfq_id: int) -> Rfq:
        rfq = self.db.get(Rfq, rfq_id)
        if rfq is None:
            raise NotFoundError(f"RFQ {rfq_id} not found", {"rfq_id": rfq_id})
        return rfq

    def lock_rfq(self, rfq_id: int) -> Rfq:
        """Load an RFQ with a row lock held until the transaction ends."""
        rfq = self.db.execute(
            select(Rfq).where(Rfq.id == rfq_id).with_for_update().execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if rfq is None:
            raise NotFoundError(f"RFQ {rfq_id} not found", {"rfq_id": rfq_id})
        return rfq

    def list_rfqs(
        self,
        status: Optional[RFQStatus] = None,
        customer_ref: Optional[str] = None,
        category_ref: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Rfq]:
        query = select(Rfq)
        if status:
            query = query.where(Rfq.status == status)
        if customer_ref:
            query = query.where(Rfq.customer_ref == customer_ref)
        if category_ref:
            query = query.where(Rfq.category_ref == category_ref)
        query = query.order_by(desc(Rfq.created_at), desc(Rfq.id)).offset(offset).limit(limit)
        return list(self.db.execute(query).scalars())

    def add(self, entity) -> None:
        self.db.add(entity)

    def delete(self, entity) -> None:
        self.db.delete(entity)

    def flush(self) -> None:
        self.db.flush()

    # ============= SUPPLIER REGISTRY (read-only) =============

    def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found", {"supplier_id": supplier_id})
        return supplier

    # ============= SEQUENCES =============

    def next_sequence_value(self, name: str) -> int:
        """
        Increment and return a named counter.

        The counter row is locked for the rest of the transaction, so
        concurrent creators are serialized instead of reading the same count.
        """
        counter = self.db.execute(
            select(SequenceCounter).where(SequenceCounter.name == name).with_for_update()
        ).scalar_one_or_none()
        if counter is None:
            counter = SequenceCounter(name=name, value=0)
            self.db.add(counter)
        counter.value += 1
        self.db.flush()
        return counter.value

    # ============= SCOPE =============

    def get_scope_item(self, item_id: int) -> RfqScopeItem:
        item = self.db.get(RfqScopeItem, item_id)
        if item is None:
            raise NotFoundError(f"Scope item {item_id} not found", {"scope_item_id": item_id})
        return item

    def list_scope_items(self, rfq_id: int) -> List[RfqScopeItem]:
        return list(self.db.execute(
            select(RfqScopeItem).where(RfqScopeItem.rfq_id == rfq_id).order_by(RfqScopeItem.id)
        ).scalars())

    # ============= INVITATIONS =============

    def get_invitation(self, invitation_id: int) -> RfqInvitation:
        invitation = self.db.get(RfqInvitation, invitation_id)
        if invitation is None:
            raise NotFoundError(
                f"Invitation {invitation_id} not found", {"invitation_id": invitation_id}
            )
        return invitation

    def find_invitation(self, rfq_id: int, supplier_id: int) -> Optional[RfqInvitation]:
        return self.db.execute(
            select(RfqInvitation).where(
                RfqInvitation.rfq_id == rfq_id,
                RfqInvitation.supplier_id == supplier_id,
            )
        ).scalar_one_or_none()

    def list_invitations(self, rfq_id: int) -> List[RfqInvitation]:
        return list(self.db.execute(
            select(RfqInvitation).where(RfqInvitation.rfq_id == rfq_id).order_by(RfqInvitation.id)
        ).scalars())

    def count_invitations(self, rfq_id: int) -> int:
        return self.db.execute(
            select(func.count(RfqInvitation.id)).where(RfqInvitation.rfq_id == rfq_id)
        ).scalar_one()

    # ============= QUOTES =============

    def get_quote(self, quote_id: int) -> RfqQuote:
        quote = self.db.get(RfqQuote, quote_id)
        if quote is None:
            raise NotFoundError(f"Quote {quote_id} not found", {"quote_id": quote_id})
        return quote

    def find_quote(self, rfq_id: int, supplier_id: int) -> Optional[RfqQuote]:
        return self.db.execute(
            select(RfqQuote).where(
                RfqQuote.rfq_id == rfq_id,
                RfqQuote.supplier_id == supplier_id,
            )
        ).scalar_one_or_none()

    def list_quotes(self, rfq_id: int) -> List[RfqQuote]:
        """Quotes in overall-rank order; unranked quotes last, by submission."""
        return list(self.db.execute(
            select(RfqQuote)
            .where(RfqQuote.rfq_id == rfq_id)
            .order_by(
                RfqQuote.overall_rank.is_(None),
                RfqQuote.overall_rank,
                RfqQuote.submitted_at,
                RfqQuote.id,
            )
        ).scalars())

    def list_quotes_by_price(self, rfq_id: int) -> List[RfqQuote]:
        return list(self.db.execute(
            select(RfqQuote)
            .where(RfqQuote.rfq_id == rfq_id)
            .order_by(RfqQuote.total_price, RfqQuote.submitted_at, RfqQuote.id)
        ).scalars())

    def write_rankings(self, rows: Iterable[Dict[str, Any]]) -> None:
        """
        Persist benchmark scores and ranks for a whole quote set in one
        executemany UPDATE keyed by primary key.
        """
        rows = list(rows)
        if rows:
            self.db.execute(update(RfqQuote), rows)

    def clear_rankings(self, rfq_id: int) -> int:
        """Drop benchmark results for every quote of an RFQ."""
        result = self.db.execute(
            update(RfqQuote)
            .where(RfqQuote.rfq_id == rfq_id)
            .values(benchmark_score=None, price_rank=None, overall_rank=None, evaluated_at=None)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    def accept_quote(self, rfq_id: int, supplier_id: int) -> int:
        result = self.db.execute(
            update(RfqQuote)
            .where(RfqQuote.rfq_id == rfq_id, RfqQuote.supplier_id == supplier_id)
            .values(status=QuoteStatus.ACCEPTED, updated_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    def reject_other_quotes(self, rfq_id: int, supplier_id: int) -> int:
        result = self.db.execute(
            update(RfqQuote)
            .where(RfqQuote.rfq_id == rfq_id, RfqQuote.supplier_id != supplier_id)
            .values(status=QuoteStatus.REJECTED, updated_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    # ============= ACTIVITY =============

    def record_activity(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        details: Optional[dict] = None,
        user_ref: Optional[str] = None,
    ) -> ActivityLog:
        entry = ActivityLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            details=details or {},
            user_ref=user_ref,
        )
        self.db.add(entry)
        return entry

    def list_activity(self, entity_type: str, entity_id: int, limit: int = 100) -> List[ActivityLog]:
        return list(self.db.execute(
            select(ActivityLog)
            .where(ActivityLog.entity_type == entity_type, ActivityLog.entity_id == entity_id)
            .order_by(ActivityLog.id)
            .limit(limit)
        ).scalars())
