"""
Tests for the award transaction.

The award either fully happens (winner accepted, every other quote rejected,
RFQ awarded) or leaves nothing behind.
"""
import pytest
from unittest.mock import patch

from app.core.errors import NotFoundError, ValidationError
from app.db.models import QuoteStatus, RFQStatus
from app.services import sourcing
from app.services.sourcing.repository import SourcingRepository


def _quote_statuses(db, rfq_id):
    return {q.supplier_id: q.status for q in sourcing.list_quotes(db, rfq_id)}


class TestAwardRfq:
    def test_award_after_benchmark(self, db_session, quoted_rfq, suppliers):
        rfq, _ = quoted_rfq
        sourcing.calculate_benchmarks(db_session, rfq.id)
        winner = suppliers[1]

        awarded = sourcing.award_rfq(db_session, rfq.id, winner.id, reason="Best benchmark score")

        assert awarded.status == RFQStatus.AWARDED
        assert awarded.awarded_supplier_id == winner.id
        assert awarded.award_reason == "Best benchmark score"
        assert awarded.closed_at is not None

        statuses = _quote_statuses(db_session, rfq.id)
        assert statuses[winner.id] == QuoteStatus.ACCEPTED
        assert statuses[suppliers[0].id] == QuoteStatus.REJECTED
        assert statuses[suppliers[2].id] == QuoteStatus.REJECTED
        assert list(statuses.values()).count(QuoteStatus.ACCEPTED) == 1

    def test_award_without_benchmark(self, db_session, quoted_rfq, suppliers):
        rfq, _ = quoted_rfq
        awarded = sourcing.award_rfq(db_session, rfq.id, suppliers[2].id)
        assert awarded.status == RFQStatus.AWARDED
        assert awarded.award_reason is None

    def test_records_activity(self, db_session, quoted_rfq, suppliers):
        rfq, quotes = quoted_rfq
        sourcing.award_rfq(db_session, rfq.id, suppliers[1].id, reason="Lowest price")
        entry = sourcing.list_activity(db_session, rfq.id)[-1]
        assert entry.action == "awarded"
        assert entry.details["quote_id"] == quotes[1].id
        assert entry.details["rejected_quotes"] == 2


class TestAwardFailures:
    def test_supplier_without_quote(self, db_session, sent_rfq, suppliers):
        sourcing.submit_quote(db_session, sent_rfq.id, suppliers[0].id, total_price=1000)
        sourcing.submit_quote(db_session, sent_rfq.id, suppliers[1].id, total_price=1100)

        with pytest.raises(NotFoundError):
            sourcing.award_rfq(db_session, sent_rfq.id, suppliers[2].id)

        rfq = sourcing.get_rfq(db_session, sent_rfq.id)
        assert rfq.status == RFQStatus.SENT
        assert rfq.awarded_supplier_id is None
        assert set(_quote_statuses(db_session, sent_rfq.id).values()) == {QuoteStatus.SUBMITTED}

    def test_missing_rfq(self, db_session, suppliers):
        with pytest.raises(NotFoundError):
            sourcing.award_rfq(db_session, 808, suppliers[0].id)

    def test_second_award_rejected(self, db_session, quoted_rfq, suppliers):
        rfq, _ = quoted_rfq
        sourcing.award_rfq(db_session, rfq.id, suppliers[1].id, reason="First decision")

        with pytest.raises(ValidationError) as exc_info:
            sourcing.award_rfq(db_session, rfq.id, suppliers[0].id, reason="Change of heart")

        assert exc_info.value.details["awarded_supplier_id"] == suppliers[1].id
        current = sourcing.get_rfq(db_session, rfq.id)
        assert current.awarded_supplier_id == suppliers[1].id
        assert current.award_reason == "First decision"
        statuses = _quote_statuses(db_session, rfq.id)
        assert statuses[suppliers[1].id] == QuoteStatus.ACCEPTED
        assert statuses[suppliers[0].id] == QuoteStatus.REJECTED

    def test_cancelled_rejected(self, db_session, quoted_rfq, suppliers):
        rfq, _ = quoted_rfq
        sourcing.cancel_rfq(db_session, rfq.id)
        with pytest.raises(ValidationError):
            sourcing.award_rfq(db_session, rfq.id, suppliers[0].id)

    def test_draft_rejected(self, db_session, draft_rfq, suppliers):
        with pytest.raises(ValidationError):
            sourcing.award_rfq(db_session, draft_rfq.id, suppliers[0].id)

    def test_fault_mid_award_rolls_back(self, db_session, quoted_rfq, suppliers):
        rfq, _ = quoted_rfq
        sourcing.calculate_benchmarks(db_session, rfq.id)
        before = {
            q.id: (q.status, q.overall_rank, q.benchmark_score)
            for q in sourcing.list_quotes(db_session, rfq.id)
        }

        with patch.object(
            SourcingRepository, "reject_other_quotes",
            side_effect=RuntimeError("Simulated connection loss"),
        ):
            with pytest.raises(RuntimeError):
                sourcing.award_rfq(db_session, rfq.id, suppliers[1].id, reason="Never lands")

        current = sourcing.get_rfq(db_session, rfq.id)
        assert current.status == RFQStatus.EVALUATING
        assert current.awarded_supplier_id is None
        assert current.award_reason is None
        assert current.closed_at is None
        after = {
            q.id: (q.status, q.overall_rank, q.benchmark_score)
            for q in sourcing.list_quotes(db_session, rfq.id)
        }
        assert after == before

    def test_award_possible_after_failed_attempt(self, db_session, quoted_rfq, suppliers):
        rfq, _ = quoted_rfq
        with patch.object(SourcingRepository, "record_activity", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                sourcing.award_rfq(db_session, rfq.id, suppliers[0].id)

        awarded = sourcing.award_rfq(db_session, rfq.id, suppliers[0].id)
        assert awarded.status == RFQStatus.AWARDED
        assert _quote_statuses(db_session, rfq.id)[suppliers[0].id] == QuoteStatus.ACCEPTED
