"""
Tests for the sourcing repository: transactions, constraints, ordering, sequences.
"""
import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.db.models import RfqInvitation, RfqQuote, Rfq, RFQStatus, SequenceCounter
from app.services import sourcing
from app.services.sourcing.repository import SourcingRepository


class TestTransaction:
    def test_commits_on_success(self, db_session):
        repo = SourcingRepository(db_session)
        with repo.transaction():
            repo.add(Rfq(rfq_number="RFQ-9000", title="Committed", status=RFQStatus.DRAFT))

        db_session.rollback()
        assert db_session.query(Rfq).filter(Rfq.rfq_number == "RFQ-9000").count() == 1

    def test_rolls_back_and_reraises_sourcing_errors(self, db_session):
        repo = SourcingRepository(db_session)
        with pytest.raises(ValidationError):
            with repo.transaction():
                repo.add(Rfq(rfq_number="RFQ-9001", title="Discarded", status=RFQStatus.DRAFT))
                repo.flush()
                raise ValidationError("nope")

        assert db_session.query(Rfq).count() == 0

    def test_duplicate_invitation_row_is_conflict(self, db_session, draft_rfq, suppliers):
        sourcing.invite_supplier(db_session, draft_rfq.id, suppliers[0].id)
        repo = SourcingRepository(db_session)

        with pytest.raises(ConflictError):
            with repo.transaction():
                repo.add(RfqInvitation(rfq_id=draft_rfq.id, supplier_id=suppliers[0].id))

        assert db_session.query(RfqInvitation).count() == 1

    def test_duplicate_quote_row_is_conflict(self, db_session, quoted_rfq, suppliers):
        rfq, _ = quoted_rfq
        repo = SourcingRepository(db_session)

        with pytest.raises(ConflictError):
            with repo.transaction():
                repo.add(RfqQuote(
                    quote_number="QT-9999", rfq_id=rfq.id, supplier_id=suppliers[0].id,
                    total_price=Decimal("1.00"),
                ))

        assert db_session.query(RfqQuote).count() == 3

    def test_stale_data_is_conflict(self):
        db = MagicMock()
        db.commit.side_effect = StaleDataError("version mismatch")
        repo = SourcingRepository(db)

        with pytest.raises(ConflictError):
            with repo.transaction():
                pass

        db.rollback.assert_called_once()

    def test_lock_timeout_is_conflict(self):
        orig = Exception("canceling statement due to lock timeout")
        orig.pgcode = "55P03"
        db = MagicMock()
        db.commit.side_effect = OperationalError("UPDATE rfqs", {}, orig)
        repo = SourcingRepository(db)

        with pytest.raises(ConflictError) as exc_info:
            with repo.transaction():
                pass

        assert "lock" in exc_info.value.message
        db.rollback.assert_called_once()

    def test_other_operational_errors_propagate(self):
        db = MagicMock()
        db.commit.side_effect = OperationalError("SELECT 1", {}, Exception("server closed the connection"))
        repo = SourcingRepository(db)

        with pytest.raises(OperationalError):
            with repo.transaction():
                pass

        db.rollback.assert_called_once()


class TestLookups:
    def test_missing_entities(self, db_session):
        repo = SourcingRepository(db_session)
        with pytest.raises(NotFoundError):
            repo.get_rfq(1)
        with pytest.raises(NotFoundError):
            repo.lock_rfq(1)
        with pytest.raises(NotFoundError):
            repo.get_supplier(1)
        with pytest.raises(NotFoundError):
            repo.get_quote(1)
        with pytest.raises(NotFoundError):
            repo.get_invitation(1)
        with pytest.raises(NotFoundError):
            repo.get_scope_item(1)

    def test_find_returns_none_when_absent(self, db_session, draft_rfq, suppliers):
        repo = SourcingRepository(db_session)
        assert repo.find_invitation(draft_rfq.id, suppliers[0].id) is None
        assert repo.find_quote(draft_rfq.id, suppliers[0].id) is None

    def test_count_invitations(self, db_session, sent_rfq):
        assert SourcingRepository(db_session).count_invitations(sent_rfq.id) == 3


class TestQuoteOrdering:
    def test_unranked_quotes_ordered_by_submission(self, db_session, quoted_rfq):
        rfq, quotes = quoted_rfq
        listed = SourcingRepository(db_session).list_quotes(rfq.id)
        assert [q.id for q in listed] == [q.id for q in quotes]

    def test_ranked_quotes_first(self, db_session, quoted_rfq):
        rfq, (quote_a, quote_b, quote_c) = quoted_rfq
        repo = SourcingRepository(db_session)
        with repo.transaction():
            repo.write_rankings([{"id": quote_c.id, "overall_rank": 1, "price_rank": 3}])

        db_session.expire_all()
        assert [q.id for q in repo.list_quotes(rfq.id)] == [quote_c.id, quote_a.id, quote_b.id]

    def test_by_price(self, db_session, quoted_rfq):
        rfq, (quote_a, quote_b, quote_c) = quoted_rfq
        listed = SourcingRepository(db_session).list_quotes_by_price(rfq.id)
        assert [q.id for q in listed] == [quote_b.id, quote_a.id, quote_c.id]

    def test_clear_rankings_scoped_to_rfq(self, db_session, quoted_rfq):
        rfq, quotes = quoted_rfq
        sourcing.calculate_benchmarks(db_session, rfq.id)
        repo = SourcingRepository(db_session)

        with repo.transaction():
            assert repo.clear_rankings(rfq.id) == 3
            assert repo.clear_rankings(rfq.id + 1) == 0

        db_session.expire_all()
        assert all(q.overall_rank is None and q.evaluated_at is None for q in repo.list_quotes(rfq.id))
        assert [q.id for q in repo.list_quotes(rfq.id)] == [q.id for q in quotes]

    def test_write_rankings_with_no_rows(self, db_session):
        SourcingRepository(db_session).write_rankings([])


class TestSequences:
    def test_counters_are_independent(self, db_session):
        repo = SourcingRepository(db_session)
        with repo.transaction():
            assert repo.next_sequence_value("rfq") == 1
            assert repo.next_sequence_value("rfq") == 2
            assert repo.next_sequence_value("quote") == 1

        assert db_session.get(SequenceCounter, "rfq").value == 2

    def test_create_rfq_advances_counter(self, db_session):
        sourcing.create_rfq(db_session, title="One")
        sourcing.create_rfq(db_session, title="Two")
        assert db_session.get(SequenceCounter, "rfq").value == 2

    def test_failed_create_does_not_consume_number(self, db_session):
        repo = SourcingRepository(db_session)
        with pytest.raises(ValidationError):
            with repo.transaction():
                repo.next_sequence_value("rfq")
                raise ValidationError("abort")

        assert sourcing.create_rfq(db_session, title="Next").rfq_number == "RFQ-0001"


class TestActivity:
    def test_list_activity_scoped_to_entity(self, db_session):
        repo = SourcingRepository(db_session)
        with repo.transaction():
            repo.record_activity("rfq", 1, "created")
            repo.record_activity("rfq", 2, "created")
            repo.record_activity("rfq", 1, "sent", {"invited_count": 3}, user_ref="buyer-1")

        entries = repo.list_activity("rfq", 1)
        assert [e.action for e in entries] == ["created", "sent"]
        assert entries[1].details == {"invited_count": 3}
        assert entries[1].user_ref == "buyer-1"
        assert repo.list_activity("rfq", 1, limit=1)[0].action == "created"
