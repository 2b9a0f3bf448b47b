"""
Shared fixtures for the sourcing test suite.

Tests run against an in-memory SQLite database; the environment is set
before anything under app/ is imported so settings and the engine pick it up.
"""
import os

os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from decimal import Decimal
from sqlalchemy.orm import Session

from app.db.session import Base, SessionLocal, engine
from app.db import models  # noqa - import models for metadata
from app.db.models import Supplier
from app.services import sourcing


# ============= FIXTURES =============

@pytest.fixture
def tables():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(tables):
    """Create a database session for testing."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_supplier(db_session: Session):
    """Factory for registry suppliers."""
    counter = {"n": 0}

    def _make(name=None, is_active=True):
        counter["n"] += 1
        supplier = Supplier(
            name=name or f"Supplier {counter['n']}",
            cvr_number=f"DK2000{counter['n']:04d}",
            email=f"supplier{counter['n']}@example.com",
            categories=["cleaning"],
            quality_rating=Decimal("4.0"),
            price_rating=Decimal("3.5"),
            is_active=is_active,
        )
        db_session.add(supplier)
        db_session.commit()
        db_session.refresh(supplier)
        return supplier

    return _make


@pytest.fixture
def suppliers(make_supplier):
    """Three active suppliers, enough to send an RFQ."""
    return [make_supplier() for _ in range(3)]


@pytest.fixture
def draft_rfq(db_session: Session):
    return sourcing.create_rfq(
        db_session,
        title="Window cleaning - Aarhus office",
        customer_ref="CUST-100",
        location_ref="LOC-7",
        category_ref="cleaning",
    )


@pytest.fixture
def sent_rfq(db_session: Session, draft_rfq, suppliers):
    """An RFQ sent to three invited suppliers."""
    for supplier in suppliers:
        sourcing.invite_supplier(db_session, draft_rfq.id, supplier.id)
    return sourcing.send_rfq(db_session, draft_rfq.id)


# Bids from the worked benchmark scenario: price, quality, delivery days, compliance, ESG
SCENARIO_BIDS = [
    (100000, 80, 10, 70, 70),  # A
    (90000, 60, 20, 60, 60),   # B
    (120000, 90, 5, 90, 90),   # C
]


@pytest.fixture
def quoted_rfq(db_session: Session, sent_rfq, suppliers):
    """
    Sent RFQ holding the three scenario quotes.

    Returns (rfq, [quote_a, quote_b, quote_c]).
    """
    quotes = []
    for supplier, (price, quality, days, compliance, esg) in zip(suppliers, SCENARIO_BIDS):
        quotes.append(sourcing.submit_quote(
            db_session, sent_rfq.id, supplier.id,
            total_price=price,
            quality_score=quality,
            delivery_days=days,
            compliance_score=compliance,
            esg_score=esg,
        ))
    return sent_rfq, quotes
