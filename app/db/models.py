"""
SQLAlchemy ORM models for FacilityOps Sourcing.

The RFQ owns its scope items, invitations and quotes. Suppliers belong to the
supplier registry and are only ever referenced by id from this module.
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric,
    ForeignKey, Enum, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.db.session import Base


# ============= ENUMS =============

class RFQStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    RECEIVING_QUOTES = "receiving_quotes"
    EVALUATING = "evaluating"
    AWARDED = "awarded"
    CANCELLED = "cancelled"


TERMINAL_RFQ_STATUSES = frozenset({RFQStatus.AWARDED, RFQStatus.CANCELLED})

# States in which suppliers may bid and an operator may relabel progress
OPEN_RFQ_STATUSES = frozenset({
    RFQStatus.SENT,
    RFQStatus.RECEIVING_QUOTES,
    RFQStatus.EVALUATING,
})


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    VIEWED = "viewed"
    RESPONDED = "responded"
    DECLINED = "declined"
    QUOTED = "quoted"


class QuoteStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Using values_callable to ensure we store enum values (lowercase) not names (UPPERCASE)
def enum_values(enum_cls):
    return [e.value for e in enum_cls]


RFQStatusType = Enum(RFQStatus, name='rfqstatus', values_callable=enum_values)
InvitationStatusType = Enum(InvitationStatus, name='invitationstatus', values_callable=enum_values)
QuoteStatusType = Enum(QuoteStatus, name='quotestatus', values_callable=enum_values)


# ============= SUPPLIER REGISTRY =============

class Supplier(Base):
    """Supplier master data. Read-only from the sourcing engine."""
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    cvr_number = Column(String(20))
    email = Column(String(255))
    phone = Column(String(50))
    categories = Column(JSON, default=list)  # service category refs
    quality_rating = Column(Numeric(2, 1), default=0)
    price_rating = Column(Numeric(2, 1), default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ============= SOURCING (RFQ) =============

class Rfq(Base):
    """Request for Quote."""
    __tablename__ = "rfqs"

    id = Column(Integer, primary_key=True, index=True)
    rfq_number = Column(String(50), unique=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)

    # Opaque references into the customer/location/category registries
    customer_ref = Column(String(64), index=True)
    location_ref = Column(String(64))
    category_ref = Column(String(64), index=True)
    sales_case_ref = Column(String(64))

    status = Column(RFQStatusType, nullable=False, default=RFQStatus.DRAFT, index=True)
    deadline = Column(DateTime(timezone=True))
    sent_at = Column(DateTime(timezone=True))
    closed_at = Column(DateTime(timezone=True))

    awarded_supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    award_reason = Column(Text)

    # Evaluation weights; normalized by their actual sum
    price_weight = Column(Integer, nullable=False, default=40)
    quality_weight = Column(Integer, nullable=False, default=30)
    delivery_weight = Column(Integer, nullable=False, default=15)
    compliance_weight = Column(Integer, nullable=False, default=15)

    created_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    scope_items = relationship(
        "RfqScopeItem", back_populates="rfq",
        cascade="all, delete-orphan", order_by="RfqScopeItem.id",
    )
    invitations = relationship(
        "RfqInvitation", back_populates="rfq",
        cascade="all, delete-orphan", order_by="RfqInvitation.id",
    )
    quotes = relationship(
        "RfqQuote", back_populates="rfq",
        cascade="all, delete-orphan", order_by="RfqQuote.id",
    )
    awarded_supplier = relationship("Supplier", viewonly=True)

    # Concurrent writers against a stale copy fail with StaleDataError
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RFQ_STATUSES

    @property
    def weight_total(self) -> int:
        return (
            (self.price_weight or 0) + (self.quality_weight or 0)
            + (self.delivery_weight or 0) + (self.compliance_weight or 0)
        )


class RfqScopeItem(Base):
    """Service modules / work items included in the scope of an RFQ."""
    __tablename__ = "rfq_scope_items"

    id = Column(Integer, primary_key=True, index=True)
    rfq_id = Column(Integer, ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False, index=True)
    service_module_ref = Column(String(64))
    template_ref = Column(String(64))
    description = Column(Text)
    quantity = Column(Integer, nullable=False, default=1)
    technical_requirements = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    rfq = relationship("Rfq", back_populates="scope_items")


class RfqInvitation(Base):
    """A supplier invited to bid on an RFQ."""
    __tablename__ = "rfq_invitations"

    id = Column(Integer, primary_key=True, index=True)
    rfq_id = Column(Integer, ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    invited_at = Column(DateTime(timezone=True))
    viewed_at = Column(DateTime(timezone=True))
    responded_at = Column(DateTime(timezone=True))
    status = Column(InvitationStatusType, nullable=False, default=InvitationStatus.PENDING)
    decline_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    rfq = relationship("Rfq", back_populates="invitations")
    supplier = relationship("Supplier", viewonly=True)

    __table_args__ = (
        UniqueConstraint('rfq_id', 'supplier_id', name='uq_rfq_invitation_supplier'),
    )


class RfqQuote(Base):
    """A supplier's bid against an RFQ."""
    __tablename__ = "rfq_quotes"

    id = Column(Integer, primary_key=True, index=True)
    quote_number = Column(String(50), unique=True, nullable=False)
    rfq_id = Column(Integer, ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)

    # Pricing
    total_price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="DKK")
    price_breakdown = Column(JSON, default=list)  # line items

    # Delivery / SLA
    delivery_days = Column(Integer)
    sla_terms = Column(Text)
    validity_days = Column(Integer, default=30)

    # Internal ratings 0-100, neutral 50 when unset
    quality_score = Column(Numeric(5, 2))
    compliance_score = Column(Numeric(5, 2))
    esg_score = Column(Numeric(5, 2))

    notes = Column(Text)
    supplier_notes = Column(Text)

    status = Column(QuoteStatusType, nullable=False, default=QuoteStatus.SUBMITTED)

    # Written by benchmark runs only
    benchmark_score = Column(Numeric(5, 2))
    price_rank = Column(Integer)
    overall_rank = Column(Integer)

    submitted_at = Column(DateTime(timezone=True))
    evaluated_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    rfq = relationship("Rfq", back_populates="quotes")
    supplier = relationship("Supplier", viewonly=True)

    __table_args__ = (
        UniqueConstraint('rfq_id', 'supplier_id', name='uq_rfq_quote_supplier'),
        Index('ix_rfq_quotes_rfq_rank', 'rfq_id', 'overall_rank'),
    )


# ============= ACTIVITY & SEQUENCES =============

class ActivityLog(Base):
    """Compliance trail of sourcing decisions."""
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(100), nullable=False, index=True)
    details = Column(JSON, default=dict)
    user_ref = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        Index('ix_activity_log_entity', 'entity_type', 'entity_id'),
    )


class SequenceCounter(Base):
    """Monotonic counters behind human-readable numbers (RFQ-0001, QT-0001)."""
    __tablename__ = "sequence_counters"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
