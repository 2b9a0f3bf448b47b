"""
Supplier sourcing API routes - RFQs, invitations, quotes, benchmarking and award.

Thin adapter over app.services.sourcing; typed sourcing errors are turned into
HTTP responses by the handlers registered in app.main.
"""
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models import RFQStatus, InvitationStatus, QuoteStatus
from app.services import sourcing

router = APIRouter(prefix="/api/sourcing", tags=["Sourcing"])


# ============= SCHEMAS =============

class RFQCreate(BaseModel):
    title: str
    description: Optional[str] = None
    customer_ref: Optional[str] = None
    location_ref: Optional[str] = None
    category_ref: Optional[str] = None
    sales_case_ref: Optional[str] = None
    deadline: Optional[datetime] = None
    price_weight: Optional[int] = Field(None, ge=0)
    quality_weight: Optional[int] = Field(None, ge=0)
    delivery_weight: Optional[int] = Field(None, ge=0)
    compliance_weight: Optional[int] = Field(None, ge=0)
    created_by: Optional[str] = None


class RFQUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    customer_ref: Optional[str] = None
    location_ref: Optional[str] = None
    category_ref: Optional[str] = None
    sales_case_ref: Optional[str] = None
    deadline: Optional[datetime] = None
    price_weight: Optional[int] = Field(None, ge=0)
    quality_weight: Optional[int] = Field(None, ge=0)
    delivery_weight: Optional[int] = Field(None, ge=0)
    compliance_weight: Optional[int] = Field(None, ge=0)


class RFQResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rfq_number: str
    title: str
    description: Optional[str]
    customer_ref: Optional[str]
    location_ref: Optional[str]
    category_ref: Optional[str]
    sales_case_ref: Optional[str]
    status: RFQStatus
    deadline: Optional[datetime]
    sent_at: Optional[datetime]
    closed_at: Optional[datetime]
    awarded_supplier_id: Optional[int]
    award_reason: Optional[str]
    price_weight: int
    quality_weight: int
    delivery_weight: int
    compliance_weight: int
    created_at: Optional[datetime]


class ScopeItemCreate(BaseModel):
    description: Optional[str] = None
    service_module_ref: Optional[str] = None
    template_ref: Optional[str] = None
    quantity: int = Field(1, ge=1)
    technical_requirements: Optional[str] = None


class ScopeItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rfq_id: int
    description: Optional[str]
    service_module_ref: Optional[str]
    template_ref: Optional[str]
    quantity: int
    technical_requirements: Optional[str]


class InvitationCreate(BaseModel):
    supplier_id: int


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rfq_id: int
    supplier_id: int
    status: InvitationStatus
    invited_at: Optional[datetime]
    viewed_at: Optional[datetime]
    responded_at: Optional[datetime]
    decline_reason: Optional[str]


class QuoteCreate(BaseModel):
    supplier_id: int
    total_price: Decimal = Field(..., gt=0)
    currency: Optional[str] = None
    delivery_days: Optional[int] = Field(None, ge=0)
    validity_days: Optional[int] = Field(None, gt=0)
    quality_score: Optional[Decimal] = Field(None, ge=0, le=100)
    compliance_score: Optional[Decimal] = Field(None, ge=0, le=100)
    esg_score: Optional[Decimal] = Field(None, ge=0, le=100)
    price_breakdown: Optional[List[dict]] = None
    sla_terms: Optional[str] = None
    notes: Optional[str] = None
    supplier_notes: Optional[str] = None


class QuoteUpdate(BaseModel):
    total_price: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = None
    delivery_days: Optional[int] = Field(None, ge=0)
    validity_days: Optional[int] = Field(None, gt=0)
    quality_score: Optional[Decimal] = Field(None, ge=0, le=100)
    compliance_score: Optional[Decimal] = Field(None, ge=0, le=100)
    esg_score: Optional[Decimal] = Field(None, ge=0, le=100)
    price_breakdown: Optional[List[dict]] = None
    sla_terms: Optional[str] = None
    notes: Optional[str] = None
    supplier_notes: Optional[str] = None


class QuoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quote_number: str
    rfq_id: int
    supplier_id: int
    total_price: float
    currency: str
    delivery_days: Optional[int]
    validity_days: Optional[int]
    quality_score: Optional[float]
    compliance_score: Optional[float]
    esg_score: Optional[float]
    sla_terms: Optional[str]
    notes: Optional[str]
    supplier_notes: Optional[str]
    status: QuoteStatus
    benchmark_score: Optional[float]
    price_rank: Optional[int]
    overall_rank: Optional[int]
    submitted_at: Optional[datetime]
    evaluated_at: Optional[datetime]


class RFQDetailResponse(RFQResponse):
    scope_items: List[ScopeItemResponse]
    invitations: List[InvitationResponse]
    quotes: List[QuoteResponse]


class StatusChange(BaseModel):
    status: RFQStatus


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class DeclineRequest(BaseModel):
    reason: Optional[str] = None


class AwardDecision(BaseModel):
    supplier_id: int
    reason: Optional[str] = None


class BenchmarkResponse(BaseModel):
    message: str
    rfq_id: int
    quotes: List[QuoteResponse]


class AwardResponse(BaseModel):
    message: str
    rfq: RFQResponse


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    details: Optional[dict]
    user_ref: Optional[str]
    created_at: Optional[datetime]


# ============= RFQ ROUTES =============

@router.get("/rfqs", response_model=List[RFQResponse])
async def list_rfqs(
    status: Optional[RFQStatus] = Query(None, description="Filter by status"),
    customer_ref: Optional[str] = Query(None),
    category_ref: Optional[str] = Query(None),
    limit: int = Query(50, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """List RFQs, newest first."""
    return sourcing.list_rfqs(
        db, status=status, customer_ref=customer_ref, category_ref=category_ref,
        limit=limit, offset=offset,
    )


@router.post("/rfqs", response_model=RFQResponse, status_code=201)
async def create_rfq(rfq_data: RFQCreate, db: Session = Depends(get_db)):
    """Create a draft RFQ."""
    return sourcing.create_rfq(db, **rfq_data.model_dump())


@router.get("/rfqs/{rfq_id}", response_model=RFQResponse)
async def get_rfq(rfq_id: int, db: Session = Depends(get_db)):
    return sourcing.get_rfq(db, rfq_id)


@router.get("/rfqs/{rfq_id}/full", response_model=RFQDetailResponse)
async def get_rfq_full(rfq_id: int, db: Session = Depends(get_db)):
    """RFQ with scope, invitations and quotes in rank order."""
    detail = sourcing.get_rfq_detail(db, rfq_id)
    return RFQDetailResponse(
        **RFQResponse.model_validate(detail.rfq).model_dump(),
        scope_items=[ScopeItemResponse.model_validate(s) for s in detail.scope_items],
        invitations=[InvitationResponse.model_validate(i) for i in detail.invitations],
        quotes=[QuoteResponse.model_validate(q) for q in detail.quotes],
    )


@router.put("/rfqs/{rfq_id}", response_model=RFQResponse)
async def update_rfq(rfq_id: int, update_data: RFQUpdate, db: Session = Depends(get_db)):
    """Update an RFQ that is not yet awarded or cancelled."""
    return sourcing.update_rfq(db, rfq_id, update_data.model_dump(exclude_unset=True))


@router.delete("/rfqs/{rfq_id}", status_code=204)
async def delete_rfq(rfq_id: int, db: Session = Depends(get_db)):
    sourcing.delete_rfq(db, rfq_id)
    return Response(status_code=204)


@router.post("/rfqs/{rfq_id}/send", response_model=RFQResponse)
async def send_rfq(rfq_id: int, db: Session = Depends(get_db)):
    """Send the RFQ to invited suppliers (minimum 3)."""
    return sourcing.send_rfq(db, rfq_id)


@router.post("/rfqs/{rfq_id}/status", response_model=RFQResponse)
async def change_status(rfq_id: int, change: StatusChange, db: Session = Depends(get_db)):
    """Set an intermediate progress label (receiving_quotes / evaluating)."""
    return sourcing.set_status(db, rfq_id, change.status)


@router.post("/rfqs/{rfq_id}/cancel", response_model=RFQResponse)
async def cancel_rfq(
    rfq_id: int,
    cancel_data: Optional[CancelRequest] = None,
    db: Session = Depends(get_db)
):
    return sourcing.cancel_rfq(db, rfq_id, reason=cancel_data.reason if cancel_data else None)


@router.get("/rfqs/{rfq_id}/activity", response_model=List[ActivityResponse])
async def get_activity(
    rfq_id: int,
    limit: int = Query(100, le=500),
    db: Session = Depends(get_db)
):
    """Activity trail for an RFQ."""
    return sourcing.list_activity(db, rfq_id, limit=limit)


# ============= SCOPE ROUTES =============

@router.post("/rfqs/{rfq_id}/scope", response_model=ScopeItemResponse, status_code=201)
async def add_scope_item(rfq_id: int, item_data: ScopeItemCreate, db: Session = Depends(get_db)):
    return sourcing.add_scope_item(db, rfq_id, **item_data.model_dump())


@router.delete("/scope-items/{item_id}", status_code=204)
async def remove_scope_item(item_id: int, db: Session = Depends(get_db)):
    sourcing.remove_scope_item(db, item_id)
    return Response(status_code=204)


# ============= INVITATION ROUTES =============

@router.get("/rfqs/{rfq_id}/invitations", response_model=List[InvitationResponse])
async def list_invitations(rfq_id: int, db: Session = Depends(get_db)):
    return sourcing.list_invitations(db, rfq_id)


@router.post("/rfqs/{rfq_id}/invitations", response_model=InvitationResponse, status_code=201)
async def invite_supplier(rfq_id: int, invitation_data: InvitationCreate, db: Session = Depends(get_db)):
    """Invite a supplier to a draft RFQ."""
    return sourcing.invite_supplier(db, rfq_id, invitation_data.supplier_id)


@router.delete("/invitations/{invitation_id}", status_code=204)
async def remove_invitation(invitation_id: int, db: Session = Depends(get_db)):
    sourcing.remove_invitation(db, invitation_id)
    return Response(status_code=204)


@router.post("/invitations/{invitation_id}/decline", response_model=InvitationResponse)
async def decline_invitation(
    invitation_id: int,
    decline_data: Optional[DeclineRequest] = None,
    db: Session = Depends(get_db)
):
    """Record a supplier declining to quote."""
    return sourcing.decline_invitation(
        db, invitation_id, reason=decline_data.reason if decline_data else None
    )


# ============= QUOTE ROUTES =============

@router.get("/rfqs/{rfq_id}/quotes", response_model=List[QuoteResponse])
async def list_quotes(rfq_id: int, db: Session = Depends(get_db)):
    """Quotes in overall-rank order."""
    return sourcing.list_quotes(db, rfq_id)


@router.post("/rfqs/{rfq_id}/quotes", response_model=QuoteResponse, status_code=201)
async def submit_quote(rfq_id: int, quote_data: QuoteCreate, db: Session = Depends(get_db)):
    """Record a supplier's quote. One quote per supplier; use PUT /quotes/{id} to revise."""
    return sourcing.submit_quote(db, rfq_id, **quote_data.model_dump())


@router.get("/quotes/{quote_id}", response_model=QuoteResponse)
async def get_quote(quote_id: int, db: Session = Depends(get_db)):
    return sourcing.get_quote(db, quote_id)


@router.put("/quotes/{quote_id}", response_model=QuoteResponse)
async def revise_quote(quote_id: int, quote_data: QuoteUpdate, db: Session = Depends(get_db)):
    return sourcing.revise_quote(db, quote_id, quote_data.model_dump(exclude_unset=True))


# ============= EVALUATION & AWARD =============

@router.post("/rfqs/{rfq_id}/calculate-benchmarks", response_model=BenchmarkResponse)
async def calculate_benchmarks(rfq_id: int, db: Session = Depends(get_db)):
    """Score and rank all quotes; moves the RFQ to evaluating."""
    quotes = sourcing.calculate_benchmarks(db, rfq_id)
    return BenchmarkResponse(
        message="Benchmark scores calculated successfully",
        rfq_id=rfq_id,
        quotes=[QuoteResponse.model_validate(q) for q in quotes],
    )


@router.post("/rfqs/{rfq_id}/award", response_model=AwardResponse)
async def award_rfq(rfq_id: int, award_data: AwardDecision, db: Session = Depends(get_db)):
    """Award the RFQ: accept one quote, reject the rest, close the RFQ."""
    rfq = sourcing.award_rfq(db, rfq_id, award_data.supplier_id, award_data.reason)
    return AwardResponse(message="RFQ awarded successfully", rfq=RFQResponse.model_validate(rfq))
