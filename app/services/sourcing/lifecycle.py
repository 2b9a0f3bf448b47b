"""
RFQ lifecycle: drafting, inviting suppliers, sending, collecting quotes, cancelling.

    draft -> sent -> receiving_quotes -> evaluating -> awarded
      \\________\\____________\\________________\\-----> cancelled

Every mutating function runs as one transaction and takes a row lock on the
RFQ first, so operations on the same RFQ are serialized while different RFQs
proceed independently. Benchmarking lives in evaluation.py, the award in
award.py.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.logging import get_logger, audit_logger
from app.db.models import (
    ActivityLog, InvitationStatus, QuoteStatus, Rfq, RfqInvitation, RfqQuote,
    RfqScopeItem, RFQStatus, OPEN_RFQ_STATUSES, TERMINAL_RFQ_STATUSES,
)
from app.services.sourcing.repository import SourcingRepository, utcnow

logger = get_logger(__name__)

WEIGHT_FIELDS = ("price_weight", "quality_weight", "delivery_weight", "compliance_weight")
RFQ_DETAIL_FIELDS = (
    "title", "description", "customer_ref", "location_ref", "category_ref",
    "sales_case_ref", "deadline",
) + WEIGHT_FIELDS
QUOTE_FIELDS = (
    "total_price", "currency", "price_breakdown", "delivery_days", "sla_terms",
    "validity_days", "quality_score", "compliance_score", "esg_score", "notes",
    "supplier_notes",
)
RATING_FIELDS = ("quality_score", "compliance_score", "esg_score")
# Quote columns that cannot be cleared once set
REQUIRED_QUOTE_FIELDS = ("total_price", "currency")

# Labels an operator may set by hand while the RFQ is out with suppliers
MANUAL_STATUSES = frozenset({RFQStatus.RECEIVING_QUOTES, RFQStatus.EVALUATING})


@dataclass
class RfqDetail:
    """An RFQ together with everything it owns, quotes in rank order."""
    rfq: Rfq
    scope_items: List[RfqScopeItem]
    invitations: List[RfqInvitation]
    quotes: List[RfqQuote]


# ============= GUARDS =============

def require_status(rfq: Rfq, allowed: Iterable[RFQStatus], operation: str) -> None:
    allowed = frozenset(allowed)
    if rfq.status not in allowed:
        logger.warning(
            f"Rejected {operation} on RFQ {rfq.id}: status is {rfq.status.value}",
            extra={"rfq_id": rfq.id, "action": operation},
        )
        raise ValidationError(
            f"Cannot {operation.replace('_', ' ')} while RFQ is {rfq.status.value}",
            {
                "rfq_id": rfq.id,
                "status": rfq.status.value,
                "allowed": sorted(s.value for s in allowed),
            },
        )


def require_not_terminal(rfq: Rfq, operation: str) -> None:
    require_status(rfq, set(RFQStatus) - TERMINAL_RFQ_STATUSES, operation)


def _validate_weights(values: Dict[str, Any]) -> None:
    for name in WEIGHT_FIELDS:
        if name not in values:
            continue
        value = values[name]
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValidationError(
                f"{name} must be a non-negative integer", {"field": name, "value": value}
            )


def _to_decimal(name: str, value: Any) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{name} must be numeric", {"field": name, "value": str(value)}) from e
    if not number.is_finite():
        raise ValidationError(f"{name} must be a finite number", {"field": name, "value": str(value)})
    return number


def _validate_quote_values(values: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = dict(values)

    for name in REQUIRED_QUOTE_FIELDS:
        if name in cleaned and (cleaned[name] is None or cleaned[name] == ""):
            raise ValidationError(f"{name} is required", {"field": name})

    if "total_price" in cleaned:
        price = _to_decimal("total_price", cleaned["total_price"])
        if price <= 0:
            raise ValidationError(
                "total_price must be positive", {"field": "total_price", "value": str(price)}
            )
        cleaned["total_price"] = price

    for name in RATING_FIELDS:
        if cleaned.get(name) is None:
            continue
        rating = _to_decimal(name, cleaned[name])
        if rating < 0 or rating > 100:
            raise ValidationError(
                f"{name} must be between 0 and 100", {"field": name, "value": str(rating)}
            )
        cleaned[name] = rating

    days = cleaned.get("delivery_days")
    if days is not None and days < 0:
        raise ValidationError("delivery_days cannot be negative", {"field": "delivery_days", "value": days})

    validity = cleaned.get("validity_days")
    if validity is not None and validity <= 0:
        raise ValidationError("validity_days must be positive", {"field": "validity_days", "value": validity})

    return cleaned


def _format_number(prefix: str, value: int) -> str:
    return f"{prefix}-{value:04d}"


# ============= RFQ =============

def create_rfq(
    db: Session,
    title: str,
    description: Optional[str] = None,
    customer_ref: Optional[str] = None,
    location_ref: Optional[str] = None,
    category_ref: Optional[str] = None,
    sales_case_ref: Optional[str] = None,
    deadline: Optional[datetime] = None,
    price_weight: Optional[int] = None,
    quality_weight: Optional[int] = None,
    delivery_weight: Optional[int] = None,
    compliance_weight: Optional[int] = None,
    created_by: Optional[str] = None,
) -> Rfq:
    """Create a draft RFQ with the next RFQ number."""
    if not title or not title.strip():
        raise ValidationError("title is required", {"field": "title"})

    weights = {
        "price_weight": settings.RFQ_DEFAULT_PRICE_WEIGHT if price_weight is None else price_weight,
        "quality_weight": settings.RFQ_DEFAULT_QUALITY_WEIGHT if quality_weight is None else quality_weight,
        "delivery_weight": settings.RFQ_DEFAULT_DELIVERY_WEIGHT if delivery_weight is None else delivery_weight,
        "compliance_weight": (
            settings.RFQ_DEFAULT_COMPLIANCE_WEIGHT if compliance_weight is None else compliance_weight
        ),
    }
    _validate_weights(weights)

    repo = SourcingRepository(db)
    with repo.transaction():
        number = repo.next_sequence_value("rfq")
        rfq = Rfq(
            rfq_number=_format_number(settings.RFQ_NUMBER_PREFIX, number),
            title=title.strip(),
            description=description,
            customer_ref=customer_ref,
            location_ref=location_ref,
            category_ref=category_ref,
            sales_case_ref=sales_case_ref,
            deadline=deadline,
            status=RFQStatus.DRAFT,
            created_by=created_by,
            **weights,
        )
        repo.add(rfq)
        repo.flush()
        repo.record_activity(
            "rfq", rfq.id, "created",
            {"rfq_number": rfq.rfq_number, "title": rfq.title},
            user_ref=created_by,
        )

    audit_logger.log("create_rfq", entity_type="rfq", entity_id=rfq.id, rfq_id=rfq.id,
                     user_ref=created_by, details={"rfq_number": rfq.rfq_number})
    return rfq


def update_rfq(db: Session, rfq_id: int, changes: Dict[str, Any]) -> Rfq:
    """Edit descriptive fields and weights of a non-terminal RFQ."""
    unknown = set(changes) - set(RFQ_DETAIL_FIELDS)
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(sorted(unknown))}", {"fields": sorted(unknown)}
        )
    if "title" in changes and not (changes["title"] or "").strip():
        raise ValidationError("title is required", {"field": "title"})
    _validate_weights(changes)

    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_not_terminal(rfq, "update")
        reweighted = any(
            name in changes and changes[name] != getattr(rfq, name) for name in WEIGHT_FIELDS
        )
        if reweighted:
            # Scores were computed with the old weights
            repo.clear_rankings(rfq.id)
        for key, value in changes.items():
            setattr(rfq, key, value)
        repo.record_activity("rfq", rfq.id, "updated", {"fields": sorted(changes)})

    audit_logger.log("update_rfq", entity_type="rfq", entity_id=rfq_id, rfq_id=rfq_id,
                     details={"fields": sorted(changes)})
    return rfq


def delete_rfq(db: Session, rfq_id: int) -> None:
    """Delete a draft or cancelled RFQ together with its scope, invitations and quotes."""
    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_status(rfq, {RFQStatus.DRAFT, RFQStatus.CANCELLED}, "delete")
        rfq_number = rfq.rfq_number
        repo.delete(rfq)
        repo.record_activity("rfq", rfq_id, "deleted", {"rfq_number": rfq_number})

    audit_logger.log("delete_rfq", entity_type="rfq", entity_id=rfq_id, rfq_id=rfq_id,
                     details={"rfq_number": rfq_number})


def set_status(db: Session, rfq_id: int, status: RFQStatus) -> Rfq:
    """
    Set an informational progress label (receiving_quotes / evaluating).

    draft -> sent, awarded and cancelled are only reachable through
    send_rfq, award_rfq and cancel_rfq.
    """
    status = RFQStatus(status)
    if status not in MANUAL_STATUSES:
        raise ValidationError(
            f"Status {status.value} can only be reached through its dedicated operation",
            {"status": status.value, "allowed": sorted(s.value for s in MANUAL_STATUSES)},
        )

    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_status(rfq, OPEN_RFQ_STATUSES, "change_status")
        previous = rfq.status
        rfq.status = status
        repo.record_activity(
            "rfq", rfq.id, "status_changed", {"from": previous.value, "to": status.value}
        )

    logger.info(f"RFQ {rfq_id} status {previous.value} -> {status.value}", extra={"rfq_id": rfq_id})
    return rfq


def send_rfq(db: Session, rfq_id: int) -> Rfq:
    """Send a draft RFQ once enough suppliers are invited."""
    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_status(rfq, {RFQStatus.DRAFT}, "send")

        invited = repo.count_invitations(rfq.id)
        required = settings.RFQ_MIN_INVITED_SUPPLIERS
        if invited < required:
            logger.warning(
                f"Rejected send on RFQ {rfq.id}: {invited}/{required} suppliers invited",
                extra={"rfq_id": rfq.id, "action": "send"},
            )
            raise ValidationError(
                f"Minimum {required} suppliers required to send RFQ, {invited} invited",
                {"rfq_id": rfq.id, "invited_count": invited, "required": required},
            )

        rfq.status = RFQStatus.SENT
        rfq.sent_at = utcnow()
        repo.record_activity("rfq", rfq.id, "sent", {"invited_count": invited})

    logger.info(f"RFQ {rfq.rfq_number} sent to {invited} suppliers", extra={"rfq_id": rfq_id})
    audit_logger.log("send_rfq", entity_type="rfq", entity_id=rfq_id, rfq_id=rfq_id,
                     details={"invited_count": invited})
    return rfq


def cancel_rfq(db: Session, rfq_id: int, reason: Optional[str] = None) -> Rfq:
    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_not_terminal(rfq, "cancel")
        previous = rfq.status
        rfq.status = RFQStatus.CANCELLED
        rfq.closed_at = utcnow()
        repo.record_activity(
            "rfq", rfq.id, "cancelled", {"from": previous.value, "reason": reason}
        )

    logger.info(f"RFQ {rfq.rfq_number} cancelled", extra={"rfq_id": rfq_id})
    audit_logger.log("cancel_rfq", entity_type="rfq", entity_id=rfq_id, rfq_id=rfq_id,
                     details={"reason": reason})
    return rfq


# ============= SCOPE =============

def add_scope_item(
    db: Session,
    rfq_id: int,
    description: Optional[str] = None,
    service_module_ref: Optional[str] = None,
    template_ref: Optional[str] = None,
    quantity: int = 1,
    technical_requirements: Optional[str] = None,
) -> RfqScopeItem:
    if quantity is None or quantity < 1:
        raise ValidationError("quantity must be at least 1", {"field": "quantity", "value": quantity})

    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_status(rfq, {RFQStatus.DRAFT}, "change_scope")
        item = RfqScopeItem(
            rfq_id=rfq.id,
            description=description,
            service_module_ref=service_module_ref,
            template_ref=template_ref,
            quantity=quantity,
            technical_requirements=technical_requirements,
        )
        repo.add(item)
        repo.flush()
        repo.record_activity("rfq", rfq.id, "scope_item_added", {"scope_item_id": item.id})
    return item


def remove_scope_item(db: Session, item_id: int) -> None:
    repo = SourcingRepository(db)
    with repo.transaction():
        item = repo.get_scope_item(item_id)
        rfq = repo.lock_rfq(item.rfq_id)
        require_status(rfq, {RFQStatus.DRAFT}, "change_scope")
        repo.delete(item)
        repo.record_activity("rfq", rfq.id, "scope_item_removed", {"scope_item_id": item_id})


# ============= INVITATIONS =============

def invite_supplier(db: Session, rfq_id: int, supplier_id: int) -> RfqInvitation:
    """Invite a registered, active supplier to a draft RFQ."""
    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_status(rfq, {RFQStatus.DRAFT}, "invite_supplier")

        supplier = repo.get_supplier(supplier_id)
        if not supplier.is_active:
            raise ValidationError(
                f"Supplier {supplier_id} is inactive", {"supplier_id": supplier_id}
            )
        if repo.find_invitation(rfq.id, supplier_id) is not None:
            raise ValidationError(
                "Supplier already invited to this RFQ",
                {"rfq_id": rfq.id, "supplier_id": supplier_id},
            )

        invitation = RfqInvitation(
            rfq_id=rfq.id,
            supplier_id=supplier_id,
            invited_at=utcnow(),
            status=InvitationStatus.PENDING,
        )
        repo.add(invitation)
        repo.flush()
        repo.record_activity(
            "rfq", rfq.id, "supplier_invited",
            {"supplier_id": supplier_id, "supplier_name": supplier.name},
        )

    audit_logger.log("invite_supplier", entity_type="rfq_invitation", entity_id=invitation.id,
                     rfq_id=rfq_id, supplier_id=supplier_id)
    return invitation


def remove_invitation(db: Session, invitation_id: int) -> None:
    repo = SourcingRepository(db)
    with repo.transaction():
        invitation = repo.get_invitation(invitation_id)
        rfq = repo.lock_rfq(invitation.rfq_id)
        require_status(rfq, {RFQStatus.DRAFT}, "remove_invitation")
        supplier_id = invitation.supplier_id
        repo.delete(invitation)
        repo.record_activity("rfq", rfq.id, "supplier_uninvited", {"supplier_id": supplier_id})

    audit_logger.log("remove_invitation", entity_type="rfq_invitation", entity_id=invitation_id,
                     rfq_id=rfq.id, supplier_id=supplier_id)


def decline_invitation(db: Session, invitation_id: int, reason: Optional[str] = None) -> RfqInvitation:
    """Record a supplier turning down a sent RFQ. A declined supplier cannot quote."""
    repo = SourcingRepository(db)
    with repo.transaction():
        invitation = repo.get_invitation(invitation_id)
        rfq = repo.lock_rfq(invitation.rfq_id)
        require_status(rfq, OPEN_RFQ_STATUSES, "decline_invitation")
        if invitation.status not in (InvitationStatus.PENDING, InvitationStatus.VIEWED):
            raise ValidationError(
                f"Invitation is {invitation.status.value} and can no longer be declined",
                {"invitation_id": invitation.id, "status": invitation.status.value},
            )

        invitation.status = InvitationStatus.DECLINED
        invitation.decline_reason = reason
        invitation.responded_at = utcnow()
        repo.record_activity(
            "rfq", rfq.id, "supplier_declined",
            {"supplier_id": invitation.supplier_id, "reason": reason},
        )

    audit_logger.log("decline_invitation", entity_type="rfq_invitation", entity_id=invitation_id,
                     rfq_id=invitation.rfq_id, supplier_id=invitation.supplier_id,
                     details={"reason": reason})
    return invitation


# ============= QUOTES =============

def submit_quote(
    db: Session,
    rfq_id: int,
    supplier_id: int,
    total_price: Any,
    currency: Optional[str] = None,
    delivery_days: Optional[int] = None,
    validity_days: Optional[int] = None,
    quality_score: Optional[Any] = None,
    compliance_score: Optional[Any] = None,
    esg_score: Optional[Any] = None,
    price_breakdown: Optional[list] = None,
    sla_terms: Optional[str] = None,
    notes: Optional[str] = None,
    supplier_notes: Optional[str] = None,
) -> RfqQuote:
    """
    Record an invited supplier's bid.

    A supplier bids once per RFQ; a second submission is rejected and the
    caller must use revise_quote instead.
    """
    values = _validate_quote_values({
        "total_price": total_price,
        "currency": currency or settings.RFQ_DEFAULT_CURRENCY,
        "delivery_days": delivery_days,
        "validity_days": settings.RFQ_DEFAULT_VALIDITY_DAYS if validity_days is None else validity_days,
        "quality_score": quality_score,
        "compliance_score": compliance_score,
        "esg_score": esg_score,
        "price_breakdown": price_breakdown or [],
        "sla_terms": sla_terms,
        "notes": notes,
        "supplier_notes": supplier_notes,
    })

    repo = SourcingRepository(db)
    with repo.transaction():
        rfq = repo.lock_rfq(rfq_id)
        require_status(rfq, OPEN_RFQ_STATUSES, "submit_quote")

        invitation = repo.find_invitation(rfq.id, supplier_id)
        if invitation is None:
            repo.get_supplier(supplier_id)
            raise ValidationError(
                "Supplier was not invited to this RFQ",
                {"rfq_id": rfq.id, "supplier_id": supplier_id},
            )
        if invitation.status == InvitationStatus.DECLINED:
            raise ValidationError(
                "Supplier declined this RFQ",
                {"rfq_id": rfq.id, "supplier_id": supplier_id},
            )

        existing = repo.find_quote(rfq.id, supplier_id)
        if existing is not None:
            raise ValidationError(
                "Supplier already submitted a quote for this RFQ; revise the existing quote instead",
                {"rfq_id": rfq.id, "supplier_id": supplier_id, "quote_id": existing.id},
            )

        now = utcnow()
        number = repo.next_sequence_value("quote")
        quote = RfqQuote(
            quote_number=_format_number(settings.QUOTE_NUMBER_PREFIX, number),
            rfq_id=rfq.id,
            supplier_id=supplier_id,
            status=QuoteStatus.SUBMITTED,
            submitted_at=now,
            **values,
        )
        repo.add(quote)

        invitation.status = InvitationStatus.QUOTED
        invitation.responded_at = now

        repo.flush()
        repo.record_activity(
            "rfq", rfq.id, "quote_submitted",
            {"quote_id": quote.id, "supplier_id": supplier_id, "total_price": str(quote.total_price)},
        )

    audit_logger.log("submit_quote", entity_type="rfq_quote", entity_id=quote.id,
                     rfq_id=rfq_id, supplier_id=supplier_id,
                     details={"total_price": str(quote.total_price), "currency": quote.currency})
    return quote


def revise_quote(db: Session, quote_id: int, changes: Dict[str, Any]) -> RfqQuote:
    """
    Replace terms of a submitted quote.

    Price scores are relative to the whole quote set, so scores and ranks
    of every quote on the RFQ are cleared until benchmarks are recalculated.
    """
    unknown = set(changes) - set(QUOTE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Fields cannot be revised: {', '.join(sorted(unknown))}", {"fields": sorted(unknown)}
        )
    values = _validate_quote_values(changes)

    repo = SourcingRepository(db)
    with repo.transaction():
        quote = repo.get_quote(quote_id)
        rfq = repo.lock_rfq(quote.rfq_id)
        require_status(rfq, OPEN_RFQ_STATUSES, "revise_quote")
        if quote.status != QuoteStatus.SUBMITTED:
            raise ValidationError(
                f"Quote is {quote.status.value} and can no longer be revised",
                {"quote_id": quote.id, "status": quote.status.value},
            )

        repo.clear_rankings(rfq.id)
        for key, value in values.items():
            setattr(quote, key, value)
        quote.updated_at = utcnow()
        repo.record_activity(
            "rfq", rfq.id, "quote_revised", {"quote_id": quote.id, "fields": sorted(values)}
        )

    audit_logger.log("revise_quote", entity_type="rfq_quote", entity_id=quote_id,
                     rfq_id=quote.rfq_id, supplier_id=quote.supplier_id,
                     details={"fields": sorted(values)})
    return quote


# ============= READ ACCESSORS =============

def get_rfq(db: Session, rfq_id: int) -> Rfq:
    return SourcingRepository(db).get_rfq(rfq_id)


def get_rfq_detail(db: Session, rfq_id: int) -> RfqDetail:
    repo = SourcingRepository(db)
    rfq = repo.get_rfq(rfq_id)
    return RfqDetail(
        rfq=rfq,
        scope_items=repo.list_scope_items(rfq_id),
        invitations=repo.list_invitations(rfq_id),
        quotes=repo.list_quotes(rfq_id),
    )


def list_rfqs(
    db: Session,
    status: Optional[RFQStatus] = None,
    customer_ref: Optional[str] = None,
    category_ref: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Rfq]:
    return SourcingRepository(db).list_rfqs(
        status=status, customer_ref=customer_ref, category_ref=category_ref,
        limit=limit, offset=offset,
    )


def list_invitations(db: Session, rfq_id: int) -> List[RfqInvitation]:
    repo = SourcingRepository(db)
    repo.get_rfq(rfq_id)
    return repo.list_invitations(rfq_id)


def list_quotes(db: Session, rfq_id: int) -> List[RfqQuote]:
    repo = SourcingRepository(db)
    repo.get_rfq(rfq_id)
    return repo.list_quotes(rfq_id)


def get_quote(db: Session, quote_id: int) -> RfqQuote:
    return SourcingRepository(db).get_quote(quote_id)


def list_activity(db: Session, rfq_id: int, limit: int = 100) -> List[ActivityLog]:
    return SourcingRepository(db).list_activity("rfq", rfq_id, limit=limit)
