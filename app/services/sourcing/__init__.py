"""
Supplier sourcing (RFQ) engine.
Invites suppliers, collects quotes, benchmarks and ranks them, and awards the RFQ.
"""
from .lifecycle import (
    RfqDetail,
    create_rfq,
    update_rfq,
    delete_rfq,
    set_status,
    send_rfq,
    cancel_rfq,
    add_scope_item,
    remove_scope_item,
    invite_supplier,
    remove_invitation,
    decline_invitation,
    submit_quote,
    revise_quote,
    get_rfq,
    get_rfq_detail,
    list_rfqs,
    list_invitations,
    list_quotes,
    get_quote,
    list_activity,
)
from .evaluation import calculate_benchmarks
from .award import award_rfq
from .repository import SourcingRepository

__all__ = [
    "RfqDetail",
    "SourcingRepository",
    "create_rfq",
    "update_rfq",
    "delete_rfq",
    "set_status",
    "send_rfq",
    "cancel_rfq",
    "add_scope_item",
    "remove_scope_item",
    "invite_supplier",
    "remove_invitation",
    "decline_invitation",
    "submit_quote",
    "revise_quote",
    "calculate_benchmarks",
    "award_rfq",
    "get_rfq",
    "get_rfq_detail",
    "list_rfqs",
    "list_invitations",
    "list_quotes",
    "get_quote",
    "list_activity",
]
