"""
Typed errors raised by the sourcing core.

The core never maps these to transport codes; the API layer registers
handlers for them in app.main.
"""
from typing import Any, Dict, Optional


class SourcingError(Exception):
    """Base class for every error the sourcing engine raises."""

    kind = "sourcing_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "detail": self.message, **self.details}


class NotFoundError(SourcingError):
    """Referenced RFQ, supplier, invitation or quote does not exist."""

    kind = "not_found"


class ValidationError(SourcingError):
    """A precondition of the requested operation is violated."""

    kind = "validation_error"


class InsufficientDataError(SourcingError):
    """Not enough quotes to benchmark."""

    kind = "insufficient_data"


class ConflictError(SourcingError):
    """The RFQ changed underneath the caller (lost race, lock timeout)."""

    kind = "conflict"
