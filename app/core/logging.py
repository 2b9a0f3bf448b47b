"""
JSON logging for the sourcing service.

Every line carries the RFQ / supplier context passed via `extra`, so one RFQ's
history can be pulled out of the aggregated logs. Credentials that end up in a
message (connection strings, tokens) are masked.
"""
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional

from app.core.config import settings

_MASK = "***REDACTED***"

# key=value / key: value pairs whose value must not reach the logs
_SECRET_IN_TEXT = re.compile(r'(password|secret|token|authorization)[\"\']?\s*[:=]\s*[\"\']?[^\s,;\"\'}{]+', re.IGNORECASE)
# user:password@host in database URLs
_URL_PASSWORD = re.compile(r'(://[^:/@\s]+:)[^@\s]+@')

_SECRET_KEYS = frozenset({"password", "secret", "token", "authorization"})

# Record attributes copied into the JSON payload when a caller passes them via `extra`
_CONTEXT_FIELDS = ("action", "entity_type", "entity_id", "rfq_id", "supplier_id", "user_ref")


def _mask_text(text: str) -> str:
    text = _URL_PASSWORD.sub(rf'\1{_MASK}@', text)
    return _SECRET_IN_TEXT.sub(rf'\1={_MASK}', text)


def _mask_details(details: dict) -> dict:
    return {k: _MASK if k.lower() in _SECRET_KEYS else v for k, v in details.items()}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _mask_text(record.getMessage()),
        }
        entry.update(
            (name, getattr(record, name))
            for name in _CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info:
            entry["exception"] = _mask_text(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def setup_logging():
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    root_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class AuditLogger:
    """
    Audit trail for sourcing decisions.

    Emitted after the transaction commits, so a logged event always refers
    to persisted state. The activity_log table holds the same facts for
    in-app display; this stream is for log aggregation.
    """

    def __init__(self):
        self.logger = get_logger("audit")

    def log(
        self,
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        rfq_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        user_ref: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        message = f"AUDIT: {action}"
        if entity_type and entity_id:
            message += f" on {entity_type}:{entity_id}"
        if details:
            message += f" - {json.dumps(_mask_details(details), default=str)}"

        self.logger.info(message, extra={
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "rfq_id": rfq_id,
            "supplier_id": supplier_id,
            "user_ref": user_ref,
        })


audit_logger = AuditLogger()
