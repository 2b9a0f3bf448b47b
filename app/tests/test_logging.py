"""
Tests for structured logging and the audit stream.
"""
import json
import logging
from unittest.mock import patch

from app.core.logging import AuditLogger, StructuredFormatter


def _record(message, **extra):
    record = logging.LogRecord("sourcing", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_emits_json_with_context_fields(self):
        payload = json.loads(StructuredFormatter().format(
            _record("RFQ sent", rfq_id=7, action="send", supplier_id=None)
        ))
        assert payload["message"] == "RFQ sent"
        assert payload["level"] == "INFO"
        assert payload["rfq_id"] == 7
        assert payload["action"] == "send"
        assert "supplier_id" not in payload

    def test_scrubs_secrets_from_message(self):
        payload = json.loads(StructuredFormatter().format(_record("connecting with password=hunter2")))
        assert "hunter2" not in payload["message"]
        assert "REDACTED" in payload["message"]

    def test_masks_password_in_database_url(self):
        payload = json.loads(StructuredFormatter().format(
            _record("Connecting to postgresql://sourcing:s3cret@db:5432/sourcing")
        ))
        assert "s3cret" not in payload["message"]
        assert "postgresql://sourcing:***REDACTED***@db:5432/sourcing" in payload["message"]


class TestAuditLogger:
    def test_log_passes_context_and_scrubs_details(self):
        audit = AuditLogger()
        with patch.object(audit.logger, "info") as mock_info:
            audit.log(
                "award_rfq", entity_type="rfq", entity_id=3, rfq_id=3, supplier_id=11,
                user_ref="buyer-2", details={"reason": "Best value", "token": "abc"},
            )

        message = mock_info.call_args[0][0]
        extra = mock_info.call_args[1]["extra"]
        assert message.startswith("AUDIT: award_rfq on rfq:3")
        assert "Best value" in message
        assert "abc" not in message
        assert extra["supplier_id"] == 11
        assert extra["user_ref"] == "buyer-2"
