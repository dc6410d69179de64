"""
Tests for dealerchat/utils/logging.py - JSON lines, correlation ids and phone redaction.
"""
import json
import logging

import pytest

from dealerchat.utils.logging import (
    PhoneRedactionFilter,
    StructuredJsonFormatter,
    generate_correlation_id,
    redact_phones,
    set_correlation_id,
)


def _record(msg, *args, **extra):
    record = logging.LogRecord("dealerchat.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedactPhones:
    @pytest.mark.parametrize("text", [
        "mi número es 8112345678",
        "mi número es 81 1234 5678",
        "mi número es 811-234-5678",
        "mi número es +52 8112345678",
    ])
    def test_phone_masked(self, text):
        redacted = redact_phones(text)
        assert "5678" not in redacted
        assert "****" in redacted

    def test_short_numbers_untouched(self):
        assert redact_phones("quiero 500 mil pesos y 45 km") == "quiero 500 mil pesos y 45 km"

    def test_hex_ids_untouched(self):
        assert redact_phones("conversation a8112345678b") == "conversation a8112345678b"


class TestPhoneRedactionFilter:
    def test_rewrites_formatted_message(self):
        record = _record("Mensaje recibido: %s", "Soy Ana, 8112345678")
        assert PhoneRedactionFilter().filter(record) is True
        assert record.getMessage() == "Mensaje recibido: Soy Ana, 811234****"

    def test_stamps_correlation_id(self):
        set_correlation_id("cid-1")
        record = _record("hola")
        PhoneRedactionFilter().filter(record)
        assert record.correlation_id == "cid-1"


class TestStructuredJsonFormatter:
    def test_json_line_with_pipeline_fields(self):
        set_correlation_id("cid-2")
        record = _record("Reply via %s", "template", conversation_id="conv-1", source="template")
        entry = json.loads(StructuredJsonFormatter().format(record))
        assert entry["message"] == "Reply via template"
        assert entry["correlation_id"] == "cid-2"
        assert entry["conversation_id"] == "conv-1"
        assert entry["source"] == "template"
        assert entry["level"] == "INFO"

    def test_spanish_text_not_escaped(self):
        line = StructuredJsonFormatter().format(_record("¿Cuánto cuesta?"))
        assert "¿Cuánto cuesta?" in line


def test_correlation_id_is_uuid_hex():
    cid = generate_correlation_id()
    assert len(cid) == 32
    int(cid, 16)
