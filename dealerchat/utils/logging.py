"""
Logging setup for the chat backend.

Production lines are single-line JSON: timestamp, level, correlation_id, module,
message, plus any pipeline fields passed via extra= (conversation_id, source...).
Development gets a plain one-line format instead.

Visitors type phone numbers into the chat, so every record passes through
PhoneRedactionFilter before it is formatted.
"""
import json
import logging
import re
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

from dealerchat.utils.phone import last_ten_digits, mask_phone

# Current request's correlation ID, set by the middleware in main.py
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

PIPELINE_FIELDS = ("conversation_id", "lead_id", "source", "provider", "category")

# 10 national digits, optionally split 2-4-4 / 3-3-4 and optionally +52 prefixed
PHONE_IN_TEXT = re.compile(
    r"(?<!\w)(?:\+?52[\s-]?)?(?:\d{10}|\d{2}[\s.-]\d{4}[\s.-]\d{4}|\d{3}[\s.-]\d{3}[\s.-]\d{4})(?!\w)"
)

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "anthropic", "openai")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    """UUID4 hex, 32 chars."""
    return uuid.uuid4().hex


def redact_phones(text: str) -> str:
    """8112345678 -> 811234****"""
    return PHONE_IN_TEXT.sub(lambda found: mask_phone(last_ten_digits(found.group(0))), text)


class PhoneRedactionFilter(logging.Filter):
    """Masks phone numbers in the rendered message and stamps the correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_phones(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        record.correlation_id = get_correlation_id() or "-"
        return True


class StructuredJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "correlation_id": get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in PIPELINE_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        # Spanish chat content stays readable
        return json.dumps(log_entry, default=str, ensure_ascii=False)


def configure_structured_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Install the root handler. Call once at startup, before any log calls."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.addFilter(PhoneRedactionFilter())
    stream_handler.setFormatter(
        StructuredJsonFormatter() if json_output else logging.Formatter(PLAIN_FORMAT)
    )
    root_logger.addHandler(stream_handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
