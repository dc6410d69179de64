"""
Abuse guard - first layer of the chat pipeline.
Rejects blocked senders, too-short messages, spam patterns, bursts and
repeated messages before any template, store or AI work happens.

State is process-local: sender timestamps, message fingerprints, violations
and blocks live in plain dicts. sweep() prunes them by rebuilding each map
from a snapshot and swapping it in.
"""
import hashlib
import logging
import math
import re
import time
from typing import Callable, Optional

from dealerchat.schemas.pipeline import AbuseCheck

logger = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 60
SENDER_RETENTION_SECONDS = 3600
VIOLATION_RETENTION_SECONDS = 86400

# Order matters: first match is reported. Ten-digit strings (phone numbers)
# must never match any of these.
SPAM_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"^a+$"), "Solo letras 'a' repetidas"),
    (re.compile(r"^[asdfgh]+$"), "Teclas aleatorias del teclado"),
    (re.compile(r"^[0-9]{1,5}$"), "Números muy cortos sin contexto"),
    (re.compile(r"^test$"), "Mensaje de prueba"),
    (re.compile(r"^prueba$"), "Mensaje de prueba en español"),
    (re.compile(r"^x+$"), "Solo letras 'x' repetidas"),
    (re.compile(r"^(.)\1{4,}$"), "Cualquier carácter repetido 5+ veces"),
    (re.compile(r"^[bcdfghjklmnpqrstvwxyz]{8,}$"), "Consonantes seguidas sin sentido"),
    (re.compile(r"^[.]{3,}$"), "Solo puntos repetidos"),
    (re.compile(r"^[!@#$%^&*()]+$"), "Solo símbolos sin texto"),
]

TEN_DIGITS = re.compile(r"^\d{10}$")


def normalize_message(message: str) -> str:
    return re.sub(r"\s+", " ", message.lower().strip())


def fingerprint(message: str) -> str:
    """First 16 hex chars of the MD5 of the normalized message."""
    return hashlib.md5(normalize_message(message).encode()).hexdigest()[:16]


def detect_spam_pattern(message: str) -> Optional[str]:
    """Return the description of the first spam pattern that matches, else None."""
    normalized = message.lower().strip()
    if TEN_DIGITS.match(normalized):
        return None
    for pattern, description in SPAM_PATTERNS:
        if pattern.search(normalized):
            return description
    return None


class AbuseGuard:
    """
    Per-sender abuse tracking.

    Checks run in a fixed order and the first failing check wins:
    block, length, spam pattern, rate limit, repeated message.
    Every rejection except the block check records a violation; reaching
    violations_before_block blocks the sender for block_duration_minutes.
    """

    def __init__(
        self,
        max_messages_per_minute: int = 5,
        max_repeated_messages: int = 3,
        min_message_length: int = 3,
        block_duration_minutes: int = 30,
        violations_before_block: int = 3,
        fingerprint_ttl_hours: int = 24,
        clock: Callable[[], float] = time.time,
    ):
        self.max_messages_per_minute = max_messages_per_minute
        self.max_repeated_messages = max_repeated_messages
        self.min_message_length = min_message_length
        self.block_duration_minutes = block_duration_minutes
        self.violations_before_block = violations_before_block
        self.fingerprint_ttl_hours = fingerprint_ttl_hours
        self._clock = clock

        # sender -> accepted message timestamps
        self._sender_messages: dict[str, list[float]] = {}
        # "conversation:hash" -> (count, last_seen)
        self._fingerprints: dict[str, tuple[int, float]] = {}
        # sender -> block expiry timestamp
        self._blocked: dict[str, float] = {}
        # sender -> [(violation_type, timestamp)]
        self._violations: dict[str, list[tuple[str, float]]] = {}

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.time) -> "AbuseGuard":
        return cls(
            max_messages_per_minute=settings.abuse_max_messages_per_minute,
            max_repeated_messages=settings.abuse_max_repeated_messages,
            min_message_length=settings.abuse_min_message_length,
            block_duration_minutes=settings.abuse_block_duration_minutes,
            violations_before_block=settings.abuse_violations_before_block,
            fingerprint_ttl_hours=settings.abuse_fingerprint_ttl_hours,
            clock=clock,
        )

    def check(self, sender_id: str, message: str, conversation_id: str) -> AbuseCheck:
        """
        Classify one inbound message.
        Fails open: any internal error lets the message through.
        """
        try:
            minutes_remaining = self._block_minutes_remaining(sender_id)
            if minutes_remaining > 0:
                return AbuseCheck(
                    is_abuse=True,
                    reason=f"IP bloqueada temporalmente. Tiempo restante: {minutes_remaining} minutos",
                    action="block",
                    source="ip_blocked",
                    block_minutes_remaining=minutes_remaining,
                )

            if len(message.strip()) < self.min_message_length:
                self._record_violation(sender_id, "mensaje_muy_corto")
                return AbuseCheck(
                    is_abuse=True,
                    reason=f"Mensaje demasiado corto (mínimo {self.min_message_length} caracteres)",
                    action="warn",
                    source="length_check",
                )

            spam = detect_spam_pattern(message)
            if spam:
                logger.info("Spam pattern from %s: %s", sender_id, spam)
                self._record_violation(sender_id, "patron_spam")
                return AbuseCheck(
                    is_abuse=True,
                    reason=f"Patrón de spam detectado: {spam}",
                    action="warn",
                    source="spam_pattern",
                )

            if self._rate_limit_exceeded(sender_id):
                self._record_violation(sender_id, "rate_limit")
                return AbuseCheck(
                    is_abuse=True,
                    reason=f"Demasiados mensajes por minuto (máximo {self.max_messages_per_minute})",
                    action="warn",
                    source="rate_limit",
                )

            repeat_count = self._count_repeat(message, conversation_id)
            if repeat_count > self.max_repeated_messages:
                self._record_violation(sender_id, "mensaje_repetido")
                return AbuseCheck(
                    is_abuse=True,
                    reason=(
                        f"Mensaje repetido demasiadas veces "
                        f"({repeat_count}/{self.max_repeated_messages})"
                    ),
                    action="warn",
                    source="repeated_message",
                )

            self._sender_messages.setdefault(sender_id, []).append(self._clock())
            return AbuseCheck(is_abuse=False, source="valid_message")

        except Exception as e:
            logger.error("Abuse check failed for %s: %s", sender_id, str(e), exc_info=True)
            return AbuseCheck(
                is_abuse=False,
                reason="Error interno en verificación",
                source="error_fallback",
            )

    def is_blocked(self, sender_id: str) -> bool:
        return self._block_minutes_remaining(sender_id) > 0

    def _block_minutes_remaining(self, sender_id: str) -> int:
        block_until = self._blocked.get(sender_id)
        if block_until is None:
            return 0
        now = self._clock()
        if now >= block_until:
            # Expired block also clears the violation history
            self._blocked.pop(sender_id, None)
            self._violations.pop(sender_id, None)
            logger.info("Block expired for %s", sender_id)
            return 0
        return max(1, math.ceil((block_until - now) / 60))

    def _rate_limit_exceeded(self, sender_id: str) -> bool:
        window_start = self._clock() - RATE_WINDOW_SECONDS
        recent = [ts for ts in self._sender_messages.get(sender_id, []) if ts > window_start]
        self._sender_messages[sender_id] = recent
        if len(recent) >= self.max_messages_per_minute:
            logger.warning(
                "Rate limit exceeded: sender=%s count=%d limit=%d",
                sender_id, len(recent), self.max_messages_per_minute,
            )
            return True
        return False

    def _count_repeat(self, message: str, conversation_id: str) -> int:
        key = f"{conversation_id}:{fingerprint(message)}"
        count, _ = self._fingerprints.get(key, (0, 0.0))
        count += 1
        self._fingerprints[key] = (count, self._clock())
        return count

    def _record_violation(self, sender_id: str, violation_type: str) -> None:
        violations = self._violations.setdefault(sender_id, [])
        violations.append((violation_type, self._clock()))
        logger.warning(
            "Violation recorded: sender=%s type=%s total=%d",
            sender_id, violation_type, len(violations),
        )
        if len(violations) >= self.violations_before_block:
            self._blocked[sender_id] = self._clock() + self.block_duration_minutes * 60
            logger.warning(
                "Sender %s blocked for %d minutes after %d violations",
                sender_id, self.block_duration_minutes, len(violations),
            )

    def sweep(self) -> dict:
        """
        Prune stale entries from every map.
        Each map is rebuilt from a snapshot and swapped in whole.
        Returns how many entries were dropped per map.
        """
        now = self._clock()
        sender_cutoff = now - SENDER_RETENTION_SECONDS
        violation_cutoff = now - VIOLATION_RETENTION_SECONDS
        fingerprint_cutoff = now - self.fingerprint_ttl_hours * 3600

        senders_snapshot = dict(self._sender_messages)
        fingerprints_snapshot = dict(self._fingerprints)
        violations_snapshot = dict(self._violations)
        blocked_snapshot = dict(self._blocked)

        senders = {}
        for sender_id, timestamps in senders_snapshot.items():
            recent = [ts for ts in timestamps if ts > sender_cutoff]
            if recent:
                senders[sender_id] = recent

        fingerprints = {
            key: entry
            for key, entry in fingerprints_snapshot.items()
            if entry[1] > fingerprint_cutoff
        }

        blocked = {
            sender_id: until
            for sender_id, until in blocked_snapshot.items()
            if until > now
        }
        # An expired block also clears the violation history
        unblocked = set(blocked_snapshot) - set(blocked)

        violations = {}
        for sender_id, entries in violations_snapshot.items():
            if sender_id in unblocked:
                continue
            recent = [entry for entry in entries if entry[1] > violation_cutoff]
            if recent:
                violations[sender_id] = recent

        self._sender_messages = senders
        self._fingerprints = fingerprints
        self._violations = violations
        self._blocked = blocked

        removed = {
            "senders": len(senders_snapshot) - len(senders),
            "fingerprints": len(fingerprints_snapshot) - len(fingerprints),
            "violations": len(violations_snapshot) - len(violations),
            "blocks": len(blocked_snapshot) - len(blocked),
        }
        logger.debug("Abuse guard sweep complete: %s", removed)
        return removed

    def get_stats(self) -> dict:
        return {
            "active_senders": len(self._sender_messages),
            "blocked_senders": len(self._blocked),
            "tracked_fingerprints": len(self._fingerprints),
            "senders_with_violations": len(self._violations),
            "config": {
                "max_messages_per_minute": self.max_messages_per_minute,
                "max_repeated_messages": self.max_repeated_messages,
                "min_message_length": self.min_message_length,
                "block_duration_minutes": self.block_duration_minutes,
                "violations_before_block": self.violations_before_block,
                "fingerprint_ttl_hours": self.fingerprint_ttl_hours,
            },
        }
