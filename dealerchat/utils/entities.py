"""
Entity extraction from free-form chat text.
Pulls email, phone, name, budget, daily distance and model of interest with
regexes. Every field is extracted independently: a field that fails or does
not match is simply left out.
"""
import logging
import re
from typing import Callable, Optional

from dealerchat.schemas.pipeline import ExtractedEntities
from dealerchat.utils.intent import detect_model_mention
from dealerchat.utils.phone import digits_only, last_ten_digits, normalize_mx_phone

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

# Tried in order; first that cleans to 10 digits wins
PHONE_PATTERNS = [
    re.compile(r"\+52\s?(\d{10})"),                    # +52 8112345678
    re.compile(r"(\d{2})[-.\s]?(\d{4})[-.\s]?(\d{4})"),  # 81-1234-5678
    re.compile(r"(\d{3})[-.\s]?(\d{3})[-.\s]?(\d{4})"),  # 811-123-4567
    re.compile(r"(\d{10})"),                             # 8112345678
]

_WORD = r"[A-ZÁÉÍÓÚÑ'][a-záéíóúñ]+"

NAME_PATTERNS = [
    re.compile(rf"(?:\bme\s*llamo|\bmi\s*nombre\s*es|\bsoy)\s+({_WORD}(?:\s+{_WORD})*)", re.IGNORECASE),
    re.compile(rf"minombre\s+(?:es\s+)?({_WORD}(?:\s+{_WORD})*)", re.IGNORECASE),
    # Bare name on its own: 2-4 capitalized words, case-sensitive
    re.compile(rf"^({_WORD}(?:\s+{_WORD}){{1,3}})$"),
    re.compile(rf"nombre:?\s*({_WORD}(?:\s+{_WORD})*)", re.IGNORECASE),
]

# A name capture stops at the first of these
NAME_STOP_WORDS = {
    "y", "e", "de", "del", "mi", "me", "quiero", "queria", "quería", "busco",
    "tengo", "necesito", "estoy", "interesa", "interesado", "interesada",
    "con", "para", "por", "en", "el", "la", "los", "las", "un", "una", "al",
    "a", "que", "pero", "es", "tel", "cel", "celular", "telefono", "teléfono",
    "numero", "número", "correo", "email", "gracias", "hola", "buenas", "buenos",
}

BUDGET_PATTERN = re.compile(r"(\d{3,}(?:,?\d{3})*)\s*(mil|pesos|mxn)", re.IGNORECASE)
DAILY_KM_PATTERN = re.compile(r"(\d+)\s*(?:km|kilómetros|kilometros)", re.IGNORECASE)

LEAD_DATA_BLOCK = re.compile(r"\[LEAD_DATA\]([\s\S]*?)\[/LEAD_DATA\]", re.IGNORECASE)
LEAD_DATA_STRIP = re.compile(r"\n?\[LEAD_DATA\][\s\S]*?\[/LEAD_DATA\]\n?", re.IGNORECASE)


def _field(block: str, label: str) -> Optional[str]:
    found = re.search(rf"{label}:[ \t]*(.+)", block, re.IGNORECASE)
    if not found:
        return None
    value = found.group(1).strip()
    return value or None


def extract_email(message: str) -> Optional[str]:
    found = EMAIL_PATTERN.search(message)
    return found.group(0).lower() if found else None


def extract_phone(message: str) -> Optional[str]:
    for pattern in PHONE_PATTERNS:
        found = pattern.search(message)
        if found:
            phone = normalize_mx_phone(found.group(0))
            if phone:
                return phone
    return None


def _clean_name(raw: str) -> Optional[str]:
    words = []
    for word in raw.split():
        if word.lower() in NAME_STOP_WORDS:
            break
        words.append(word[:1].upper() + word[1:].lower())
    return " ".join(words) or None


def extract_name(message: str) -> Optional[str]:
    stripped = message.strip()
    for pattern in NAME_PATTERNS:
        found = pattern.search(stripped)
        if found:
            name = _clean_name(found.group(1))
            if name:
                return name
    return None


def extract_budget(message: str) -> Optional[int]:
    found = BUDGET_PATTERN.search(message)
    if not found:
        return None
    budget = int(found.group(1).replace(",", ""))
    if found.group(2).lower() == "mil":
        budget *= 1000
    return budget


def extract_daily_km(message: str) -> Optional[int]:
    found = DAILY_KM_PATTERN.search(message)
    return int(found.group(1)) if found else None


_EXTRACTORS: list[tuple[str, Callable[[str], object]]] = [
    ("email", extract_email),
    ("phone", extract_phone),
    ("name", extract_name),
    ("budget", extract_budget),
    ("daily_km", extract_daily_km),
    ("model_interest", detect_model_mention),
]


def extract_entities(message: str) -> ExtractedEntities:
    """Run every extractor over the message. Never raises."""
    found = {}
    for field, extractor in _EXTRACTORS:
        try:
            value = extractor(message or "")
        except Exception as e:
            logger.warning("Entity extraction failed for %s: %s", field, str(e))
            continue
        if value is not None:
            found[field] = value
    return ExtractedEntities(**found)


def parse_lead_data_block(reply: str) -> tuple[ExtractedEntities, str]:
    """
    Read the [LEAD_DATA] block the AI appends when it picks up contact details.
    Returns (entities, reply with the block removed). Values that are still the
    "(...)" placeholders from the prompt are ignored, and phones with fewer than
    10 digits are dropped.
    """
    match = LEAD_DATA_BLOCK.search(reply or "")
    if not match:
        return ExtractedEntities(), (reply or "").strip()

    block = match.group(1)
    data = {}

    name = _field(block, "nombre")
    if name and "(" not in name:
        data["name"] = name

    phone = _field(block, "telefono") or _field(block, "teléfono")
    if phone and "(" not in phone:
        cleaned = last_ten_digits(phone)
        if cleaned:
            data["phone"] = cleaned
        elif digits_only(phone):
            logger.info("Dropping short phone from AI lead data (%d digits)", len(digits_only(phone)))

    email = _field(block, "email")
    if email and "@" in email:
        data["email"] = email.lower()

    model = _field(block, "modelo")
    if model and "(" not in model:
        data["model_interest"] = model

    clean_reply = LEAD_DATA_STRIP.sub("", reply, count=1).strip()
    return ExtractedEntities(**data), clean_reply
