"""
Coarse intent detection and catalog model mentions.
Keyword-weighted: every keyword found adds its own length to the intent's
score, so longer phrases outweigh single words. Ties keep the intent
declared first.
"""
import re
from typing import Optional

from dealerchat.schemas.pipeline import IntentResult

INTENT_KEYWORDS: dict[str, list[str]] = {
    "cotizacion": ["cotización", "cotizar", "precio", "costo", "cuánto cuesta", "cuánto vale", "presupuesto"],
    "prueba_manejo": ["prueba de manejo", "probar", "manejar", "test drive", "conocer el auto", "verlo"],
    "comparacion": ["comparar", "diferencia", "versus", "vs", "mejor que", "cuál es mejor"],
    "objecion": ["caro", "costoso", "no me alcanza", "muy alto", "dudas", "no estoy seguro"],
    "informacion": ["información", "detalles", "especificaciones", "características", "autonomía"],
    "contacto": ["llámame", "contáctame", "whatsapp", "llamar", "hablar con alguien"],
    "financiamiento": ["enganche", "crédito", "mensualidad", "financiamiento", "pago"],
}

PREMIUM_INTENTS = {"cotizacion", "financiamiento"}

CATALOG_MODELS = ["dolphin mini", "seal", "sealion 7", "yuan pro", "king", "song plus", "shark"]


def _model_pattern(model: str) -> re.Pattern:
    words = [re.escape(w) for w in model.split()]
    return re.compile(r"\b" + r"[\s-]*".join(words) + r"\b", re.IGNORECASE)


# Longest names first so "sealion 7" wins over "seal"
_MODEL_PATTERNS: list[tuple[str, re.Pattern]] = [
    (model, _model_pattern(model))
    for model in sorted(CATALOG_MODELS, key=len, reverse=True)
]


def detect_model_mention(message: str) -> Optional[str]:
    """Return the catalog model named in the message, lowercase, or None."""
    for model, pattern in _MODEL_PATTERNS:
        if pattern.search(message or ""):
            return model
    return None


def detect_intent(message: str) -> IntentResult:
    normalized = (message or "").lower()
    best_intent = None
    best_score = 0

    for intent, keywords in INTENT_KEYWORDS.items():
        score = sum(len(keyword) for keyword in keywords if keyword in normalized)
        if score > best_score:
            best_score = score
            best_intent = intent

    return IntentResult(
        intent=best_intent,
        confidence=min(best_score / 20, 0.8) if best_score > 0 else 0.5,
        model_interest=detect_model_mention(message),
        requires_premium_info=best_intent in PREMIUM_INTENTS,
    )
