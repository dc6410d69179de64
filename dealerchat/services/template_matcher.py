"""
Template matcher - second layer of the chat pipeline.
Answers common questions (greeting, hours, location...) with fixed copy and
zero AI tokens.

Categories are scanned in declaration order and the first category with any
matching pattern wins, so order encodes priority between overlapping patterns.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from dealerchat.schemas.pipeline import TemplateMatch
from dealerchat.utils.templates import CANNED_ANSWERS, render_text

logger = logging.getLogger(__name__)

DEFAULT_BASE_CONFIDENCE = 0.8
COVERAGE_WEIGHT = 0.1
MIN_MESSAGE_LENGTH = 2


@dataclass
class TemplateEntry:
    category: str
    patterns: list[re.Pattern]
    response: str
    base_confidence: float = DEFAULT_BASE_CONFIDENCE


def _compile(*patterns: str) -> list[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# (category, patterns, base confidence) in priority order
TEMPLATE_PATTERNS: list[tuple[str, list[re.Pattern], float]] = [
    ("saludos", _compile(
        r"^(hola|hi|hello|hey|buenas|buenos días|buenas tardes|buenas noches)$",
        r"^(hola|hi|hello|hey)\s*(salma|byd|chatbot)?[\s!.]*$",
        r"^(buenos días|buenas tardes|buenas noches)[\s!.]*$",
    ), 0.8),
    ("horarios", _compile(
        r"horario|hora[s]?|abierto|cierran|atienden|qué horas",
        r"a qué hora|cuándo abren|cuándo cierran",
        r"están abiertos|horario de atención",
    ), 0.8),
    ("ubicacion", _compile(
        r"ubicación|dirección|dónde están|cómo llegar|donde|ubicados",
        r"showroom|sucursal|oficina|local",
        r"mapa|gps|coordenadas",
    ), 0.8),
    # Only when the whole catalog is requested
    ("modelos", _compile(
        r"^(qué|cuáles|cuales)\s+(modelos|vehículos|autos|carros)\s+(tienen|hay|manejan)",
        r"^(muéstrame|muestrame|dime)\s+(los|todos los)\s+(modelos|vehículos)",
        r"^(qué|que)\s+gama\s+tienen",
        r"^ver\s+(todos\s+los\s+)?modelos",
        r"^catálogo\s+(completo|de\s+vehículos)",
    ), 0.9),
    ("comparacion", _compile(
        r"comparar|diferencia|versus|vs|mejor que|cuál es mejor",
        r"ventajas|beneficios|por qué|qué ventaja",
        r"tesla|nissan|bmw|audi|mercedes",
    ), 0.8),
    ("despedida", _compile(
        r"gracias|thank you|te agradezco",
        r"adiós|adios|bye|hasta luego|nos vemos",
        r"ya me voy|me tengo que ir",
    ), 0.8),
    ("contacto", _compile(
        r"teléfono|celular|whatsapp|llamar|contacto",
        r"número|llamada|comunicar|hablar con alguien",
        r"asesor|vendedor|humano",
    ), 0.95),
    ("carga", _compile(
        r"carga|cargar|cargador|electricidad|enchufar",
        r"dónde cargar|estaciones|tiempo de carga",
        r"instalación|casa",
    ), 0.8),
]


class TemplateMatcher:
    """Ordered first-match-wins table of canned answers."""

    def __init__(self, variables: Optional[dict] = None):
        variables = variables or {}
        self._entries: list[TemplateEntry] = [
            TemplateEntry(
                category=category,
                patterns=patterns,
                response=render_text(CANNED_ANSWERS[category], **variables),
                base_confidence=base,
            )
            for category, patterns, base in TEMPLATE_PATTERNS
        ]
        logger.info("Template matcher loaded %d categories", len(self._entries))

    def match(self, message: str) -> Optional[TemplateMatch]:
        """Return the first matching category, or None."""
        normalized = message.lower().strip()
        if len(normalized) < MIN_MESSAGE_LENGTH:
            return None

        for entry in self._entries:
            for pattern in entry.patterns:
                found = pattern.search(normalized)
                if found:
                    logger.debug("Template match: %s -> %s", normalized[:50], entry.category)
                    return TemplateMatch(
                        category=entry.category,
                        response=entry.response,
                        confidence=self._confidence(normalized, found, entry.base_confidence),
                        pattern=pattern.pattern,
                    )
        return None

    @staticmethod
    def _confidence(message: str, found: re.Match, base: float) -> float:
        coverage = len(found.group(0)) / len(message)
        return min(base + coverage * COVERAGE_WEIGHT, 1.0)

    def find_similar(self, message: str) -> list[dict]:
        """
        Score every category by significant words (len > 3) the message shares
        with the category's response text. Diagnostic only, never used to answer.
        """
        message_words = message.lower().split()
        if not message_words:
            return []

        similarities = []
        for entry in self._entries:
            response_words = entry.response.lower().split()
            common = [
                word for word in message_words
                if len(word) > 3 and any(word in r_word for r_word in response_words)
            ]
            if common:
                similarities.append({
                    "category": entry.category,
                    "similarity": len(common) / len(message_words),
                    "common_words": common,
                })

        return sorted(similarities, key=lambda s: s["similarity"], reverse=True)

    def add_template(
        self,
        category: str,
        patterns: list[str],
        response: str,
        base_confidence: float = DEFAULT_BASE_CONFIDENCE,
    ) -> None:
        """Add a category, or replace it in place when it already exists."""
        entry = TemplateEntry(
            category=category,
            patterns=_compile(*patterns),
            response=response,
            base_confidence=base_confidence,
        )
        for i, existing in enumerate(self._entries):
            if existing.category == category:
                self._entries[i] = entry
                break
        else:
            self._entries.append(entry)
        logger.info("Template added: %s", category)

    def get_by_category(self, category: str) -> Optional[TemplateEntry]:
        for entry in self._entries:
            if entry.category == category:
                return entry
        return None

    def get_categories(self) -> list[str]:
        return [entry.category for entry in self._entries]

    def get_stats(self) -> dict:
        return {
            "total_categories": len(self._entries),
            "total_patterns": sum(len(e.patterns) for e in self._entries),
            "categories": {
                e.category: {
                    "pattern_count": len(e.patterns),
                    "response_length": len(e.response),
                }
                for e in self._entries
            },
        }
