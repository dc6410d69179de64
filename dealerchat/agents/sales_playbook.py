"""
Sales playbook - monthly promotions, urgency copy, closing techniques and
catalog model suggestions. Used by the conductor for handoff offers and by the
prompt builder for the AI system prompt.
"""
import calendar
import logging
import random
from datetime import date
from typing import Callable, Optional

from dealerchat.utils.templates import render_text

logger = logging.getLogger(__name__)

MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

PROMOTIONS = [
    {
        "name": "Bono de Fin de Año",
        "description": "Bonificación especial en precio de lista",
        "models": ["all"],
        "value": "Hasta $50,000 MXN",
    },
    {
        "name": "Tasa Preferencial",
        "description": "Financiamiento con tasa especial",
        "models": ["dolphin-mini", "seal", "king"],
        "value": "Desde 9.9% anual",
    },
    {
        "name": "Cargador de Regalo",
        "description": "Cargador L2 incluido con tu compra",
        "models": ["seal", "sealion-7"],
        "value": "Valor $25,000 MXN",
    },
]

CLOSING_PHRASES = {
    "assumptive": [
        "¿Prefieres que agendemos tu prueba de manejo esta semana o la próxima?",
        "¿El modelo que más te interesa es el {model} o te gustaría comparar opciones?",
        "¿Te envío la cotización a tu correo o prefieres revisarla por WhatsApp?",
    ],
    "urgency": [
        "Las promociones actuales terminan el {end_date}. ¿Te aparto una unidad?",
    ],
    "summary": [
        "Basándome en lo que me has comentado, creo que el mejor modelo para ti sería...",
    ],
}

# model -> (starting budget MXN, range km, passengers, primary use)
MODEL_CATALOG = {
    "dolphin-mini": {"budget": 400000, "range": 380, "passengers": 4, "use": "ciudad"},
    "yuan-pro": {"budget": 500000, "range": 401, "passengers": 5, "use": "mixto"},
    "seal": {"budget": 900000, "range": 520, "passengers": 5, "use": "premium"},
    "sealion-7": {"budget": 800000, "range": 542, "passengers": 7, "use": "familiar"},
    "king": {"budget": 500000, "range": 1175, "passengers": 5, "use": "carretera"},
    "song-plus": {"budget": 600000, "range": 1001, "passengers": 5, "use": "familiar"},
    "shark": {"budget": 850000, "range": 840, "passengers": 5, "use": "trabajo"},
}

DEFAULT_DAILY_KM = 40
RANGE_DAYS_REQUIRED = 3


def catalog_key(model: Optional[str]) -> Optional[str]:
    """'Dolphin Mini' -> 'dolphin-mini'."""
    if not model:
        return None
    return "-".join(model.lower().split())


def format_date_es(day: date) -> str:
    return f"{day.day} de {MONTHS_ES[day.month - 1]}"


class SalesPlaybook:
    def __init__(
        self,
        today: Callable[[], date] = date.today,
        rng: Optional[random.Random] = None,
    ):
        self._today = today
        self._rng = rng or random.Random()

    def today(self) -> date:
        return self._today()

    def end_of_month(self) -> date:
        today = self._today()
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=last_day)

    def days_remaining(self) -> int:
        return max(0, (self.end_of_month() - self._today()).days)

    def urgency_message(self) -> str:
        days = self.days_remaining()
        if days <= 3:
            return f"**¡ÚLTIMOS {days} DÍAS!** Las promociones terminan muy pronto."
        if days <= 7:
            return f"Las promociones actuales terminan en {days} días."
        return "Aprovecha las promociones vigentes este mes."

    def get_active_promotions(self, model: Optional[str] = None) -> dict:
        key = catalog_key(model)
        promotions = [
            promo for promo in PROMOTIONS
            if "all" in promo["models"] or key is None or key in promo["models"]
        ]
        return {
            "promotions": promotions,
            "end_date": self.end_of_month().isoformat(),
            "days_remaining": self.days_remaining(),
            "urgency_message": self.urgency_message(),
        }

    def get_closing_technique(
        self,
        lead_score: int,
        objection_handled: bool = False,
        message_count: int = 0,
        intent: Optional[str] = None,
        model: Optional[str] = None,
    ) -> Optional[dict]:
        """Pick a closing technique for the AI to steer toward, or None."""
        if lead_score >= 70 and objection_handled:
            phrase = self._rng.choice(CLOSING_PHRASES["assumptive"])
            return {
                "technique": "assumptive",
                "phrase": render_text(phrase, model=(model or "modelo que elegiste").title()),
            }

        if intent in ("cotizacion", "financiamiento"):
            return {
                "technique": "urgency",
                "phrase": render_text(
                    CLOSING_PHRASES["urgency"][0],
                    end_date=format_date_es(self.end_of_month()),
                ),
            }

        if message_count >= 8:
            return {"technique": "summary", "phrase": CLOSING_PHRASES["summary"][0]}

        return None

    def suggest_model(
        self,
        budget: Optional[int] = None,
        daily_km: Optional[int] = None,
        passengers: Optional[int] = None,
        use_case: Optional[str] = None,
    ) -> Optional[dict]:
        """
        Score every catalog model against the customer's needs.
        Ties keep the model listed first.
        """
        needed_range = (daily_km or DEFAULT_DAILY_KM) * RANGE_DAYS_REQUIRED
        best = None
        best_score = 0

        for name, specs in MODEL_CATALOG.items():
            points = 0
            if budget and specs["budget"] <= budget:
                points += 30
            if budget and specs["budget"] <= budget * 0.8:
                points += 10
            if specs["range"] >= needed_range:
                points += 25
            if passengers and specs["passengers"] >= passengers:
                points += 20
            if use_case and specs["use"] == use_case:
                points += 25

            if points > best_score:
                best_score = points
                best = {"name": name, "specs": specs, "score": points}

        return best

    def get_stats(self) -> dict:
        return {
            "closing_techniques": len(CLOSING_PHRASES),
            "active_promotions": len(PROMOTIONS),
            "promotions_end_date": self.end_of_month().isoformat(),
            "days_remaining": self.days_remaining(),
            "catalog_models": len(MODEL_CATALOG),
        }
