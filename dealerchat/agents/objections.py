"""
Objection handler - scripted rebuttals for common sales objections.
Zero AI tokens. Categories are checked in declaration order and the first
category with a matching pattern wins. When a category has more than one
rebuttal, one is picked uniformly at random.
"""
import logging
import random
import re
from dataclasses import dataclass
from typing import Optional

from dealerchat.schemas.pipeline import ObjectionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rebuttal:
    response_type: str
    response: str


@dataclass(frozen=True)
class Objection:
    objection_type: str
    patterns: tuple[re.Pattern, ...]
    rebuttals: tuple[Rebuttal, ...]
    follow_up: str


def _compile(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


OBJECTIONS: list[Objection] = [
    Objection(
        objection_type="precio_alto",
        patterns=_compile(
            r"muy caro|costoso|no me alcanza|fuera de presupuesto|mucho dinero",
            r"no tengo para|muy alto el precio|demasiado caro",
            r"no puedo pagar|precio elevado",
        ),
        rebuttals=(
            Rebuttal("reframe_value", (
                "Entiendo tu preocupación. Pero déjame mostrarte algo interesante...\n\n"
                "**Un BYD se paga solo con el ahorro en gasolina:**\n"
                "- Gasolina promedio: $4,500/mes\n"
                "- Electricidad BYD: $800/mes\n"
                "- **Ahorro mensual: $3,700**\n\n"
                "En 3 años son **$133,200 de ahorro** - casi el enganche de un auto nuevo.\n\n"
                "¿Cuántos km recorres al día? Te calculo tu ahorro exacto."
            )),
            Rebuttal("social_proof", (
                "Te comparto algo: El 78% de nuestros clientes pensaron lo mismo al principio.\n\n"
                "Pero cuando calcularon:\n"
                "- $0 en gasolina\n"
                "- $0 en afinaciones\n"
                "- $0 en cambios de aceite\n"
                "- Verificación exenta\n\n"
                "Se dieron cuenta que **el BYD les sale más barato que su auto actual**.\n\n"
                "¿Te gustaría que calculemos tus números reales?"
            )),
        ),
        follow_up="¿Cuál es tu presupuesto mensual actual en gasolina y mantenimiento?",
    ),
    Objection(
        objection_type="autonomia",
        patterns=_compile(
            r"no alcanza|poca autonomía|se queda sin batería|no llega",
            r"muy poca distancia|kilómetros insuficientes",
            r"miedo.*quedar.*varado|ansiedad.*rango",
        ),
        rebuttals=(
            Rebuttal("education", (
                "¡Excelente pregunta! Te cuento un dato interesante:\n\n"
                "**El mexicano promedio recorre 40 km al día.**\n\n"
                "Nuestro modelo más básico, el Dolphin Mini, tiene **380 km de autonomía**.\n\n"
                "Es decir, podrías manejar **9 días seguidos** sin cargar.\n\n"
                "Además, cargando en casa durante la noche, **siempre sales con tanque lleno**.\n\n"
                "¿Cuántos km haces tú al día?"
            )),
            Rebuttal("testimonial", (
                "Te comparto la experiencia de Carlos, cliente nuestro:\n\n"
                "*\"Tenía el mismo miedo. Ahora con mi Seal llevo 8 meses y NUNCA me he "
                "quedado varado. Cargo en mi casa cada 3-4 días y listo.\"*\n\n"
                "La realidad es que el 95% del tiempo cargas en casa, como cargar tu celular.\n\n"
                "¿Te gustaría una prueba de manejo para experimentarlo?"
            )),
        ),
        follow_up=(
            "¿Qué rutas haces normalmente? Te confirmo si el modelo que te interesa "
            "las cubre sin problema."
        ),
    ),
    Objection(
        objection_type="carga",
        patterns=_compile(
            r"dónde cargo|no hay cargadores|infraestructura",
            r"tarda mucho en cargar|tiempo de carga",
            r"no tengo donde cargar|departamento|edificio",
        ),
        rebuttals=(
            Rebuttal("solution", (
                "La carga es más simple de lo que parece:\n\n"
                "**OPCIÓN 1 - Casa (90% de los usuarios):**\n"
                "- Enchufe normal: carga nocturna completa\n"
                "- Cargador L2: 4-6 horas\n\n"
                "**OPCIÓN 2 - Carga rápida:**\n"
                "- 30% a 80% en 30 minutos\n"
                "- En centros comerciales, supermercados, gasolineras\n\n"
                "**OPCIÓN 3 - Trabajo:**\n"
                "- Muchas empresas ya tienen estaciones\n\n"
                "¿Tienes estacionamiento propio o rentas?"
            )),
        ),
        follow_up="¿Dónde estacionas tu auto actualmente?",
    ),
    Objection(
        objection_type="comparacion",
        patterns=_compile(
            r"tesla|nissan leaf|bmw|mercedes|audi",
            r"otra marca|competencia|mejor opción",
            r"por qué byd|qué tiene de especial",
        ),
        rebuttals=(
            Rebuttal("differentiation", (
                "BYD vs la competencia - los hechos:\n\n"
                "**vs Tesla:**\n"
                "- BYD: 6+8 años garantía | Tesla: 4+8 años\n"
                "- BYD: Servicio en México | Tesla: Limitado\n"
                "- BYD: Precio 30-40% menor | Tesla: Premium\n\n"
                "**vs Nissan Leaf:**\n"
                "- BYD: Blade Battery (más segura) | Leaf: Batería convencional\n"
                "- BYD: Mayor autonomía | Leaf: 270 km máx\n\n"
                "**DATO CLAVE:** BYD es el #1 mundial en vehículos eléctricos, "
                "superando a Tesla en 2023.\n\n"
                "¿Qué es lo más importante para ti en un auto?"
            )),
        ),
        follow_up="¿Has probado algún eléctrico antes?",
    ),
    Objection(
        objection_type="tiempo",
        patterns=_compile(
            r"no es buen momento|después|más adelante|lo pienso",
            r"todavía no|ahorita no|luego|cuando pueda",
            r"necesito tiempo|déjame pensarlo",
        ),
        rebuttals=(
            Rebuttal("urgency", (
                "Entiendo que es una decisión importante. Solo te comparto algo:\n\n"
                "**Los precios de BYD han aumentado** debido a la alta demanda.\n\n"
                "Además, **las promociones del mes están activas:**\n"
                "- Bonificación especial de contado\n"
                "- Tasa preferencial en financiamiento\n"
                "- Cargador L2 de regalo en modelos seleccionados\n\n"
                "No te presiono, pero sí te recomiendo al menos **apartar tu lugar** "
                "con los precios actuales.\n\n"
                "¿Qué te detiene específicamente?"
            )),
            Rebuttal("cost_of_waiting", (
                "Mientras lo piensas, te comparto un cálculo rápido:\n\n"
                "**Cada mes que esperas:**\n"
                "- Gastas ~$4,500 en gasolina\n"
                "- ~$500 en mantenimiento promedio\n"
                "- Total: $5,000/mes\n\n"
                "**En 6 meses = $30,000** que podrían ir a tu enganche.\n\n"
                "¿Qué información adicional necesitas para tomar la decisión?"
            )),
        ),
        follow_up="¿Hay algo específico que te gustaría aclarar antes de decidir?",
    ),
    Objection(
        objection_type="confianza_marca",
        patterns=_compile(
            r"no conozco byd|marca china|desconfianza|no confío",
            r"qué tan buena|es confiable|calidad china",
            r"nunca he escuchado|marca nueva",
        ),
        rebuttals=(
            Rebuttal("credibility", (
                "Te entiendo, la confianza se gana. Aquí los hechos sobre BYD:\n\n"
                "**HISTORIA:**\n"
                "- Fundada en 1995 (casi 30 años)\n"
                "- Originalmente fabricante de baterías\n"
                "- Proveedor de Apple, Samsung, Dell\n\n"
                "**RECONOCIMIENTOS 2023-2024:**\n"
                "- #1 mundial en vehículos eléctricos\n"
                "- Warren Buffett invirtió en BYD en 2008\n"
                "- Presente en 70+ países\n\n"
                "**EN MÉXICO:**\n"
                "- +2,000 unidades vendidas\n"
                "- Red de servicio establecida\n"
                "- 6 años garantía vehículo\n"
                "- 8 años garantía batería\n\n"
                "¿Te gustaría conocer testimonios de clientes en Monterrey?"
            )),
        ),
        follow_up="¿Has tenido oportunidad de ver un BYD en persona?",
    ),
    Objection(
        objection_type="financiamiento",
        patterns=_compile(
            r"no tengo enganche|sin dinero inicial|crédito malo",
            r"mensualidad muy alta|cuánto de enganche",
            r"no califico|historial crediticio",
        ),
        rebuttals=(
            Rebuttal("options", (
                "Tenemos varias opciones de financiamiento:\n\n"
                "**OPCIONES DISPONIBLES:**\n"
                "- Enganche desde 10%\n"
                "- Plazos de 12 a 60 meses\n"
                "- Tasa preferencial para clientes nuevos\n\n"
                "**IMPORTANTE:** Las opciones exactas dependen de tu perfil.\n\n"
                "Para darte una cotización real y ver las mejores opciones para ti, "
                "necesito hacerte unas preguntas rápidas.\n\n"
                "¿Me compartes tu nombre y teléfono para enviarte las opciones personalizadas?"
            )),
        ),
        follow_up="¿Tienes un presupuesto mensual en mente para la mensualidad?",
    ),
]


class ObjectionHandler:
    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self._objections = OBJECTIONS

    def handle_objection(self, message: str) -> Optional[ObjectionResult]:
        normalized = (message or "").lower()
        for objection in self._objections:
            if any(pattern.search(normalized) for pattern in objection.patterns):
                rebuttal = self._rng.choice(objection.rebuttals)
                logger.info("Objection detected: %s (%s)", objection.objection_type, rebuttal.response_type)
                return ObjectionResult(
                    detected=True,
                    objection_type=objection.objection_type,
                    response_type=rebuttal.response_type,
                    response=rebuttal.response,
                    follow_up=objection.follow_up,
                )
        return None

    def get_types(self) -> list[str]:
        return [o.objection_type for o in self._objections]


def personalize(response: str, name: Optional[str]) -> str:
    """Prefix the rebuttal with the lead's name: "Ana, entiendo tu..."."""
    if not name:
        return response
    return f"{name}, {response[:1].lower()}{response[1:]}"
