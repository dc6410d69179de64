"""
Chat copy - every fixed message the assistant can send without calling the AI.
Copy is Spanish (the dealership is in Nuevo León). Templates use {variable}
substitution for dealership details; missing variables are left as-is.
"""
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# === CANNED ANSWERS (template layer) ===
# Keyed by template category; patterns live in services/template_matcher.py

CANNED_ANSWERS = {
    "saludos": (
        "¡Hola! Soy {assistant_name}, tu asesora virtual BYD.\n\n"
        "¿En qué puedo ayudarte hoy? Puedo informarte sobre:\n"
        "• Nuestros vehículos eléctricos e híbridos\n"
        "• Ubicación y horarios del showroom\n"
        "• Agendar una prueba de manejo\n"
        "• Calcular tus ahorros con BYD\n\n"
        "¡Pregúntame lo que necesites!"
    ),
    "horarios": (
        "**Horario de Atención - {dealership_name}**\n\n"
        "**Lunes a Sábado:** 9:00 AM - 7:00 PM\n\n"
        "{address}\n\n"
        "¡Te esperamos para conocer toda la línea BYD! ¿Te gustaría agendar una cita?"
    ),
    "ubicacion": (
        "**{dealership_name}**\n\n"
        "**Dirección:** {address}\n"
        "**Estacionamiento:** Gratuito disponible\n\n"
        "**Horarios:**\n"
        "• Lunes a Sábado: 9:00 AM - 7:00 PM\n\n"
        "¿Te gustaría agendar una cita para conocer los vehículos en persona?"
    ),
    "modelos": (
        "**LÍNEA COMPLETA BYD DISPONIBLE**\n\n"
        "**100% ELÉCTRICOS:**\n"
        "• **Dolphin Mini** - Compacto urbano (300-380 km autonomía)\n"
        "• **Seal** - Sedán premium (460-520 km autonomía)\n"
        "• **Sealion 7** - SUV familiar (542 km autonomía)\n"
        "• **Yuan Pro** - SUV compacto (401 km autonomía)\n\n"
        "**HÍBRIDOS ENCHUFABLES:**\n"
        "• **King** - Sedán ejecutivo (1,175 km autonomía total)\n"
        "• **Song Plus** - SUV mediano (1,001 km autonomía total)\n"
        "• **Shark** - Pickup 4x4 (840 km autonomía total)\n\n"
        "**Tecnología Blade Battery** - La batería más segura del mundo\n\n"
        "¿Cuál modelo te interesa conocer más a detalle?"
    ),
    "comparacion": (
        "**¿Por qué elegir BYD?**\n\n"
        "**TECNOLOGÍA LÍDER:**\n"
        "• Blade Battery - La batería más segura del mundo\n"
        "• 0-100% carga en casa durante la noche\n"
        "• Carga rápida: 30-80% en 30 minutos\n\n"
        "**GARANTÍA INCOMPARABLE:**\n"
        "• 6 años vehículo completo\n"
        "• 8 años batería\n"
        "• Red de servicio en México\n\n"
        "**RELACIÓN PRECIO-VALOR:**\n"
        "• Tecnología premium a precio accesible\n"
        "• Menores costos de mantenimiento\n"
        "• Ahorro significativo vs gasolina\n\n"
        "**RESPALDO GLOBAL:**\n"
        "• #1 mundial en vehículos eléctricos\n"
        "• Más de 20 años de experiencia en baterías\n\n"
        "¿Te gustaría conocer los ahorros específicos comparado con tu vehículo actual?"
    ),
    "despedida": (
        "¡Gracias por tu interés en BYD!\n\n"
        "**Recuerda que puedes:**\n"
        "• Calcular tus ahorros: {calculator_url}\n"
        "• Visitarnos en Guadalupe, N.L.\n"
        "• Escribirme cuando gustes\n\n"
        "**¡Estoy aquí para ayudarte cuando lo necesites!**\n\n"
        "¡Que tengas un excelente día y pronto manejes eléctrico!"
    ),
    "contacto": (
        "**Información de Contacto - {dealership_name}**\n\n"
        "WhatsApp: {whatsapp}\n"
        "Teléfono: {phone_display}\n\n"
        "{address}\n\n"
        "**Horarios:**\n"
        "Lunes a Sábado: 9:00 AM - 7:00 PM\n\n"
        "**¿Prefieres que un asesor humano te contacte?**\n"
        "Solo compárteme tu nombre y teléfono, y te llamaremos en unos minutos.\n\n"
        "¡También puedes seguir preguntándome aquí!"
    ),
    "carga": (
        "**Carga de Vehículos BYD**\n\n"
        "**EN CASA:**\n"
        "• Enchufe normal (110V): Carga nocturna completa\n"
        "• Cargador L2 (220V): 4-8 horas carga completa\n"
        "• Instalación incluida en algunos modelos\n\n"
        "**CARGA PÚBLICA:**\n"
        "• Electrify America, CFE, Voltra\n"
        "• Carga rápida DC: 30-80% en 30 minutos\n"
        "• Red en crecimiento en México\n\n"
        "**CARGA EN EL TRABAJO:**\n"
        "• Muchas empresas ya tienen estaciones\n\n"
        "**¿Te preocupa la carga?** ¡Es más fácil de lo que piensas!\n"
        "La mayoría carga solo en casa durante la noche.\n\n"
        "¿Tienes alguna situación específica de carga?"
    ),
}

# === ABUSE REPLIES ===
# Keyed by AbuseCheck.source; "default" covers length_check and anything new

ABUSE_TEMPLATES = {
    "ip_blocked": (
        "Tu IP está temporalmente bloqueada por actividad sospechosa.\n\n"
        "Tiempo restante: {minutes_remaining} minutos.\n\n"
        "Si crees que esto es un error, puedes contactarnos directamente:\n"
        "WhatsApp: {whatsapp}"
    ),
    "spam_pattern": (
        "Por favor, escribe un mensaje válido para poder ayudarte.\n\n"
        "Estoy aquí para responder tus preguntas sobre vehículos BYD eléctricos e híbridos.\n\n"
        "¿En qué puedo ayudarte hoy?"
    ),
    "rate_limit": (
        "Has enviado muchos mensajes muy rápido.\n\n"
        "Por favor espera un momento antes de enviar otro mensaje.\n\n"
        "Recuerda que puedes calcular tus ahorros en:\n"
        "{calculator_url}"
    ),
    "repeated_message": (
        "Has repetido el mismo mensaje varias veces.\n\n"
        "¿Podrías reformular tu pregunta o ser más específico sobre lo que necesitas?\n\n"
        "Estoy aquí para ayudarte con información sobre BYD."
    ),
    "default": (
        "Para mantener una conversación productiva, por favor envía mensajes "
        "claros y específicos.\n\n"
        "¿En qué puedo ayudarte con vehículos BYD?"
    ),
}

# === HANDOFF OFFERS ===

HANDOFF_TEMPLATES = {
    "hot": (
        "¡Excelente {name}!\n\n"
        "{urgency_message}\n\n"
        "Para darte la **cotización personalizada** con las promociones vigentes, "
        "te conecto con un asesor especialista que te dará:\n\n"
        "• Precio final con descuentos\n"
        "• Opciones de financiamiento a tu medida\n"
        "• Disponibilidad de unidades\n\n"
        "**¿Te llamamos ahora o prefieres WhatsApp?**\n\n"
        "Mientras tanto, calcula tu ahorro exacto:\n"
        "{calculator_url}"
    ),
    "standard": (
        "¡Perfecto! Ya tengo tus datos de contacto.\n\n"
        "Para darte información detallada de precios, financiamiento y promociones "
        "especiales, te voy a conectar con uno de nuestros asesores especialistas.\n\n"
        "**¿Prefieres que te llamemos o te enviamos la información por WhatsApp?**\n\n"
        "Mientras tanto, puedes calcular tus ahorros exactos en:\n"
        "{calculator_url}"
    ),
}

# === DEGRADED MODES ===

TEST_MODE_REPLY = (
    "Gracias por tu mensaje. Soy {assistant_name} de BYD.\n\n"
    "Para ayudarte mejor, ¿podrías compartirme tu nombre y teléfono?\n\n"
    "¡Tenemos excelentes opciones en vehículos eléctricos!\n\n"
    "(NOTA: Esta es una respuesta de prueba - configura ANTHROPIC_API_KEY "
    "para usar el asistente real)"
)

ERROR_FALLBACK_REPLY = (
    "Disculpa, tuve un problema técnico momentáneo.\n\n"
    "¿Podrías repetir tu pregunta? Estoy aquí para ayudarte con información "
    "sobre vehículos BYD.\n\n"
    "Si es urgente, también puedes contactarnos directamente:\n"
    "WhatsApp: {whatsapp}"
)

# === LEAD NOTIFICATION (SMS to the sales floor) ===

LEAD_NOTIFICATION_TEMPLATE = (
    "NUEVO LEAD BYD!\n"
    "Nombre: {name}\n"
    "Tel: {phone}{model_text}\n\n"
    "Ver en: {analytics_url}"
)

DEALERSHIP_ADDRESS = "Avenida las Américas Norte & Málaga, 67130 Guadalupe, N.L."


def dealership_variables(settings) -> dict:
    """Substitution values shared by every template."""
    digits = "".join(ch for ch in settings.dealership_whatsapp if ch.isdigit())[-10:]
    phone_display = f"({digits[:2]}) {digits[2:6]}-{digits[6:]}" if len(digits) == 10 else settings.dealership_whatsapp
    return {
        "assistant_name": settings.assistant_name,
        "dealership_name": settings.dealership_name,
        "whatsapp": settings.dealership_whatsapp,
        "phone_display": phone_display,
        "calculator_url": settings.calculator_url,
        "address": DEALERSHIP_ADDRESS,
    }


def render_template(
    template_key: str,
    category: str = "abuse",
    **kwargs,
) -> str:
    """
    Render a chat template with variable substitution.
    Unknown keys fall back to the category default, or the error apology.
    """
    templates = {
        "abuse": ABUSE_TEMPLATES,
        "handoff": HANDOFF_TEMPLATES,
        "canned": CANNED_ANSWERS,
    }

    category_templates = templates.get(category, {})
    template: Optional[str] = category_templates.get(template_key) or category_templates.get("default")

    if template is None:
        template = ERROR_FALLBACK_REPLY

    return render_text(template, **kwargs)


def render_text(text: str, **kwargs) -> str:
    """Substitute variables, leaving {missing} placeholders intact."""
    try:
        return text.format_map(SafeDict(kwargs))
    except Exception as e:
        logger.debug("Template rendering failed for key substitution: %s", str(e))
        return text


class SafeDict(dict):
    """Dict that returns '{key}' for missing keys instead of raising KeyError."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"
