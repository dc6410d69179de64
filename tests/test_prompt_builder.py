"""
System prompt tests - incomplete vs complete lead branches.
"""
from datetime import date

from dealerchat.prompts.sales_assistant import (
    PromptContext,
    build_system_prompt,
    format_today_es,
)
from dealerchat.schemas.pipeline import LeadScore

TODAY = date(2026, 10, 19)


def _context(**overrides) -> PromptContext:
    values = {"today": TODAY, "days_remaining": 12}
    values.update(overrides)
    return PromptContext(**values)


class TestFormatToday:
    def test_spanish_date(self):
        assert format_today_es(TODAY) == "lunes, 19 de octubre de 2026"


class TestIncompleteBranch:
    def test_first_message_not_critical(self):
        prompt = build_system_prompt(False, 0, _context())
        assert "CRÍTICO" not in prompt
        assert "ESCUCHA ACTIVA" in prompt
        assert "[LEAD_DATA]" in prompt
        assert "10 dígitos" in prompt

    def test_capture_required_from_threshold(self):
        prompt = build_system_prompt(False, 1, _context())
        assert "CRÍTICO" in prompt

    def test_custom_threshold(self):
        assert "CRÍTICO" not in build_system_prompt(False, 2, _context(capture_threshold=3))

    def test_embeds_catalog_and_date(self):
        prompt = build_system_prompt(False, 0, _context())
        assert "SEALION 7" in prompt
        assert "lunes, 19 de octubre de 2026" in prompt
        assert "Salma AI" in prompt


class TestCompleteBranch:
    def test_stops_asking_for_data(self):
        prompt = build_system_prompt(True, 3, _context(lead_name="Ana"))
        assert "Deja de pedir datos" in prompt
        assert "Ana" in prompt
        assert "https://salmabydriver.com/calculatusahorros" in prompt
        assert "CRÍTICO: Este es tu ÚLTIMO" not in prompt
        assert "[LEAD_DATA]" in prompt

    def test_default_name(self):
        assert "cliente" in build_system_prompt(True, 3, _context())


class TestUrgencyAndHints:
    def test_urgency_only_in_last_week(self):
        assert "URGENCIA" not in build_system_prompt(False, 0, _context(days_remaining=12))
        assert "URGENCIA" in build_system_prompt(False, 0, _context(days_remaining=5))
        assert "URGENCIA" in build_system_prompt(True, 0, _context(days_remaining=7))

    def test_sales_hints(self):
        prompt = build_system_prompt(
            True,
            4,
            _context(
                model_interest="seal",
                suggested_model="king",
                lead_score=LeadScore(score=85, category="hot"),
                closing_technique={"technique": "urgency", "phrase": "¿Te aparto una unidad?"},
            ),
        )
        assert "CONTEXTO DE VENTA" in prompt
        assert "Seal" in prompt
        assert "85/100 (hot)" in prompt
        assert "¿Te aparto una unidad?" in prompt

    def test_no_hints_without_context(self):
        assert "CONTEXTO DE VENTA" not in build_system_prompt(False, 0, _context())

    def test_default_context(self):
        assert "Salma AI" in build_system_prompt(False, 0)
