"""
Sales playbook tests - end-of-month urgency, promotions, closing techniques,
model suggestions.
"""
import random
from datetime import date

import pytest

from dealerchat.agents.sales_playbook import SalesPlaybook, catalog_key, format_date_es


def _playbook(day: date) -> SalesPlaybook:
    return SalesPlaybook(today=lambda: day, rng=random.Random(1))


class TestHelpers:
    def test_catalog_key(self):
        assert catalog_key("Dolphin Mini") == "dolphin-mini"
        assert catalog_key("sealion 7") == "sealion-7"
        assert catalog_key(None) is None

    def test_format_date_es(self):
        assert format_date_es(date(2026, 10, 31)) == "31 de octubre"


class TestUrgency:
    def test_days_remaining(self):
        playbook = _playbook(date(2026, 10, 19))
        assert playbook.end_of_month() == date(2026, 10, 31)
        assert playbook.days_remaining() == 12

    def test_february_leap_year(self):
        assert _playbook(date(2028, 2, 10)).end_of_month() == date(2028, 2, 29)

    def test_last_days_message(self):
        assert "ÚLTIMOS 2 DÍAS" in _playbook(date(2026, 10, 29)).urgency_message()

    def test_week_message(self):
        assert "terminan en 6 días" in _playbook(date(2026, 10, 25)).urgency_message()

    def test_default_message(self):
        assert _playbook(date(2026, 10, 1)).urgency_message() == "Aprovecha las promociones vigentes este mes."


class TestPromotions:
    def test_model_filter(self):
        playbook = _playbook(date(2026, 10, 19))
        assert len(playbook.get_active_promotions("Dolphin Mini")["promotions"]) == 2
        assert len(playbook.get_active_promotions("seal")["promotions"]) == 3
        assert len(playbook.get_active_promotions("shark")["promotions"]) == 1

    def test_no_model_lists_everything(self):
        result = _playbook(date(2026, 10, 19)).get_active_promotions()
        assert len(result["promotions"]) == 3
        assert result["end_date"] == "2026-10-31"
        assert result["days_remaining"] == 12


class TestClosingTechnique:
    def test_assumptive_after_handled_objection(self):
        result = _playbook(date(2026, 10, 19)).get_closing_technique(
            lead_score=75, objection_handled=True, model="seal",
        )
        assert result["technique"] == "assumptive"
        assert "{model}" not in result["phrase"]

    def test_urgency_on_price_intent(self):
        result = _playbook(date(2026, 10, 19)).get_closing_technique(lead_score=30, intent="cotizacion")
        assert result["technique"] == "urgency"
        assert "31 de octubre" in result["phrase"]

    def test_summary_on_long_conversation(self):
        result = _playbook(date(2026, 10, 19)).get_closing_technique(lead_score=30, message_count=8)
        assert result["technique"] == "summary"

    def test_none_otherwise(self):
        assert _playbook(date(2026, 10, 19)).get_closing_technique(lead_score=30) is None


class TestSuggestModel:
    def test_city_budget(self):
        result = _playbook(date(2026, 10, 19)).suggest_model(budget=450000, daily_km=40)
        assert result["name"] == "dolphin-mini"
        assert result["score"] == 55

    def test_long_commute_prefers_range(self):
        result = _playbook(date(2026, 10, 19)).suggest_model(budget=1_000_000, daily_km=300)
        assert result["name"] == "king"

    def test_family_use_case(self):
        result = _playbook(date(2026, 10, 19)).suggest_model(passengers=7, use_case="familiar")
        assert result["name"] == "sealion-7"


class TestStats:
    def test_stats(self):
        stats = _playbook(date(2026, 10, 19)).get_stats()
        assert stats["active_promotions"] == 3
        assert stats["days_remaining"] == 12
        assert stats["catalog_models"] == 7
