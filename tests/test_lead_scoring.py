"""
Lead scoring tests - point table, bands, categories, clamping, monotonicity.
"""
import pytest

from dealerchat.services.lead_scoring import (
    ConversationMeta,
    LeadData,
    categorize,
    score_lead,
)


class TestScoreLead:
    def test_empty_lead_is_cold(self):
        result = score_lead(LeadData(), ConversationMeta())
        assert result.score == 0
        assert result.category == "cold"
        assert result.needs_nurturing is True
        assert result.ready_to_buy is False

    def test_hot_lead_with_price_question(self):
        result = score_lead(
            LeadData(name="Ana", phone="8112345678"),
            ConversationMeta(message_count=10, intents=["cotizacion"]),
        )
        assert result.score >= 80
        assert result.category == "hot"
        assert result.ready_to_buy is True
        assert set(result.factors) == {"has_name", "has_phone", "high_engagement", "price_interest"}

    def test_message_bands_not_cumulative(self):
        five = score_lead(LeadData(), ConversationMeta(message_count=5))
        ten = score_lead(LeadData(), ConversationMeta(message_count=10))
        assert five.score == 10
        assert ten.score == 20

    def test_placeholder_email_scores_nothing(self):
        result = score_lead(
            LeadData(email="lead_1a2b3c4d@noemail.salmabydriver.com"),
            ConversationMeta(),
        )
        assert result.score == 0

    def test_real_email_scores(self):
        assert score_lead(LeadData(email="ana@mail.com"), ConversationMeta()).score == 15

    def test_model_and_budget(self):
        result = score_lead(
            LeadData(budget=500000),
            ConversationMeta(model_interest="seal"),
        )
        assert result.score == 35
        assert result.category == "cool"

    def test_clamped_to_100(self):
        result = score_lead(
            LeadData(name="Ana", phone="8112345678", email="ana@mail.com", budget=500000),
            ConversationMeta(
                message_count=12,
                intents=["cotizacion", "financiamiento", "prueba_manejo"],
                model_interest="seal",
            ),
        )
        assert result.score == 100

    def test_adding_signals_never_lowers_score(self):
        lead = LeadData()
        meta = ConversationMeta()
        previous = score_lead(lead, meta).score
        steps = [
            lambda l, m: (l.model_copy(update={"name": "Ana"}), m),
            lambda l, m: (l.model_copy(update={"phone": "8112345678"}), m),
            lambda l, m: (l, m.model_copy(update={"message_count": 5})),
            lambda l, m: (l, m.model_copy(update={"intents": ["financiamiento"]})),
            lambda l, m: (l, m.model_copy(update={"message_count": 10})),
            lambda l, m: (l.model_copy(update={"budget": 400000}), m),
            lambda l, m: (l, m.model_copy(update={"model_interest": "king"})),
        ]
        for step in steps:
            lead, meta = step(lead, meta)
            current = score_lead(lead, meta).score
            assert current >= previous
            previous = current

    def test_pure(self):
        lead = LeadData(name="Ana")
        meta = ConversationMeta(message_count=6)
        assert score_lead(lead, meta) == score_lead(lead, meta)


class TestCategorize:
    @pytest.mark.parametrize("score,category", [
        (100, "hot"), (80, "hot"), (79, "warm"), (50, "warm"),
        (49, "cool"), (25, "cool"), (24, "cold"), (0, "cold"),
    ])
    def test_thresholds(self, score, category):
        assert categorize(score) == category
