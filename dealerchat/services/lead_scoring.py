"""
Lead scoring - additive point table over contact data and conversation signals.
Pure function: same inputs always give the same score.

Placeholder emails generated at lead creation do not count as an email.
"""
from typing import Optional

from pydantic import BaseModel, Field

from dealerchat.schemas.pipeline import LeadScore, is_placeholder_email

SCORING_WEIGHTS = {
    # Contact data
    "has_name": 15,
    "has_phone": 20,
    "has_email": 15,
    # Engagement (bands, the higher band replaces the lower)
    "messages_5_plus": 10,
    "messages_10_plus": 20,
    # Intents
    "asked_price": 25,
    "asked_financing": 20,
    "asked_test_drive": 25,
    # Buying signals
    "specific_model_interest": 15,
    "mentioned_budget": 20,
}

# (intent, weight key, factor)
INTENT_FACTORS = [
    ("cotizacion", "asked_price", "price_interest"),
    ("financiamiento", "asked_financing", "financing_interest"),
    ("prueba_manejo", "asked_test_drive", "test_drive_interest"),
]

HOT_THRESHOLD = 80
WARM_THRESHOLD = 50
COOL_THRESHOLD = 25
READY_TO_BUY_THRESHOLD = 70


class LeadData(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    budget: Optional[int] = None


class ConversationMeta(BaseModel):
    message_count: int = 0
    intents: list[str] = Field(default_factory=list)
    model_interest: Optional[str] = None


def categorize(score: int) -> str:
    if score >= HOT_THRESHOLD:
        return "hot"
    if score >= WARM_THRESHOLD:
        return "warm"
    if score >= COOL_THRESHOLD:
        return "cool"
    return "cold"


def score_lead(lead_data: LeadData, conversation_meta: ConversationMeta) -> LeadScore:
    points = 0
    factors = []

    if lead_data.name:
        points += SCORING_WEIGHTS["has_name"]
        factors.append("has_name")
    if lead_data.phone:
        points += SCORING_WEIGHTS["has_phone"]
        factors.append("has_phone")
    if lead_data.email and not is_placeholder_email(lead_data.email):
        points += SCORING_WEIGHTS["has_email"]
        factors.append("has_email")

    if conversation_meta.message_count >= 10:
        points += SCORING_WEIGHTS["messages_10_plus"]
        factors.append("high_engagement")
    elif conversation_meta.message_count >= 5:
        points += SCORING_WEIGHTS["messages_5_plus"]
        factors.append("medium_engagement")

    for intent, weight_key, factor in INTENT_FACTORS:
        if intent in conversation_meta.intents:
            points += SCORING_WEIGHTS[weight_key]
            factors.append(factor)

    if conversation_meta.model_interest:
        points += SCORING_WEIGHTS["specific_model_interest"]
        factors.append("specific_model")

    if lead_data.budget:
        points += SCORING_WEIGHTS["mentioned_budget"]
        factors.append("budget_mentioned")

    score = max(0, min(points, 100))
    return LeadScore(
        score=score,
        category=categorize(score),
        factors=factors,
        ready_to_buy=score >= READY_TO_BUY_THRESHOLD,
        needs_nurturing=score < WARM_THRESHOLD,
    )
