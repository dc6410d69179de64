"""
AI service - Anthropic primary, OpenAI fallback.
Max tokens and temperature are fixed configuration, never data-dependent.
Provider SDK timeouts apply to every call; a timeout is just another error.
Tracks cost, latency, and token usage for every call.
"""
import logging
import re
import time

logger = logging.getLogger(__name__)

# Cost per million tokens (input/output)
COST_TABLE = {
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-haiku-4-5-20251001": {"input": 1.00, "output": 5.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Calculate cost in USD for a given model and token count."""
    costs = COST_TABLE.get(model, {"input": 1.0, "output": 5.0})
    return (input_tokens * costs["input"] + output_tokens * costs["output"]) / 1_000_000


def _sanitize_output_text(text: str) -> str:
    """Remove hidden reasoning blocks returned by some providers."""
    if not text:
        return ""
    cleaned = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL | re.IGNORECASE)
    return cleaned.strip()


def _error_result(error_msg: str) -> dict:
    """Return a standardized error result dict."""
    return {
        "content": "",
        "provider": "none",
        "model": "none",
        "latency_ms": 0,
        "cost_usd": 0.0,
        "input_tokens": 0,
        "output_tokens": 0,
        "error": error_msg,
    }


def build_messages(history: list[dict], user_message: str) -> list[dict]:
    """
    Turn stored history plus the new message into a user-first, strictly
    alternating message list. Consecutive same-role turns are merged.
    """
    messages: list[dict] = []
    for turn in [*history, {"role": "user", "content": user_message}]:
        role = turn.get("role")
        content = (turn.get("content") or "").strip()
        if role not in ("user", "assistant") or not content:
            continue
        if not messages and role == "assistant":
            continue
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + content
        else:
            messages.append({"role": role, "content": content})
    return messages


class AIService:
    """Holds provider configuration; one instance per app."""

    def __init__(self, settings):
        self.settings = settings

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.anthropic_api_key or self.settings.openai_api_key)

    async def generate(
        self,
        system_prompt: str,
        history: list[dict],
        user_message: str,
    ) -> dict:
        """
        Generate the assistant reply. Anthropic primary, OpenAI fallback.

        Returns:
            {
                "content": str,
                "provider": str,
                "model": str,
                "latency_ms": int,
                "cost_usd": float,
                "input_tokens": int,
                "output_tokens": int,
                "error": str|None,
            }
        """
        messages = build_messages(history, user_message)

        if self.settings.anthropic_api_key:
            try:
                return await _generate_anthropic(self.settings, system_prompt, messages)
            except Exception as e:
                logger.error("Anthropic failed: %s", str(e))

        if self.settings.openai_api_key:
            try:
                return await _generate_openai(self.settings, system_prompt, messages)
            except Exception as e:
                logger.error("OpenAI fallback failed: %s", str(e))

        return _error_result("No AI provider available (check API keys)")

    def get_stats(self) -> dict:
        return {
            "configured": self.is_configured,
            "anthropic_model": self.settings.anthropic_model if self.settings.anthropic_api_key else None,
            "openai_model": self.settings.openai_model if self.settings.openai_api_key else None,
            "max_tokens": self.settings.ai_max_tokens,
            "temperature": self.settings.ai_temperature,
            "history_limit": self.settings.ai_history_limit,
        }


async def _generate_anthropic(settings, system_prompt: str, messages: list[dict]) -> dict:
    """Generate response using Anthropic Claude API."""
    from anthropic import AsyncAnthropic

    model = settings.anthropic_model
    client = AsyncAnthropic(
        api_key=settings.anthropic_api_key,
        timeout=settings.anthropic_timeout_seconds,
    )

    start = time.monotonic()
    response = await client.messages.create(
        model=model,
        max_tokens=settings.ai_max_tokens,
        temperature=settings.ai_temperature,
        system=system_prompt,
        messages=messages,
    )
    latency_ms = int((time.monotonic() - start) * 1000)

    content = ""
    for block in response.content:
        if block.type == "text":
            content += block.text
    content = _sanitize_output_text(content)

    input_tokens = response.usage.input_tokens if response.usage else 0
    output_tokens = response.usage.output_tokens if response.usage else 0

    return {
        "content": content,
        "provider": "anthropic",
        "model": model,
        "latency_ms": latency_ms,
        "cost_usd": calculate_cost(model, input_tokens, output_tokens),
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "error": None,
    }


async def _generate_openai(settings, system_prompt: str, messages: list[dict]) -> dict:
    """Generate response using OpenAI API."""
    from openai import AsyncOpenAI

    model = settings.openai_model
    client = AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=(settings.openai_base_url or None),
        timeout=settings.openai_timeout_seconds,
    )

    start = time.monotonic()
    response = await client.chat.completions.create(
        model=model,
        max_tokens=settings.ai_max_tokens,
        temperature=settings.ai_temperature,
        messages=[{"role": "system", "content": system_prompt}, *messages],
    )
    latency_ms = int((time.monotonic() - start) * 1000)

    content = response.choices[0].message.content if response.choices else ""
    content = _sanitize_output_text(content)
    input_tokens = response.usage.prompt_tokens if response.usage else 0
    output_tokens = response.usage.completion_tokens if response.usage else 0

    return {
        "content": content,
        "provider": "openai",
        "model": model,
        "latency_ms": latency_ms,
        "cost_usd": calculate_cost(model, input_tokens, output_tokens),
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "error": None,
    }
