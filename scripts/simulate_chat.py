"""
Simulate a chat widget conversation against a running server.

Usage:
    python scripts/simulate_chat.py
    python scripts/simulate_chat.py --scenario objection
    python scripts/simulate_chat.py --base-url http://localhost:8000 --message "hola"
"""
import argparse
import asyncio
import logging
from typing import Optional

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"

SCENARIOS = {
    "hot_lead": [
        "hola",
        "Me interesa el Seal, cuánto cuesta?",
        "Me llamo Ana Torres, mi teléfono es 81 1234 5678",
        "Quiero una cotización con financiamiento",
    ],
    "objection": [
        "buenas tardes",
        "Está muy caro para mí",
        "y qué pasa si me quedo sin batería en carretera?",
    ],
    "spam": ["aaaaa", "asdfgh", "test"],
}


async def send_message(client: httpx.AsyncClient, base_url: str, message: str, conversation_id: Optional[str]) -> dict:
    payload = {"message": message, "conversation_id": conversation_id}
    resp = await client.post(f"{base_url}/api/chatbot", json=payload)
    resp.raise_for_status()
    return resp.json()


async def run_scenario(base_url: str, messages: list[str]):
    """Send each message in order on one conversation."""
    conversation_id = None
    async with httpx.AsyncClient(timeout=60) as client:
        for message in messages:
            data = await send_message(client, base_url, message, conversation_id)
            conversation_id = data["conversation_id"]
            logger.info(">>> %s", message)
            logger.info(
                "<<< [%s %dms handoff=%s] %s",
                data["source"], data["processing_time_ms"], data["can_handoff"], data["message"],
            )

        stats = await client.get(f"{base_url}/api/chatbot/stats")
        logger.info("Stats: %s", stats.json().get("pipeline"))


async def main():
    parser = argparse.ArgumentParser(description="Simulate chat widget conversations")
    parser.add_argument("--scenario", default="hot_lead", choices=sorted(SCENARIOS))
    parser.add_argument("--message", help="Send a single message instead of a scenario")
    parser.add_argument("--base-url", default=BASE_URL)
    args = parser.parse_args()

    messages = [args.message] if args.message else SCENARIOS[args.scenario]
    await run_scenario(args.base_url, messages)


if __name__ == "__main__":
    asyncio.run(main())
