"""
Memory sweeper - prunes the abuse guard's in-process maps.
Runs every 5 minutes by default. Keeps sender, fingerprint and violation
tracking from growing without bound on a long-lived process.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from dealerchat.services.abuse_guard import AbuseGuard

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 300  # 5 minutes

_last_sweep: Optional[str] = None


def get_last_sweep() -> Optional[str]:
    """ISO timestamp of the last completed sweep, for /health."""
    return _last_sweep


def sweep_once(guard: AbuseGuard) -> dict:
    """Run a single sweep and return the removed counts."""
    global _last_sweep
    removed = guard.sweep()
    _last_sweep = datetime.now(timezone.utc).isoformat()
    if any(removed.values()):
        logger.info(
            "Memory sweep removed: senders=%d fingerprints=%d blocks=%d violations=%d",
            removed.get("senders", 0), removed.get("fingerprints", 0),
            removed.get("blocks", 0), removed.get("violations", 0),
        )
    return removed


async def run_memory_sweeper(guard: AbuseGuard, interval_seconds: int = SWEEP_INTERVAL_SECONDS):
    """Main sweeper loop. Runs until the task is cancelled."""
    logger.info("Memory sweeper started (every %ds)", interval_seconds)

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            sweep_once(guard)
        except Exception as e:
            logger.error("Memory sweeper error: %s", str(e), exc_info=True)
