"""Periodic background task: evict idle sessions and expired rate-limit windows."""
import asyncio
import logging

from persona_proxy.api.middleware import RateLimiters
from persona_proxy.services.history_store import HistoryStore

logger = logging.getLogger(__name__)


def cleanup_idle_state(history: HistoryStore, limiters: RateLimiters) -> dict:
    """Run one eviction pass. Returns counts of removed entries."""
    sessions = history.prune_idle()
    windows = limiters.prune_expired()
    if sessions or windows:
        logger.info(
            f"Cleanup complete: {sessions} idle sessions, {windows} expired rate windows removed."
        )
    return {"sessions": sessions, "rate_windows": windows}


async def run_periodic_cleanup(
    history: HistoryStore, limiters: RateLimiters, interval: float
) -> None:
    """Call ``cleanup_idle_state`` every ``interval`` seconds until cancelled."""
    logger.info(f"Starting idle-state cleanup every {interval}s")
    while True:
        await asyncio.sleep(interval)
        try:
            cleanup_idle_state(history, limiters)
        except Exception:
            logger.exception("Idle-state cleanup failed")
