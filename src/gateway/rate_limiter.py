"""
Rate limiting processor for inbound messages.

Per-actor sliding window: each actor may be admitted RATE_LIMIT_PER_MINUTE
times within the trailing window. Rejected messages are dropped silently and
do not count toward future windows.
"""

import time
from typing import Callable, Optional

from .base_processor import BaseProcessor, MessageContext
from .config import GatewayConfig
from .models import DispatchResult
from .state_store import StateStore


class RateLimiter(BaseProcessor):
    """
    Manages per-actor rate limiting.
    Tracks admitted message timestamps and enforces silent cooldowns.
    """

    def __init__(self, store: StateStore, config: Optional[GatewayConfig] = None,
                 clock: Callable[[], float] = time.time):
        super().__init__("rate_limiter", config)
        self.store = store
        self.clock = clock
        self.max_per_window = self.config.rate_limit_per_minute
        self.window_seconds = self.config.rate_window_seconds

    async def admit(self, actor_key: str) -> bool:
        """
        Check and record one event for an actor.

        Returns:
            bool: True if the event is admitted, False if the actor is over the ceiling
        """
        try:
            async with self.store.actor_lock(actor_key):
                current_time = self.clock()
                window = self.store.rate_window(actor_key)

                # Clean up old timestamps first
                window.purge(current_time, self.window_seconds)

                if len(window.timestamps) >= self.max_per_window:
                    self.logger.info(
                        f"🛑 Rate limited {actor_key}: {len(window.timestamps)}/{self.max_per_window} "
                        f"in last {self.window_seconds:.0f}s"
                    )
                    return False

                window.timestamps.append(current_time)
                return True
        except Exception as e:
            # Chat availability outweighs strict enforcement
            self.logger.error(f"Rate limit check error for {actor_key}, admitting: {e}")
            return True

    async def process(self, context: MessageContext) -> Optional[DispatchResult]:
        if await self.admit(context.actor_key):
            return None
        return DispatchResult.suppressed("rate_limited")
