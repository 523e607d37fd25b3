"""
Spam detection processor.

Short-term flood heuristics over an actor's recent messages. A spam verdict
only suppresses the reply (and optionally deletes the message); it never
issues moderation warnings.
"""

import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .base_processor import BaseProcessor, MessageContext
from .config import GatewayConfig
from .models import Actor, DispatchResult
from .platform import PlatformActions, run_platform_action
from .state_store import StateStore

PUNCTUATION_BURST = re.compile(r"[!@#$%^&*]{5,}")


class SpamVerdict(str, Enum):
    OK = "ok"
    SPAM = "spam"


@dataclass
class SpamClassification:
    verdict: SpamVerdict
    reason: Optional[str] = None

    @property
    def is_spam(self) -> bool:
        return self.verdict == SpamVerdict.SPAM


class SpamDetector(BaseProcessor):
    """Records each message in the actor's history and classifies it."""

    def __init__(self, store: StateStore, config: Optional[GatewayConfig] = None,
                 platform: Optional[PlatformActions] = None, clock: Callable[[], float] = time.time):
        super().__init__("spam_detector", config)
        self.store = store
        self.platform = platform
        self.clock = clock

    async def classify(self, actor_key: str, content: str, conversation_id: Optional[str] = None) -> SpamClassification:
        async with self.store.actor_lock(actor_key):
            now = self.clock()
            actor = self.store.actor(actor_key)
            actor.add_message(content, now, self.config.spam_history_size)

            reason = self._check(actor, content, now)
            if reason:
                actor.spam_score += 1
            self.store.mark_dirty()

        if reason:
            if conversation_id is not None:
                async with self.store.conversation_lock(conversation_id):
                    self.store.conversation(conversation_id).stats.spam_blocked += 1
            self.logger.warning(f"Ignoring spam from {actor_key}: {reason}")
            return SpamClassification(SpamVerdict.SPAM, reason)
        return SpamClassification(SpamVerdict.OK)

    def _check(self, actor: Actor, content: str, now: float) -> Optional[str]:
        """Heuristics in precedence order; the current message is already in history."""
        if len(content) < self.config.spam_min_length:
            return "too_short"
        if len(content) > self.config.spam_max_length:
            return "too_long"

        repeats = sum(
            1 for record in actor.recent_messages
            if record.content == content and now - record.timestamp < self.config.spam_window_seconds
        )
        if repeats >= self.config.spam_repeat_threshold:
            return "repeated_message"

        if PUNCTUATION_BURST.search(content):
            return "punctuation_burst"
        return None

    async def process(self, context: MessageContext) -> Optional[DispatchResult]:
        result = await self.classify(context.actor_key, context.content, context.conversation_id)
        if not result.is_spam:
            return None

        if self.config.spam_delete_messages and self.platform is not None:
            await run_platform_action(
                "delete_message", context.conversation_id,
                self.platform.delete_message(context.conversation_id, context.event.message_id),
            )
        return DispatchResult.suppressed(f"spam:{result.reason}")
