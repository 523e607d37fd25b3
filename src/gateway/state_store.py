"""
In-memory gateway state with per-key locking and periodic JSON snapshots.

Actors and rate windows are keyed by "<conversation>:<actor>", moderation state
by conversation id. Each key has its own asyncio.Lock so a flood in one
conversation never blocks another.
"""

import asyncio
import json
import logging
import os
import time
from collections import defaultdict
from dataclasses import replace
from typing import Callable, Dict, Optional

from .models import Actor, ConversationModerationState, ModerationRules, RateWindow

logger = logging.getLogger(__name__)


class KeyedLocks:
    """
    One asyncio.Lock per key, created on first use.

    Locks are never pruned, so there is at most one per actor key or
    conversation ever seen, matching the persisted actor and conversation maps.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __call__(self, key: str) -> asyncio.Lock:
        return self._locks[key]


class StateStore:
    """
    Owns every Actor, RateWindow and ConversationModerationState.

    Callers take the relevant lock (actor_lock / conversation_lock) around
    read-modify-write sequences and call mark_dirty() after mutating.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        default_rules: Optional[ModerationRules] = None,
        escalation_ceiling: int = 3,
        clock: Callable[[], float] = time.time,
    ):
        self.path = path
        self.default_rules = default_rules or ModerationRules()
        self.escalation_ceiling = escalation_ceiling
        self.clock = clock

        self.actors: Dict[str, Actor] = {}
        self.rate_windows: Dict[str, RateWindow] = {}
        self.conversations: Dict[str, ConversationModerationState] = {}

        self.actor_lock = KeyedLocks()
        self.conversation_lock = KeyedLocks()

        self._dirty = False
        self._flush_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Entity access (lazy creation)
    # ------------------------------------------------------------------
    def actor(self, key: str) -> Actor:
        actor = self.actors.get(key)
        if actor is None:
            actor = Actor(identity=key)
            self.actors[key] = actor
            logger.debug(f"Created actor {key}")
        return actor

    def rate_window(self, key: str) -> RateWindow:
        window = self.rate_windows.get(key)
        if window is None:
            window = RateWindow()
            self.rate_windows[key] = window
        return window

    def conversation(self, conversation_id: str) -> ConversationModerationState:
        state = self.conversations.get(conversation_id)
        if state is None:
            state = ConversationModerationState(
                conversation_id=conversation_id,
                rules=replace(self.default_rules, banned_words=list(self.default_rules.banned_words)),
                escalation_ceiling=self.escalation_ceiling,
            )
            self.conversations[conversation_id] = state
            logger.info(f"Conversation {conversation_id} initialized with default moderation rules")
        return state

    def mark_dirty(self) -> None:
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def snapshot(self) -> Dict:
        return {
            "saved_at": self.clock(),
            "actors": {key: actor.to_dict() for key, actor in self.actors.items()},
            "conversations": {cid: state.to_dict() for cid, state in self.conversations.items()},
        }

    def load(self) -> bool:
        """Load a previous snapshot. Rate windows are not persisted; they expire within a minute anyway."""
        if not self.path or not os.path.exists(self.path):
            logger.debug(f"No state snapshot at {self.path}")
            return False
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading state snapshot {self.path}: {e}")
            return False

        self.actors = {key: Actor.from_dict(a) for key, a in data.get("actors", {}).items()}
        self.conversations = {
            cid: ConversationModerationState.from_dict(s) for cid, s in data.get("conversations", {}).items()
        }
        logger.info(f"Loaded state snapshot: {len(self.actors)} actors, {len(self.conversations)} conversations")
        return True

    def _write_snapshot(self, snapshot: Dict) -> None:
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(snapshot, f)
        os.replace(tmp_path, self.path)

    async def flush(self) -> bool:
        """Write a snapshot if anything changed. Returns True when a write happened."""
        if not self.path or not self._dirty:
            return False
        # Snapshot on the loop thread, write off it
        snapshot = self.snapshot()
        self._dirty = False
        try:
            await asyncio.to_thread(self._write_snapshot, snapshot)
            logger.debug(f"💾 Flushed state snapshot to {self.path}")
            return True
        except OSError as e:
            self._dirty = True
            logger.warning(f"State flush failed: {e}")
            return False

    def start_flusher(self, interval: float) -> None:
        if self._flush_task is None and self.path:
            self._flush_task = asyncio.get_running_loop().create_task(self._flush_loop(interval))

    async def _flush_loop(self, interval: float) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                await self.flush()
        except asyncio.CancelledError:
            logger.info("State flusher cancelled")

    async def close(self) -> None:
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None
        await self.flush()
