"""
Moderation Engine - per-conversation content rules and the warn/mute/remove state machine.

Per message, in fixed order:
- removed actor: suppress, delete (best effort) and retry the kick
- active mute: suppress and delete (best effort), nothing else runs
- content rules, first match wins: caps, repeated characters, links, banned words
- a violation adds one warning; reaching the escalation ceiling removes the
  actor unless they are an owner or administrator

State is committed under the conversation lock before any platform side
effect runs, so a failed delete or kick never rolls back a decision.
"""

import re
import time
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from . import replies
from .base_processor import BaseProcessor, MessageContext
from .config import GatewayConfig
from .errors import PrivilegedActorProtection
from .models import (
    ConversationModerationState,
    DispatchResult,
    ModerationAction,
    ModerationRules,
    MuteRecord,
    SenderRole,
    Standing,
    StandingState,
)
from .platform import PlatformActions, run_platform_action
from .state_store import StateStore

URL_PATTERN = re.compile(r"https?://|www\.", re.IGNORECASE)


@dataclass
class ModerationDecision:
    action: Optional[ModerationAction] = None
    reason: Optional[str] = None
    warnings: int = 0
    notices: List[str] = field(default_factory=list)
    delete_message: bool = False
    remove_actor: bool = False

    @property
    def passed(self) -> bool:
        return self.action is None


class ModerationEngine(BaseProcessor):
    """
    Evaluates messages against a conversation's rules and tracks warnings,
    mutes and removals in ConversationModerationState.
    """

    def __init__(self, store: StateStore, config: Optional[GatewayConfig] = None,
                 platform: Optional[PlatformActions] = None, clock: Callable[[], float] = time.time):
        super().__init__("moderation", config)
        self.store = store
        self.platform = platform
        self.clock = clock
        self.repeated_pattern = re.compile(r"(.)\1{%d,}" % max(self.config.repeated_char_run - 1, 1))

    # ------------------------------------------------------------------
    # Content rules
    # ------------------------------------------------------------------
    def check_content(self, rules: ModerationRules, content: str) -> Optional[str]:
        """Return the reason of the first violated rule, or None."""
        if rules.anti_caps and self._is_excessive_caps(content):
            return "Excessive caps"
        if rules.anti_repeated and self.repeated_pattern.search(content):
            return "Repeated characters"
        if rules.anti_links and URL_PATTERN.search(content):
            return "Links not allowed"
        for word in rules.banned_words:
            if re.search(rf"\b{re.escape(word)}\b", content, re.IGNORECASE):
                return "Banned word used"
        return None

    def _is_excessive_caps(self, content: str) -> bool:
        return (
            len(content) > self.config.caps_min_length
            and content == content.upper()
            and any(c.isalpha() for c in content)
        )

    # ------------------------------------------------------------------
    # Message evaluation
    # ------------------------------------------------------------------
    async def evaluate(self, conversation_id: str, actor_id: str, content: str,
                       role: SenderRole = SenderRole.MEMBER,
                       message_id: Optional[str] = None) -> ModerationDecision:
        async with self.store.conversation_lock(conversation_id):
            state = self.store.conversation(conversation_id)
            state.stats.messages += 1
            decision = self._decide(state, actor_id, content, role)
            self.store.mark_dirty()

        await self._apply(conversation_id, actor_id, message_id, decision)
        return decision

    def _decide(self, state: ConversationModerationState, actor_id: str, content: str,
                role: SenderRole) -> ModerationDecision:
        if not state.rules.enabled:
            return ModerationDecision()

        if actor_id in state.removed:
            # Removed actors still posting means the kick did not land; try again
            self.logger.info(f"🚫 Suppressing message from removed actor {actor_id} in {state.conversation_id}")
            return ModerationDecision(
                action=ModerationAction.DELETED,
                reason="removed",
                warnings=state.warning_count(actor_id),
                delete_message=True,
                remove_actor=True,
            )

        now = self.clock()
        if state.is_muted(actor_id, now):
            self.logger.info(f"🔇 Suppressing message from muted actor {actor_id} in {state.conversation_id}")
            return ModerationDecision(
                action=ModerationAction.DELETED,
                reason="muted",
                warnings=state.warning_count(actor_id),
                delete_message=True,
            )

        reason = self.check_content(state.rules, content)
        if reason is None:
            return ModerationDecision()

        count = state.add_warning(actor_id, reason, now)
        self.logger.info(f"⚠️ Warned {actor_id} in {state.conversation_id} ({count}/{state.escalation_ceiling}): {reason}")
        decision = ModerationDecision(
            action=ModerationAction.WARNED,
            reason=reason,
            warnings=count,
            notices=[replies.warning_notice(count, state.escalation_ceiling, reason)],
        )

        if count >= state.escalation_ceiling and state.rules.auto_kick:
            escalation = self._commit_removal(state, actor_id, role)
            if escalation == ModerationAction.REMOVED:
                decision.action = ModerationAction.REMOVED
                decision.remove_actor = True
                decision.notices.append(replies.removal_notice(count))
            elif escalation == ModerationAction.REMOVAL_REFUSED:
                decision.action = ModerationAction.REMOVAL_REFUSED
        return decision

    def _commit_removal(self, state: ConversationModerationState, actor_id: str,
                        role: SenderRole) -> Optional[ModerationAction]:
        """Transition to Removed. None means the actor was already removed."""
        if role.is_privileged:
            refusal = PrivilegedActorProtection(state.conversation_id, actor_id, role.value)
            self.logger.warning(f"{refusal}")
            return ModerationAction.REMOVAL_REFUSED
        if actor_id in state.removed:
            self.logger.debug(f"{actor_id} already removed from {state.conversation_id}")
            return None
        state.removed.add(actor_id)
        state.stats.users_kicked += 1
        self.logger.info(f"🚫 Removing {actor_id} from {state.conversation_id}")
        return ModerationAction.REMOVED

    async def _apply(self, conversation_id: str, actor_id: str, message_id: Optional[str],
                     decision: ModerationDecision) -> None:
        """Run platform side effects for a committed decision. Failures are logged only."""
        if self.platform is None or decision.passed:
            return
        if decision.delete_message:
            await run_platform_action(
                "delete_message", conversation_id,
                self.platform.delete_message(conversation_id, message_id),
            )
        if decision.notices:
            await run_platform_action(
                "send_reply", conversation_id,
                self.platform.send_reply(conversation_id, decision.notices[0], message_id),
            )
        if decision.remove_actor:
            removed = await run_platform_action(
                "remove_actor", conversation_id,
                self.platform.remove_actor(conversation_id, actor_id),
            )
            if removed:
                for notice in decision.notices[1:]:
                    await run_platform_action(
                        "send_reply", conversation_id,
                        self.platform.send_reply(conversation_id, notice),
                    )

    async def process(self, context: MessageContext) -> Optional[DispatchResult]:
        decision = await self.evaluate(
            context.conversation_id, context.actor_id, context.content,
            context.sender_role, context.event.message_id,
        )
        context.set_data("moderation", decision)
        if decision.passed:
            return None
        notice = decision.notices[-1] if decision.notices else None
        return DispatchResult.moderated(decision.action, decision.reason, notice)

    # ------------------------------------------------------------------
    # Administrative side-channels
    # ------------------------------------------------------------------
    async def remove_actor(self, conversation_id: str, actor_id: str,
                           role: SenderRole = SenderRole.MEMBER) -> Optional[ModerationAction]:
        """
        Remove an actor from a conversation. Idempotent: removing an already
        removed actor does nothing and returns None.
        """
        async with self.store.conversation_lock(conversation_id):
            state = self.store.conversation(conversation_id)
            action = self._commit_removal(state, actor_id, role)
            self.store.mark_dirty()

        if action == ModerationAction.REMOVED and self.platform is not None:
            await run_platform_action(
                "remove_actor", conversation_id,
                self.platform.remove_actor(conversation_id, actor_id),
            )
        return action

    async def mute(self, conversation_id: str, actor_id: str, minutes: Optional[float] = None,
                   reason: str = "Muted by admin") -> MuteRecord:
        duration = minutes if minutes is not None else self.config.mute_default_minutes
        async with self.store.conversation_lock(conversation_id):
            state = self.store.conversation(conversation_id)
            now = self.clock()
            mute = MuteRecord(reason=reason, muted_at=now, unmute_at=now + duration * 60)
            state.mutes[actor_id] = mute
            self.store.mark_dirty()
        self.logger.info(f"🔇 Muted {actor_id} in {conversation_id} for {duration} minutes: {reason}")
        return mute

    async def unmute(self, conversation_id: str, actor_id: str) -> bool:
        async with self.store.conversation_lock(conversation_id):
            state = self.store.conversation(conversation_id)
            removed = state.mutes.pop(actor_id, None) is not None
            self.store.mark_dirty()
        if removed:
            self.logger.info(f"🔊 Unmuted {actor_id} in {conversation_id}")
        return removed

    async def reset_warnings(self, conversation_id: str, actor_id: str) -> int:
        """Clear warnings and the Removed mark. Returns the previous warning count."""
        async with self.store.conversation_lock(conversation_id):
            state = self.store.conversation(conversation_id)
            previous = state.warning_count(actor_id)
            state.warnings.pop(actor_id, None)
            state.removed.discard(actor_id)
            self.store.mark_dirty()
        self.logger.info(f"Reset {previous} warnings for {actor_id} in {conversation_id}")
        return previous

    async def set_rules(self, conversation_id: str, **changes) -> ModerationRules:
        """Toggle rules for one conversation, e.g. set_rules(cid, anti_links=True)."""
        async with self.store.conversation_lock(conversation_id):
            state = self.store.conversation(conversation_id)
            ceiling = changes.pop("escalation_ceiling", None)
            if ceiling is not None:
                state.escalation_ceiling = int(ceiling)
            state.rules = replace(state.rules, **changes)
            self.store.mark_dirty()
        return state.rules

    def standing(self, conversation_id: str, actor_id: str) -> Standing:
        state = self.store.conversation(conversation_id)
        warnings = state.warning_count(actor_id)
        if actor_id in state.removed:
            return Standing(StandingState.REMOVED, warnings)
        mute = state.mutes.get(actor_id)
        if mute is not None and mute.is_active(self.clock()):
            return Standing(StandingState.MUTED, warnings, mute.unmute_at)
        if warnings:
            return Standing(StandingState.WARNED, warnings)
        return Standing(StandingState.CLEAR)
