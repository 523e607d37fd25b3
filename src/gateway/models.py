"""
Data models shared by the gateway processors.

Actors, rate windows and per-conversation moderation state are mutable records
owned by the StateStore; events, verdicts and completion attempts are
ephemeral values passed between processors.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class Language(str, Enum):
    BANGLA = "bangla"
    HINDI = "hindi"
    ENGLISH = "english"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Language"]:
        if not value:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None


class SenderRole(str, Enum):
    OWNER = "owner"
    ADMINISTRATOR = "administrator"
    MEMBER = "member"

    @property
    def is_privileged(self) -> bool:
        return self in (SenderRole.OWNER, SenderRole.ADMINISTRATOR)


class DispatchOutcome(str, Enum):
    SUPPRESSED = "suppressed"
    REPLIED = "replied"
    MODERATED = "moderated"


class ModerationAction(str, Enum):
    DELETED = "deleted"
    WARNED = "warned"
    REMOVED = "removed"
    REMOVAL_REFUSED = "removal_refused"


class StandingState(str, Enum):
    CLEAR = "clear"
    WARNED = "warned"
    MUTED = "muted"
    REMOVED = "removed"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"
    TIMEOUT = "timeout"


def actor_key(conversation_id: str, actor_id: str) -> str:
    """Key for per-actor state: one actor per (conversation, user) pair."""
    return f"{conversation_id}:{actor_id}"


@dataclass
class MessageEvent:
    """One inbound message as delivered by the platform adapter."""
    conversation_id: str
    actor_id: str
    content: str
    message_id: Optional[str] = None
    sender_role: SenderRole = SenderRole.MEMBER
    timestamp: Optional[float] = None
    multi_party: bool = True

    @property
    def actor_key(self) -> str:
        return actor_key(self.conversation_id, self.actor_id)


@dataclass
class MessageRecord:
    content: str
    timestamp: float


@dataclass
class Actor:
    identity: str
    recent_messages: List[MessageRecord] = field(default_factory=list)
    spam_score: int = 0
    language: Optional[Language] = None
    message_count: int = 0
    context: str = ""
    last_seen: Optional[float] = None

    def add_message(self, content: str, timestamp: float, history_size: int) -> None:
        self.recent_messages.append(MessageRecord(content, timestamp))
        # Oldest first out
        if len(self.recent_messages) > history_size:
            self.recent_messages = self.recent_messages[-history_size:]
        self.message_count += 1
        self.last_seen = timestamp

    def update_context(self, summary: str) -> None:
        self.context = summary[-500:]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["language"] = self.language.value if self.language else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Actor":
        return cls(
            identity=data["identity"],
            recent_messages=[MessageRecord(**m) for m in data.get("recent_messages", [])],
            spam_score=data.get("spam_score", 0),
            language=Language.parse(data.get("language")),
            message_count=data.get("message_count", 0),
            context=data.get("context", ""),
            last_seen=data.get("last_seen"),
        )


@dataclass
class RateWindow:
    timestamps: List[float] = field(default_factory=list)

    def purge(self, now: float, window_seconds: float) -> None:
        self.timestamps = [t for t in self.timestamps if now - t <= window_seconds]


@dataclass
class WarningRecord:
    reason: str
    timestamp: float


@dataclass
class ActorWarnings:
    count: int = 0
    history: List[WarningRecord] = field(default_factory=list)


@dataclass
class MuteRecord:
    reason: str
    muted_at: float
    unmute_at: float

    def is_active(self, now: float) -> bool:
        return now < self.unmute_at


@dataclass
class ModerationRules:
    enabled: bool = True
    anti_caps: bool = True
    anti_repeated: bool = True
    anti_links: bool = False
    auto_kick: bool = True
    banned_words: List[str] = field(default_factory=list)


@dataclass
class ConversationStats:
    messages: int = 0
    spam_blocked: int = 0
    warnings_issued: int = 0
    users_kicked: int = 0


@dataclass
class ConversationModerationState:
    conversation_id: str
    rules: ModerationRules = field(default_factory=ModerationRules)
    escalation_ceiling: int = 3
    warnings: Dict[str, ActorWarnings] = field(default_factory=dict)
    mutes: Dict[str, MuteRecord] = field(default_factory=dict)
    removed: Set[str] = field(default_factory=set)
    stats: ConversationStats = field(default_factory=ConversationStats)

    def warning_count(self, actor_id: str) -> int:
        entry = self.warnings.get(actor_id)
        return entry.count if entry else 0

    def add_warning(self, actor_id: str, reason: str, timestamp: float) -> int:
        entry = self.warnings.setdefault(actor_id, ActorWarnings())
        entry.count += 1
        entry.history.append(WarningRecord(reason, timestamp))
        self.stats.warnings_issued += 1
        return entry.count

    def is_muted(self, actor_id: str, now: float) -> bool:
        mute = self.mutes.get(actor_id)
        return mute is not None and mute.is_active(now)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["removed"] = sorted(self.removed)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationModerationState":
        return cls(
            conversation_id=data["conversation_id"],
            rules=ModerationRules(**data.get("rules", {})),
            escalation_ceiling=data.get("escalation_ceiling", 3),
            warnings={
                actor_id: ActorWarnings(
                    count=entry.get("count", 0),
                    history=[WarningRecord(**w) for w in entry.get("history", [])],
                )
                for actor_id, entry in data.get("warnings", {}).items()
            },
            mutes={actor_id: MuteRecord(**m) for actor_id, m in data.get("mutes", {}).items()},
            removed=set(data.get("removed", [])),
            stats=ConversationStats(**data.get("stats", {})),
        )


@dataclass
class Standing:
    """Externally visible moderation state of one actor in one conversation."""
    state: StandingState
    warnings: int = 0
    unmute_at: Optional[float] = None


@dataclass
class CompletionAttempt:
    provider_id: str
    outcome: AttemptOutcome
    latency: float
    error: Optional[str] = None


@dataclass
class CompletionResult:
    text: str
    attempts: List[CompletionAttempt] = field(default_factory=list)
    provider_id: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.provider_id is None


@dataclass
class DispatchResult:
    outcome: DispatchOutcome
    text: Optional[str] = None
    action: Optional[ModerationAction] = None
    reason: Optional[str] = None
    intent: Optional[str] = None

    @classmethod
    def suppressed(cls, reason: str) -> "DispatchResult":
        return cls(DispatchOutcome.SUPPRESSED, reason=reason)

    @classmethod
    def replied(cls, text: str, intent: Optional[str] = None) -> "DispatchResult":
        return cls(DispatchOutcome.REPLIED, text=text, intent=intent)

    @classmethod
    def moderated(cls, action: ModerationAction, reason: str, text: Optional[str] = None) -> "DispatchResult":
        return cls(DispatchOutcome.MODERATED, text=text, action=action, reason=reason)
