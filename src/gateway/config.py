"""
Gateway configuration.

Values come from environment variables (loaded from .env by the entrypoint)
and are collected once into a GatewayConfig that is passed to every processor.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import ModerationRules

DEFAULT_PROVIDER_CHAIN = "groq:12,openrouter:10,anthropic:15"

# Known providers: default model and OpenAI-compatible endpoint (None = native SDK)
PROVIDER_DEFAULTS: Dict[str, Dict[str, Optional[str]]] = {
    "groq": {
        "model": "llama-3.3-70b-versatile",
        "base_url": "https://api.groq.com/openai/v1/chat/completions",
    },
    "openrouter": {
        "model": "meta-llama/llama-3.3-70b-instruct:free",
        "base_url": "https://openrouter.ai/api/v1/chat/completions",
    },
    "anthropic": {
        "model": "claude-3-5-haiku-20241022",
        "base_url": None,
    },
}

DEFAULT_BRAND_KEYWORDS = [
    "price", "cost", "service", "product", "demo", "help", "contact",
    "hire", "project", "website", "app", "build",
]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default).strip('"')
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class ProviderSettings:
    provider_id: str
    timeout: float
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_tokens: int = 200
    temperature: float = 0.7


def parse_provider_chain(value: str) -> List[ProviderSettings]:
    """
    Parse "id:timeout,id:timeout" into ordered provider settings.

    Model, key and endpoint are read from <ID>_MODEL, <ID>_API_KEY and
    <ID>_BASE_URL, falling back to PROVIDER_DEFAULTS.
    """
    providers = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        provider_id, _, timeout = entry.partition(":")
        provider_id = provider_id.strip().lower()
        defaults = PROVIDER_DEFAULTS.get(provider_id, {})
        prefix = provider_id.upper()
        providers.append(ProviderSettings(
            provider_id=provider_id,
            timeout=float(timeout) if timeout else 10.0,
            model=os.getenv(f"{prefix}_MODEL", defaults.get("model") or ""),
            api_key=os.getenv(f"{prefix}_API_KEY"),
            base_url=os.getenv(f"{prefix}_BASE_URL", defaults.get("base_url") or "") or None,
            max_tokens=int(os.getenv(f"{prefix}_MAX_TOKENS", "200")),
        ))
    return providers


@dataclass
class GatewayConfig:
    bot_name: str = "Assistant"
    brand_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_BRAND_KEYWORDS))

    # Rate limiting
    rate_limit_per_minute: int = 8
    rate_window_seconds: float = 60.0

    # Spam heuristics
    spam_min_length: int = 3
    spam_max_length: int = 4000
    spam_repeat_threshold: int = 3
    spam_window_seconds: float = 60.0
    spam_history_size: int = 10
    spam_delete_messages: bool = False

    # Moderation
    caps_min_length: int = 10
    repeated_char_run: int = 10
    escalation_ceiling: int = 3
    mute_default_minutes: int = 60
    default_rules: ModerationRules = field(default_factory=ModerationRules)

    # Providers
    providers: List[ProviderSettings] = field(default_factory=list)

    # Replies
    typing_delay_enabled: bool = True
    reply_chunk_size: int = 4000
    silent_when_owner_online: bool = True

    # Persistence and logs
    brand_file: Optional[str] = None
    catalog_file: Optional[str] = None
    state_file: Optional[str] = None
    state_flush_seconds: float = 30.0
    dispatch_log_enabled: bool = False
    log_dir: str = "logs"

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Build configuration from environment variables"""
        return cls(
            bot_name=os.getenv("BOT_NAME", "Assistant").strip('"'),
            brand_keywords=_env_list("BRAND_KEYWORDS", ",".join(DEFAULT_BRAND_KEYWORDS)),
            rate_limit_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "8")),
            rate_window_seconds=float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60")),
            spam_min_length=int(os.getenv("SPAM_MIN_LENGTH", "3")),
            spam_max_length=int(os.getenv("SPAM_MAX_LENGTH", "4000")),
            spam_repeat_threshold=int(os.getenv("SPAM_REPEAT_THRESHOLD", "3")),
            spam_history_size=int(os.getenv("SPAM_HISTORY_SIZE", "10")),
            spam_delete_messages=_env_bool("SPAM_DELETE_MESSAGES", "false"),
            caps_min_length=int(os.getenv("CAPS_MIN_LENGTH", "10")),
            repeated_char_run=int(os.getenv("REPEATED_CHAR_RUN", "10")),
            escalation_ceiling=int(os.getenv("ESCALATION_CEILING", "3")),
            mute_default_minutes=int(os.getenv("MUTE_DEFAULT_MINUTES", "60")),
            default_rules=ModerationRules(
                enabled=_env_bool("AUTO_MODERATION", "true"),
                anti_caps=_env_bool("ANTI_CAPS", "true"),
                anti_repeated=_env_bool("ANTI_REPEATED", "true"),
                anti_links=_env_bool("ANTI_LINKS", "false"),
                auto_kick=_env_bool("AUTO_KICK", "true"),
                banned_words=_env_list("BANNED_WORDS"),
            ),
            providers=parse_provider_chain(os.getenv("PROVIDER_CHAIN", DEFAULT_PROVIDER_CHAIN)),
            typing_delay_enabled=_env_bool("TYPING_DELAY_ENABLED", "true"),
            reply_chunk_size=int(os.getenv("REPLY_CHUNK_SIZE", "1900")),
            silent_when_owner_online=_env_bool("SILENT_WHEN_OWNER_ONLINE", "true"),
            brand_file=os.getenv("BRAND_FILE", "brand.json"),
            catalog_file=os.getenv("CATALOG_FILE", "catalog.json"),
            state_file=os.getenv("STATE_FILE", "gateway_state.json"),
            state_flush_seconds=float(os.getenv("STATE_FLUSH_SECONDS", "30")),
            dispatch_log_enabled=_env_bool("DISPATCH_LOG_ENABLED", "false"),
            log_dir=os.getenv("LOG_DIR", "logs"),
        )
