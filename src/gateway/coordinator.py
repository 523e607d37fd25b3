"""
Gateway - the single entry point for inbound messages.

Flow per message:
RateLimiter -> SpamDetector -> ModerationEngine -> owner presence ->
IntentRouter -> addressing check -> ProviderChain -> ResponseHandler

Each gate may stop the message; only messages that pass every gate and need
a completion cost a provider call.
"""

import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

from . import debug_logger, replies
from .base_processor import MessageContext, ProcessorPipeline
from .brand import BrandContext, BrandContextHolder
from .config import GatewayConfig
from .intent_router import Intent, IntentRouter, RoutedIntent
from .models import (
    ConversationStats,
    DispatchResult,
    Language,
    MessageEvent,
    ModerationAction,
    ModerationRules,
    MuteRecord,
    SenderRole,
    Standing,
    actor_key,
)
from .moderation import ModerationEngine
from .platform import CatalogLookup, PlatformActions, read_catalog
from .prompts import build_user_prompt, summarize_exchange
from .provider_chain import ProviderChain
from .providers import ProviderSpec
from .rate_limiter import RateLimiter
from .response_handler import ResponseHandler
from .spam_detector import SpamDetector
from .state_store import StateStore

logger = logging.getLogger(__name__)

# Optional async helpers for intents that need an outside lookup (weather, images, translation)
IntentHelper = Callable[[RoutedIntent], Awaitable[Optional[str]]]


class Gateway:
    """
    Conversational dispatch & safety gateway.

    handle() never raises: every failure degrades to a suppressed result or a
    canned reply.
    """

    def __init__(
        self,
        config: GatewayConfig,
        platform: Optional[PlatformActions],
        providers: List[ProviderSpec],
        store: Optional[StateStore] = None,
        brand: Optional[BrandContextHolder] = None,
        catalog: Optional[CatalogLookup] = None,
        intent_helpers: Optional[Dict[Intent, IntentHelper]] = None,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.config = config
        self.platform = platform
        self.clock = clock
        self.catalog = catalog
        self.intent_helpers = intent_helpers or {}

        self.store = store or StateStore(
            path=config.state_file,
            default_rules=config.default_rules,
            escalation_ceiling=config.escalation_ceiling,
            clock=clock,
        )
        self.brand = brand or BrandContextHolder(config.brand_file)

        # Processors
        self.rate_limiter = RateLimiter(self.store, config, clock=clock)
        self.spam_detector = SpamDetector(self.store, config, platform, clock=clock)
        self.moderation = ModerationEngine(self.store, config, platform, clock=clock)
        self.router = IntentRouter(config.bot_name, config.brand_keywords)
        self.provider_chain = ProviderChain(providers, self.brand, config)
        handler_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.response_handler = ResponseHandler(platform, config, **handler_kwargs)

        # Gate pipeline (order matters)
        self.pipeline = ProcessorPipeline()
        self.pipeline.add_processor(self.rate_limiter)
        self.pipeline.add_processor(self.spam_detector)
        self.pipeline.add_processor(self.moderation)

        logger.info("Gateway initialized")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        self.store.load()
        self.store.start_flusher(self.config.state_flush_seconds)

    async def close(self) -> None:
        await self.provider_chain.close()
        await self.store.close()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    async def handle(self, event: MessageEvent) -> DispatchResult:
        """Process one inbound message and return what happened"""
        context = MessageContext(event, self.config.bot_name)
        try:
            result = await self._dispatch(context)
        except Exception as e:
            logger.error(f"❌ Error processing message in {event.conversation_id}: {e}")
            result = DispatchResult.suppressed("internal_error")

        if self.config.dispatch_log_enabled:
            debug_logger.log_dispatch(event, result, self.config.log_dir, context.get_data("stopped_by"))
        return result

    async def _dispatch(self, context: MessageContext) -> DispatchResult:
        event = context.event
        if not context.content.strip():
            return DispatchResult.suppressed("empty")

        # Step 1: rate limit, spam, moderation
        stopped = await self.pipeline.process(context)
        if stopped is not None:
            return stopped

        # Step 2: stay silent while the owner is around to answer
        brand = self.brand.brand
        if self.config.silent_when_owner_online and brand.owner_online:
            logger.info("Owner is online, assistant stays silent")
            return DispatchResult.suppressed("owner_online")

        # Step 3: deterministic intents
        routed = self.router.route(context.clean_content)
        if not routed.needs_completion:
            text = await self._render_intent(routed, brand)
            await self.response_handler.deliver(
                event.conversation_id, text, event.message_id, typing_delay=False
            )
            logger.info(f"Answered {routed.intent.value} intent in {event.conversation_id}")
            return DispatchResult.replied(text, intent=routed.intent.value)

        # Step 4: only complete when the message is meant for us
        if event.multi_party and not self.router.is_addressed(context.content, brand.keywords):
            logger.debug(f"⏭️ Not addressed to {self.config.bot_name}, skipping")
            return DispatchResult.suppressed("not_addressed")

        # Step 5: completion
        actor = self.store.actor(event.actor_key)
        catalog_text = await read_catalog(self.catalog)
        context.set_data("language", actor.language)
        context.set_data("prompt", build_user_prompt(context.clean_content, brand, catalog_text, actor.context))

        logger.info(f"🚀 Generating response for {event.actor_key}")
        result = await self.provider_chain.process(context)

        async with self.store.actor_lock(event.actor_key):
            actor.update_context(summarize_exchange(context.clean_content, result.text))
            self.store.mark_dirty()

        # Step 6: send
        context.set_data("reply", result.text)
        await self.response_handler.process(context)
        return result

    async def _render_intent(self, routed: RoutedIntent, brand: BrandContext) -> str:
        helper = self.intent_helpers.get(routed.intent)
        if helper is not None:
            try:
                text = await helper(routed)
                if text:
                    return text
            except Exception as e:
                logger.warning(f"Intent helper for {routed.intent.value} failed: {e}")

        if routed.intent == Intent.PLAY_MUSIC:
            return replies.music_request(routed.argument)
        if routed.intent == Intent.WEATHER:
            return replies.weather_request(routed.argument)
        if routed.intent == Intent.GENERATE_IMAGE:
            return replies.image_request(routed.argument)
        if routed.intent == Intent.TRANSLATE:
            return replies.translation_request(routed.target, routed.argument)
        if routed.intent == Intent.JOKE:
            return replies.random_joke()
        if routed.intent == Intent.QUOTE:
            return replies.quote_of_the_day(self.clock())
        if routed.intent == Intent.CONTACT:
            return replies.contact_card(brand)
        raise ValueError(f"No renderer for intent {routed.intent}")

    # ------------------------------------------------------------------
    # Administrative overrides
    # ------------------------------------------------------------------
    async def mute(self, conversation_id: str, actor_id: str, minutes: Optional[float] = None,
                   reason: str = "Muted by admin") -> MuteRecord:
        return await self.moderation.mute(conversation_id, actor_id, minutes, reason)

    async def unmute(self, conversation_id: str, actor_id: str) -> bool:
        return await self.moderation.unmute(conversation_id, actor_id)

    async def reset_warnings(self, conversation_id: str, actor_id: str) -> int:
        return await self.moderation.reset_warnings(conversation_id, actor_id)

    async def remove_actor(self, conversation_id: str, actor_id: str,
                           role: SenderRole = SenderRole.MEMBER) -> Optional[ModerationAction]:
        return await self.moderation.remove_actor(conversation_id, actor_id, role)

    async def set_rules(self, conversation_id: str, **changes) -> ModerationRules:
        return await self.moderation.set_rules(conversation_id, **changes)

    async def set_language(self, conversation_id: str, actor_id: str, language: Language) -> None:
        key = actor_key(conversation_id, actor_id)
        async with self.store.actor_lock(key):
            self.store.actor(key).language = language
            self.store.mark_dirty()
        logger.info(f"Language for {key} set to {language.value}")

    def standing(self, conversation_id: str, actor_id: str) -> Standing:
        return self.moderation.standing(conversation_id, actor_id)

    def stats(self, conversation_id: str) -> ConversationStats:
        return self.store.conversation(conversation_id).stats

    def reload_brand(self) -> BrandContext:
        brand = self.brand.reload()
        logger.info(f"Brand context reloaded for {brand.owner_name}")
        return brand

    async def reload_providers(self, providers: List[ProviderSpec]) -> None:
        await self.provider_chain.reload(providers)
