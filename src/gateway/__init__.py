"""
Conversational dispatch & safety gateway.

Each processor handles one stage of message dispatch:
- Rate limiting
- Spam detection
- Moderation (warn / mute / remove)
- Intent routing and addressing
- Completion through an ordered provider chain
- Response delivery

The Gateway wires them together; platform adapters only call Gateway.handle().
"""

from .base_processor import BaseProcessor, MessageContext, ProcessorPipeline
from .brand import BrandContext, BrandContextHolder
from .config import GatewayConfig, ProviderSettings, parse_provider_chain
from .coordinator import Gateway
from .intent_router import Intent, IntentRouter, RoutedIntent, route
from .models import (
    DispatchOutcome,
    DispatchResult,
    Language,
    MessageEvent,
    ModerationAction,
    SenderRole,
    Standing,
    StandingState,
)
from .moderation import ModerationEngine
from .platform import CatalogLookup, PlatformActions
from .provider_chain import ProviderChain
from .providers import ProviderSpec, build_provider_specs
from .rate_limiter import RateLimiter
from .response_handler import ResponseHandler
from .spam_detector import SpamDetector
from .state_store import StateStore

__all__ = [
    "BaseProcessor",
    "MessageContext",
    "ProcessorPipeline",
    "BrandContext",
    "BrandContextHolder",
    "GatewayConfig",
    "ProviderSettings",
    "parse_provider_chain",
    "Gateway",
    "Intent",
    "IntentRouter",
    "RoutedIntent",
    "route",
    "DispatchOutcome",
    "DispatchResult",
    "Language",
    "MessageEvent",
    "ModerationAction",
    "SenderRole",
    "Standing",
    "StandingState",
    "ModerationEngine",
    "CatalogLookup",
    "PlatformActions",
    "ProviderChain",
    "ProviderSpec",
    "build_provider_specs",
    "RateLimiter",
    "ResponseHandler",
    "SpamDetector",
    "StateStore",
]
