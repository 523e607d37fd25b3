"""
Provider Chain - Obtains completions from an ordered list of language-model providers.

Supports:
- Strict priority order with a per-provider timeout
- Fail-fast fallback (no backoff between providers)
- Localized apology when every provider fails
- Hot reload of the provider list

complete() never raises.
"""

import asyncio
import time
from typing import Callable, Dict, List, Optional

from . import debug_logger, replies
from .base_processor import BaseProcessor, MessageContext
from .brand import BrandContextHolder
from .config import GatewayConfig
from .errors import ChainExhausted, EmptyCompletion, TransientProviderError
from .models import AttemptOutcome, CompletionAttempt, CompletionResult, DispatchResult, Language
from .prompts import build_system_prompt
from .providers import ProviderSpec


class ProviderChain(BaseProcessor):
    """
    Processor that tries each configured provider in turn until one returns text.

    Holds the canonical ordered ProviderSpec list; each request reads it once.
    """

    def __init__(self, providers: List[ProviderSpec], brand: Optional[BrandContextHolder] = None,
                 config: Optional[GatewayConfig] = None, clock: Callable[[], float] = time.monotonic):
        super().__init__("provider_chain", config)
        self.providers: List[ProviderSpec] = list(providers)
        # Superseded provider lists, and request counts keyed by id() of the list in use
        self._retired: List[List[ProviderSpec]] = []
        self._in_flight: Dict[int, int] = {}
        self.brand = brand or BrandContextHolder()
        self.clock = clock

        self.logger.info(f"Provider chain initialized with {len(self.providers)} providers")
        for spec in self.providers:
            self.logger.info(f"  {spec.provider_id}: timeout {spec.timeout}s")

    async def reload(self, providers: List[ProviderSpec]) -> None:
        """
        Swap in a new ordered provider list. In-flight requests keep the old one;
        its transports are closed once the last of those requests finishes.
        """
        self._retired.append(self.providers)
        self.providers = list(providers)
        self.logger.info(f"Provider chain reloaded: {[spec.provider_id for spec in self.providers]}")
        await self._close_idle_retired()

    async def _close_idle_retired(self) -> None:
        current = {id(spec.transport) for spec in self.providers}
        for specs in list(self._retired):
            if self._in_flight.get(id(specs)):
                continue
            self._retired.remove(specs)
            # Transports carried over into the new list stay open
            await self._close_specs([spec for spec in specs if id(spec.transport) not in current])

    async def complete(self, prompt: str, language: Optional[Language] = None) -> str:
        """Return a completion, or a localized apology if every provider fails"""
        result = await self.complete_with_attempts(prompt, language)
        return result.text

    async def complete_with_attempts(self, prompt: str, language: Optional[Language] = None,
                                     conversation_id: Optional[str] = None) -> CompletionResult:
        providers = self.providers
        key = id(providers)
        self._in_flight[key] = self._in_flight.get(key, 0) + 1
        try:
            return await self._run_chain(providers, prompt, language, conversation_id)
        finally:
            self._in_flight[key] -= 1
            if not self._in_flight[key]:
                del self._in_flight[key]
            if self._retired:
                await self._close_idle_retired()

    async def _run_chain(self, providers: List[ProviderSpec], prompt: str, language: Optional[Language],
                         conversation_id: Optional[str]) -> CompletionResult:
        brand = self.brand.brand
        # Built once, reused for every fallback attempt
        system_prompt = build_system_prompt(brand, language)
        attempts: List[CompletionAttempt] = []

        for spec in providers:
            attempt, text = await self._attempt(spec, system_prompt, prompt)
            attempts.append(attempt)
            if text is not None:
                self._log_attempts(attempts, conversation_id)
                return CompletionResult(text=text, attempts=attempts, provider_id=spec.provider_id)
            self.logger.info("Falling back to next provider...")

        exhausted = ChainExhausted(len(attempts))
        self.logger.error(f"{exhausted}")
        self._log_attempts(attempts, conversation_id)
        return CompletionResult(text=replies.fallback_response(language, brand.owner_name), attempts=attempts)

    async def _attempt(self, spec: ProviderSpec, system_prompt: str, prompt: str):
        self.logger.info(f"Attempting completion with {spec.provider_id} (timeout {spec.timeout}s)")
        started = self.clock()
        outcome = AttemptOutcome.SUCCESS
        error = None
        text = None

        try:
            raw = await asyncio.wait_for(
                spec.transport.invoke(system_prompt, prompt, spec.timeout), timeout=spec.timeout
            )
            text = (raw or "").strip()
            if not text:
                raise EmptyCompletion(spec.provider_id)
        except EmptyCompletion as e:
            outcome, error, text = AttemptOutcome.EMPTY, str(e), None
        except asyncio.TimeoutError:
            outcome, error, text = AttemptOutcome.TIMEOUT, f"Timed out after {spec.timeout}s", None
        except TransientProviderError as e:
            outcome, error, text = AttemptOutcome.ERROR, str(e), None
        except Exception as e:
            outcome, error, text = AttemptOutcome.ERROR, f"Unexpected error: {e}", None

        latency = self.clock() - started
        if outcome == AttemptOutcome.SUCCESS:
            self.logger.info(f"✅ {spec.provider_id} responded in {latency:.2f}s")
        else:
            self.logger.error(f"{spec.provider_id} failed ({outcome.value}) after {latency:.2f}s: {error}")
        return CompletionAttempt(spec.provider_id, outcome, latency, error), text

    def _log_attempts(self, attempts: List[CompletionAttempt], conversation_id: Optional[str]) -> None:
        if self.config.dispatch_log_enabled:
            debug_logger.log_completion_attempts(attempts, self.config.log_dir, conversation_id)

    async def process(self, context: MessageContext) -> Optional[DispatchResult]:
        prompt = context.get_data("prompt", context.clean_content)
        language = context.get_data("language")
        result = await self.complete_with_attempts(prompt, language, context.conversation_id)
        context.set_data("completion", result)
        return DispatchResult.replied(result.text, intent="needs_completion")

    async def close(self) -> None:
        specs = {}
        for spec in [spec for retired in self._retired for spec in retired] + self.providers:
            specs.setdefault(id(spec.transport), spec)
        self._retired = []
        await self._close_specs(list(specs.values()))

    async def _close_specs(self, specs: List[ProviderSpec]) -> None:
        for spec in specs:
            close = getattr(spec.transport, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                self.logger.warning(f"Error closing {spec.provider_id} transport: {e}")
