"""
Provider transports - one per configured language-model backend.

Supports:
- Anthropic via the official SDK
- Any OpenAI-compatible chat completions endpoint (Groq, OpenRouter) via aiohttp

Every transport raises TransientProviderError (or EmptyCompletion) on failure;
the ProviderChain decides what to do next.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import aiohttp
import anthropic

from .config import ProviderSettings
from .errors import EmptyCompletion, ProcessorError, TransientProviderError

logger = logging.getLogger(__name__)


@runtime_checkable
class ProviderTransport(Protocol):
    provider_id: str

    async def invoke(self, system_prompt: str, user_prompt: str, timeout: float) -> str: ...


@dataclass(frozen=True)
class ProviderSpec:
    provider_id: str
    transport: ProviderTransport
    timeout: float


class AnthropicTransport:
    """Calls the Anthropic Messages API"""

    def __init__(self, settings: ProviderSettings, client: Optional[Any] = None):
        self.provider_id = settings.provider_id
        self.model_name = settings.model.replace("anthropic/", "")
        self.max_tokens = settings.max_tokens
        self.temperature = settings.temperature
        if client is None:
            if not settings.api_key:
                raise ProcessorError(f"provider.{self.provider_id}", "ANTHROPIC_API_KEY not set")
            client = anthropic.AsyncAnthropic(api_key=settings.api_key)
        self.client = client

    async def invoke(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model_name,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                timeout=timeout,
            )
        except anthropic.APITimeoutError:
            raise asyncio.TimeoutError()
        except anthropic.APIError as e:
            raise TransientProviderError(self.provider_id, f"Anthropic API error: {e}", e)

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text").strip()
        if not text:
            raise EmptyCompletion(self.provider_id)
        return text

    async def close(self) -> None:
        await self.client.close()


class OpenAICompatibleTransport:
    """POSTs to an OpenAI-compatible /chat/completions endpoint"""

    def __init__(self, settings: ProviderSettings, session: Optional[aiohttp.ClientSession] = None,
                 extra_headers: Optional[Dict[str, str]] = None):
        if not settings.base_url:
            raise ProcessorError(f"provider.{settings.provider_id}", "No endpoint configured")
        self.provider_id = settings.provider_id
        self.settings = settings
        self.extra_headers = extra_headers or {}
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _payload(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        return {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }

    async def invoke(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        headers = {"Content-Type": "application/json", **self.extra_headers}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"

        try:
            async with self.session.post(
                self.settings.base_url,
                json=self._payload(system_prompt, user_prompt),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status < 200 or response.status >= 300:
                    error_text = await response.text()
                    raise TransientProviderError(
                        self.provider_id, f"HTTP {response.status}: {error_text[:200]}"
                    )
                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise TransientProviderError(self.provider_id, f"Transport error: {e}", e)

        return self._extract_text(data)

    def _extract_text(self, data: Dict[str, Any]) -> str:
        try:
            choices: List[Dict[str, Any]] = data.get("choices") or []
            text = (choices[0].get("message") or {}).get("content") or ""
        except (AttributeError, IndexError) as e:
            raise TransientProviderError(self.provider_id, f"Malformed response: {e}", e)
        text = text.strip()
        if not text:
            raise EmptyCompletion(self.provider_id)
        return text

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


def build_transport(settings: ProviderSettings, session: Optional[aiohttp.ClientSession] = None) -> ProviderTransport:
    """Create the transport for one configured provider"""
    if settings.provider_id == "anthropic":
        return AnthropicTransport(settings)
    extra_headers = {}
    if settings.provider_id == "openrouter":
        extra_headers = {"X-Title": "Group Assistant Gateway"}
    return OpenAICompatibleTransport(settings, session=session, extra_headers=extra_headers)


def build_provider_specs(providers: List[ProviderSettings],
                         session: Optional[aiohttp.ClientSession] = None) -> List[ProviderSpec]:
    """Build the ordered chain, skipping providers that cannot be configured"""
    specs = []
    for settings in providers:
        try:
            transport = build_transport(settings, session)
        except ProcessorError as e:
            logger.warning(f"Skipping provider {settings.provider_id}: {e}")
            continue
        specs.append(ProviderSpec(settings.provider_id, transport, settings.timeout))
    logger.info(f"Provider chain: {[f'{s.provider_id}({s.timeout:.0f}s)' for s in specs]}")
    return specs
