"""
Tests for provider transports.
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from gateway.config import ProviderSettings
from gateway.errors import EmptyCompletion, ProcessorError, TransientProviderError
from gateway.providers import (
    AnthropicTransport,
    OpenAICompatibleTransport,
    build_provider_specs,
)


class FakeMessages:
    def __init__(self, blocks):
        self.blocks = blocks
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(content=self.blocks)


def anthropic_settings(**overrides):
    values = dict(provider_id="anthropic", timeout=15, model="claude-3-5-haiku-20241022", api_key="sk-test")
    values.update(overrides)
    return ProviderSettings(**values)


@pytest_asyncio.fixture
async def chat_server():
    """Local OpenAI-compatible endpoint; tests set its status and reply."""
    state = {"requests": [], "status": 200, "reply": "Hello from the server"}

    async def completions(request):
        state["requests"].append((dict(request.headers), await request.json()))
        if state["status"] != 200:
            return web.Response(status=state["status"], text="upstream overloaded")
        return web.json_response({"choices": [{"message": {"content": state["reply"]}}]})

    app = web.Application()
    app.router.add_post("/v1/chat/completions", completions)
    server = test_utils.TestServer(app)
    await server.start_server()
    state["url"] = str(server.make_url("/v1/chat/completions"))
    yield state
    await server.close()


@pytest.mark.asyncio
async def test_anthropic_transport_joins_text_blocks():
    messages = FakeMessages([
        SimpleNamespace(type="text", text=" Hello"),
        SimpleNamespace(type="tool_use", text="ignored"),
        SimpleNamespace(type="text", text=" there "),
    ])
    transport = AnthropicTransport(anthropic_settings(), client=SimpleNamespace(messages=messages))

    text = await transport.invoke("system", "user", 15)

    assert text == "Hello there"
    assert messages.kwargs["system"] == "system"
    assert messages.kwargs["messages"] == [{"role": "user", "content": "user"}]
    assert messages.kwargs["timeout"] == 15


@pytest.mark.asyncio
async def test_anthropic_transport_empty_reply():
    messages = FakeMessages([SimpleNamespace(type="text", text="   ")])
    transport = AnthropicTransport(anthropic_settings(), client=SimpleNamespace(messages=messages))

    with pytest.raises(EmptyCompletion):
        await transport.invoke("system", "user", 15)


def test_anthropic_transport_requires_key():
    with pytest.raises(ProcessorError):
        AnthropicTransport(anthropic_settings(api_key=None))


@pytest.mark.asyncio
async def test_openai_compatible_transport(chat_server):
    settings = ProviderSettings("groq", 12, "llama-3.3-70b-versatile", api_key="gsk_test", base_url=chat_server["url"])
    transport = OpenAICompatibleTransport(settings)

    try:
        text = await transport.invoke("be brief", "hello", 5)
    finally:
        await transport.close()

    assert text == "Hello from the server"
    headers, payload = chat_server["requests"][0]
    assert headers["Authorization"] == "Bearer gsk_test"
    assert payload["model"] == "llama-3.3-70b-versatile"
    assert payload["messages"][0] == {"role": "system", "content": "be brief"}


@pytest.mark.asyncio
async def test_openai_compatible_transport_non_2xx(chat_server):
    chat_server["status"] = 503
    settings = ProviderSettings("openrouter", 10, "model", base_url=chat_server["url"])
    transport = OpenAICompatibleTransport(settings)

    try:
        with pytest.raises(TransientProviderError) as excinfo:
            await transport.invoke("system", "user", 5)
    finally:
        await transport.close()

    assert "HTTP 503" in str(excinfo.value)


def test_extract_text_rejects_malformed_and_empty():
    transport = OpenAICompatibleTransport(ProviderSettings("groq", 12, "m", base_url="https://example.invalid"))

    with pytest.raises(TransientProviderError):
        transport._extract_text({"choices": []})
    with pytest.raises(EmptyCompletion):
        transport._extract_text({"choices": [{"message": {"content": "  "}}]})


def test_build_provider_specs_skips_unconfigured():
    specs = build_provider_specs([
        ProviderSettings("groq", 12, "m", base_url="https://api.groq.com/openai/v1/chat/completions"),
        ProviderSettings("anthropic", 15, "claude", api_key=None),
        ProviderSettings("custom", 5, "m", base_url=None),
    ])

    assert [(s.provider_id, s.timeout) for s in specs] == [("groq", 12)]
