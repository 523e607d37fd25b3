import asyncio

import pytest

from gateway.brand import BrandContext, BrandContextHolder
from gateway.config import GatewayConfig
from gateway.coordinator import Gateway
from gateway.providers import ProviderSpec
from gateway.state_store import StateStore

HANG = object()


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePlatform:
    """Records platform actions; actions listed in fail_on raise instead."""

    def __init__(self):
        self.deleted: list[tuple[str, str | None]] = []
        self.removed: list[tuple[str, str]] = []
        self.sent: list[tuple[str, str, str | None]] = []
        self.fail_on: set[str] = set()

    async def delete_message(self, conversation_id, message_id):
        if "delete_message" in self.fail_on:
            raise RuntimeError("delete failed")
        self.deleted.append((conversation_id, message_id))

    async def remove_actor(self, conversation_id, actor_id):
        if "remove_actor" in self.fail_on:
            raise RuntimeError("missing permissions")
        self.removed.append((conversation_id, actor_id))

    async def send_reply(self, conversation_id, text, reply_to=None):
        if "send_reply" in self.fail_on:
            raise RuntimeError("send failed")
        self.sent.append((conversation_id, text, reply_to))

    @property
    def texts(self) -> list[str]:
        return [text for _, text, _ in self.sent]


class FakeTransport:
    """
    Scripted provider. Each invoke consumes the next scripted response:
    a string is returned, an exception is raised, HANG never answers.
    The last response repeats once the script runs out.
    """

    def __init__(self, provider_id: str, *responses, timeout: float = 1.0):
        self.provider_id = provider_id
        self.responses = list(responses) or ["ok"]
        self.timeout = timeout
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def invoke(self, system_prompt, user_prompt, timeout):
        self.calls.append((system_prompt, user_prompt))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        if response is HANG:
            await asyncio.sleep(3600)
        return response

    async def close(self):
        self.closed = True

    @property
    def spec(self) -> ProviderSpec:
        return ProviderSpec(self.provider_id, self, self.timeout)


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def config():
    return GatewayConfig(bot_name="Assistant", typing_delay_enabled=False)


@pytest.fixture
def store(config, clock):
    return StateStore(default_rules=config.default_rules, escalation_ceiling=config.escalation_ceiling, clock=clock)


@pytest.fixture
def brand():
    return BrandContextHolder(brand=BrandContext(owner_name="Rafi", services=["Web apps", "Chatbots"]))


@pytest.fixture
def make_gateway(config, platform, clock, brand):
    def _make(*transports, **kwargs):
        kwargs.setdefault("brand", brand)
        return Gateway(
            config,
            platform,
            [t.spec for t in transports],
            clock=clock,
            sleep=no_sleep,
            **kwargs,
        )

    return _make
