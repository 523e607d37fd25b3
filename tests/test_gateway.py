"""
End-to-end dispatch through the Gateway with fake platform and providers.
"""

import json

import pytest

from conftest import FakeTransport
from gateway.brand import BrandContext, BrandContextHolder
from gateway.errors import TransientProviderError
from gateway.intent_router import Intent
from gateway.models import (
    DispatchOutcome,
    Language,
    MessageEvent,
    ModerationAction,
    StandingState,
)


def event(content, actor="u1", conversation="c1", message_id="m1", **kwargs):
    return MessageEvent(conversation, actor, content, message_id=message_id, **kwargs)


@pytest.mark.asyncio
async def test_addressed_message_gets_completion(make_gateway, platform):
    groq = FakeTransport("groq", "We build web apps and chatbots.")
    gateway = make_gateway(groq)

    result = await gateway.handle(event("@Assistant what do you offer"))

    assert result.outcome == DispatchOutcome.REPLIED
    assert result.intent == Intent.NEEDS_COMPLETION.value
    assert result.text == "We build web apps and chatbots."
    assert platform.sent == [("c1", "We build web apps and chatbots.", "m1")]
    # Mention is stripped before prompting
    assert "User's current message: what do you offer" in groq.calls[0][1]


@pytest.mark.asyncio
async def test_group_chatter_is_ignored(make_gateway, platform):
    groq = FakeTransport("groq", "unused")
    gateway = make_gateway(groq)

    result = await gateway.handle(event("good morning everyone"))

    assert result.outcome == DispatchOutcome.SUPPRESSED
    assert result.reason == "not_addressed"
    assert groq.calls == []
    assert platform.sent == []


@pytest.mark.asyncio
async def test_direct_conversation_needs_no_addressing(make_gateway):
    gateway = make_gateway(FakeTransport("groq", "Good morning to you too!"))

    result = await gateway.handle(event("good morning", multi_party=False))

    assert result.outcome == DispatchOutcome.REPLIED


@pytest.mark.asyncio
async def test_canned_intent_skips_providers(make_gateway, platform):
    groq = FakeTransport("groq", "unused")
    gateway = make_gateway(groq)

    result = await gateway.handle(event("tell me a joke"))

    assert result.outcome == DispatchOutcome.REPLIED
    assert result.intent == "joke"
    assert result.text.startswith("😂")
    assert groq.calls == []
    assert platform.texts == [result.text]


@pytest.mark.asyncio
async def test_contact_intent_uses_brand(make_gateway, platform):
    brand = BrandContextHolder(brand=BrandContext(owner_name="Rafi", contact_links={"github": "github.com/rafi"}))
    gateway = make_gateway(brand=brand)

    result = await gateway.handle(event("how do I contact you"))

    assert "Rafi" in result.text
    assert "github.com/rafi" in result.text


@pytest.mark.asyncio
async def test_intent_helper_and_fallback(make_gateway):
    async def weather(routed):
        return f"Sunny in {routed.argument}"

    async def broken(routed):
        raise RuntimeError("weather service down")

    gateway = make_gateway(intent_helpers={Intent.WEATHER: weather})
    assert (await gateway.handle(event("weather in Dhaka"))).text == "Sunny in Dhaka"

    gateway = make_gateway(intent_helpers={Intent.WEATHER: broken})
    result = await gateway.handle(event("weather in Dhaka"))
    assert result.outcome == DispatchOutcome.REPLIED
    assert "Dhaka" in result.text


@pytest.mark.asyncio
async def test_rate_limit_stops_ninth_message(make_gateway):
    gateway = make_gateway(FakeTransport("groq", "hi"))

    for i in range(8):
        result = await gateway.handle(event(f"chatting along number {i}", message_id=f"m{i}"))
        assert result.reason == "not_addressed"

    result = await gateway.handle(event("one more message", message_id="m9"))

    assert result.outcome == DispatchOutcome.SUPPRESSED
    assert result.reason == "rate_limited"


@pytest.mark.asyncio
async def test_repeated_message_is_spam_not_violation(make_gateway, platform):
    gateway = make_gateway(FakeTransport("groq", "hi"))

    for _ in range(2):
        await gateway.handle(event("join my channel"))
    result = await gateway.handle(event("join my channel"))

    assert result.outcome == DispatchOutcome.SUPPRESSED
    assert result.reason == "spam:repeated_message"
    assert gateway.standing("c1", "u1").state == StandingState.CLEAR
    assert gateway.stats("c1").spam_blocked == 1


@pytest.mark.asyncio
async def test_caps_three_times_removes_member(make_gateway, platform):
    gateway = make_gateway(FakeTransport("groq", "hi"))

    results = [
        await gateway.handle(event(text, message_id=f"m{i}"))
        for i, text in enumerate(["HELLO EVERYONE ONE", "HELLO EVERYONE TWO", "HELLO EVERYONE THREE"])
    ]

    assert [r.action for r in results] == [
        ModerationAction.WARNED,
        ModerationAction.WARNED,
        ModerationAction.REMOVED,
    ]
    assert all(r.outcome == DispatchOutcome.MODERATED for r in results)
    assert platform.removed == [("c1", "u1")]
    assert gateway.stats("c1").users_kicked == 1
    assert gateway.standing("c1", "u1").state == StandingState.REMOVED


@pytest.mark.asyncio
async def test_mute_then_recover(make_gateway, platform, clock):
    gateway = make_gateway(FakeTransport("groq", "Welcome back!"))
    await gateway.mute("c1", "u1", minutes=5)

    muted = await gateway.handle(event("@Assistant hello there", message_id="m1"))
    assert muted.outcome == DispatchOutcome.MODERATED
    assert muted.action == ModerationAction.DELETED
    assert platform.deleted == [("c1", "m1")]

    clock.advance(5 * 60)
    result = await gateway.handle(event("@Assistant hello there", message_id="m2"))

    assert result.outcome == DispatchOutcome.REPLIED
    assert result.text == "Welcome back!"


@pytest.mark.asyncio
async def test_owner_online_keeps_assistant_silent(make_gateway, brand):
    groq = FakeTransport("groq", "unused")
    gateway = make_gateway(groq)
    brand.set_status("online")

    result = await gateway.handle(event("@Assistant are you there?"))

    assert result.reason == "owner_online"
    assert groq.calls == []


@pytest.mark.asyncio
async def test_exhausted_chain_replies_with_apology_in_actor_language(make_gateway, platform):
    failing = FakeTransport("groq", TransientProviderError("groq", "HTTP 503"))
    gateway = make_gateway(failing)
    await gateway.set_language("c1", "u1", Language.HINDI)

    result = await gateway.handle(event("@Assistant kya haal hai"))

    assert result.outcome == DispatchOutcome.REPLIED
    assert result.text.startswith("Maaf kijiye")
    assert "Rafi" in result.text
    assert platform.texts == [result.text]


@pytest.mark.asyncio
async def test_context_summary_feeds_next_prompt(make_gateway, clock):
    groq = FakeTransport("groq", "Our apps start at $500.", "Sure, I'll let Rafi know.")
    gateway = make_gateway(groq)

    await gateway.handle(event("@Assistant how much for an app", message_id="m1"))
    clock.advance(10)
    await gateway.handle(event("@Assistant please book a call", message_id="m2"))

    actor = gateway.store.actor("c1:u1")
    assert "please book a call" in actor.context
    assert "Our apps start at $500." in groq.calls[1][1]


@pytest.mark.asyncio
async def test_handle_never_raises(make_gateway, monkeypatch):
    gateway = make_gateway(FakeTransport("groq", "hi"))

    def boom(content):
        raise RuntimeError("router exploded")

    monkeypatch.setattr(gateway.router, "route", boom)

    result = await gateway.handle(event("@Assistant hello"))

    assert result.outcome == DispatchOutcome.SUPPRESSED
    assert result.reason == "internal_error"


@pytest.mark.asyncio
async def test_failing_gate_fails_open(make_gateway, monkeypatch):
    gateway = make_gateway(FakeTransport("groq", "still here"))

    async def broken(*args, **kwargs):
        raise RuntimeError("moderation store down")

    monkeypatch.setattr(gateway.moderation, "evaluate", broken)

    result = await gateway.handle(event("@Assistant hello"))

    assert result.outcome == DispatchOutcome.REPLIED
    assert result.text == "still here"


@pytest.mark.asyncio
async def test_catalog_text_reaches_prompt(make_gateway):
    class Catalog:
        async def formatted_catalog(self):
            return "Landing page - $200"

    groq = FakeTransport("groq", "We have a landing page package.")
    gateway = make_gateway(groq, catalog=Catalog())

    await gateway.handle(event("@Assistant what packages exist"))

    assert "Landing page - $200" in groq.calls[0][1]


@pytest.mark.asyncio
async def test_dispatch_log(make_gateway, config, tmp_path):
    config.dispatch_log_enabled = True
    config.log_dir = str(tmp_path)
    gateway = make_gateway(FakeTransport("groq", "logged reply"))

    await gateway.handle(event("@Assistant hello"))
    await gateway.handle(event("good morning everyone", message_id="m2"))

    lines = (tmp_path / "dispatch.jsonl").read_text().splitlines()
    entries = [json.loads(line) for line in lines]
    assert [e["outcome"] for e in entries] == ["replied", "suppressed"]
    assert entries[0]["content_length"] == len("@Assistant hello")
    assert "content" not in entries[0]

    completions = [json.loads(line) for line in (tmp_path / "completions.jsonl").read_text().splitlines()]
    assert completions[0]["succeeded"] is True


@pytest.mark.asyncio
async def test_reload_providers_and_brand(make_gateway, brand, tmp_path):
    groq = FakeTransport("groq", "from groq")
    anthropic = FakeTransport("anthropic", "from anthropic")
    gateway = make_gateway(groq)
    await gateway.reload_providers([anthropic.spec])
    assert groq.closed is True

    result = await gateway.handle(event("@Assistant hello"))
    assert result.text == "from anthropic"

    await gateway.close()
    assert anthropic.closed is True

    brand_file = tmp_path / "brand.json"
    brand_file.write_text(json.dumps({"owner_name": "Nadia", "status": "busy"}))
    brand.path = str(brand_file)

    assert gateway.reload_brand().owner_name == "Nadia"


@pytest.mark.asyncio
async def test_all_caps_request_with_ceiling_of_two(make_gateway, platform):
    gateway = make_gateway(FakeTransport("groq", "unused"))
    await gateway.set_rules("c1", escalation_ceiling=2)

    first = await gateway.handle(event("PLAY SOMETHING NOW PLEASE", message_id="m1"))
    assert first.action == ModerationAction.WARNED
    assert gateway.standing("c1", "u1").warnings == 1

    second = await gateway.handle(event("PLAY SOMETHING NOW PLEASE", message_id="m2"))
    assert second.action == ModerationAction.REMOVED
    assert gateway.stats("c1").users_kicked == 1
    assert platform.removed == [("c1", "u1")]


@pytest.mark.asyncio
async def test_failed_kick_keeps_removed_actor_silenced(make_gateway, platform):
    groq = FakeTransport("groq", "model reply")
    gateway = make_gateway(groq)
    await gateway.set_rules("c1", escalation_ceiling=1)
    platform.fail_on = {"remove_actor"}

    removed = await gateway.handle(event("PLAY SOMETHING NOW PLEASE", message_id="m1"))
    assert removed.action == ModerationAction.REMOVED
    assert platform.removed == []

    result = await gateway.handle(event("@Assistant what is the price?", message_id="m2"))

    assert result.outcome == DispatchOutcome.MODERATED
    assert result.reason == "removed"
    assert groq.calls == []

    platform.fail_on = set()
    await gateway.handle(event("HELLO AGAIN EVERYONE", message_id="m3"))

    assert platform.removed == [("c1", "u1")]
    assert gateway.stats("c1").users_kicked == 1
