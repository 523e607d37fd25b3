"""
Tests for spam heuristics.
"""

import pytest

from gateway.base_processor import MessageContext
from gateway.models import DispatchOutcome, MessageEvent
from gateway.spam_detector import SpamDetector, SpamVerdict


@pytest.fixture
def detector(store, config, platform, clock):
    return SpamDetector(store, config, platform, clock=clock)


@pytest.mark.asyncio
async def test_third_identical_message_is_spam(detector, clock):
    first = await detector.classify("c1:u1", "buy my course")
    clock.advance(5)
    second = await detector.classify("c1:u1", "buy my course")
    clock.advance(5)
    third = await detector.classify("c1:u1", "buy my course")

    assert first.verdict == SpamVerdict.OK
    assert second.verdict == SpamVerdict.OK
    assert third.is_spam
    assert third.reason == "repeated_message"


@pytest.mark.asyncio
async def test_repeats_outside_window_do_not_count(detector, clock):
    await detector.classify("c1:u1", "good morning")
    clock.advance(30)
    await detector.classify("c1:u1", "good morning")
    clock.advance(31)

    result = await detector.classify("c1:u1", "good morning")

    assert result.verdict == SpamVerdict.OK


@pytest.mark.asyncio
async def test_length_limits(detector):
    too_short = await detector.classify("c1:u1", "hi")
    too_long = await detector.classify("c1:u2", "a" * 4001)
    just_fits = await detector.classify("c1:u3", "a" * 4000)

    assert too_short.reason == "too_short"
    assert too_long.reason == "too_long"
    assert not just_fits.is_spam


@pytest.mark.asyncio
async def test_punctuation_burst(detector):
    assert (await detector.classify("c1:u1", "wow!!!!!")).reason == "punctuation_burst"
    assert not (await detector.classify("c1:u2", "wow!!!!")).is_spam


@pytest.mark.asyncio
async def test_history_is_bounded(detector, store, config):
    for i in range(15):
        await detector.classify("c1:u1", f"message {i}")

    actor = store.actor("c1:u1")
    assert len(actor.recent_messages) == config.spam_history_size
    assert actor.recent_messages[0].content == "message 5"
    assert actor.message_count == 15


@pytest.mark.asyncio
async def test_spam_updates_score_and_stats(detector, store):
    await detector.classify("c1:u1", "no", conversation_id="c1")
    await detector.classify("c1:u1", "!!!!!!", conversation_id="c1")

    assert store.actor("c1:u1").spam_score == 2
    assert store.conversation("c1").stats.spam_blocked == 2
    # Spam never warns
    assert store.conversation("c1").warning_count("u1") == 0


@pytest.mark.asyncio
async def test_process_deletes_when_configured(store, config, platform, clock):
    config.spam_delete_messages = True
    detector = SpamDetector(store, config, platform, clock=clock)
    context = MessageContext(MessageEvent("c1", "u1", "ok", message_id="m1"))

    result = await detector.process(context)

    assert result.outcome == DispatchOutcome.SUPPRESSED
    assert result.reason == "spam:too_short"
    assert platform.deleted == [("c1", "m1")]


@pytest.mark.asyncio
async def test_process_passes_clean_messages(detector, platform):
    context = MessageContext(MessageEvent("c1", "u1", "what services do you offer", message_id="m1"))

    assert await detector.process(context) is None
    assert platform.deleted == []
