"""Tests for the spoken confirmation queue."""

import asyncio

import pytest

from voice.intent_parser import Intent, IntentKind
from voice.tts_feedback import VoiceFeedback


def make_feedback(registry, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    return VoiceFeedback(registry, **kwargs)


@pytest.mark.asyncio
async def test_high_priority_interrupts_current_utterance(registry, speaker):
    feedback = make_feedback(registry)
    speaker.duration = 0.2
    feedback.enqueue("resting now", priority="low")
    await asyncio.sleep(0.05)

    speaker.duration = 0
    feedback.enqueue("stop", priority="high")
    await feedback.join()

    assert speaker.started == ["resting now", "stop"]
    assert speaker.completed == ["stop"]
    assert speaker.stop_calls == 1
    assert feedback.get_stats()["interrupted"] == 1
    await feedback.close()


@pytest.mark.asyncio
async def test_items_are_spoken_in_priority_order(registry, speaker):
    feedback = make_feedback(registry)
    feedback.enqueue("later", priority="low")
    feedback.enqueue("soon", priority="normal")
    feedback.enqueue("now", priority="high")
    feedback.enqueue("soon again", priority="normal")
    await feedback.join()

    assert speaker.completed == ["now", "soon", "soon again", "later"]
    assert feedback.get_stats()["spoken"] == 4
    await feedback.close()


@pytest.mark.asyncio
async def test_full_queue_evicts_oldest_lowest_priority(registry, speaker):
    feedback = make_feedback(registry, max_queue_size=3)
    feedback.enqueue("low one", priority="low")
    feedback.enqueue("normal one")
    feedback.enqueue("normal two")
    feedback.enqueue("low two", priority="low")

    assert [item.message for item in feedback.pending()] == ["normal one", "normal two", "low two"]
    assert feedback.get_stats()["evicted"] == 1
    await feedback.close()


@pytest.mark.asyncio
async def test_failed_synthesis_is_retried(registry, speaker):
    speaker.failures = 2
    feedback = make_feedback(registry, max_retries=3)
    feedback.enqueue("set logged")
    await feedback.join()

    assert speaker.started == ["set logged"] * 3
    assert speaker.completed == ["set logged"]
    stats = feedback.get_stats()
    assert stats["retried"] == 2
    assert stats["spoken"] == 1
    await feedback.close()


@pytest.mark.asyncio
async def test_item_dropped_after_max_retries(registry, speaker):
    speaker.failures = 100
    feedback = make_feedback(registry, max_retries=2)
    feedback.enqueue("never heard")
    feedback.enqueue("after", priority="low")
    await feedback.join()

    assert speaker.started.count("never heard") == 3
    assert feedback.get_stats()["failed"] == 2
    assert speaker.completed == []
    await feedback.close()


@pytest.mark.asyncio
async def test_unknown_priority_is_rejected(registry):
    feedback = make_feedback(registry)
    with pytest.raises(ValueError):
        feedback.enqueue("hello", priority="urgent")
    await feedback.close()


@pytest.mark.asyncio
async def test_confirm_intent_speaks_expanded_units(registry, speaker):
    feedback = make_feedback(registry)
    delivered = []
    feedback.set_audio_callback(lambda text, audio, event_type: delivered.append((text, event_type)))
    intent = Intent(IntentKind.LOG_SET, 0.9, {"reps": 10, "weight": 185, "unit": "lbs"})

    assert feedback.confirm_intent(intent) is not None
    await feedback.join()

    assert speaker.completed == ["Logged 10 repetitions, 185 pounds."]
    assert delivered == [("Logged 10 repetitions, 185 pounds.", "log_set")]
    assert feedback.get_feedback_log()[0]["event_type"] == "log_set"
    await feedback.close()


@pytest.mark.asyncio
async def test_confirm_intent_asks_when_confirmation_needed(registry, speaker, parser):
    feedback = make_feedback(registry)
    intent = parser.parse_intent("incline bench")
    feedback.confirm_intent(intent)
    await feedback.join()

    assert speaker.completed[0].startswith("Did you mean ")
    await feedback.close()


@pytest.mark.asyncio
async def test_unclear_prompt_respects_cooldown(registry):
    feedback = make_feedback(registry)
    assert feedback.announce_unclear() is not None
    assert feedback.announce_unclear() is None
    await feedback.close()


@pytest.mark.asyncio
async def test_debounced_requests_collapse_to_last(registry, speaker):
    feedback = make_feedback(registry, debounce_time=0.01)
    feedback.enqueue_debounced("first")
    feedback.enqueue_debounced("second")
    feedback.enqueue_debounced("third")
    await asyncio.sleep(0.05)
    await feedback.join()

    assert speaker.completed == ["third"]
    await feedback.close()


@pytest.mark.asyncio
async def test_remove_and_clear(registry):
    feedback = make_feedback(registry)
    feedback.enqueue("one")
    second = feedback.enqueue("two")
    assert feedback.remove(second)
    assert not feedback.remove(second)

    feedback.enqueue("three")
    assert await feedback.clear() == 2
    assert feedback.pending() == []
    await feedback.close()


@pytest.mark.asyncio
async def test_update_persona(registry):
    feedback = make_feedback(registry)
    persona = feedback.update_persona(confirmation_style="detailed", rate=1.2)
    assert persona["confirmation_style"] == "detailed"
    assert persona["rate"] == 1.2
    with pytest.raises(ValueError):
        feedback.update_persona(confirmation_style="chatty")
    await feedback.close()


@pytest.mark.asyncio
async def test_unsuccessful_result_is_retried(registry, speaker):
    outcomes = [False, True]
    original = speaker.speak

    async def flaky_speak(text, options=None):
        result = await original(text, options)
        result.success = outcomes.pop(0)
        return result

    speaker.speak = flaky_speak
    feedback = make_feedback(registry, max_retries=1)
    feedback.enqueue("set logged")
    await feedback.join()

    stats = feedback.get_stats()
    assert stats["retried"] == 1
    assert stats["spoken"] == 1
    assert len(feedback.get_feedback_log()) == 1
    await feedback.close()


@pytest.mark.asyncio
async def test_feedback_log_is_bounded(registry, monkeypatch):
    monkeypatch.setattr("voice.tts_feedback.TTS_FEEDBACK_LOG_SIZE", 3)
    feedback = make_feedback(registry)
    ids = [feedback.enqueue(f"item {n}") for n in range(5)]
    await feedback.join()

    assert [entry["id"] for entry in feedback.get_feedback_log()] == ids[2:]
    await feedback.close()
