"""Tests for the voice service: transcripts in, queued events and confirmations out."""

import asyncio

import pytest

from backend.services.voice_service import VoiceService
from offline.errors import SyncConflictError
from voice.providers.base import TranscriptionResult
from voice.tts_feedback import VoiceFeedback

LOG_BENCH = "bench press 10 reps at 185 pounds"


@pytest.fixture
def service(registry, parser, manager):
    return VoiceService(registry, parser, manager, feedback=VoiceFeedback(registry, retry_delay=0))


@pytest.mark.asyncio
async def test_logged_set_is_queued_and_confirmed(service, manager, speaker):
    session = await service.start_session(metadata={"title": "push"})
    result = await service.process_transcript(LOG_BENCH, 0.92)

    assert result["status"] == "accepted"
    assert result["intent"]["kind"] == "log_set"
    [entry] = manager.pending_events()
    assert entry.id == result["entry_id"]
    assert entry.event["session_id"] == session.id
    assert entry.event["payload"]["exercise"]["name"] == "Barbell Bench Press"
    assert entry.event["confidence"] == 0.92
    assert "alternatives" not in entry.event

    await service.feedback.join()
    assert speaker.completed == ["Logged 10 repetitions, 185 pounds."]
    await service.close()


@pytest.mark.asyncio
async def test_low_asr_confidence_is_not_parsed(service, manager):
    await service.start_session()
    result = await service.process_transcript(LOG_BENCH, 0.2)

    assert result["status"] == "low_confidence"
    assert result["tts_id"] is not None
    assert manager.pending_events() == []
    await service.close()


@pytest.mark.asyncio
async def test_set_without_session_is_not_queued(service, manager):
    result = await service.process_transcript(LOG_BENCH)
    assert result["status"] == "no_session"
    assert result["entry_id"] is None
    assert manager.pending_events() == []
    await service.close()


@pytest.mark.asyncio
async def test_start_workout_by_voice_opens_session(service, manager):
    result = await service.process_transcript("start a push day workout")

    assert service.current_session is not None
    assert service.current_session.metadata == {"title": "push day"}
    assert manager.get_session(service.current_session.id) is not None
    [entry] = manager.pending_events()
    assert entry.id == result["entry_id"]
    assert entry.priority == "high"
    await service.close()


@pytest.mark.asyncio
async def test_follow_up_set_uses_last_exercise(service, manager):
    await service.start_session()
    await service.process_transcript(LOG_BENCH)
    result = await service.process_transcript("8 reps at 195")

    assert result["status"] == "accepted"
    assert result["intent"]["parameters"]["exercise"]["name"] == "Barbell Bench Press"
    assert len(manager.pending_events()) == 2
    await service.close()


@pytest.mark.asyncio
async def test_undo_drops_unsent_set(service, manager):
    await service.start_session()
    await service.process_transcript(LOG_BENCH)
    result = await service.process_transcript("undo")

    assert result["intent"]["kind"] == "undo_last"
    assert result["entry_id"] is None
    assert manager.pending_events() == []

    # nothing left to drop: the undo itself is queued for the server
    second = await service.process_transcript("undo")
    assert second["entry_id"] is not None
    await service.close()


@pytest.mark.asyncio
async def test_online_service_syncs_immediately(service, manager, sync_client):
    manager.is_online = True
    session = await service.start_session()
    await service.process_transcript(LOG_BENCH)
    await manager.wait_for_sync()

    assert ("session", session.id) in sync_client.calls
    assert len(sync_client.event_calls) == 1
    assert manager.pending_events() == []
    await service.close()


@pytest.mark.asyncio
async def test_transcript_does_not_wait_for_slow_sync(service, manager, sync_client, speaker):
    manager.is_online = True
    sync_client.gate = asyncio.Event()
    await service.start_session()

    result = await asyncio.wait_for(service.process_transcript(LOG_BENCH), timeout=1)
    assert result["status"] == "accepted"
    await service.feedback.join()
    assert speaker.completed == ["Logged 10 repetitions, 185 pounds."]
    assert manager.sync_in_progress

    sync_client.gate.set()
    await manager.wait_for_sync()
    assert manager.pending_events() == []
    await service.close()


@pytest.mark.asyncio
async def test_background_sync_conflicts_are_announced(service, manager, sync_client):
    sync_client.event_errors[LOG_BENCH] = SyncConflictError("duplicate")
    manager.is_online = True
    await service.start_session()
    await service.process_transcript(LOG_BENCH)

    await manager.wait_for_sync()
    await service.feedback.join()
    assert len(manager.get_conflicts()) == 1
    assert any(entry["event_type"] == "sync_conflict" for entry in service.feedback.get_feedback_log())
    await service.close()


@pytest.mark.asyncio
async def test_conflicts_are_announced(service, manager, sync_client):
    await service.start_session()
    await service.process_transcript(LOG_BENCH)
    sync_client.event_errors[LOG_BENCH] = SyncConflictError("duplicate")
    manager.is_online = True

    report = await service.sync()

    assert report.events.conflicts == 1
    assert any(item.event_type == "sync_conflict" for item in service.feedback.pending())
    await service.close()


@pytest.mark.asyncio
async def test_going_offline_is_announced(service, manager):
    manager.is_online = True
    assert await service.set_online(False) is None
    assert not manager.is_online
    assert any(item.event_type == "offline" for item in service.feedback.pending())
    await service.close()


@pytest.mark.asyncio
async def test_listen_through_provider(service, manager, speaker):
    speaker.next_transcript = TranscriptionResult(text="rest for 2 minutes", confidence=0.88)
    await service.start_session()

    result = await service.listen()

    assert result["intent"]["kind"] == "rest_timer"
    assert manager.pending_events()[0].event["confidence"] == 0.88
    await service.close()


@pytest.mark.asyncio
async def test_end_session_and_status(service, manager):
    assert await service.end_session() is None
    record = await service.start_session()
    status = service.get_status()
    assert status["session"]["id"] == record.id
    assert status["listener"] == "idle"

    assert await service.end_session() is record
    assert record.id in manager.storage.load_sessions()
    assert service.get_status()["session"] is None
    await service.close()
