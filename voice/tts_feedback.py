"""
Spoken confirmations.
Queued, priority-based, with cooldowns to prevent chatter. One consumer task
speaks one item at a time through the registry's speaker.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from constants import (
    PRIORITY_ORDER,
    TTS_DEBOUNCE_S,
    TTS_FEEDBACK_LOG_SIZE,
    TTS_MAX_QUEUE_SIZE,
    TTS_MAX_RETRIES,
    TTS_RETRY_DELAY_S,
)
from voice.config import CONFIRMATION_STYLES, COOLDOWNS, DEFAULT_PERSONA, FEEDBACK_EVENTS
from voice.confirmations import clarification_for, confirmation_for, prepare_for_speech
from voice.errors import SpeechInterruptedError, SynthesisError, VoiceError
from voice.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


@dataclass
class TTSRequest:
    id: str
    message: str
    priority: str           # "high" interrupts, "normal", "low" evicted first
    timestamp: float
    voice_options: dict = field(default_factory=dict)
    event_type: str = "general"
    retries: int = 0
    max_retries: int = TTS_MAX_RETRIES
    original: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "priority": self.priority,
            "timestamp": self.timestamp,
            "event_type": self.event_type,
            "retries": self.retries,
        }


class VoiceFeedback:
    """
    TTS confirmation queue with priority, interruption and cooldown management.

    Usage (inside a running event loop):
        feedback = VoiceFeedback(registry)
        feedback.confirm_intent(intent)
        feedback.enqueue("Emergency stop.", priority="high")   # interrupts
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        speaker: str | None = None,
        max_queue_size: int = TTS_MAX_QUEUE_SIZE,
        max_retries: int = TTS_MAX_RETRIES,
        retry_delay: float = TTS_RETRY_DELAY_S,
        debounce_time: float = TTS_DEBOUNCE_S,
        interrupt_on_high: bool = True,
        persona: dict | None = None,
    ):
        self.registry = registry
        self.speaker = speaker
        self.max_queue_size = max_queue_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.debounce_time = debounce_time
        self.interrupt_on_high = interrupt_on_high
        self.persona = {**DEFAULT_PERSONA, **(persona or {})}

        self._queue: list[TTSRequest] = []
        self._current: TTSRequest | None = None
        self._speak_task: asyncio.Task | None = None
        self._worker: asyncio.Task | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._last_spoken: dict[str, float] = {}
        # Callback for delivering spoken items to clients (set by WebSocket handler)
        self._audio_callback: Callable | None = None
        self._feedback_log: deque[dict] = deque(maxlen=TTS_FEEDBACK_LOG_SIZE)
        self._waits: list[float] = []
        self._counters = {"spoken": 0, "failed": 0, "retried": 0, "interrupted": 0, "evicted": 0}

    def set_audio_callback(self, callback: Callable | None) -> None:
        """callback(text, audio_base64, event_type) after each item is spoken."""
        self._audio_callback = callback

    # === Queueing ===

    def enqueue(
        self,
        message: str,
        priority: str = "normal",
        event_type: str = "general",
        max_retries: int | None = None,
        **voice_options,
    ) -> str:
        """Queue an utterance and return its id. Must be called with a running event loop."""
        if priority not in PRIORITY_ORDER:
            raise ValueError(f"Unknown priority '{priority}' (expected one of {list(PRIORITY_ORDER)})")

        item = TTSRequest(
            id=f"tts_{uuid.uuid4().hex[:12]}",
            message=prepare_for_speech(message, self.persona.get("use_natural_pauses", True)),
            priority=priority,
            timestamp=time.time(),
            voice_options={**self.persona, **voice_options},
            event_type=event_type,
            max_retries=self.max_retries if max_retries is None else max_retries,
            original=message,
        )
        self._insert_by_priority(item)
        if len(self._queue) > self.max_queue_size:
            self._evict()

        if priority == "high" and self.interrupt_on_high and self._current is not None:
            asyncio.ensure_future(self.interrupt(self._current))

        self._ensure_worker()
        return item.id

    def _insert_by_priority(self, item: TTSRequest) -> None:
        rank = PRIORITY_ORDER[item.priority]
        index = len(self._queue)
        for i, queued in enumerate(self._queue):
            if rank < PRIORITY_ORDER[queued.priority]:
                index = i
                break
        self._queue.insert(index, item)

    def _evict(self) -> None:
        """Drop the oldest item of the lowest priority tier present."""
        lowest = max(PRIORITY_ORDER[item.priority] for item in self._queue)
        candidates = [item for item in self._queue if PRIORITY_ORDER[item.priority] == lowest]
        victim = candidates[0]
        self._queue.remove(victim)
        self._counters["evicted"] += 1
        logger.warning(f"TTS queue full, evicted {victim.priority} item {victim.id}: '{victim.original}'")

    def enqueue_debounced(self, message: str, **options) -> None:
        """Collapse rapid requests: only the last one within the debounce window is queued."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(
            self.debounce_time, lambda: self.enqueue(message, **options)
        )

    def announce(self, text: str, event_type: str = "general", priority: str = "normal") -> str | None:
        """Enqueue unless the same event type was announced within its cooldown."""
        now = time.time()
        cooldown = COOLDOWNS.get(event_type, 1.0)
        last = self._last_spoken.get(event_type)
        if last is not None and now - last < cooldown:
            return None
        self._last_spoken[event_type] = now
        return self.enqueue(text, priority=priority, event_type=event_type)

    # === Convenience methods ===

    def confirm_intent(self, intent, priority: str = "normal") -> str | None:
        style = self.persona.get("confirmation_style", "concise")
        if intent.kind.value == "unknown":
            return self.announce_unclear()
        if intent.needs_confirmation:
            return self.announce(clarification_for(intent), "needs_confirmation", priority)
        return self.enqueue(confirmation_for(intent, style), priority=priority, event_type=intent.kind.value)

    def announce_unclear(self) -> str | None:
        text = FEEDBACK_EVENTS.get("command_unclear", "Didn't catch that.")
        return self.announce(text, "command_unclear", priority="normal")

    def announce_offline(self) -> str | None:
        return self.announce(FEEDBACK_EVENTS["offline"], "offline", priority="low")

    def announce_conflict(self) -> str | None:
        return self.announce(FEEDBACK_EVENTS["sync_conflict"], "sync_conflict", priority="normal")

    # === Processing ===

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            while self._queue:
                item = self._queue.pop(0)
                self._current = item
                self._waits.append(time.time() - item.timestamp)
                self._speak_task = asyncio.ensure_future(self._speak(item))
                await asyncio.wait({self._speak_task})
                task = self._speak_task
                self._speak_task = None
                self._current = None

                if task.cancelled():
                    self._counters["interrupted"] += 1
                    logger.info(f"TTS item {item.id} interrupted")
                    continue
                error = task.exception()
                if error is None:
                    self._counters["spoken"] += 1
                    continue
                if isinstance(error, SpeechInterruptedError):
                    self._counters["interrupted"] += 1
                    logger.info(f"TTS item {item.id} interrupted")
                    continue

                item.retries += 1
                if item.retries <= item.max_retries:
                    self._counters["retried"] += 1
                    logger.warning(f"TTS failed for {item.id}: {error}. Retrying ({item.retries}/{item.max_retries})")
                    self._queue.insert(0, item)
                    await asyncio.sleep(self.retry_delay)
                else:
                    self._counters["failed"] += 1
                    logger.error(f"TTS dropped {item.id} after {item.retries} attempts: {error}")
        finally:
            self._current = None
            self._speak_task = None

    async def _speak(self, item: TTSRequest) -> None:
        provider = self.registry.speaker(self.speaker)
        result = await provider.speak(item.message, item.voice_options)
        if not result.success:
            raise SynthesisError(f"{provider.name} reported a failed utterance", provider.name)

        feedback = {
            "id": item.id,
            "text": item.message,
            "event_type": item.event_type,
            "priority": item.priority,
            "timestamp": time.time(),
            "audio_base64": result.audio_base64,
        }
        self._feedback_log.append(feedback)

        if self._audio_callback:
            outcome = self._audio_callback(item.message, result.audio_base64, item.event_type)
            if asyncio.iscoroutine(outcome):
                await outcome

    async def interrupt(self, target: TTSRequest | None = None) -> None:
        """Cancel the utterance being spoken; the queue carries on with the next item."""
        current = self._current
        if current is None or (target is not None and current is not target):
            return
        task = self._speak_task
        try:
            await self.registry.stop_speaking(self.speaker)
        except VoiceError as e:
            logger.warning(f"stop_speaking failed: {e}")
        if task is not None and not task.done():
            task.cancel()

    # === Management ===

    async def clear(self) -> int:
        """Drop every queued item and stop the current one."""
        dropped = len(self._queue)
        self._queue.clear()
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        await self.interrupt()
        return dropped

    def remove(self, item_id: str) -> bool:
        before = len(self._queue)
        self._queue = [item for item in self._queue if item.id != item_id]
        return len(self._queue) < before

    def update_persona(self, **settings) -> dict:
        style = settings.get("confirmation_style")
        if style is not None and style not in CONFIRMATION_STYLES:
            raise ValueError(f"Unknown confirmation style '{style}'")
        self.persona.update(settings)
        return dict(self.persona)

    def pending(self) -> list[TTSRequest]:
        return list(self._queue)

    def get_status(self) -> dict:
        return {
            "queue_length": len(self._queue),
            "is_processing": self._worker is not None and not self._worker.done(),
            "current": self._current.to_dict() if self._current else None,
            "persona": dict(self.persona),
        }

    def get_stats(self) -> dict:
        counts: dict[str, int] = {}
        for item in self._queue:
            counts[item.priority] = counts.get(item.priority, 0) + 1
        now = time.time()
        queued_wait = [now - item.timestamp for item in self._queue]
        return {
            "total_items": len(self._queue),
            "priority_counts": counts,
            "is_processing": self._worker is not None and not self._worker.done(),
            "average_wait_time": round(sum(queued_wait) / len(queued_wait), 3) if queued_wait else 0.0,
            "average_start_delay": round(sum(self._waits) / len(self._waits), 3) if self._waits else 0.0,
            **self._counters,
        }

    def get_feedback_log(self) -> list[dict]:
        return list(self._feedback_log)

    async def join(self) -> None:
        """Wait until the queue has drained."""
        while self._worker is not None and not self._worker.done():
            await asyncio.wait({self._worker})

    async def close(self) -> None:
        await self.clear()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
