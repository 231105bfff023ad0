"""WebSocket endpoint: connection management + real-time protocol."""

from __future__ import annotations

import asyncio
import json
import logging
import time

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from backend.services.voice_service import VoiceService
from voice.errors import VoiceError
from voice.providers.browser import BrowserSpeechProvider

logger = logging.getLogger(__name__)

router = APIRouter()

# Connected WebSocket clients
connected_clients: list[WebSocket] = []

# Handlers that must not block the receive loop
_background: set[asyncio.Task] = set()


async def broadcast(message: dict) -> None:
    """Send a message to all connected frontend clients."""
    text = json.dumps(message, default=str)
    disconnected = []
    for client in connected_clients:
        try:
            await client.send_text(text)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Dropping client after failed send: {e}")
            disconnected.append(client)
    for client in disconnected:
        if client in connected_clients:
            connected_clients.remove(client)


def spawn_background(coro) -> asyncio.Task:
    task = asyncio.get_running_loop().create_task(coro)
    _background.add(task)
    task.add_done_callback(_background_done)
    return task


def _background_done(task: asyncio.Task) -> None:
    _background.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"WebSocket background handler failed: {task.exception()!r}")


async def cancel_background() -> None:
    tasks = list(_background)
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


def _browser_provider(service: VoiceService) -> BrowserSpeechProvider | None:
    if BrowserSpeechProvider.name not in service.registry:
        return None
    provider = service.registry.get(BrowserSpeechProvider.name)
    return provider if isinstance(provider, BrowserSpeechProvider) else None


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    service: VoiceService = websocket.app.state.voice_service
    await websocket.accept()
    connected_clients.append(websocket)
    logger.info(f"Client connected ({len(connected_clients)} total)")

    async def send(message: dict) -> None:
        await websocket.send_text(json.dumps(message, default=str))

    # The most recently connected browser owns the microphone and speakers
    browser = _browser_provider(service)
    if browser is not None:
        browser.attach(send)

    await send({"type": "state_update", **service.get_status(), "timestamp": time.time()})

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await send({"type": "error", "message": "Invalid JSON"})
                continue
            await _handle_client_message(message, service, send)
    except WebSocketDisconnect:
        logger.info(f"Client disconnected ({len(connected_clients) - 1} total)")
    finally:
        if websocket in connected_clients:
            connected_clients.remove(websocket)
        if browser is not None:
            browser.detach(send)


async def _listen(service: VoiceService, send, message: dict) -> None:
    options = {"max_seconds": message["max_seconds"]} if message.get("max_seconds") else None

    async def on_interim(result) -> None:
        await send({"type": "interim_transcript", "text": result.text, "confidence": result.confidence})

    try:
        result = await service.listen(options=options, provider=message.get("provider"), on_interim=on_interim)
    except VoiceError as e:
        logger.warning(f"Listening failed: {e}")
        await send({"type": "listen_error", "error": type(e).__name__, "message": str(e)})
        return
    await broadcast({"type": "intent_result", **result, "timestamp": time.time()})


async def _connectivity(service: VoiceService, online: bool) -> None:
    report = await service.set_online(online)
    await broadcast({
        "type": "offline_status",
        **service.manager.get_status(),
        "sync": report.to_dict() if report else None,
    })


async def _handle_client_message(message: dict, service: VoiceService, send) -> None:
    """Handle incoming messages from frontend clients."""
    browser = _browser_provider(service)
    if browser is not None and await browser.handle_client_message(message):
        return

    msg_type = message.get("type", "")

    if msg_type == "voice_transcript":
        text = message.get("text", "")
        confidence = message.get("confidence", 1.0)
        if text:
            result = await service.process_transcript(text, confidence)
            await broadcast({"type": "intent_result", **result, "timestamp": time.time()})

    elif msg_type == "listen_start":
        # Runs while the socket keeps delivering stt_* messages for it
        spawn_background(_listen(service, send, message))

    elif msg_type == "listen_stop":
        await service.listener.stop()

    elif msg_type == "start_session":
        record = await service.start_session(message.get("session_type", "workout"), message.get("metadata"))
        await broadcast({"type": "session_update", "session": record.to_dict(), "timestamp": time.time()})

    elif msg_type == "end_session":
        record = await service.end_session()
        await broadcast({
            "type": "session_update",
            "session": None,
            "ended": record.to_dict() if record else None,
            "timestamp": time.time(),
        })

    elif msg_type == "connectivity":
        spawn_background(_connectivity(service, bool(message.get("online"))))

    elif msg_type == "interrupt_speech":
        await service.feedback.interrupt()

    else:
        await send({"type": "error", "message": f"Unknown message type: {msg_type}"})
