"""REST API routes for RepVoice."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend.services.voice_service import VoiceService
from offline.errors import InvalidEventError
from voice.errors import (
    CapabilityNotSupportedError,
    DeviceNotFoundError,
    NoSpeechDetectedError,
    PayloadTooLargeError,
    PermissionDeniedError,
    ProviderNotConfiguredError,
    ProviderUnavailableError,
    TranscriptionInProgressError,
    TranscriptionTimeoutError,
    VoiceError,
)
from voice.intent_parser import ParseContext

router = APIRouter()

# Most specific first; TranscriptionTimeoutError is a TranscriptionError
_VOICE_ERROR_STATUS: list[tuple[type[VoiceError], int]] = [
    (PermissionDeniedError, 403),
    (DeviceNotFoundError, 404),
    (TranscriptionInProgressError, 409),
    (PayloadTooLargeError, 413),
    (NoSpeechDetectedError, 422),
    (TranscriptionTimeoutError, 504),
    (ProviderNotConfiguredError, 503),
    (ProviderUnavailableError, 503),
    (CapabilityNotSupportedError, 400),
]


def get_voice_service(request: Request) -> VoiceService:
    return request.app.state.voice_service


def _error(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message, **extra}, status_code=status_code)


def _voice_error(e: VoiceError) -> JSONResponse:
    status_code = next((code for cls, code in _VOICE_ERROR_STATUS if isinstance(e, cls)), 502)
    return _error(str(e), status_code, error=type(e).__name__, provider=e.provider)


# --- Request bodies ---

class ParseRequest(BaseModel):
    text: str
    last_exercise: str | None = None
    in_workout: bool | None = None


class ExerciseIn(BaseModel):
    id: str | None = None
    name: str
    synonyms: list[str] = Field(default_factory=list)


class CatalogueRequest(BaseModel):
    exercises: list[ExerciseIn]


class ConfirmationRequest(BaseModel):
    message: str
    priority: str = "normal"
    event_type: str = "general"


class SessionIn(BaseModel):
    id: str
    type: str = "workout"
    start_time: float | None = None
    metadata: dict = Field(default_factory=dict)


class ConnectivityRequest(BaseModel):
    online: bool


class ConflictAction(BaseModel):
    action: str


class StartSessionRequest(BaseModel):
    type: str = "workout"
    metadata: dict = Field(default_factory=dict)


class TranscriptRequest(BaseModel):
    text: str
    confidence: float = 1.0


class ListenRequest(BaseModel):
    provider: str | None = None
    max_seconds: float | None = None


# --- Status ---

@router.get("/status")
async def get_status(service: VoiceService = Depends(get_voice_service)):
    return JSONResponse(service.get_status())


# --- Intent parsing ---

@router.post("/intent/parse")
async def parse_intent(body: ParseRequest, service: VoiceService = Depends(get_voice_service)):
    """Parse without side effects. Context defaults to the live session's."""
    context = service.context
    if body.last_exercise is not None or body.in_workout is not None:
        context = ParseContext(
            last_exercise=service.parser.find_exercise(body.last_exercise) if body.last_exercise else None,
            in_workout=bool(body.in_workout),
        )
    intent = service.parser.parse_intent(body.text, context)
    return JSONResponse(intent.to_dict())


@router.post("/exercises/catalogue")
async def load_catalogue(body: CatalogueRequest, service: VoiceService = Depends(get_voice_service)):
    loaded = service.load_catalogue([e.model_dump(exclude_none=True) for e in body.exercises])
    return JSONResponse({"status": "ok", "loaded": loaded})


# --- Confirmations ---

@router.post("/confirmations")
async def enqueue_confirmation(body: ConfirmationRequest, service: VoiceService = Depends(get_voice_service)):
    try:
        item_id = service.feedback.enqueue(body.message, priority=body.priority, event_type=body.event_type)
    except ValueError as e:
        return _error(str(e), 400)
    return JSONResponse({"status": "ok", "id": item_id})


@router.get("/confirmations/status")
async def confirmation_status(service: VoiceService = Depends(get_voice_service)):
    return JSONResponse({**service.feedback.get_status(), "stats": service.feedback.get_stats()})


# --- Offline queue ---

@router.post("/offline/events")
async def queue_event(event: dict, service: VoiceService = Depends(get_voice_service)):
    try:
        entry_id = service.manager.queue_event(event)
    except InvalidEventError as e:
        return _error(str(e), 400)
    return JSONResponse({"status": "ok", "id": entry_id})


@router.post("/offline/sessions")
async def queue_session(body: SessionIn, service: VoiceService = Depends(get_voice_service)):
    data = body.model_dump(exclude_none=True)
    record = service.manager.queue_session(data)
    return JSONResponse({"status": "ok", "session": record.to_dict()})


@router.get("/offline/status")
async def offline_status(service: VoiceService = Depends(get_voice_service)):
    return JSONResponse(service.manager.get_status())


@router.post("/offline/sync")
async def sync_now(service: VoiceService = Depends(get_voice_service)):
    report = await service.sync()
    return JSONResponse(report.to_dict())


@router.post("/offline/connectivity")
async def set_connectivity(body: ConnectivityRequest, service: VoiceService = Depends(get_voice_service)):
    report = await service.set_online(body.online)
    return JSONResponse({
        "status": "ok",
        "is_online": service.manager.is_online,
        "sync": report.to_dict() if report else None,
    })


@router.get("/offline/conflicts")
async def get_conflicts(service: VoiceService = Depends(get_voice_service)):
    return JSONResponse({"conflicts": service.manager.get_conflicts()})


@router.post("/offline/conflicts/{entry_id}")
async def resolve_conflict(entry_id: str, body: ConflictAction, service: VoiceService = Depends(get_voice_service)):
    try:
        resolved = service.manager.resolve_conflict(entry_id, body.action)
    except ValueError as e:
        return _error(str(e), 400)
    if not resolved:
        return _error(f"No conflict with id {entry_id}", 404)
    return JSONResponse({"status": "ok", "id": entry_id, "action": body.action})


# --- Voice session ---

@router.post("/voice/sessions")
async def start_session(body: StartSessionRequest, service: VoiceService = Depends(get_voice_service)):
    record = await service.start_session(body.type, body.metadata)
    return JSONResponse({"status": "ok", "session": record.to_dict()})


@router.post("/voice/sessions/end")
async def end_session(service: VoiceService = Depends(get_voice_service)):
    record = await service.end_session()
    if record is None:
        return _error("No active session", 404)
    return JSONResponse({"status": "ok", "session": record.to_dict()})


@router.post("/voice/transcript")
async def process_transcript(body: TranscriptRequest, service: VoiceService = Depends(get_voice_service)):
    if not body.text.strip():
        return _error("Empty transcript", 400)
    return JSONResponse(await service.process_transcript(body.text, body.confidence))


@router.post("/voice/listen")
async def listen(body: ListenRequest, service: VoiceService = Depends(get_voice_service)):
    options = {"max_seconds": body.max_seconds} if body.max_seconds else None
    try:
        result = await service.listen(options=options, provider=body.provider)
    except VoiceError as e:
        return _voice_error(e)
    return JSONResponse(result)


@router.post("/voice/listen/stop")
async def stop_listening(service: VoiceService = Depends(get_voice_service)):
    await service.listener.stop()
    return JSONResponse({"status": "ok", "listener": service.listener.state.value})
