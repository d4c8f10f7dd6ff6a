from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from intervox.agents.conversation import ConversationManager
from intervox.agents.coordinator import InvestigationCoordinator
from intervox.api.deps import get_conversations, get_coordinator
from intervox.errors import InvalidStateError, NotFoundError, ValidationError
from intervox.models.events import LogCategory
from intervox.models.schemas import (
    ChatRequest,
    ChatResponse,
    ConversationSession,
    InvestigationStatus,
    TTSRequest,
)
from intervox.services.event_log import events

router = APIRouter(prefix="/api", tags=["chat"])


def _session_id_for(request: ChatRequest, coordinator: InvestigationCoordinator) -> str:
    if request.session_id:
        return request.session_id
    if not request.target_id:
        raise ValidationError("Either targetId or sessionId is required")

    record = coordinator.get_status(request.target_id)
    if record is None:
        raise NotFoundError(f"Investigation not found: {request.target_id}")
    if record.status is not InvestigationStatus.READY or not record.conversation_id:
        raise InvalidStateError(
            f"Persona for {record.target_name} is not ready",
            current=record.status.value,
            requested="chat",
        )
    return record.conversation_id


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    coordinator: InvestigationCoordinator = Depends(get_coordinator),
    conversations: ConversationManager = Depends(get_conversations),
):
    session_id = _session_id_for(request, coordinator)
    reply = await conversations.send(session_id, request.message)
    return ChatResponse(
        session_id=session_id,
        response=reply,
        conversation=conversations.get(session_id),
    )


@router.post("/chat/{session_id}/end", response_model=ConversationSession)
async def end_chat(
    session_id: str,
    conversations: ConversationManager = Depends(get_conversations),
):
    return conversations.end(session_id)


@router.post("/tts")
async def tts(
    request: TTSRequest,
    conversations: ConversationManager = Depends(get_conversations),
):
    """Proxy text-to-speech; returns MPEG audio."""
    events.info(LogCategory.VOICE, f"TTS request ({len(request.text)} chars)")
    audio = await conversations.text_to_speech(request.text, request.voice_id)
    return Response(content=audio, media_type="audio/mpeg")
