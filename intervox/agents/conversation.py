from __future__ import annotations

import asyncio
import time
from contextlib import AsyncExitStack
from typing import AsyncIterator

from intervox.config import settings
from intervox.errors import InvalidStateError, NotFoundError, StageTimeoutError, ValidationError
from intervox.llm_client import ClientAdapter, chat_client
from intervox.models.events import LogCategory
from intervox.models.schemas import ConversationMessage, ConversationSession, PersonaModel, VoiceConfig
from intervox.services import logger as log_service
from intervox.services.event_log import events
from intervox.services.store import InMemoryStore, Store
from intervox.services.voice import VoiceSelector, default_voice_selector
from intervox.tools import elevenlabs

FALLBACK_REPLY = "I'm not sure how to respond to that."


class ConversationManager:
    """Chat sessions with a persona, optionally voiced.

    A turn is committed to history only after the provider answers, so a
    failed call never leaves an unanswered user message behind.
    """

    def __init__(
        self,
        sessions: Store[ConversationSession] | None = None,
        llm: ClientAdapter | None = None,
        voice_selector: VoiceSelector | None = None,
        history_window: int | None = None,
    ):
        # Personas live exactly as long as their session.
        self._personas: InMemoryStore[PersonaModel] = InMemoryStore()
        self.sessions: Store[ConversationSession] = sessions or InMemoryStore(
            settings.session_ttl_hours, on_evict=self._personas.delete
        )
        self.client = llm
        self.voice_selector = voice_selector or default_voice_selector()
        self.history_window = settings.chat_history_window if history_window is None else history_window

    def start(self, persona: PersonaModel) -> ConversationSession:
        self.sessions.evict_expired()
        session = ConversationSession(
            persona_id=persona.target_id,
            persona_name=persona.identity.full_name,
        )
        self.sessions.put(session.id, session)
        self._personas.put(session.id, persona)
        events.info(
            LogCategory.VOICE,
            f"Conversation started with {session.persona_name}",
            {"sessionId": session.id},
            target_id=persona.target_id,
        )
        return session

    def get(self, session_id: str) -> ConversationSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Conversation session not found: {session_id}")
        return session

    def end(self, session_id: str) -> ConversationSession:
        session = self.get(session_id)
        if session.status != "ended":
            session.status = "ended"
            self.sessions.put(session.id, session)
            events.info(
                LogCategory.VOICE,
                f"Conversation ended after {len(session.messages)} message(s)",
                {"sessionId": session.id},
                target_id=session.persona_id,
            )
        return session

    def _active(self, session_id: str) -> tuple[ConversationSession, PersonaModel]:
        session = self.get(session_id)
        if session.status != "active":
            raise InvalidStateError(
                f"Conversation {session_id} has ended",
                current=session.status,
                requested="send",
            )
        persona = self._personas.get(session_id)
        if persona is None:
            raise NotFoundError(f"Persona for session {session_id} is no longer available")
        return session, persona

    def _window(self, session: ConversationSession, user_message: ConversationMessage) -> list[dict[str, str]]:
        # The new user turn is always sent, even with a zero window.
        history = [*session.messages, user_message][-max(self.history_window, 1) :]
        return [{"role": m.role, "content": m.content} for m in history]

    def _commit(
        self, session: ConversationSession, user_message: ConversationMessage, reply: str
    ) -> ConversationMessage:
        assistant = ConversationMessage(role="assistant", content=reply.strip() or FALLBACK_REPLY)
        session.messages.extend([user_message, assistant])
        self.sessions.put(session.id, session)
        return assistant

    @staticmethod
    def _user_message(text: str) -> ConversationMessage:
        if not text or not text.strip():
            raise ValidationError("Message text is required")
        return ConversationMessage(role="user", content=text.strip())

    def _timed_out(self, t0: float) -> StageTimeoutError:
        log_service.log_llm_call(
            model=settings.chat_model,
            caller="conversation",
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="timeout",
            error="timeout",
        )
        return StageTimeoutError("chat", settings.chat_timeout_seconds)

    async def send(self, session_id: str, text: str) -> ConversationMessage:
        session, persona = self._active(session_id)
        user_message = self._user_message(text)
        active_client = self.client or chat_client()

        t0 = time.monotonic()
        try:
            response = await asyncio.wait_for(
                active_client.messages.create(
                    model=settings.chat_model,
                    max_tokens=settings.chat_max_tokens,
                    system=persona.system_prompt,
                    messages=self._window(session, user_message),
                    temperature=settings.chat_temperature,
                ),
                timeout=settings.chat_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise self._timed_out(t0) from exc

        log_service.log_llm_call(
            model=settings.chat_model,
            caller="conversation",
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return self._commit(session, user_message, response.text)

    async def stream(self, session_id: str, text: str) -> AsyncIterator[str]:
        """Yield reply fragments; the turn is recorded once the stream completes.

        The chat deadline covers the whole reply, from opening the stream to
        the final message, including time the caller spends between fragments.
        """
        session, persona = self._active(session_id)
        user_message = self._user_message(text)
        active_client = self.client or chat_client()

        t0 = time.monotonic()
        deadline = t0 + settings.chat_timeout_seconds

        def remaining() -> float:
            return max(deadline - time.monotonic(), 0)

        async with AsyncExitStack() as stack:
            try:
                stream = await asyncio.wait_for(
                    stack.enter_async_context(
                        active_client.messages.stream(
                            model=settings.chat_model,
                            max_tokens=settings.chat_max_tokens,
                            system=persona.system_prompt,
                            messages=self._window(session, user_message),
                            temperature=settings.chat_temperature,
                        )
                    ),
                    timeout=remaining(),
                )
                fragments = stream.text_stream
                while True:
                    try:
                        fragment = await asyncio.wait_for(anext(fragments), timeout=remaining())
                    except StopAsyncIteration:
                        break
                    yield fragment
                final = await asyncio.wait_for(stream.get_final_message(), timeout=remaining())
            except asyncio.TimeoutError as exc:
                raise self._timed_out(t0) from exc

        log_service.log_llm_call(
            model=settings.chat_model,
            caller="conversation",
            input_tokens=final.usage.input_tokens,
            output_tokens=final.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        self._commit(session, user_message, final.text)

    async def voice_for(self, session_id: str) -> VoiceConfig:
        """Select the session's voice on first use and reuse it afterwards."""
        session = self.get(session_id)
        if not session.voice_id:
            persona = self._personas.get(session_id)
            voice_id = await self.voice_selector.select(persona) if persona else None
            session.voice_id = voice_id or settings.default_voice_id
            self.sessions.put(session.id, session)
        return VoiceConfig(voice_id=session.voice_id)

    async def text_to_speech(self, text: str, voice: VoiceConfig | str | None = None) -> bytes:
        if not text or not text.strip():
            raise ValidationError("Text is required")
        if isinstance(voice, str):
            voice = VoiceConfig(voice_id=voice)
        return await elevenlabs.text_to_speech(text, voice)

    async def send_with_voice(self, session_id: str, text: str) -> tuple[ConversationMessage, bytes]:
        message = await self.send(session_id, text)
        audio = await self.text_to_speech(message.content, await self.voice_for(session_id))
        return message, audio
