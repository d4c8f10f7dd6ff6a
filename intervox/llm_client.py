"""OpenAI-compatible LLM clients with a messages-style adapter.

Two gateways are used: OpenRouter for extraction and persona analysis, and
xAI for in-character chat. Both speak the OpenAI chat-completions protocol.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator

from intervox.config import settings
from intervox.services.env_safety import sanitize_ssl_keylogfile


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class MessageResponse:
    text: str
    usage: Usage


def _usage_from(raw: Any) -> Usage:
    return Usage(
        input_tokens=getattr(raw, "prompt_tokens", 0) or 0,
        output_tokens=getattr(raw, "completion_tokens", 0) or 0,
    )


class CompletionStream:
    def __init__(self, stream_coro: Any):
        self._stream_coro = stream_coro
        self._stream: Any | None = None
        self._usage = Usage()
        self._chunks: list[str] = []
        self._finished = False

    async def __aenter__(self) -> "CompletionStream":
        self._stream = await self._stream_coro
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._stream is not None:
            await self._stream.close()

    async def _iter_text(self) -> AsyncIterator[str]:
        if self._stream is None:
            return
        async for chunk in self._stream:
            usage = getattr(chunk, "usage", None)
            if usage:
                self._usage = _usage_from(usage)

            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            text = getattr(delta, "content", None) if delta else None
            if text:
                self._chunks.append(text)
                yield text
        self._finished = True

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._iter_text()

    async def get_final_message(self) -> MessageResponse:
        if not self._finished:
            async for _ in self.text_stream:
                pass
        return MessageResponse(text="".join(self._chunks), usage=self._usage)


class MessagesAdapter:
    def __init__(self, openai_client: Any):
        self._client = openai_client

    @staticmethod
    def _to_openai_messages(system: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        openai_messages: list[dict[str, Any]] = []
        if system:
            openai_messages.append({"role": "system", "content": system})
        for message in messages:
            openai_messages.append({"role": message["role"], "content": str(message["content"])})
        return openai_messages

    @staticmethod
    def _temperature_for_model(model: str, requested: float | None) -> float:
        if requested is not None:
            return requested
        # Some GPT-5-compatible gateways reject temperature=0.
        if "gpt-5" in (model or "").lower():
            return 1
        return 0

    async def create(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list[dict[str, Any]],
        temperature: float | None = None,
    ) -> MessageResponse:
        response = await self._client.chat.completions.create(
            model=model,
            messages=self._to_openai_messages(system, messages),
            max_tokens=max_tokens,
            temperature=self._temperature_for_model(model, temperature),
        )
        choices = getattr(response, "choices", None) or []
        text = ""
        if choices:
            text = getattr(choices[0].message, "content", None) or ""
        return MessageResponse(text=text, usage=_usage_from(getattr(response, "usage", None)))

    def stream(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list[dict[str, Any]],
        temperature: float | None = None,
    ) -> CompletionStream:
        stream = self._client.chat.completions.create(
            model=model,
            messages=self._to_openai_messages(system, messages),
            max_tokens=max_tokens,
            temperature=self._temperature_for_model(model, temperature),
            stream=True,
            stream_options={"include_usage": True},
        )
        return CompletionStream(stream)


class ClientAdapter:
    def __init__(self, openai_client: Any):
        self.messages = MessagesAdapter(openai_client)


def _build_client(api_key: str, base_url: str) -> ClientAdapter:
    from openai import AsyncOpenAI

    sanitize_ssl_keylogfile()
    openai_client = AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        timeout=settings.llm_timeout_seconds,
    )
    return ClientAdapter(openai_client)


def get_client() -> ClientAdapter:
    """OpenRouter client for extraction and analysis."""
    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return _build_client(settings.openrouter_api_key, base_url)


def get_chat_client() -> ClientAdapter:
    """xAI client for persona conversations."""
    base_url = settings.xai_base_url.strip() or "https://api.x.ai/v1"
    return _build_client(settings.xai_api_key, base_url)


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


def get_extraction_model() -> str:
    return settings.extraction_model or get_model()


_client: ClientAdapter | None = None
_chat_client: ClientAdapter | None = None


def client() -> ClientAdapter:
    """Get or create the analysis LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


def chat_client() -> ClientAdapter:
    """Get or create the persona chat client."""
    global _chat_client
    if _chat_client is None:
        _chat_client = get_chat_client()
    return _chat_client
