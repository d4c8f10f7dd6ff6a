"""Tests for the OpenAI-compatible messages adapter and model selection."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from intervox.llm_client import CompletionStream, MessagesAdapter


def completion(text, prompt_tokens=11, completion_tokens=7):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def openai_stub(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


class TestModelSelection:
    def test_default_model_fallback(self):
        with patch("intervox.llm_client.settings") as mock_settings:
            mock_settings.openrouter_model = ""
            mock_settings.default_model = "openai/gpt-4o-mini"

            from intervox.llm_client import get_model

            assert get_model() == "openai/gpt-4o-mini"

    def test_openrouter_model_override(self):
        with patch("intervox.llm_client.settings") as mock_settings:
            mock_settings.openrouter_model = "openai/gpt-4-turbo"
            mock_settings.default_model = "openai/gpt-4o-mini"

            from intervox.llm_client import get_model

            assert get_model() == "openai/gpt-4-turbo"

    def test_extraction_model_override(self):
        with patch("intervox.llm_client.settings") as mock_settings:
            mock_settings.openrouter_model = ""
            mock_settings.default_model = "openai/gpt-4o-mini"
            mock_settings.extraction_model = "google/gemini-flash"

            from intervox.llm_client import get_extraction_model

            assert get_extraction_model() == "google/gemini-flash"

    def test_agents_use_selected_model(self):
        with patch("intervox.agents.base.get_model") as mock_get_model:
            mock_get_model.return_value = "openai/gpt-4.1"

            from intervox.agents.persona import PersonaSynthesizer

            assert PersonaSynthesizer(model=None).model == "openai/gpt-4.1"

    def test_extractor_uses_extraction_model(self):
        with patch("intervox.agents.extractor.get_extraction_model") as mock_model:
            mock_model.return_value = "google/gemini-flash"

            from intervox.agents.extractor import ContentExtractor

            assert ContentExtractor().model == "google/gemini-flash"


class TestMessagesAdapter:
    def test_system_prompt_leads_messages(self):
        messages = MessagesAdapter._to_openai_messages(
            "You are Ada.", [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": 42}]
        )
        assert messages == [
            {"role": "system", "content": "You are Ada."},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "42"},
        ]

    def test_empty_system_prompt_is_omitted(self):
        assert MessagesAdapter._to_openai_messages("", [{"role": "user", "content": "Hi"}]) == [
            {"role": "user", "content": "Hi"}
        ]

    @pytest.mark.parametrize(
        "model, requested, expected",
        [
            ("grok-2-latest", 0.8, 0.8),
            ("grok-2-latest", None, 0),
            ("openai/gpt-5-mini", None, 1),
            ("openai/gpt-5-mini", 0.2, 0.2),
        ],
    )
    def test_temperature(self, model, requested, expected):
        assert MessagesAdapter._temperature_for_model(model, requested) == expected

    @pytest.mark.asyncio
    async def test_create_maps_text_and_usage(self):
        create = AsyncMock(return_value=completion("Hello there."))
        adapter = MessagesAdapter(openai_stub(create))

        response = await adapter.create(
            model="grok-2-latest",
            max_tokens=300,
            system="You are Ada.",
            messages=[{"role": "user", "content": "Hi"}],
            temperature=0.8,
        )

        assert response.text == "Hello there."
        assert (response.usage.input_tokens, response.usage.output_tokens) == (11, 7)
        kwargs = create.await_args.kwargs
        assert kwargs["max_tokens"] == 300
        assert kwargs["temperature"] == 0.8
        assert kwargs["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_create_without_choices_is_empty_text(self):
        adapter = MessagesAdapter(openai_stub(AsyncMock(return_value=SimpleNamespace(choices=[], usage=None))))
        response = await adapter.create(model="m", max_tokens=10, system="", messages=[])
        assert response.text == ""
        assert response.usage.input_tokens == 0


class FakeStream:
    def __init__(self, chunks):
        self.chunks = chunks
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk

    async def close(self):
        self.closed = True


def chunk(text=None, usage=None):
    choices = [SimpleNamespace(delta=SimpleNamespace(content=text))] if text is not None else []
    return SimpleNamespace(choices=choices, usage=usage)


class TestCompletionStream:
    @pytest.mark.asyncio
    async def test_text_stream_and_final_message(self):
        raw = FakeStream(
            [
                chunk("Poetical "),
                chunk(""),
                chunk("science."),
                chunk(usage=SimpleNamespace(prompt_tokens=20, completion_tokens=4)),
            ]
        )

        async def opened():
            return raw

        async with CompletionStream(opened()) as stream:
            fragments = [text async for text in stream.text_stream]
            final = await stream.get_final_message()

        assert fragments == ["Poetical ", "science."]
        assert final.text == "Poetical science."
        assert final.usage.input_tokens == 20
        assert raw.closed

    @pytest.mark.asyncio
    async def test_final_message_drains_unread_stream(self):
        async def opened():
            return FakeStream([chunk("one "), chunk("two")])

        async with CompletionStream(opened()) as stream:
            final = await stream.get_final_message()

        assert final.text == "one two"


class TestClientConstruction:
    def test_clients_point_at_their_gateways(self):
        with patch("openai.AsyncOpenAI") as mock_openai:
            mock_openai.return_value = MagicMock()

            from intervox.llm_client import get_chat_client, get_client

            get_client()
            get_chat_client()

        base_urls = [call.kwargs["base_url"] for call in mock_openai.call_args_list]
        assert base_urls == ["https://openrouter.ai/api/v1", "https://api.x.ai/v1"]