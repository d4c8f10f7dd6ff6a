"""Tests for the rtrvr.ai and ElevenLabs HTTP clients."""
from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest

from intervox.errors import ErrorKind, ProviderError, StageTimeoutError
from intervox.models.schemas import VoiceConfig
from intervox.tools import elevenlabs, rtrvr

_AsyncClient = httpx.AsyncClient


def transport(handler):
    """Patch target for ``httpx.AsyncClient`` that routes requests to ``handler``."""

    def build(**kwargs):
        return _AsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return build


class TestRtrvr:
    @pytest.mark.asyncio
    async def test_agent_posts_task_and_reads_result(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"result": {"text": "Ada Lovelace"}, "usageData": {"creditsUsed": 1.5}})

        with patch("httpx.AsyncClient", transport(handler)):
            result = await rtrvr.agent("Find Ada", ["https://en.wikipedia.org/wiki/Ada_Lovelace"])

        assert result.success
        assert result.result == "Ada Lovelace"
        assert result.credits_used == 1.5
        assert seen["url"].endswith("/agent")
        assert seen["auth"].startswith("Bearer ")
        assert seen["body"]["input"] == "Find Ada"
        assert seen["body"]["urls"] == ["https://en.wikipedia.org/wiki/Ada_Lovelace"]

    @pytest.mark.asyncio
    async def test_scrape_joins_page_contents(self):
        def handler(request):
            return httpx.Response(200, json={"content": [{"content": "page one"}, {"text": "page two"}]})

        with patch("httpx.AsyncClient", transport(handler)):
            result = await rtrvr.scrape(["https://example.com"])

        assert result.success
        assert result.content == "page one\n\npage two"
        assert result.credits_used == 0.0

    @pytest.mark.asyncio
    async def test_http_error_is_unsuccessful_result(self):
        with patch("httpx.AsyncClient", transport(lambda request: httpx.Response(502))):
            result = await rtrvr.agent("Find Ada", ["https://example.com"])

        assert not result.success
        assert result.error == "HTTP 502"

    @pytest.mark.asyncio
    async def test_timeout_raises_stage_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with patch("httpx.AsyncClient", transport(handler)):
            with pytest.raises(StageTimeoutError) as exc_info:
                await rtrvr.scrape(["https://example.com"])

        assert exc_info.value.kind is ErrorKind.TIMEOUT


class TestElevenLabs:
    @pytest.mark.asyncio
    async def test_text_to_speech_returns_audio(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["key"] = request.headers["xi-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"ID3audio", headers={"Content-Type": "audio/mpeg"})

        with patch("httpx.AsyncClient", transport(handler)):
            audio = await elevenlabs.text_to_speech("Hello", VoiceConfig(voice_id="voice-1", style=None))

        assert audio == b"ID3audio"
        assert seen["path"] == "/v1/text-to-speech/voice-1"
        assert seen["key"]
        assert seen["body"]["text"] == "Hello"
        assert "style" not in seen["body"]["voice_settings"]

    @pytest.mark.asyncio
    async def test_text_to_speech_failure_is_provider_error(self):
        with patch("httpx.AsyncClient", transport(lambda request: httpx.Response(401))):
            with pytest.raises(ProviderError):
                await elevenlabs.text_to_speech("Hello")

    @pytest.mark.asyncio
    async def test_list_voices(self):
        payload = {
            "voices": [
                {"voice_id": "v1", "name": "Rachel", "labels": {"gender": "female"}},
                {"name": "No id"},
            ]
        }
        with patch("httpx.AsyncClient", transport(lambda request: httpx.Response(200, json=payload))):
            voices = await elevenlabs.list_voices()

        assert [(v.voice_id, v.name, v.labels) for v in voices] == [("v1", "Rachel", {"gender": "female"})]
