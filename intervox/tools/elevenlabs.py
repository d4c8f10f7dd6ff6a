from __future__ import annotations

import time
from dataclasses import dataclass, field

import httpx

from intervox.config import settings
from intervox.errors import ProviderError, StageTimeoutError
from intervox.models.schemas import VoiceConfig
from intervox.services import logger as log_service
from intervox.services.env_safety import sanitize_ssl_keylogfile

VOICE_OPTIONS = {
    "male_professional": "ErXwobaYiN019PkySvjV",  # Antoni
    "male_casual": "VR6AewLTigWG4xSOukaG",  # Arnold
    "female_professional": "21m00Tcm4TlvDq8ikWAM",  # Rachel
    "female_casual": "EXAVITQu4vr4xnSDxMaL",  # Bella
    "neutral": "AZnzlk1XvdvUeBnXmlld",  # Domi
}


@dataclass
class Voice:
    voice_id: str
    name: str
    labels: dict[str, str] = field(default_factory=dict)


def _headers(accept: str = "application/json") -> dict[str, str]:
    return {
        "xi-api-key": settings.elevenlabs_api_key,
        "Accept": accept,
    }


async def text_to_speech(text: str, voice: VoiceConfig | None = None) -> bytes:
    """Render ``text`` as MPEG audio."""
    sanitize_ssl_keylogfile()
    voice = voice or VoiceConfig(voice_id=settings.default_voice_id)
    endpoint = f"/v1/text-to-speech/{voice.voice_id}"
    voice_settings: dict[str, float] = {
        "stability": voice.stability,
        "similarity_boost": voice.similarity_boost,
    }
    if voice.style is not None:
        voice_settings["style"] = voice.style

    t0 = time.monotonic()
    try:
        async with httpx.AsyncClient(timeout=settings.tts_timeout_seconds) as client:
            response = await client.post(
                settings.elevenlabs_base_url.rstrip("/") + endpoint,
                json={
                    "text": text,
                    "model_id": settings.tts_model,
                    "voice_settings": voice_settings,
                },
                headers=_headers("audio/mpeg"),
            )
    except httpx.TimeoutException as exc:
        log_service.log_provider_call("elevenlabs", endpoint, "timeout", error=str(exc))
        raise StageTimeoutError("text-to-speech", settings.tts_timeout_seconds) from exc

    elapsed_ms = int((time.monotonic() - t0) * 1000)
    if not response.is_success:
        log_service.log_provider_call(
            "elevenlabs", endpoint, "error", elapsed_ms, error=f"HTTP {response.status_code}"
        )
        raise ProviderError(f"Text-to-speech failed with HTTP {response.status_code}")
    log_service.log_provider_call("elevenlabs", endpoint, "success", elapsed_ms)
    return response.content


async def list_voices() -> list[Voice]:
    """Fetch the voice catalog for the configured account."""
    sanitize_ssl_keylogfile()
    async with httpx.AsyncClient(timeout=settings.tts_timeout_seconds) as client:
        response = await client.get(
            settings.elevenlabs_base_url.rstrip("/") + "/v1/voices",
            headers=_headers(),
        )
        response.raise_for_status()
        payload = response.json()

    voices: list[Voice] = []
    for item in payload.get("voices", []) or []:
        voice_id = item.get("voice_id")
        if not voice_id:
            continue
        labels = item.get("labels") or {}
        voices.append(
            Voice(
                voice_id=voice_id,
                name=item.get("name", "") or "",
                labels={str(k): str(v) for k, v in labels.items()},
            )
        )
    return voices
