"""Voice selection policies for persona speech.

Selectors are tried in order until one returns a voice id: a name match in
the provider's voice catalog, a first-name gender table, pronouns and
keywords in the bio, and finally the configured default voice.
"""
from __future__ import annotations

import re
from typing import Awaitable, Callable, Protocol, Sequence

from loguru import logger

from intervox.config import settings
from intervox.models.schemas import PersonaModel
from intervox.tools import elevenlabs
from intervox.tools.elevenlabs import VOICE_OPTIONS, Voice

MALE_FIRST_NAMES = frozenset({"james", "john", "michael", "david", "elon", "jeff", "bill"})
FEMALE_FIRST_NAMES = frozenset({"mary", "jennifer", "sarah", "emily", "lisa", "jessica"})

_MALE_WORDS = frozenset({"he", "him", "his", "himself", "man", "businessman", "father", "husband", "son", "actor"})
_FEMALE_WORDS = frozenset({"she", "her", "hers", "herself", "woman", "businesswoman", "mother", "wife", "daughter", "actress"})
_WORD_RE = re.compile(r"[a-z]+")


def first_name(persona: PersonaModel) -> str:
    parts = (persona.identity.full_name or persona.target_name).split()
    return parts[0].lower() if parts else ""


class VoiceSelector(Protocol):
    async def select(self, persona: PersonaModel) -> str | None: ...


class CatalogVoiceSelector:
    """Pick a catalog voice whose name matches the persona's full or first name."""

    def __init__(self, list_voices: Callable[[], Awaitable[list[Voice]]] | None = None):
        self._list_voices = list_voices or elevenlabs.list_voices
        self._catalog: list[Voice] | None = None

    async def _voices(self) -> list[Voice]:
        if self._catalog is None:
            self._catalog = await self._list_voices()
        return self._catalog

    async def select(self, persona: PersonaModel) -> str | None:
        try:
            voices = await self._voices()
        except Exception as e:
            logger.warning(f"Voice catalog lookup failed: {e}")
            return None

        full = (persona.identity.full_name or persona.target_name).strip().lower()
        first = first_name(persona)
        for voice in voices:
            if voice.name.strip().lower() == full:
                return voice.voice_id
        for voice in voices:
            if first and voice.name.strip().lower().split(" ")[0] == first:
                return voice.voice_id
        return None


class NameGenderVoiceSelector:
    def __init__(
        self,
        male_names: frozenset[str] = MALE_FIRST_NAMES,
        female_names: frozenset[str] = FEMALE_FIRST_NAMES,
    ):
        self.male_names = male_names
        self.female_names = female_names

    async def select(self, persona: PersonaModel) -> str | None:
        name = first_name(persona)
        if name in self.male_names:
            return VOICE_OPTIONS["male_professional"]
        if name in self.female_names:
            return VOICE_OPTIONS["female_professional"]
        return None


class BioKeywordVoiceSelector:
    """Guess from gendered pronouns and nouns in the bio. Ties select nothing."""

    async def select(self, persona: PersonaModel) -> str | None:
        words = _WORD_RE.findall(persona.identity.bio.lower())
        male = sum(1 for word in words if word in _MALE_WORDS)
        female = sum(1 for word in words if word in _FEMALE_WORDS)
        if male > female:
            return VOICE_OPTIONS["male_professional"]
        if female > male:
            return VOICE_OPTIONS["female_professional"]
        return None


class DefaultVoiceSelector:
    def __init__(self, voice_id: str | None = None):
        self.voice_id = voice_id or settings.default_voice_id

    async def select(self, persona: PersonaModel) -> str | None:
        return self.voice_id


class ChainedVoiceSelector:
    def __init__(self, selectors: Sequence[VoiceSelector]):
        self.selectors = list(selectors)

    async def select(self, persona: PersonaModel) -> str | None:
        for selector in self.selectors:
            voice_id = await selector.select(persona)
            if voice_id:
                logger.debug(f"Voice {voice_id} selected for {persona.target_name} by {type(selector).__name__}")
                return voice_id
        return None


def default_voice_selector() -> ChainedVoiceSelector:
    selectors: list[VoiceSelector] = []
    if settings.voice_catalog_enabled:
        selectors.append(CatalogVoiceSelector())
    selectors.extend([NameGenderVoiceSelector(), BioKeywordVoiceSelector(), DefaultVoiceSelector()])
    return ChainedVoiceSelector(selectors)
