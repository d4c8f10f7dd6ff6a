"""Shared fixtures. Required provider keys are seeded before any intervox import."""
from __future__ import annotations

import os
import tempfile
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

os.environ.setdefault("OPENROUTER_API_KEY", "test-openrouter")
os.environ.setdefault("XAI_API_KEY", "test-xai")
os.environ.setdefault("ELEVENLABS_API_KEY", "test-elevenlabs")
os.environ.setdefault("RTRVR_API_KEY", "test-rtrvr")
os.environ.setdefault("VOICE_CATALOG_ENABLED", "false")
os.environ.setdefault("SCRAPE_PAGE_DELAY_SECONDS", "0")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "intervox-test-logs"))


@pytest.fixture
def fake_llm():
    """Build a messages-style client whose ``create`` returns the given texts in order."""
    from intervox.llm_client import MessageResponse, Usage

    def build(*texts: str, error: Exception | None = None):
        if error is not None:
            create = AsyncMock(side_effect=error)
        else:
            create = AsyncMock(
                side_effect=[MessageResponse(text=t, usage=Usage(3, 5)) for t in texts]
            )
        return SimpleNamespace(messages=SimpleNamespace(create=create))

    return build


@pytest.fixture
def make_persona():
    """Build a minimal persona; only the identity and prompt vary between tests."""
    from intervox.models.schemas import (
        PersonaIdentity,
        PersonaKnowledge,
        PersonaModel,
        PersonaPersonality,
        PersonaSpeech,
    )

    def build(full_name: str = "Ada Lovelace", bio: str = "", system_prompt: str = "You are Ada Lovelace."):
        return PersonaModel(
            target_id="target-1",
            target_name=full_name,
            identity=PersonaIdentity(full_name=full_name, current_role="Mathematician", bio=bio),
            personality=PersonaPersonality(),
            knowledge=PersonaKnowledge(),
            speech=PersonaSpeech(),
            system_prompt=system_prompt,
        )

    return build
