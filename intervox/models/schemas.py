from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from intervox.errors import ErrorKind


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class InvestigationStatus(StrEnum):
    PENDING = "pending"
    CONFIRMING_IDENTITY = "confirming_identity"
    SCRAPING = "scraping"
    BUILDING_PERSONA = "building_persona"
    READY = "ready"
    ERROR = "error"


class SourceType(StrEnum):
    PROFESSIONAL_NETWORK = "professional-network"
    SOCIAL_NETWORK = "social-network"
    ENCYCLOPEDIA = "encyclopedia"
    NEWS = "news"
    COMPANY_SITE = "company-site"
    PODCAST_DIRECTORY = "podcast-directory"
    VIDEO_PLATFORM = "video-platform"
    CODE_HOSTING = "code-hosting"
    GENERIC_SEARCH = "generic-search"
    OTHER = "other"


Depth = Literal["quick", "standard", "deep"]


# --- Person data ---


class Education(WireModel):
    institution: str
    degree: str | None = None
    field: str | None = None
    years: str | None = None


class WorkExperience(WireModel):
    company: str
    role: str
    duration: str | None = None
    description: str | None = None


class Quote(WireModel):
    text: str
    source: str = "unknown"
    date: str | None = None
    context: str | None = None


class Opinion(WireModel):
    topic: str
    position: str
    source: str | None = None
    confidence: int = Field(default=70, ge=0, le=100)


class SocialLink(WireModel):
    platform: str
    url: str
    username: str | None = None


class PersonData(WireModel):
    full_name: str | None = None
    current_role: str | None = None
    company: str | None = None
    location: str | None = None
    bio: str | None = None
    profile_image_url: str | None = None
    education: list[Education] | None = None
    work_history: list[WorkExperience] | None = None
    quotes: list[Quote] | None = None
    opinions: list[Opinion] | None = None
    skills: list[str] | None = None
    social_links: list[SocialLink] | None = None


class IdentityCandidate(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    confidence: int = Field(default=50, ge=0, le=100)
    sources: list[str] = Field(default_factory=list)
    thumbnail: str | None = None


class ScrapedData(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    source: SourceType
    source_url: str
    scraped_at: datetime = Field(default_factory=utc_now)
    confidence: int
    data: PersonData
    raw_content: str | None = None


# --- Persona ---


class PersonaIdentity(WireModel):
    full_name: str
    current_role: str
    company: str | None = None
    location: str | None = None
    bio: str = ""
    profile_image_url: str | None = None


class PersonaPersonality(WireModel):
    traits: list[str] = Field(default_factory=list)
    communication_style: str = ""
    values: list[str] = Field(default_factory=list)
    quirks: list[str] = Field(default_factory=list)


class PersonaKnowledge(WireModel):
    expertise: list[str] = Field(default_factory=list)
    opinions: list[Opinion] = Field(default_factory=list)
    experiences: list[str] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)
    work_history: list[WorkExperience] = Field(default_factory=list)


class PersonaSpeech(WireModel):
    tone: str = ""
    vocabulary: list[str] = Field(default_factory=list)
    phrases: list[str] = Field(default_factory=list)
    example_quotes: list[Quote] = Field(default_factory=list)


class PersonaModel(WireModel):
    model_config = ConfigDict(frozen=True)

    target_id: str
    target_name: str
    identity: PersonaIdentity
    personality: PersonaPersonality
    knowledge: PersonaKnowledge
    speech: PersonaSpeech
    system_prompt: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    data_points_used: int = 0


# --- Scraping progress ---


class ScrapingProgress(WireModel):
    total_pages: int = 0
    scraped_pages: int = 0
    current_source: SourceType | None = None
    credits_used: float = 0.0
    status: Literal["searching", "scraping", "processing", "complete", "error"] = "searching"


# --- Investigation ---


class InvestigationResult(WireModel):
    target_id: str = Field(default_factory=new_id)
    target_name: str
    target_context: str | None = None
    depth: Depth = "standard"
    status: InvestigationStatus = InvestigationStatus.PENDING
    identity_candidates: list[IdentityCandidate] | None = None
    confirmed_identity: IdentityCandidate | None = None
    sources_scraped: int = 0
    data_points: int = 0
    scraped_data: list[ScrapedData] = Field(default_factory=list)
    persona: PersonaModel | None = None
    conversation_id: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    progress: ScrapingProgress | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class IdentityConfirmation(WireModel):
    confirmed: bool = True
    selected_candidate_id: str | None = None
    additional_context: str | None = None


# --- Conversation ---


class ConversationMessage(WireModel):
    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    audio_url: str | None = None


class ConversationSession(WireModel):
    id: str = Field(default_factory=new_id)
    persona_id: str
    persona_name: str
    started_at: datetime = Field(default_factory=utc_now)
    messages: list[ConversationMessage] = Field(default_factory=list)
    status: Literal["active", "ended"] = "active"
    voice_id: str | None = None


class VoiceConfig(WireModel):
    voice_id: str
    stability: float = Field(default=0.5, ge=0, le=1)
    similarity_boost: float = Field(default=0.75, ge=0, le=1)
    style: float | None = Field(default=0.5, ge=0, le=1)


# --- Requests ---


class InvestigateRequest(WireModel):
    target_name: str = Field(min_length=1)
    target_context: str | None = None
    depth: Depth = "standard"
    quick_mode: bool = False


class ConfirmRequest(IdentityConfirmation):
    target_id: str = Field(min_length=1)


class ChatRequest(WireModel):
    target_id: str | None = None
    session_id: str | None = None
    message: str = Field(min_length=1)


class TTSRequest(WireModel):
    text: str = Field(min_length=1)
    voice_id: str | None = None


# --- Responses ---


class ChatResponse(WireModel):
    session_id: str
    response: ConversationMessage
    conversation: ConversationSession
