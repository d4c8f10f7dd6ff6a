from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from intervox.agents.base import BaseAgent, extract_json_object
from intervox.models.events import LogCategory
from intervox.models.schemas import (
    Education,
    Opinion,
    PersonaIdentity,
    PersonaKnowledge,
    PersonaModel,
    PersonaPersonality,
    PersonaSpeech,
    PersonData,
    Quote,
    ScrapedData,
    WorkExperience,
)
from intervox.services.event_log import events
from intervox.services.prompt_store import render_prompt

# Bounds on what is sent for personality analysis.
ANALYSIS_MAX_QUOTES = 20
ANALYSIS_MAX_OPINIONS = 15
ANALYSIS_MAX_WORK_HISTORY = 5
ANALYSIS_MAX_RAW_CHARS = 3000

# Bounds on what goes into the rendered system prompt.
PROMPT_MAX_OPINIONS = 10
PROMPT_MAX_WORK_HISTORY = 5
PROMPT_MAX_QUOTES = 5
STORED_EXAMPLE_QUOTES = 10

_SCALAR_FIELDS = ("full_name", "current_role", "company", "location", "bio", "profile_image_url")
_COUNTED_SCALARS = ("full_name", "current_role", "company", "bio", "location")
_COUNTED_LISTS = ("quotes", "opinions", "education", "work_history", "skills")


def count_data_points(data: PersonData) -> int:
    """One per present scalar field plus the length of each list field."""
    count = sum(1 for name in _COUNTED_SCALARS if getattr(data, name))
    for name in _COUNTED_LISTS:
        count += len(getattr(data, name) or [])
    return count


@dataclass
class AggregatedData:
    full_name: str | None = None
    current_role: str | None = None
    company: str | None = None
    location: str | None = None
    bio: str | None = None
    profile_image_url: str | None = None
    education: list[Education] = field(default_factory=list)
    work_history: list[WorkExperience] = field(default_factory=list)
    quotes: list[Quote] = field(default_factory=list)
    opinions: list[Opinion] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)
    raw_content: str = ""

    def to_person_data(self) -> PersonData:
        return PersonData(
            full_name=self.full_name,
            current_role=self.current_role,
            company=self.company,
            location=self.location,
            bio=self.bio,
            profile_image_url=self.profile_image_url,
            education=self.education or None,
            work_history=self.work_history or None,
            quotes=self.quotes or None,
            opinions=self.opinions or None,
            skills=self.skills or None,
        )


def _precedence(record: ScrapedData) -> tuple[int, str, str]:
    return (-record.confidence, record.source.value, record.id)


def aggregate_scraped_data(scraped_data: list[ScrapedData]) -> AggregatedData:
    """Merge records, highest confidence first.

    Singular fields take the first non-empty value. Lists are concatenated and
    only skills are deduplicated.
    """
    result = AggregatedData()
    raw_parts: list[str] = []

    for record in sorted(scraped_data, key=_precedence):
        data = record.data
        for name in _SCALAR_FIELDS:
            value = getattr(data, name)
            if not getattr(result, name) and value:
                setattr(result, name, value)

        result.education.extend(data.education or [])
        result.work_history.extend(data.work_history or [])
        result.quotes.extend(data.quotes or [])
        result.opinions.extend(data.opinions or [])
        result.skills.extend(data.skills or [])

        if record.raw_content:
            raw_parts.append(f"--- Source: {record.source.value} ---\n{record.raw_content}")

    result.skills = list(dict.fromkeys(result.skills))
    result.raw_content = "\n\n".join(raw_parts)
    return result


@dataclass
class PersonalityAnalysis:
    traits: list[str]
    communication_style: str
    values: list[str]
    quirks: list[str]
    expertise: list[str]
    experiences: list[str]
    tone: str
    vocabulary: list[str]
    phrases: list[str]

    @classmethod
    def fallback(cls, skills: list[str]) -> "PersonalityAnalysis":
        return cls(
            traits=["professional", "knowledgeable"],
            communication_style="Direct and informative",
            values=["expertise", "clarity"],
            quirks=[],
            expertise=skills[:5],
            experiences=[],
            tone="Professional and engaging",
            vocabulary=[],
            phrases=[],
        )


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def parse_analysis(raw: str, skills: list[str]) -> PersonalityAnalysis:
    """Parse the analysis reply. Raises ``json.JSONDecodeError`` when no object is found."""
    payload = extract_json_object(raw)
    fallback = PersonalityAnalysis.fallback(skills)
    personality = payload.get("personality")
    if not isinstance(personality, dict):
        personality = {}

    style = personality.get("communicationStyle") or personality.get("communication_style")
    tone = payload.get("tone")
    return PersonalityAnalysis(
        traits=_strings(personality.get("traits")) or fallback.traits,
        communication_style=style.strip() if isinstance(style, str) and style.strip() else fallback.communication_style,
        values=_strings(personality.get("values")) or fallback.values,
        quirks=_strings(personality.get("quirks")),
        expertise=_strings(payload.get("expertise")) or fallback.expertise,
        experiences=_strings(payload.get("experiences")),
        tone=tone.strip() if isinstance(tone, str) and tone.strip() else fallback.tone,
        vocabulary=_strings(payload.get("vocabulary")),
        phrases=_strings(payload.get("phrases")),
    )


def _bullets(lines: list[str], empty: str = "- Not documented") -> str:
    return "\n".join(lines) if lines else empty


def generate_system_prompt(persona: PersonaModel) -> str:
    """Render the role-play system prompt for a persona."""
    identity = persona.identity
    personality = persona.personality
    knowledge = persona.knowledge
    speech = persona.speech

    role_line = identity.current_role + (f" at {identity.company}" if identity.company else "")
    education_lines = []
    for entry in knowledge.education:
        degree = entry.degree or "Studied"
        subject = f" in {entry.field}" if entry.field else ""
        education_lines.append(f"- {degree}{subject} at {entry.institution}")

    return render_prompt(
        "persona",
        "system_prompt",
        full_name=identity.full_name,
        role_line=role_line,
        location=identity.location or "Not specified",
        bio=identity.bio,
        traits=", ".join(personality.traits),
        communication_style=personality.communication_style,
        values=", ".join(personality.values),
        quirks_line=f"- **Quirks**: {', '.join(personality.quirks)}" if personality.quirks else "",
        expertise=", ".join(knowledge.expertise) or "your documented career",
        opinions=_bullets(
            [f"- On {o.topic}: {o.position}" for o in knowledge.opinions[:PROMPT_MAX_OPINIONS]]
        ),
        career=_bullets(
            [
                f"- {w.role or 'Worked'} at {w.company}" + (f" ({w.duration})" if w.duration else "")
                for w in knowledge.work_history[:PROMPT_MAX_WORK_HISTORY]
            ]
        ),
        education=_bullets(education_lines),
        tone=speech.tone,
        vocabulary_line=(
            f"- **Vocabulary**: You often use words like: {', '.join(speech.vocabulary)}"
            if speech.vocabulary
            else ""
        ),
        phrases_line=(
            f"- **Signature Phrases**: {'; '.join(speech.phrases)}" if speech.phrases else ""
        ),
        example_quotes=_bullets(
            [f'- "{q.text}"' for q in speech.example_quotes[:PROMPT_MAX_QUOTES]]
        ),
    )


class PersonaSynthesizer(BaseAgent):
    """Build a persona from scraped records."""

    name = "persona"
    max_tokens = 2048

    def _analysis_prompt(self, name: str, aggregated: AggregatedData) -> str:
        quotes = "\n".join(f'- "{q.text}"' for q in aggregated.quotes[:ANALYSIS_MAX_QUOTES])
        opinions = "\n".join(
            f"- {o.topic}: {o.position}" for o in aggregated.opinions[:ANALYSIS_MAX_OPINIONS]
        )
        work_history = "\n".join(
            f"- {w.role} at {w.company}" + (f" ({w.duration})" if w.duration else "")
            for w in aggregated.work_history[:ANALYSIS_MAX_WORK_HISTORY]
        )
        return render_prompt(
            "persona",
            "analysis_prompt",
            name=name,
            full_name=aggregated.full_name or name,
            current_role=aggregated.current_role or "Unknown",
            company=aggregated.company or "Unknown",
            bio=aggregated.bio or "Not available",
            quotes=quotes or "No direct quotes found",
            opinions=opinions or "No explicit opinions found",
            work_history=work_history or "Not available",
            raw_content=aggregated.raw_content[:ANALYSIS_MAX_RAW_CHARS] or "None",
        )

    async def analyze_personality(
        self, name: str, aggregated: AggregatedData, target_id: str | None = None
    ) -> PersonalityAnalysis:
        """Infer personality with the LLM, or fall back to a generic skeleton."""
        try:
            raw = await self.complete(
                render_prompt("persona", "analysis_system_prompt"),
                self._analysis_prompt(name, aggregated),
            )
            return parse_analysis(raw, aggregated.skills)
        except json.JSONDecodeError:
            events.warn(
                LogCategory.PERSONA,
                "Personality analysis was not valid JSON, using fallback profile",
                target_id=target_id,
            )
        except Exception as e:
            events.warn(
                LogCategory.PERSONA,
                f"Personality analysis failed, using fallback profile: {e}",
                target_id=target_id,
            )
        return PersonalityAnalysis.fallback(aggregated.skills)

    async def build_persona(
        self,
        target_id: str,
        target_name: str,
        scraped_data: list[ScrapedData],
    ) -> PersonaModel:
        events.info(
            LogCategory.PERSONA,
            f"Building persona for {target_name} from {len(scraped_data)} source(s)",
            target_id=target_id,
        )
        aggregated = aggregate_scraped_data(scraped_data)
        analysis = await self.analyze_personality(target_name, aggregated, target_id=target_id)

        persona = PersonaModel(
            target_id=target_id,
            target_name=target_name,
            identity=PersonaIdentity(
                full_name=aggregated.full_name or target_name,
                current_role=aggregated.current_role or "Unknown",
                company=aggregated.company,
                location=aggregated.location,
                bio=aggregated.bio or "",
                profile_image_url=aggregated.profile_image_url,
            ),
            personality=PersonaPersonality(
                traits=analysis.traits,
                communication_style=analysis.communication_style,
                values=analysis.values,
                quirks=analysis.quirks,
            ),
            knowledge=PersonaKnowledge(
                expertise=analysis.expertise,
                opinions=aggregated.opinions,
                experiences=analysis.experiences,
                education=aggregated.education,
                work_history=aggregated.work_history,
            ),
            speech=PersonaSpeech(
                tone=analysis.tone,
                vocabulary=analysis.vocabulary,
                phrases=analysis.phrases,
                example_quotes=aggregated.quotes[:STORED_EXAMPLE_QUOTES],
            ),
            data_points_used=count_data_points(aggregated.to_person_data()),
        )
        persona = persona.model_copy(update={"system_prompt": generate_system_prompt(persona)})
        events.info(
            LogCategory.PERSONA,
            f"Persona ready for {persona.identity.full_name}",
            {"dataPoints": persona.data_points_used},
            target_id=target_id,
        )
        return persona
