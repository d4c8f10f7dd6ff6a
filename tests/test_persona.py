from __future__ import annotations

import json
from itertools import permutations

import pytest

from intervox.agents.persona import (
    PersonaSynthesizer,
    PersonalityAnalysis,
    aggregate_scraped_data,
    count_data_points,
    generate_system_prompt,
)
from intervox.models.schemas import (
    Education,
    Opinion,
    PersonData,
    Quote,
    ScrapedData,
    SourceType,
    WorkExperience,
)


def record(source: SourceType, confidence: int, raw: str | None = None, **fields) -> ScrapedData:
    return ScrapedData(
        source=source,
        source_url=f"https://{source.value}.test",
        confidence=confidence,
        data=PersonData(**fields),
        raw_content=raw,
    )


ANALYSIS = {
    "personality": {
        "traits": ["analytical", "imaginative"],
        "communicationStyle": "Poetic yet precise",
        "values": ["curiosity"],
        "quirks": ["calls herself a poetical scientist"],
    },
    "expertise": ["mathematics", "computing"],
    "experiences": ["Translated Menabrea's memoir"],
    "tone": "Enthusiastic",
    "vocabulary": ["engine"],
    "phrases": ["poetical science"],
}


def test_count_data_points():
    data = PersonData(full_name="X", quotes=[Quote(text="a"), Quote(text="b")])
    assert count_data_points(data) == 3
    assert count_data_points(PersonData()) == 0
    assert count_data_points(PersonData(bio="b", location="l", skills=["s"], profile_image_url="u")) == 3


class TestAggregation:
    def test_singular_fields_prefer_higher_confidence(self):
        records = [
            record(SourceType.GENERIC_SEARCH, 70, full_name="A. Lovelace", location="London"),
            record(SourceType.ENCYCLOPEDIA, 95, full_name="Ada Lovelace"),
        ]
        aggregated = aggregate_scraped_data(records)
        assert aggregated.full_name == "Ada Lovelace"
        assert aggregated.location == "London"

    def test_result_is_independent_of_input_order(self):
        records = [
            record(SourceType.SOCIAL_NETWORK, 80, full_name="Ada (social)", bio="social bio"),
            record(SourceType.CODE_HOSTING, 80, full_name="Ada (code)", company="Engine Co"),
            record(SourceType.NEWS, 75, current_role="Countess"),
            record(SourceType.ENCYCLOPEDIA, 95, bio="encyclopedia bio"),
        ]
        results = {
            (a.full_name, a.bio, a.company, a.current_role)
            for a in (aggregate_scraped_data(list(order)) for order in permutations(records))
        }
        assert results == {("Ada (code)", "encyclopedia bio", "Engine Co", "Countess")}

    def test_skills_deduplicated_lists_concatenated(self):
        records = [
            record(SourceType.CODE_HOSTING, 80, skills=["go", "rust", "go"], quotes=[Quote(text="q1")]),
            record(SourceType.NEWS, 75, skills=["rust", "zig"], quotes=[Quote(text="q1")]),
        ]
        aggregated = aggregate_scraped_data(records)
        assert sorted(aggregated.skills) == ["go", "rust", "zig"]
        assert aggregated.skills == ["go", "rust", "zig"]
        assert len(aggregated.quotes) == 2

    def test_raw_content_has_source_headers(self):
        aggregated = aggregate_scraped_data(
            [record(SourceType.NEWS, 75, raw="news text"), record(SourceType.ENCYCLOPEDIA, 95, raw="wiki text")]
        )
        assert aggregated.raw_content.index("--- Source: encyclopedia ---") < aggregated.raw_content.index(
            "--- Source: news ---"
        )
        assert "wiki text" in aggregated.raw_content


class TestBuildPersona:
    @pytest.mark.asyncio
    async def test_build_persona_uses_analysis(self, fake_llm):
        llm = fake_llm("```json\n" + json.dumps(ANALYSIS) + "\n```")
        synthesizer = PersonaSynthesizer(model="test/model", llm=llm)
        records = [
            record(
                SourceType.ENCYCLOPEDIA,
                95,
                raw="x" * 5000,
                full_name="Ada Lovelace",
                bio="English mathematician",
                quotes=[Quote(text=f"quote {i}") for i in range(25)],
                opinions=[Opinion(topic="machines", position="cannot originate")],
            )
        ]

        persona = await synthesizer.build_persona("t1", "Ada Lovelace", records)

        assert persona.identity.full_name == "Ada Lovelace"
        assert persona.identity.current_role == "Unknown"
        assert persona.personality.traits == ["analytical", "imaginative"]
        assert persona.personality.communication_style == "Poetic yet precise"
        assert persona.knowledge.expertise == ["mathematics", "computing"]
        assert persona.speech.tone == "Enthusiastic"
        assert len(persona.speech.example_quotes) == 10
        assert persona.data_points_used == 2 + 25 + 1
        assert "You are Ada Lovelace" in persona.system_prompt

        prompt = llm.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "quote 19" in prompt
        assert "quote 20" not in prompt
        assert "x" * 3001 not in prompt

    @pytest.mark.asyncio
    async def test_malformed_analysis_falls_back(self, fake_llm):
        synthesizer = PersonaSynthesizer(model="test/model", llm=fake_llm("I cannot do that"))
        records = [record(SourceType.CODE_HOSTING, 80, skills=["go", "rust", "zig", "c", "lisp", "ml"])]

        persona = await synthesizer.build_persona("t1", "Grace Hopper", records)

        assert persona.identity.full_name == "Grace Hopper"
        assert persona.personality.traits == ["professional", "knowledgeable"]
        assert persona.personality.communication_style == "Direct and informative"
        assert persona.personality.values == ["expertise", "clarity"]
        assert persona.knowledge.expertise == ["go", "rust", "zig", "c", "lisp"]
        assert persona.speech.tone == "Professional and engaging"

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self, fake_llm):
        synthesizer = PersonaSynthesizer(model="test/model", llm=fake_llm(error=RuntimeError("503")))
        persona = await synthesizer.build_persona("t1", "Grace Hopper", [])
        assert persona.speech.tone == "Professional and engaging"
        assert persona.data_points_used == 0


def test_system_prompt_sections_and_limits():
    fallback = PersonalityAnalysis.fallback(["math"])
    from intervox.models.schemas import (
        PersonaIdentity,
        PersonaKnowledge,
        PersonaModel,
        PersonaPersonality,
        PersonaSpeech,
    )

    persona = PersonaModel(
        target_id="t1",
        target_name="Ada",
        identity=PersonaIdentity(full_name="Ada Lovelace", current_role="Analyst", company="Engine Co"),
        personality=PersonaPersonality(
            traits=fallback.traits,
            communication_style=fallback.communication_style,
            values=fallback.values,
        ),
        knowledge=PersonaKnowledge(
            expertise=["math"],
            opinions=[Opinion(topic=f"topic{i}", position="yes") for i in range(12)],
            education=[Education(institution="Home", field="Mathematics")],
            work_history=[WorkExperience(company=f"C{i}", role="Role", duration="1843") for i in range(7)],
        ),
        speech=PersonaSpeech(
            tone="Warm",
            example_quotes=[Quote(text=f"q{i}") for i in range(8)],
        ),
    )

    prompt = generate_system_prompt(persona)

    assert "- **Current Role**: Analyst at Engine Co" in prompt
    assert "- **Location**: Not specified" in prompt
    assert "- On topic9: yes" in prompt
    assert "topic10" not in prompt
    assert "- Role at C4 (1843)" in prompt
    assert "C5" not in prompt
    assert "- Studied in Mathematics at Home" in prompt
    assert '- "q4"' in prompt
    assert '"q5"' not in prompt
    assert "Quirks" not in prompt
    assert "You ARE Ada Lovelace" in prompt
    assert generate_system_prompt(persona) == prompt
