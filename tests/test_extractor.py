from __future__ import annotations

import pytest

from intervox.agents.base import extract_json_array, extract_json_object
from intervox.agents.extractor import ContentExtractor, has_data, parse_person_data
from intervox.models.schemas import PersonData, SourceType


class TestJsonRecovery:
    def test_fenced_object(self):
        assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_object_embedded_in_prose(self):
        assert extract_json_object('Here you go: {"a": {"b": 2}} hope it helps') == {"a": {"b": 2}}

    def test_array(self):
        assert extract_json_array('Results:\n[{"name": "A"}]') == [{"name": "A"}]

    def test_no_object_raises(self):
        with pytest.raises(ValueError):
            extract_json_object("no json here")


class TestParsePersonData:
    def test_camel_case_fields(self):
        data = parse_person_data(
            '{"fullName": "Ada Lovelace", "currentRole": "Mathematician", '
            '"workHistory": [{"company": "Analytical Engine", "role": "Programmer"}], '
            '"profileImageUrl": "https://img.test/ada.png"}'
        )
        assert data.full_name == "Ada Lovelace"
        assert data.current_role == "Mathematician"
        assert data.work_history[0].company == "Analytical Engine"
        assert data.profile_image_url == "https://img.test/ada.png"

    def test_snake_case_fields(self):
        data = parse_person_data('{"full_name": "Ada", "skills": ["math", "poetry"]}')
        assert data.full_name == "Ada"
        assert data.skills == ["math", "poetry"]

    def test_non_json_becomes_truncated_bio(self):
        raw = "Ada Lovelace was an English mathematician. " * 50
        data = parse_person_data(raw)
        assert data.bio == raw.strip()[:1000]
        assert data.full_name is None

    def test_empty_output(self):
        assert parse_person_data("") == PersonData()
        assert parse_person_data(None) == PersonData()

    def test_string_quotes_and_opinions_are_promoted(self):
        data = parse_person_data(
            '{"quotes": ["The engine weaves algebraic patterns"], '
            '"opinions": ["Machines cannot originate anything"]}'
        )
        assert data.quotes[0].text == "The engine weaves algebraic patterns"
        assert data.quotes[0].source == "unknown"
        assert data.opinions[0].topic == "general"
        assert data.opinions[0].position == "Machines cannot originate anything"
        assert data.opinions[0].confidence == 70

    def test_opinion_confidence_defaults_and_clamps(self):
        data = parse_person_data(
            '{"opinions": [{"topic": "ai", "position": "skeptical"}, '
            '{"topic": "math", "position": "poetic", "confidence": 250}]}'
        )
        assert [o.confidence for o in data.opinions] == [70, 100]

    def test_non_finite_opinion_confidence_defaults(self):
        data = parse_person_data(
            '{"fullName": "Ada Lovelace", "opinions": ['
            '{"topic": "ai", "position": "skeptical", "confidence": 1e999}, '
            '{"topic": "math", "position": "poetic", "confidence": -Infinity}]}'
        )
        assert data.full_name == "Ada Lovelace"
        assert [o.confidence for o in data.opinions] == [70, 70]

    def test_malformed_entries_are_dropped(self):
        data = parse_person_data(
            '{"education": [{"degree": "none"}, "University of London"], '
            '"workHistory": ["loose string", {"company": "Acme"}], '
            '"quotes": [{"source": "no text"}], "skills": ["", "math", null]}'
        )
        assert [e.institution for e in data.education] == ["University of London"]
        assert len(data.work_history) == 1
        assert data.work_history[0].role == ""
        assert data.quotes is None
        assert data.skills == ["math"]

    def test_numeric_scalars_are_stringified(self):
        data = parse_person_data('{"education": [{"institution": "MIT", "years": 1999}]}')
        assert data.education[0].years == "1999"


def test_has_data():
    assert not has_data(PersonData())
    assert has_data(PersonData(skills=["x"]))


@pytest.mark.asyncio
async def test_content_extractor_parses_model_reply(fake_llm):
    llm = fake_llm('```json\n{"fullName": "Ada Lovelace", "bio": "Mathematician"}\n```')
    extractor = ContentExtractor(model="test/model", llm=llm)

    data = await extractor.extract(
        "page text",
        url="https://en.wikipedia.org/wiki/Ada_Lovelace",
        source=SourceType.ENCYCLOPEDIA,
        name="Ada Lovelace",
        context="mathematician",
    )

    assert data.full_name == "Ada Lovelace"
    kwargs = llm.messages.create.call_args.kwargs
    assert kwargs["model"] == "test/model"
    assert kwargs["temperature"] == 0
    assert "Ada Lovelace (mathematician)" in kwargs["messages"][0]["content"]
    assert "encyclopedia" in kwargs["messages"][0]["content"]
