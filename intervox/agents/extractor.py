"""Coerce loosely structured model output into ``PersonData``.

Extraction providers answer in free text that usually, but not always,
contains a JSON object. Parsing here is forgiving: fenced or embedded JSON is
recovered, camelCase and snake_case keys are both accepted, plain-string quotes
and opinions are promoted to records, and malformed entries are dropped.
"""
from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from intervox.agents.base import BaseAgent, extract_json_object
from intervox.config import settings
from intervox.llm_client import get_extraction_model
from intervox.models.schemas import PersonData, SourceType
from intervox.services.prompt_store import render_prompt

RAW_BIO_CHARS = 1000
DEFAULT_OPINION_CONFIDENCE = 70


def _get(payload: dict[str, Any], field: str) -> Any:
    if field in payload:
        return payload[field]
    return payload.get(to_camel(field))


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _record(item: dict[str, Any], required: tuple[str, ...], optional: tuple[str, ...]) -> dict[str, Any] | None:
    record: dict[str, Any] = {}
    for field in required:
        value = _text(_get(item, field))
        if value is None:
            return None
        record[field] = value
    for field in optional:
        value = _text(_get(item, field))
        if value is not None:
            record[field] = value
    return record


def _confidence(value: Any) -> int:
    try:
        confidence = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_OPINION_CONFIDENCE
    return max(0, min(100, confidence))


def _quotes(value: Any) -> list[dict[str, Any]]:
    quotes = []
    for item in _as_list(value):
        if isinstance(item, str):
            if item.strip():
                quotes.append({"text": item.strip(), "source": "unknown"})
        elif isinstance(item, dict):
            record = _record(item, ("text",), ("source", "date", "context"))
            if record is not None:
                record.setdefault("source", "unknown")
                quotes.append(record)
    return quotes


def _opinions(value: Any) -> list[dict[str, Any]]:
    opinions = []
    for item in _as_list(value):
        if isinstance(item, str):
            if item.strip():
                opinions.append(
                    {
                        "topic": "general",
                        "position": item.strip(),
                        "confidence": DEFAULT_OPINION_CONFIDENCE,
                    }
                )
        elif isinstance(item, dict):
            record = _record(item, ("topic", "position"), ("source",))
            if record is not None:
                record["confidence"] = _confidence(item.get("confidence"))
                opinions.append(record)
    return opinions


def _education(value: Any) -> list[dict[str, Any]]:
    entries = []
    for item in _as_list(value):
        if isinstance(item, str):
            if item.strip():
                entries.append({"institution": item.strip()})
        elif isinstance(item, dict):
            record = _record(item, ("institution",), ("degree", "field", "years"))
            if record is not None:
                entries.append(record)
    return entries


def _work_history(value: Any) -> list[dict[str, Any]]:
    entries = []
    for item in _as_list(value):
        if not isinstance(item, dict):
            continue
        record = _record(item, ("company",), ("role", "duration", "description"))
        if record is not None:
            record.setdefault("role", "")
            entries.append(record)
    return entries


def _social_links(value: Any) -> list[dict[str, Any]]:
    links = []
    for item in _as_list(value):
        if isinstance(item, dict):
            record = _record(item, ("url",), ("platform", "username"))
            if record is not None:
                record.setdefault("platform", "unknown")
                links.append(record)
    return links


def _skills(value: Any) -> list[str]:
    return [text for text in (_text(item) for item in _as_list(value)) if text]


def person_data_from_dict(payload: dict[str, Any]) -> PersonData:
    fields: dict[str, Any] = {}
    for name in ("full_name", "current_role", "company", "location", "bio", "profile_image_url"):
        value = _text(_get(payload, name))
        if value is not None:
            fields[name] = value

    lists = {
        "education": _education(_get(payload, "education")),
        "work_history": _work_history(_get(payload, "work_history")),
        "quotes": _quotes(_get(payload, "quotes")),
        "opinions": _opinions(_get(payload, "opinions")),
        "skills": _skills(_get(payload, "skills")),
        "social_links": _social_links(_get(payload, "social_links")),
    }
    for name, items in lists.items():
        if items:
            fields[name] = items
    return PersonData.model_validate(fields)


def parse_person_data(raw: str | None) -> PersonData:
    """Parse extraction output; non-JSON text becomes the bio."""
    if not raw or not raw.strip():
        return PersonData()
    try:
        return person_data_from_dict(extract_json_object(raw))
    except (json.JSONDecodeError, PydanticValidationError):
        return PersonData(bio=raw.strip()[:RAW_BIO_CHARS])


def has_data(data: PersonData) -> bool:
    return any(value for value in data.model_dump().values())


class ContentExtractor(BaseAgent):
    """Second-pass extraction of ``PersonData`` from raw page text."""

    name = "extractor"
    max_tokens = 2048

    def __init__(self, model: str | None = None, llm=None):
        super().__init__(model=model or get_extraction_model(), llm=llm)

    async def extract(
        self,
        content: str,
        *,
        url: str,
        source: SourceType,
        name: str,
        context: str | None = None,
    ) -> PersonData:
        prompt = render_prompt(
            "scraper",
            "extract_prompt",
            url=url,
            source=source.value,
            name=name,
            context_clause=f" ({context})" if context else "",
            content=content[: settings.deep_scrape_page_chars],
        )
        text = await self.complete(
            render_prompt("scraper", "extract_system_prompt"),
            prompt,
            temperature=0,
        )
        return parse_person_data(text)
