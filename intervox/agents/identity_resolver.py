from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote_plus

from intervox.agents.base import extract_json_array
from intervox.models.events import LogCategory
from intervox.models.schemas import IdentityCandidate
from intervox.services.event_log import events
from intervox.services.prompt_store import render_prompt
from intervox.tools import rtrvr

PROVIDER_FAILURE_CONFIDENCE = 50
UNPARSED_RESULT_CONFIDENCE = 60
UNPARSED_DESCRIPTION_CHARS = 200


def search_query(name: str, context: str | None = None) -> str:
    return f"{name} {context}" if context else name


def candidate_search_urls(name: str, context: str | None = None) -> list[str]:
    query = search_query(name, context)
    return [
        f"https://www.google.com/search?q={quote_plus(query)}",
        f"https://www.linkedin.com/search/results/people/?keywords={quote_plus(name)}",
    ]


def _confidence(value: Any, default: int) -> int:
    try:
        return max(0, min(100, int(float(value))))
    except (TypeError, ValueError, OverflowError):
        return default


def _candidate(item: Any) -> IdentityCandidate | None:
    if not isinstance(item, dict):
        return None
    name = str(item.get("name") or "").strip()
    if not name:
        return None
    sources = [str(s) for s in item.get("sources") or [] if isinstance(s, str) and s.strip()]
    thumbnail = item.get("thumbnail")
    return IdentityCandidate(
        name=name,
        description=str(item.get("description") or ""),
        confidence=_confidence(item.get("confidence"), PROVIDER_FAILURE_CONFIDENCE),
        sources=sources,
        thumbnail=thumbnail if isinstance(thumbnail, str) and thumbnail.strip() else None,
    )


def parse_candidates(raw: str) -> list[IdentityCandidate]:
    """Parse the agent's JSON array; raises ``json.JSONDecodeError`` on prose."""
    candidates = [_candidate(item) for item in extract_json_array(raw)]
    return [c for c in candidates if c is not None]


class IdentityResolver:
    """Search for people matching a name and rank them as identity candidates."""

    async def find_candidates(
        self,
        name: str,
        context: str | None = None,
        target_id: str | None = None,
    ) -> list[IdentityCandidate]:
        query = search_query(name, context)
        events.info(
            LogCategory.ORCHESTRATOR,
            f"Searching for identity candidates: {query}",
            target_id=target_id,
        )

        result = await rtrvr.agent(
            render_prompt("identity", "search_prompt", query=query),
            candidate_search_urls(name, context),
        )
        if not result.success:
            events.warn(
                LogCategory.ORCHESTRATOR,
                "Identity search failed, using the input name as the only candidate",
                {"error": result.error},
                target_id=target_id,
            )
            return [
                IdentityCandidate(
                    name=name,
                    description=context or "",
                    confidence=PROVIDER_FAILURE_CONFIDENCE,
                )
            ]

        raw = result.result or ""
        try:
            candidates = parse_candidates(raw)
        except json.JSONDecodeError:
            candidates = []
        if not candidates:
            events.warn(
                LogCategory.ORCHESTRATOR,
                "Identity search returned no structured candidates",
                target_id=target_id,
            )
            return [
                IdentityCandidate(
                    name=name,
                    description=raw[:UNPARSED_DESCRIPTION_CHARS] or (context or ""),
                    confidence=UNPARSED_RESULT_CONFIDENCE,
                )
            ]

        candidates.sort(key=lambda c: c.confidence, reverse=True)
        events.info(
            LogCategory.ORCHESTRATOR,
            f"Found {len(candidates)} identity candidate(s)",
            {"names": [c.name for c in candidates]},
            target_id=target_id,
        )
        return candidates
