from __future__ import annotations

import json
import time
from typing import Any

from intervox.llm_client import ClientAdapter, client as llm_client, get_model
from intervox.services import logger as log_service


def _strip_fence(raw_text: str) -> str:
    text = raw_text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    return text


def extract_json_object(raw_text: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of a model reply.

    Handles fenced code blocks and prose around the object. Raises
    ``json.JSONDecodeError`` when no object can be recovered.
    """
    text = _strip_fence(raw_text)
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise json.JSONDecodeError("object not found", text, 0)
    parsed = json.loads(text[start : end + 1])
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("not an object", text, 0)
    return parsed


def extract_json_array(raw_text: str) -> list[Any]:
    text = _strip_fence(raw_text)
    start = text.find("[")
    end = text.rfind("]")
    if start < 0 or end <= start:
        raise json.JSONDecodeError("array not found", text, 0)
    parsed = json.loads(text[start : end + 1])
    if not isinstance(parsed, list):
        raise json.JSONDecodeError("not an array", text, 0)
    return parsed


class BaseAgent:
    """Base for agents that make single-shot LLM calls.

    Each call is timed and logged with its token usage. Subclasses set
    ``name`` and build their prompts from the prompt catalog.
    """

    name: str = "base"
    max_tokens: int = 4096

    def __init__(self, model: str | None = None, llm: ClientAdapter | None = None):
        self.model = model or get_model()
        self.client = llm

    async def complete(
        self,
        system: str,
        user_message: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        active_client = self.client or llm_client()
        t0 = time.monotonic()
        try:
            response = await active_client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": user_message}],
                temperature=temperature,
            )
        except Exception as e:
            log_service.log_llm_call(
                model=self.model,
                caller=self.name,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(e),
            )
            raise

        log_service.log_llm_call(
            model=self.model,
            caller=self.name,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return response.text
