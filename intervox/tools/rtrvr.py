from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import httpx

from intervox.config import settings
from intervox.errors import StageTimeoutError
from intervox.services import logger as log_service
from intervox.services.env_safety import sanitize_ssl_keylogfile


@dataclass
class AgentResult:
    success: bool
    result: str | None = None
    error: str | None = None
    credits_used: float = 0.0


@dataclass
class ScrapeResult:
    success: bool
    content: str | None = None
    error: str | None = None
    credits_used: float = 0.0


def _credits(data: dict[str, Any]) -> float:
    for key in ("creditsUsed", "credits_used"):
        value = data.get(key)
        if isinstance(value, (int, float)):
            return float(value)
    usage = data.get("usageData") or data.get("usage")
    if isinstance(usage, dict):
        return _credits(usage)
    return 0.0


def _text_of(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = [_text_of(item) for item in value]
        return "\n\n".join(p for p in parts if p)
    if isinstance(value, dict):
        for key in ("content", "text", "result"):
            if key in value:
                return _text_of(value[key])
    return str(value)


async def _post(endpoint: str, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
    sanitize_ssl_keylogfile()
    url = settings.rtrvr_base_url.rstrip("/") + endpoint
    timeout = settings.rtrvr_timeout_seconds
    t0 = time.monotonic()
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {settings.rtrvr_api_key}",
                    "Content-Type": "application/json",
                },
            )
    except httpx.TimeoutException as exc:
        log_service.log_provider_call("rtrvr", endpoint, "timeout", error=str(exc))
        raise StageTimeoutError(f"rtrvr {endpoint}", timeout) from exc

    elapsed_ms = int((time.monotonic() - t0) * 1000)
    if not response.is_success:
        log_service.log_provider_call(
            "rtrvr", endpoint, "error", elapsed_ms, error=f"HTTP {response.status_code}"
        )
        return response.status_code, {}

    log_service.log_provider_call("rtrvr", endpoint, "success", elapsed_ms)
    data = response.json()
    return response.status_code, data if isinstance(data, dict) else {"result": data}


async def agent(task: str, urls: list[str]) -> AgentResult:
    """Run the rtrvr.ai web agent over ``urls`` with a natural-language task."""
    status, data = await _post(
        "/agent",
        {"input": task, "urls": urls, "response": {"verbosity": "final"}},
    )
    if not data:
        return AgentResult(success=False, error=f"HTTP {status}")
    return AgentResult(
        success=True,
        result=_text_of(data.get("result", data.get("content"))),
        credits_used=_credits(data),
    )


async def scrape(urls: list[str]) -> ScrapeResult:
    """Fetch raw page content for ``urls`` through rtrvr.ai."""
    status, data = await _post(
        "/scrape",
        {"urls": urls, "response": {"verbosity": "final"}},
    )
    if not data:
        return ScrapeResult(success=False, error=f"HTTP {status}")
    return ScrapeResult(
        success=True,
        content=_text_of(data.get("content", data.get("result"))),
        credits_used=_credits(data),
    )
