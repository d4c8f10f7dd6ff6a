from __future__ import annotations

import json
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class LogLevel(StrEnum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogCategory(StrEnum):
    ORCHESTRATOR = "orchestrator"
    SCRAPER = "scraper"
    PERSONA = "persona"
    VOICE = "voice"
    API = "api"
    SYSTEM = "system"


def _event_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)}"


@dataclass(slots=True)
class LogEvent:
    level: LogLevel
    category: LogCategory
    message: str
    details: dict[str, Any] | None = None
    target_id: str | None = None
    id: str = field(default_factory=_event_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "category": self.category.value,
            "message": self.message,
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload

    def format(self) -> str:
        return json.dumps(self.to_payload(), default=str)
