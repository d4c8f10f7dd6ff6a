from pydantic import ValidationError
from pydantic_settings import BaseSettings

from intervox.errors import ConfigError


class Settings(BaseSettings):
    # OpenRouter (required) - extraction and persona analysis
    openrouter_api_key: str
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "anthropic/claude-sonnet-4"
    openrouter_model: str = ""
    extraction_model: str = ""  # optional override for structured extraction only

    # xAI (required) - persona chat
    xai_api_key: str
    xai_base_url: str = "https://api.x.ai/v1"
    chat_model: str = "grok-2-latest"
    chat_max_tokens: int = 300
    chat_temperature: float = 0.8
    chat_history_window: int = 20

    # ElevenLabs (required) - text-to-speech
    elevenlabs_api_key: str
    elevenlabs_base_url: str = "https://api.elevenlabs.io"
    tts_model: str = "eleven_turbo_v2_5"
    default_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    voice_catalog_enabled: bool = True

    # rtrvr.ai (required) - agentic extraction and raw scraping
    rtrvr_api_key: str
    rtrvr_base_url: str = "https://api.rtrvr.ai"
    rtrvr_timeout_seconds: float = 120.0

    # Scraping
    raw_content_max_chars: int = 5000
    scrape_page_delay_seconds: float = 0.5
    deep_scrape_urls_per_source: int = 3
    deep_scrape_max_follow_up_links: int = 10
    deep_scrape_page_chars: int = 12000

    # Per-stage deadlines
    resolve_timeout_seconds: float = 180.0
    scrape_timeout_seconds: float = 900.0
    persona_timeout_seconds: float = 180.0
    chat_timeout_seconds: float = 60.0
    tts_timeout_seconds: float = 60.0
    llm_timeout_seconds: float = 120.0

    # In-memory stores (0 disables eviction)
    investigation_ttl_hours: int = 24
    session_ttl_hours: int = 24

    # App
    cors_origins: str = "http://localhost:3000"
    sse_heartbeat_seconds: int = 15
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


# Fixed per-source confidence. Configuration data, not derived from content.
SOURCE_CONFIDENCE: dict[str, int] = {
    "encyclopedia": 95,
    "professional-network": 85,
    "video-platform": 85,
    "social-network": 80,
    "code-hosting": 80,
    "podcast-directory": 80,
    "news": 75,
    "company-site": 70,
    "generic-search": 70,
    "other": 50,
}


def load_settings() -> Settings:
    """Build settings from the environment, naming any missing required variable."""
    try:
        return Settings()
    except ValidationError as exc:
        missing = [
            str(err["loc"][0]).upper()
            for err in exc.errors()
            if err.get("type") == "missing" and err.get("loc")
        ]
        if missing:
            raise ConfigError(
                "Missing required environment variable(s): "
                + ", ".join(missing)
                + ". Set them in the environment or in .env."
            ) from exc
        raise


settings = load_settings()
