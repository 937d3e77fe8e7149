"""
Application configuration loaded from environment variables.

Uses pydantic-settings for type-safe env var parsing with automatic
.env file loading. All secrets are injected via environment — never
hard-coded.

To extend: add new fields here and document them in .env.example.
See https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ─── Core ──────────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False

    # ─── CORS ──────────────────────────────────────────────────────
    # Comma-separated allowed origins for the map / dashboard clients.
    cors_origins_str: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins_str.split(",") if o.strip()]

    # ─── Generative model (Gemini REST) ────────────────────────────
    # Get from https://aistudio.google.com/
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash-latest"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # When True, all model calls return canned mock responses.
    # Always True in tests; set False in production with a real key.
    ai_mock_mode: bool = True

    prediction_temperature: float = 0.3
    prediction_max_output_tokens: int = 2048
    context_temperature: float = 0.1
    context_max_output_tokens: int = 1024

    # ─── Pipeline ──────────────────────────────────────────────────
    # Every upstream call gets this bound; there is no pipeline-wide timeout.
    http_timeout_seconds: float = 15.0
    prediction_staleness_seconds: int = 600

    # ─── Crisis feed (NASA EONET, no key) ──────────────────────────
    eonet_base_url: str = "https://eonet.gsfc.nasa.gov/api/v3"
    eonet_days: int = 30
    eonet_limit: int = 20
    crisis_feed_autoload: bool = True

    # ─── Optional signal providers ─────────────────────────────────
    # These degrade to simulated snippets when not set (see services/sources.py).
    openweather_api_key: str = ""  # https://openweathermap.org/api
    serper_api_key: str = ""  # https://serper.dev/
    nws_alerts_enabled: bool = False  # api.weather.gov, US coverage only
    nws_user_agent: str = "aidconnect (info@globalaidconnect.org)"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Don't fail on unknown env vars
    )


# Module-level singleton — import this everywhere instead of instantiating Settings()
settings = Settings()
