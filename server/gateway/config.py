# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")

    # ── Upstream ─────────────────────────────────────────────────────────────
    # SecretStr prevents the key from leaking into logs, repr(), or
    # model_dump(). Access via settings.gemini_api_key.get_secret_value().
    # Empty string = every gateway request answers 500 (never a startup crash).
    gemini_api_key: SecretStr = SecretStr("")
    upstream_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    upstream_model: str = "gemini-2.5-flash-preview-09-2025"
    upstream_timeout_seconds: float = Field(60.0, gt=0)

    # ── Admission control ────────────────────────────────────────────────────
    rate_limit_max_requests: int = Field(30, ge=1)
    rate_limit_window_seconds: int = Field(60, ge=1)
    max_payload_size: int = Field(100_000, ge=1)  # re-serialized JSON characters

    # Checked in order; the first non-empty value is the client identity.
    # Env format is a JSON list, e.g. CLIENT_IP_HEADERS='["x-real-ip"]'.
    client_ip_headers: list[str] = ["x-forwarded-for", "client-ip"]

    # ── Responses ────────────────────────────────────────────────────────────
    message_locale: str = "ja"

    # Comma-separated origins for CORS (e.g. "https://app.example.com,http://localhost:5173").
    # Empty string = deny all cross-origin requests (secure default).
    allowed_origins: str = ""

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True  # JSON logs for Cloud Logging

    @property
    def upstream_url(self) -> str:
        """generateContent endpoint, without the key query parameter."""
        base = self.upstream_base_url.rstrip("/")
        return f"{base}/models/{self.upstream_model}:generateContent"

    @property
    def credential_configured(self) -> bool:
        return bool(self.gemini_api_key.get_secret_value())


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
