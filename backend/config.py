"""
config.py - SoulMirror application settings.

Usage:
    from backend.config import settings
    print(settings.gemini_model)

Never use FastAPI Depends() for settings - import directly as a module-level singleton.
"""
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore any extra env vars
    )

    # --- Gemini (generative-language API) ---
    # Empty key → /api/hook and /api/report answer {disabled: true}
    gemini_api_key: str = ""
    gemini_model: str = "gemini-3-flash-preview"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 60.0

    # --- Mock payment gate ---
    # Only the literal string "false" turns enforcement off
    require_payment: bool = True
    # Public base for the wallet link encoded into the QR code.
    # Empty → derived from the incoming request's base URL.
    pay_base_url: str = ""
    payment_amount: float = 2
    payment_ttl_seconds: int = 300  # 5 minutes

    # --- Server ---
    port: int = 8787
    static_dir: str = "dist"
    # Comma-separated list of allowed frontend origins
    cors_origins: str = "*"

    # --- Application ---
    debug: bool = False
    app_version: str = "0.1.0"

    @field_validator("require_payment", mode="before")
    @classmethod
    def _only_false_disables(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).strip() != "false"

    @property
    def cors_origins_list(self) -> List[str]:
        """Split comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Module-level singleton - import this throughout the codebase
settings = Settings()
