"""
veritas.config – service settings.

All values can be overridden with ``VERITAS_``-prefixed environment variables
or a local ``.env`` file.
"""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DIR = Path(__file__).resolve().parent


class VeritasSettings(BaseSettings):
    """Central configuration for the Veritas service."""

    model_config = SettingsConfigDict(
        env_prefix="VERITAS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Analysis gateway ---
    gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    gateway_api_key: str = Field(default="")
    gateway_model: str = "google/gemini-2.5-flash"
    analysis_timeout_seconds: float = 15.0

    # --- Scanner ---
    dwell_threshold_seconds: float = Field(default=3.0, gt=0)
    default_platform: str = "Demo"
    catalogue_path: Path = _PACKAGE_DIR / "catalogue.json"

    # --- Storage ---
    max_history: int = 10_000
    history_page_limit: int = 50
    admin_page_limit: int = 200

    # --- Auth / API ---
    admin_user_ids: str = ""
    auth_redirect_url: str = "/auth"
    demo_mode: bool = False
    cors_origins: str = "http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def admin_ids(self) -> set[str]:
        return {u.strip() for u in self.admin_user_ids.split(",") if u.strip()}


_settings: VeritasSettings | None = None


def get_settings() -> VeritasSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = VeritasSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
