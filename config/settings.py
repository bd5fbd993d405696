"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False
    log_level: str = "INFO"

    # ── Audit Store ──────────────────────────────────────────
    audit_store_type: str = "memory"  # "memory" or "supabase"

    # ── Supabase (PostgREST) ─────────────────────────────────
    supabase_url: str = ""  # e.g. https://xyzcompany.supabase.co
    supabase_key: str = ""  # anon or service-role key
    supabase_timeout: int = 15  # seconds
    supabase_form_table: str = "form"
    supabase_audit_table: str = "audit"
    supabase_compliance_table: str = "compliance"


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
