from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    port: int = 3001
    public_api_url: str = "http://localhost:3001"
    frontend_url: str = "http://localhost:3000"

    database_url: str = "sqlite:///./invoice_desk.db"

    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 60.0

    default_currency: str = "INR"
    default_tax_percent: float = 18.0

    storage_backend: Literal["local", "s3"] = "local"
    local_storage_path: Path = Path("uploads")

    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    s3_bucket: str = "invoice-desk"
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    s3_public_base_url: str | None = None

    max_upload_bytes: int = 25 * 1024 * 1024

    extraction_cache_backend: Literal["memory", "database"] = "memory"
    extraction_cache_max_entries: int = 512
    extraction_cache_ttl_seconds: int = 60 * 60 * 24
    quota_fallback_ttl_seconds: int = 60 * 15

    quota_daily_limit: int = 50
    quota_upgrade_url: str = "https://ai.google.dev/pricing"


settings = Settings()
