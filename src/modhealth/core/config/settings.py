"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Modular Health engine configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback: the tool surface has no auth layer of its own.
    mh_host: str = "127.0.0.1"
    mh_port: int = 8001
    mh_log_level: str = "info"
    mh_allow_insecure_bind: bool = False

    # Storage (reference store)
    db_path: str = "~/.modhealth/health.db"

    # Encryption of raw sample payloads; empty disables persistence
    encryption_key: str = ""

    # Source fetching
    fetch_page_size: int = 1000
    fetch_max_rows: int = 20000

    # Aggregation cache
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 100


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
