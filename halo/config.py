"""HALO — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"
    default_currency: str = "USD"

    # ── Scheduler ──
    scheduler_enabled: bool = True
    poll_interval_seconds: int = 30
    process_interval_seconds: int = 30
    aggregate_interval_seconds: int = 60
    shutdown_grace_seconds: float = 10.0

    # ── Pipeline ──
    processor_batch_size: int = 100
    default_poll_interval_ms: int = 30_000  # when connection.config.pollInterval is unset

    # Off: a failed cursor waits for a manual trigger/reset.
    # On: it is retried after a capped exponential delay.
    poll_failure_backoff: bool = False
    poll_backoff_base_seconds: int = 30
    poll_backoff_max_seconds: int = 3600

    # ── Meta API ──
    meta_api_version: str = "v21.0"
    meta_base_url: str = "https://graph.facebook.com"
    meta_backfill_days: int = 7
    meta_max_pages: int = 50

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/halo.db"
        return "sqlite:///./halo.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
