"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Coaching Ledger Sync"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Pipeline
    worker_count: int = Field(
        default=4, ge=1, le=32, description="Concurrent event workers per batch"
    )
    ledger_batch_size: int = Field(
        default=25,
        ge=1,
        description="Pending ledger writes coalesced into one round trip",
    )
    retry_attempts: int = Field(default=4, ge=1)
    retry_min_wait: float = Field(default=1.0, ge=0.0)
    retry_max_wait: float = Field(default=30.0, ge=0.0)
    io_timeout_seconds: float = Field(
        default=30.0, gt=0.0, description="Per-attempt timeout for external I/O"
    )

    # Strategies
    name_resolver: str = Field(
        default="roster", description="Name resolver strategy: roster | passthrough"
    )
    week_inferencer: str = Field(
        default="default", description="Week inferencer strategy: default | fixed"
    )
    academic_year_start_month: int = Field(default=9, ge=1, le=12)

    # Roster
    roster_path: str | None = Field(
        default=None, description="Path to the roster JSON document"
    )
    roster_spreadsheet_id: str | None = Field(default=None)
    staff_email_domains: list[str] = Field(default_factory=list)

    # Ledger (Google Sheets)
    ledger_backend: str = Field(default="memory", description="sheets | memory")
    ledger_spreadsheet_id: str | None = Field(default=None)
    google_sheets_credentials: str | None = Field(default=None)
    google_drive_credentials: str | None = Field(default=None)

    # Shared state (chronology + committed fingerprints)
    state_backend: str = Field(default="memory", description="memory | turso")
    turso_database_url: str | None = Field(default=None)
    turso_auth_token: str | None = Field(default=None)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
