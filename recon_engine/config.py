"""
Configuration management using Pydantic Settings.
All parameters are loaded from environment variables with sensible defaults.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import InvoiceStatus, MatchWindow


APP_BASE_PATH = Path(os.environ.get(
    "RECON_BASE_PATH",
    os.environ.get("APP_BASE_PATH", Path.home() / ".recon_engine")
))
ENV_FILE_PATH = APP_BASE_PATH / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: str = Field(default="development")
    app_debug: bool = Field(default=False)
    app_log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    # Server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    # Storage
    data_dir: Path = Field(default=APP_BASE_PATH / "data")
    ledger_backend: str = Field(default="jsonl")  # "memory" or "jsonl"
    ledger_path: Path = Field(default=APP_BASE_PATH / "data" / "ledger.jsonl")
    entries_path: Path = Field(default=APP_BASE_PATH / "data" / "entries.json")
    reports_dir: Path = Field(default=APP_BASE_PATH / "data" / "reports")

    # Matching window
    max_date_delta_days: int = Field(default=5)
    max_amount_delta_ratio: float = Field(default=0.01)

    # Matcher
    auto_confirm_threshold: float = Field(default=0.85)
    match_draft_invoices: bool = Field(default=False)  # cancelled never match

    # Every ledger read/write and every auto pass must finish within this
    storage_timeout_seconds: float = Field(default=10.0)

    def default_window(self) -> MatchWindow:
        """Build the configured candidate window (validated)."""
        return MatchWindow(
            max_date_delta_days=self.max_date_delta_days,
            max_amount_delta_ratio=self.max_amount_delta_ratio,
        ).validate()

    def excluded_invoice_statuses(self) -> FrozenSet[InvoiceStatus]:
        """Invoice statuses kept out of candidate generation."""
        excluded = {InvoiceStatus.CANCELLED}
        if not self.match_draft_invoices:
            excluded.add(InvoiceStatus.DRAFT)
        return frozenset(excluded)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
