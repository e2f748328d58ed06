"""Settings resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field


class Settings(BaseModel):
    app_name: str = Field(default="Condo Ledger")
    data_dir: str = Field(default=os.getenv("CONDO_DATA_DIR", "data/ledgers"))
    seed_path: str | None = Field(default=os.getenv("CONDO_SEED_PATH"))
    language: str = Field(default=os.getenv("CONDO_LANGUAGE", "it"))
    currency: str = Field(default="EUR")
    openai_api_key: str = Field(default=os.getenv("OPENAI_API_KEY", ""))
    openai_model: str = Field(default=os.getenv("CONDO_EXTRACTION_MODEL", "gpt-4o-mini"))
    extraction_timeout_sec: float = Field(default=float(os.getenv("CONDO_EXTRACTION_TIMEOUT", "60")))
    backup_version: str = Field(default="1.0")
    log_level: str = Field(default=os.getenv("CONDO_LOG_LEVEL", "INFO"))


@lru_cache()
def get_settings() -> Settings:
    return Settings()
