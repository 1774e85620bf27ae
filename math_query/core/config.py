"""
Centralised settings for math-query, loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── Database ─────────────────────────────────────────
    db_dialect: str = "postgresql"
    db_user: str = "mathquery"
    db_password: str = "mathquery_pw"
    db_name: str = "analytics"
    db_host: str = "localhost"
    db_port: int = 5432
    database_url_override: str = ""
    table_prefix: str = ""

    # ── Caching ──────────────────────────────────────────
    cache_enabled: bool = True
    cache_group: str = "math_query"
    cache_ttl_seconds: float = 300
    cache_max_size: int = 256

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"{self.db_dialect}://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "MATH_QUERY_"


@lru_cache
def get_settings() -> Settings:
    return Settings()
