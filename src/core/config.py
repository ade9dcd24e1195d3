"""
Centralised application settings loaded from environment / .env file.
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
    # ── Execution ────────────────────────────────────────
    query_timeout_seconds: float = 30.0
    warehouse_row_limit: int = 1000

    # ── Embedded engine (DuckDB) ─────────────────────────
    embedded_database: str = ":memory:"
    embedded_sample_rows: int = 100

    # ── In-memory rows ───────────────────────────────────
    in_memory_max_rows: int = 100_000

    # ── App ──────────────────────────────────────────────
    log_level: str = "INFO"

    @property
    def embedded_url(self) -> str:
        return f"duckdb:///{self.embedded_database}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
