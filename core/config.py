"""
core/config.py — Runtime configuration
UBS Manager v1.0
Environment variables (optionally from .env) → Settings
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


def _flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = field(default_factory=lambda: os.getenv("DATABASE_URL") or None)
    sqlalchemy_echo: bool = field(default_factory=lambda: _flag("SQLALCHEMY_ECHO"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    cors_origins: list[str] = field(default_factory=_origins)

    @property
    def storage_backend(self) -> str:
        """'database' when DATABASE_URL is set, otherwise the in-memory fallback."""
        return "database" if self.database_url else "memory"


@lru_cache
def get_settings() -> Settings:
    load_dotenv()
    return Settings()
