from __future__ import annotations

import os
from functools import lru_cache
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _env(key: str, default: str) -> str:
    value = os.getenv(key, "").strip()
    return value or default


def normalize_database_url(database_url: str) -> str:
    value = database_url.strip().strip('"').strip("'")
    if value.startswith("postgres://"):
        value = value.replace("postgres://", "postgresql://", 1)
    if value.startswith("postgresql://"):
        value = value.replace("postgresql://", "postgresql+psycopg2://", 1)
    if not value.startswith("postgresql"):
        return value

    # Hosted stores expect TLS; local/dev URLs are left alone.
    parsed = urlparse(value)
    hostname = (parsed.hostname or "").lower()
    is_local = hostname in {"localhost", "127.0.0.1", ""}
    query = dict(parse_qsl(parsed.query, keep_blank_values=True))
    if not is_local and "sslmode" not in query:
        query["sslmode"] = "require"
        value = urlunparse(parsed._replace(query=urlencode(query)))
    return value


class Settings(BaseModel):
    DATABASE_URL: str = "sqlite:///uniportal.db"
    STATEMENT_TIMEOUT_MS: int = 5000
    STORAGE_ROOT: str = "data/documents"
    STORAGE_PUBLIC_URL: str = "/files"
    MAX_UPLOAD_MB: int = 10
    LOG_LEVEL: str = "INFO"
    SESSION_TTL_MIN: int = 60 * 24
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:5173"]
    UNIPORTAL_ADMIN_EMAIL: str = "admin@uniportal.local"
    UNIPORTAL_ADMIN_PASSWORD: str = "Admin123!"

    @property
    def database_url(self) -> str:
        return normalize_database_url(self.DATABASE_URL)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            DATABASE_URL=_env("DATABASE_URL", "sqlite:///uniportal.db"),
            STATEMENT_TIMEOUT_MS=int(_env("STATEMENT_TIMEOUT_MS", "5000")),
            STORAGE_ROOT=_env("STORAGE_ROOT", "data/documents"),
            STORAGE_PUBLIC_URL=_env("STORAGE_PUBLIC_URL", "/files"),
            MAX_UPLOAD_MB=int(_env("MAX_UPLOAD_MB", "10")),
            LOG_LEVEL=_env("LOG_LEVEL", "INFO").upper(),
            SESSION_TTL_MIN=int(_env("SESSION_TTL_MIN", str(60 * 24))),
            CORS_ALLOW_ORIGINS=_env("CORS_ALLOW_ORIGINS", "http://localhost:5173").split(","),
            UNIPORTAL_ADMIN_EMAIL=_env("UNIPORTAL_ADMIN_EMAIL", "admin@uniportal.local"),
            UNIPORTAL_ADMIN_PASSWORD=_env("UNIPORTAL_ADMIN_PASSWORD", "Admin123!"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
