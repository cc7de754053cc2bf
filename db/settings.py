from __future__ import annotations

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DbSettings(BaseSettings):
    # The service's settings share the environment; ignore the keys this package does not use.
    model_config = SettingsConfigDict(extra="ignore")

    database_url: str = "sqlite:///./vault.db"
    encryption_key: SecretStr | None = None


# Runtime URLs use async drivers; migrations and seeding run on their sync counterparts.
_SYNC_DRIVERS = {
    "sqlite+aiosqlite://": "sqlite://",
    "postgresql+asyncpg://": "postgresql+psycopg://",
    "postgresql+psycopg2://": "postgresql+psycopg://",
}


def sync_database_url(url: str) -> str:
    for async_prefix, sync_prefix in _SYNC_DRIVERS.items():
        if url.startswith(async_prefix):
            return sync_prefix + url[len(async_prefix) :]
    # If no driver is specified, SQLAlchemy defaults to psycopg2; force psycopg3.
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


SETTINGS = DbSettings()
