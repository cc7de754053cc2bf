from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class VaultSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    # Storage endpoint and its access credential (remote libsql/Postgres deployments).
    database_url: str = "sqlite+aiosqlite:///./vault.db"
    database_auth_token: SecretStr | None = None

    # urlsafe base64 of 32 random bytes; see keys.new_encoded_key().
    encryption_key: SecretStr
    # Passphrase of the previous storage format, only needed to read old rows.
    legacy_passphrase: SecretStr | None = None

    log_level: str = "info"
    store_timeout_s: float = Field(default=5.0, gt=0)
    tracing_enabled: bool = False


SETTINGS = VaultSettings()
