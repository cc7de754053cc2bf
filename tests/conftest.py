from __future__ import annotations

import base64
import os
import sys
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic import command
from alembic.config import Config


REPO_ROOT = Path(__file__).resolve().parents[1]
# Ensure the repo root is importable (so `import services.*` and `import db.*` work in tests).
sys.path.insert(0, str(REPO_ROOT))

TEST_KEY = b"0123456789abcdef0123456789abcdef"
TEST_KEY_ENCODED = base64.urlsafe_b64encode(TEST_KEY).decode("ascii")
TEST_LEGACY_PASSPHRASE = "your-secure-master-key"

# The service settings are instantiated at import time and require ENCRYPTION_KEY.
os.environ.setdefault("ENCRYPTION_KEY", TEST_KEY_ENCODED)
os.environ.setdefault("LEGACY_PASSPHRASE", TEST_LEGACY_PASSPHRASE)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "warning")


def _use_postgres() -> bool:
    return os.getenv("VAULT_TEST_BACKEND", "sqlite") == "postgres"


@pytest.fixture(scope="session")
def postgres_url() -> str:
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16") as pg:
        yield pg.get_connection_url()


@pytest.fixture()
def database_url(request: pytest.FixtureRequest, tmp_path: Path) -> str:
    if _use_postgres():
        # Normalize testcontainers URL (may be postgresql:// or postgresql+psycopg2://).
        base = request.getfixturevalue("postgres_url").replace("postgresql+psycopg2://", "postgresql://")
        return base.replace("postgresql://", "postgresql+asyncpg://")
    return f"sqlite+aiosqlite:///{tmp_path / 'vault.db'}"


@pytest.fixture()
def migrated_db(database_url: str) -> str:
    from db.settings import sync_database_url

    cfg = Config(str(REPO_ROOT / "db" / "migrations" / "alembic.ini"))
    previous = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = database_url
    try:
        command.upgrade(cfg, "head")
    finally:
        if previous is not None:
            os.environ["DATABASE_URL"] = previous

    if _use_postgres():
        # The container is shared by the session; start every test from an empty table.
        engine = sa.create_engine(sync_database_url(database_url))
        with engine.begin() as conn:
            conn.execute(sa.text("DELETE FROM passwords"))
        engine.dispose()
    return database_url
