from __future__ import annotations

import argparse
import hashlib
import json
import random
import uuid
from dataclasses import dataclass

import sqlalchemy as sa

from db.settings import SETTINGS, sync_database_url
from services.vault.app.crypto import encrypt
from services.vault.app.generator import generate_password
from services.vault.app.keys import StaticKeyProvider
from services.vault.app.schemas import GenerationOptions
from services.vault.app.store import now_iso
from services.vault.app.tables import passwords


def _det_uuid(*parts: str) -> str:
    h = hashlib.sha256("||".join(parts).encode("utf-8")).hexdigest()
    return str(uuid.UUID(h[:32]))


@dataclass(frozen=True)
class SiteSpec:
    title: str
    website: str
    # Password policy the demo secret is generated with.
    length: int
    symbols: bool


SITE_SPECS: list[SiteSpec] = [
    SiteSpec(title="Bank", website="https://bank.example.invalid", length=24, symbols=True),
    SiteSpec(title="Email", website="https://mail.example.invalid", length=20, symbols=True),
    SiteSpec(title="Router", website="http://192.168.1.1", length=16, symbols=False),
    SiteSpec(title="Streaming", website="https://tv.example.invalid", length=12, symbols=False),
    SiteSpec(title="Forum", website="", length=10, symbols=False),
]

USERNAMES = ["alice", "bob", "carol", "dave", ""]
NOTES = ["", "", "security questions in the safe", "shared with family", "rotate yearly"]


def seed(database_url: str, encryption_key: str, seed_value: int, count: int) -> dict[str, int]:
    """Replace the table contents with `count` demo records (dev only)."""
    rng = random.Random(seed_value)
    key = StaticKeyProvider.from_encoded(encryption_key).get_key()
    ts = now_iso()

    rows: list[dict] = []
    for i in range(count):
        site = SITE_SPECS[i % len(SITE_SPECS)]
        options = GenerationOptions(
            length=site.length,
            include_uppercase=True,
            include_lowercase=True,
            include_numbers=True,
            include_symbols=site.symbols,
        )
        suffix = f" #{i // len(SITE_SPECS) + 1}" if i >= len(SITE_SPECS) else ""
        rows.append(
            dict(
                id=_det_uuid(str(seed_value), "password", str(i)),
                title=f"{site.title}{suffix}",
                username=rng.choice(USERNAMES),
                password=encrypt(generate_password(options), key),
                website=site.website,
                notes=rng.choice(NOTES),
                createdAt=ts,
                updatedAt=ts,
            )
        )

    engine = sa.create_engine(sync_database_url(database_url), future=True)
    with engine.begin() as conn:
        # Deterministic idempotence in dev: start from an empty table.
        conn.execute(sa.delete(passwords))
        if rows:
            conn.execute(passwords.insert(), rows)
        counts = {"passwords": conn.execute(sa.select(sa.func.count()).select_from(passwords)).scalar_one()}
    engine.dispose()

    print(json.dumps({"seed": seed_value, "counts": counts}, indent=2))
    return counts


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the passwords table with demo records.")
    parser.add_argument("--database-url", default=SETTINGS.database_url)
    parser.add_argument(
        "--encryption-key",
        default=SETTINGS.encryption_key.get_secret_value() if SETTINGS.encryption_key else None,
        help="urlsafe base64 key; defaults to ENCRYPTION_KEY.",
    )
    parser.add_argument("--seed", type=int, default=1337)
    parser.add_argument("--count", type=int, default=10)
    args = parser.parse_args()
    if not args.encryption_key:
        parser.error("ENCRYPTION_KEY is not set and --encryption-key was not given")
    seed(args.database_url, args.encryption_key, args.seed, args.count)


if __name__ == "__main__":
    main()
