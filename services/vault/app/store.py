from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import sqlalchemy as sa

from services.vault.app.cache import RefreshNotifier
from services.vault.app.crypto import PasswordCipher
from services.vault.app.db import Database
from services.vault.app.errors import DecryptionError, NotFoundError, ValidationError
from services.vault.app.keys import KeyContext
from services.vault.app.logging import logger
from services.vault.app.observability import STORE_LATENCY, VAULT_OPERATION_TOTAL
from services.vault.app.schemas import PasswordFields, PasswordRecord
from services.vault.app.tables import passwords
from services.vault.app.validation import validate_new_record, validate_record_id, validate_record_update


def _iso(ts: datetime) -> str:
    # Same shape as JavaScript's Date.toISOString(): millisecond precision, "Z" suffix.
    return ts.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return _iso(datetime.now(tz=UTC))


def next_timestamp(previous: str) -> str:
    """Current time, or `previous` + 1ms when the clock has not moved past it."""
    current = now_iso()
    if current > previous:
        return current
    prev = datetime.fromisoformat(previous.replace("Z", "+00:00"))
    return _iso(prev + timedelta(milliseconds=1))


def _outcome(exc: BaseException) -> str:
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, ValidationError):
        return "invalid"
    if isinstance(exc, DecryptionError):
        return "decryption_failed"
    if isinstance(exc, TimeoutError):
        return "timeout"
    return "error"


class PasswordStore:
    """
    CRUD over the `passwords` table.

    Secrets are encrypted exactly where rows are written and decrypted exactly
    where rows are read, so the table never holds plaintext. Every operation
    touches a single row inside one short transaction; `timeout` (seconds)
    bounds each call and defaults to the store-wide value.
    """

    def __init__(
        self,
        database: Database,
        cipher: PasswordCipher,
        notifier: RefreshNotifier | None = None,
        timeout_s: float | None = None,
    ):
        self._database = database
        self._cipher = cipher
        self._notifier = notifier
        self._timeout_s = timeout_s

    @asynccontextmanager
    async def _operation(self, name: str, timeout: float | None) -> AsyncIterator[None]:
        start = time.perf_counter()
        outcome = "ok"
        try:
            async with asyncio.timeout(timeout if timeout is not None else self._timeout_s):
                yield
        except BaseException as e:
            outcome = _outcome(e)
            raise
        finally:
            VAULT_OPERATION_TOTAL.labels(name, outcome).inc()
            STORE_LATENCY.labels(name).observe((time.perf_counter() - start) * 1000)

    def _signal(self, reason: str) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.invalidate(reason)
        except Exception:
            logger.warning("refresh_signal_failed", reason=reason, exc_info=True)

    def _to_record(self, row: Any, context: KeyContext | None) -> PasswordRecord:
        return PasswordRecord(
            id=row.id,
            title=row.title,
            username=row.username,
            password=self._cipher.decrypt(row.password, context),
            website=row.website or "",
            notes=row.notes or "",
            created_at=row.createdAt,
            updated_at=row.updatedAt,
        )

    async def list_records(
        self, *, timeout: float | None = None, context: KeyContext | None = None
    ) -> list[PasswordRecord]:
        async with self._operation("list", timeout):
            async with self._database.session() as session:
                rows = (await session.execute(sa.select(passwords))).all()
            return [self._to_record(r, context) for r in rows]

    async def get_record(
        self, record_id: str, *, timeout: float | None = None, context: KeyContext | None = None
    ) -> PasswordRecord:
        async with self._operation("get", timeout):
            async with self._database.session() as session:
                row = (await session.execute(sa.select(passwords).where(passwords.c.id == record_id))).first()
            if row is None:
                raise NotFoundError(record_id)
            return self._to_record(row, context)

    async def create_record(
        self,
        fields: Mapping[str, Any] | PasswordFields,
        *,
        timeout: float | None = None,
        context: KeyContext | None = None,
    ) -> str:
        async with self._operation("create", timeout):
            data = validate_new_record(fields)
            record_id = str(uuid4())
            ts = now_iso()
            values = {
                "id": record_id,
                "title": data.title,
                "username": data.username,
                "password": self._cipher.encrypt(data.password, context),
                "website": data.website,
                "notes": data.notes,
                "createdAt": ts,
                "updatedAt": ts,
            }
            async with self._database.session() as session:
                await session.execute(sa.insert(passwords).values(**values))
                await session.commit()

        logger.info("record_created", record_id=record_id)
        self._signal("create")
        return record_id

    async def update_record(
        self,
        record_id: str,
        fields: Mapping[str, Any] | PasswordFields,
        *,
        timeout: float | None = None,
        context: KeyContext | None = None,
    ) -> None:
        async with self._operation("update", timeout):
            validate_record_id(record_id)
            async with self._database.session() as session:
                q = sa.select(passwords.c.updatedAt).where(passwords.c.id == record_id)
                previous = (await session.execute(q)).scalar_one_or_none()
                if previous is None:
                    raise NotFoundError(record_id)

                data = validate_record_update(record_id, fields)
                values = {
                    "title": data.title,
                    "username": data.username,
                    "password": self._cipher.encrypt(data.password, context),
                    "website": data.website,
                    "notes": data.notes,
                    "updatedAt": next_timestamp(previous),
                }
                result = await session.execute(
                    sa.update(passwords).where(passwords.c.id == record_id).values(**values)
                )
                if result.rowcount == 0:
                    # Deleted between the lookup and the write.
                    await session.rollback()
                    raise NotFoundError(record_id)
                await session.commit()

        logger.info("record_updated", record_id=record_id)
        self._signal("update")

    async def delete_record(self, record_id: str, *, timeout: float | None = None) -> None:
        async with self._operation("delete", timeout):
            async with self._database.session() as session:
                result = await session.execute(sa.delete(passwords).where(passwords.c.id == record_id))
                if result.rowcount == 0:
                    await session.rollback()
                    raise NotFoundError(record_id)
                await session.commit()

        logger.info("record_deleted", record_id=record_id)
        self._signal("delete")
