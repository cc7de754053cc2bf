from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import sqlalchemy as sa
from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from services.vault.app.cache import RecordListCache, RefreshBus
from services.vault.app.crypto import PasswordCipher
from services.vault.app.db import DATABASE, get_session
from services.vault.app.errors import (
    DatabaseNotInitializedError,
    DecryptionError,
    NotFoundError,
    RangeError,
    ValidationError,
)
from services.vault.app.generator import generate_password
from services.vault.app.keys import StaticKeyProvider
from services.vault.app.logging import configure_logging, logger
from services.vault.app.observability import (
    VAULT_OPERATION_TOTAL,
    add_metrics_middleware,
    instrument_sqlalchemy,
    setup_tracing,
)
from services.vault.app.schemas import (
    CreatePasswordResponse,
    GeneratedPasswordResponse,
    GenerationOptions,
    PasswordRecord,
    SuccessResponse,
)
from services.vault.app.settings import SETTINGS, VaultSettings
from services.vault.app.store import PasswordStore


def build_cipher(settings: VaultSettings) -> PasswordCipher:
    keys = StaticKeyProvider.from_encoded(settings.encryption_key.get_secret_value())
    legacy = settings.legacy_passphrase.get_secret_value() if settings.legacy_passphrase else None
    return PasswordCipher(keys, legacy_passphrase=legacy)


def init_database(settings: VaultSettings) -> None:
    token = settings.database_auth_token.get_secret_value() if settings.database_auth_token else None
    DATABASE.init(settings.database_url, auth_token=token)


configure_logging(SETTINGS.log_level)

REFRESH_BUS = RefreshBus()
LIST_CACHE = RecordListCache()
REFRESH_BUS.subscribe(LIST_CACHE)
STORE = PasswordStore(DATABASE, build_cipher(SETTINGS), notifier=REFRESH_BUS, timeout_s=SETTINGS.store_timeout_s)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_database(SETTINGS)
    if SETTINGS.tracing_enabled:
        instrument_sqlalchemy(DATABASE.engine)
    yield
    await DATABASE.dispose()


app = FastAPI(title="Password Vault API", version="0.1.0", lifespan=lifespan)
if SETTINGS.tracing_enabled:
    setup_tracing(app, service_name="vault")
add_metrics_middleware(app, service_name="vault")


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(RangeError)
async def _range_error(request: Request, exc: RangeError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Password not found"})


@app.exception_handler(DecryptionError)
async def _decryption_error(request: Request, exc: DecryptionError) -> JSONResponse:
    logger.error("decryption_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "stored secret could not be decrypted"})


@app.exception_handler(DatabaseNotInitializedError)
async def _not_initialized(request: Request, exc: DatabaseNotInitializedError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": "storage is not initialized"})


@app.exception_handler(TimeoutError)
async def _timeout(request: Request, exc: TimeoutError) -> JSONResponse:
    logger.warning("store_timeout", path=request.url.path)
    return JSONResponse(status_code=504, content={"detail": "storage did not respond in time"})


@app.get("/healthz")
async def healthz(session: AsyncSession = Depends(get_session)) -> dict:
    await session.execute(sa.text("SELECT 1"))
    return {"ok": True}


@app.get("/passwords", response_model=list[PasswordRecord])
async def list_passwords() -> list[PasswordRecord]:
    return await LIST_CACHE.get(STORE.list_records)


@app.get("/passwords/{record_id}", response_model=PasswordRecord)
async def get_password(record_id: str) -> PasswordRecord:
    return await STORE.get_record(record_id)


@app.post("/passwords", response_model=CreatePasswordResponse, status_code=201)
async def create_password(payload: dict[str, Any] = Body(...)) -> CreatePasswordResponse:
    record_id = await STORE.create_record(payload)
    return CreatePasswordResponse(id=record_id)


@app.put("/passwords/{record_id}", response_model=SuccessResponse)
async def update_password(record_id: str, payload: dict[str, Any] = Body(...)) -> SuccessResponse:
    await STORE.update_record(record_id, payload)
    return SuccessResponse()


@app.delete("/passwords/{record_id}", response_model=SuccessResponse)
async def delete_password(record_id: str) -> SuccessResponse:
    await STORE.delete_record(record_id)
    return SuccessResponse()


@app.post("/passwords/generate", response_model=GeneratedPasswordResponse)
async def generate(options: GenerationOptions) -> GeneratedPasswordResponse:
    try:
        password = generate_password(options)
    except RangeError:
        VAULT_OPERATION_TOTAL.labels("generate", "invalid").inc()
        raise
    VAULT_OPERATION_TOTAL.labels("generate", "ok").inc()
    logger.info("password_generated", length=options.length)
    return GeneratedPasswordResponse(password=password)
