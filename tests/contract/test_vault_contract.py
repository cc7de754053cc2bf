from __future__ import annotations

import string

import httpx
import pytest
import pytest_asyncio


BANK = {"title": "Bank", "username": "alice", "password": "secret1", "website": "", "notes": ""}


@pytest_asyncio.fixture()
async def vault_app(migrated_db: str):
    # ASGITransport does not run the lifespan; drive the storage lifecycle from here instead.
    from services.vault.app.main import DATABASE, LIST_CACHE, app

    await DATABASE.dispose()
    DATABASE.init(migrated_db)
    LIST_CACHE.invalidate("test_setup")
    yield app
    await DATABASE.dispose()


@pytest_asyncio.fixture()
async def client(vault_app):
    transport = httpx.ASGITransport(app=vault_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_healthz(client: httpx.AsyncClient):
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


@pytest.mark.asyncio
async def test_create_then_get_round_trip(client: httpx.AsyncClient):
    r = await client.post("/passwords", json=BANK)
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    record_id = body["id"]

    r = await client.get(f"/passwords/{record_id}")
    assert r.status_code == 200
    rec = r.json()
    assert rec["id"] == record_id
    assert rec["password"] == "secret1"
    assert rec["createdAt"] == rec["updatedAt"]
    assert set(rec) == {"id", "title", "username", "password", "website", "notes", "createdAt", "updatedAt"}


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["title", "password"])
async def test_create_rejects_empty_required_field(client: httpx.AsyncClient, field: str):
    r = await client.post("/passwords", json={**BANK, field: ""})
    assert r.status_code == 400
    assert r.json()["field"] == field

    r = await client.get("/passwords")
    assert r.json() == []


@pytest.mark.asyncio
async def test_create_rejects_unknown_fields(client: httpx.AsyncClient):
    r = await client.post("/passwords", json={**BANK, "extra": "nope"})
    assert r.status_code == 400
    assert r.json()["field"] == "extra"


@pytest.mark.asyncio
async def test_missing_record_is_404(client: httpx.AsyncClient):
    for method, kwargs in (("GET", {}), ("PUT", {"json": BANK}), ("DELETE", {})):
        r = await client.request(method, "/passwords/does-not-exist", **kwargs)
        assert r.status_code == 404, method
        assert r.json()["detail"] == "Password not found"


@pytest.mark.asyncio
async def test_list_view_is_refreshed_after_each_mutation(client: httpx.AsyncClient):
    record_id = (await client.post("/passwords", json=BANK)).json()["id"]
    listed = (await client.get("/passwords")).json()
    assert [(p["id"], p["password"]) for p in listed] == [(record_id, "secret1")]

    r = await client.put(f"/passwords/{record_id}", json={**BANK, "password": "secret2"})
    assert r.status_code == 200
    listed = (await client.get("/passwords")).json()
    assert listed[0]["password"] == "secret2"
    assert listed[0]["updatedAt"] > listed[0]["createdAt"]

    r = await client.delete(f"/passwords/{record_id}")
    assert r.status_code == 200
    assert (await client.get("/passwords")).json() == []
    assert (await client.get(f"/passwords/{record_id}")).status_code == 404


@pytest.mark.asyncio
async def test_generate_uppercase_only(client: httpx.AsyncClient):
    payload = {
        "length": 16,
        "includeUppercase": True,
        "includeLowercase": False,
        "includeNumbers": False,
        "includeSymbols": False,
    }
    r = await client.post("/passwords/generate", json=payload)
    assert r.status_code == 200
    password = r.json()["password"]
    assert len(password) == 16
    assert set(password) <= set(string.ascii_uppercase)


@pytest.mark.asyncio
@pytest.mark.parametrize("length", [7, 129])
async def test_generate_rejects_out_of_range_length(client: httpx.AsyncClient, length: int):
    r = await client.post("/passwords/generate", json={"length": length, "includeNumbers": True})
    assert r.status_code == 400
    assert r.json()["field"] == "length"


@pytest.mark.asyncio
async def test_generate_rejects_extra_fields(client: httpx.AsyncClient):
    r = await client.post("/passwords/generate", json={"length": 12, "extra": 1})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_metrics_exposes_vault_operations(client: httpx.AsyncClient):
    await client.post("/passwords", json=BANK)
    r = await client.get("/metrics")
    assert r.status_code == 200
    assert "vault_operation_total" in r.text


@pytest.mark.asyncio
async def test_uninitialized_storage_is_503(vault_app, client: httpx.AsyncClient):
    from services.vault.app.main import DATABASE

    await DATABASE.dispose()
    r = await client.get("/passwords/anything")
    assert r.status_code == 503


@pytest.mark.asyncio
async def test_generate_rejects_non_boolean_flags(client: httpx.AsyncClient):
    r = await client.post("/passwords/generate", json={"length": 12, "includeSymbols": "yes"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_undecryptable_record_is_500_without_leaking_ciphertext(client: httpx.AsyncClient):
    import sqlalchemy as sa

    from services.vault.app.crypto import encrypt
    from services.vault.app.main import DATABASE
    from services.vault.app.tables import passwords

    ciphertext = encrypt("secret1", b"w" * 32)
    ts = "2026-01-01T00:00:00.000Z"
    async with DATABASE.session() as session:
        await session.execute(
            sa.insert(passwords).values(
                id="foreign-key-row",
                title="Bank",
                username="alice",
                password=ciphertext,
                website="",
                notes="",
                createdAt=ts,
                updatedAt=ts,
            )
        )
        await session.commit()

    for path in ("/passwords/foreign-key-row", "/passwords"):
        r = await client.get(path)
        assert r.status_code == 500, path
        assert ciphertext not in r.text
        assert "secret1" not in r.text


@pytest.mark.asyncio
async def test_slow_storage_is_504(client: httpx.AsyncClient, monkeypatch: pytest.MonkeyPatch):
    import asyncio

    from services.vault.app import main
    from services.vault.app.crypto import PasswordCipher
    from services.vault.app.keys import StaticKeyProvider
    from services.vault.app.store import PasswordStore

    class _HangingSession:
        async def __aenter__(self):
            await asyncio.sleep(10)

        async def __aexit__(self, *exc) -> bool:
            return False

    class _HangingDatabase:
        def session(self) -> _HangingSession:
            return _HangingSession()

    slow = PasswordStore(_HangingDatabase(), PasswordCipher(StaticKeyProvider(b"t" * 32)), timeout_s=0.05)  # type: ignore[arg-type]
    monkeypatch.setattr(main, "STORE", slow)

    r = await client.get("/passwords/anything")
    assert r.status_code == 504
    r = await client.delete("/passwords/anything")
    assert r.status_code == 504
