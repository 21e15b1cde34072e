"""
Integration tests for the REST API endpoints.

Runs the real routes against the in-memory SQLite database and ``FakeRedis``.
Operators log in through ``POST /sessions`` like the console does; the
bearer token is stored in the fake Redis.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from taxidispatch.api.middleware import limiter
from taxidispatch.domain.enums import ClientKind
from taxidispatch.infrastructure.models import OperatorModel
from taxidispatch.infrastructure.sessions import make_password
from tests.conftest import add_client, add_driver

PASSWORD = "dispatch123"


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(db_session, session_factory, fake_redis):
    """AsyncClient backed by SQLite + FakeRedis, with one operator seeded."""
    db_session.add(
        OperatorModel(username="maria", name="María", password_hash=make_password(PASSWORD))
    )
    await add_driver(db_session, unit="12", name="Carlos")
    await add_driver(db_session, unit="40", estatus=False)
    await add_client(
        db_session,
        ClientKind.FIXED_LINE,
        "2345678",
        name="Rosa",
        sector="Centro",
        addresses=[
            {
                "address": "Av. 9 de Octubre 100",
                "coordinates": "-2.18,-79.88",
                "active": True,
                "mode": "manual",
            }
        ],
    )
    await db_session.commit()
    limiter.reset()

    with (
        patch(
            "taxidispatch.workers.notifier.start_notification_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "taxidispatch.workers.notifier.stop_notification_loop",
            new_callable=AsyncMock,
        ),
    ):
        # DB session dependency
        async def _test_db():
            async with session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        async def _test_redis():
            return fake_redis

        from taxidispatch.api.app import create_app
        from taxidispatch.api.dependencies import get_db, get_webhook
        from taxidispatch.infrastructure.redis_client import get_redis
        from taxidispatch.infrastructure.webhook import WebhookClient

        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        app.dependency_overrides[get_redis] = _test_redis
        app.dependency_overrides[get_webhook] = lambda: WebhookClient(url="")

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest_asyncio.fixture
async def auth(client: AsyncClient) -> dict:
    resp = await client.post(
        "/api/v1/sessions", json={"username": "maria", "password": PASSWORD}
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}


async def _register(client, auth, **fields):
    body = {"phone": "0991234567", "client_name": "Ana", "address": "Av. Quito 100"}
    body.update(fields)
    return await client.post("/api/v1/orders", json=body, headers=auth)


# ── Sessions ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_login_with_wrong_password(client: AsyncClient):
    resp = await client.post(
        "/api/v1/sessions", json={"username": "maria", "password": "wrong-one"}
    )
    assert resp.status_code == 401
    assert resp.json()["code"] == "session_invalid"
    assert resp.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_routes_require_a_session(client: AsyncClient):
    resp = await client.get("/api/v1/orders/pending")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout_invalidates_token(client: AsyncClient, auth: dict):
    assert (await client.delete("/api/v1/sessions", headers=auth)).status_code == 204
    resp = await client.get("/api/v1/orders/pending", headers=auth)
    assert resp.status_code == 401


# ── Clients ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_lookup_known_fixed_line(client: AsyncClient, auth: dict):
    resp = await client.get(
        "/api/v1/clients/lookup", params={"phone": "2345678"}, headers=auth
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["found"] is True
    assert data["client_type"] == "fixed_line"
    assert data["address"] == "Av. 9 de Octubre 100"
    assert data["data"]["name"] == "Rosa"


@pytest.mark.asyncio
async def test_lookup_malformed_phone(client: AsyncClient, auth: dict):
    resp = await client.get(
        "/api/v1/clients/lookup", params={"phone": "12"}, headers=auth
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_failed"


@pytest.mark.asyncio
async def test_register_client_then_merge_address(client: AsyncClient, auth: dict):
    resp = await client.post(
        "/api/v1/clients",
        json={"phone": "0987654321", "name": "Luis", "address": "Samanes 6"},
        headers=auth,
    )
    assert resp.status_code == 201
    doc_id = resp.json()["doc_id"]
    assert doc_id == "593987654321"

    resp = await client.post(
        f"/api/v1/clients/mobile/{doc_id}/addresses",
        json={"address": "Alborada 3", "coordinates": "-2.13,-79.90"},
        headers=auth,
    )
    assert resp.status_code == 200
    assert resp.json()["changed"] is True
    assert [a["address"] for a in resp.json()["addresses"]] == ["Samanes 6", "Alborada 3"]


@pytest.mark.asyncio
async def test_merge_address_for_unknown_client(client: AsyncClient, auth: dict):
    resp = await client.post(
        "/api/v1/clients/mobile/593000000000/addresses",
        json={"address": "Alborada 3"},
        headers=auth,
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "client_not_found"


# ── Orders ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_register_order_returns_201(client: AsyncClient, auth: dict):
    resp = await _register(client, auth)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "PENDING"
    assert data["operator"] == "María"
    assert data["client_full_phone"] == "593991234567"


@pytest.mark.asyncio
async def test_idempotency_key(client: AsyncClient, auth: dict):
    resp1 = await _register(client, auth, idempotency_key="unique-key-123")
    resp2 = await _register(client, auth, idempotency_key="unique-key-123")
    assert resp1.status_code == 201
    assert resp2.status_code == 201
    assert resp1.json()["id"] == resp2.json()["id"]


@pytest.mark.asyncio
async def test_registration_in_progress(client: AsyncClient, auth: dict, fake_redis):
    token = auth["Authorization"].split()[1]
    await fake_redis.set(f"lock:registration:{token}", "other", nx=True, ex=30)

    resp = await _register(client, auth)

    assert resp.status_code == 409
    assert resp.json()["code"] == "registration_in_progress"


@pytest.mark.asyncio
async def test_order_lifecycle(client: AsyncClient, auth: dict):
    order_id = (await _register(client, auth)).json()["id"]
    pending = (await client.get("/api/v1/orders/pending", headers=auth)).json()
    assert [o["id"] for o in pending] == [order_id]

    resp = await client.post(
        f"/api/v1/orders/{order_id}/assign",
        json={"unit": "12", "eta_minutes": 6},
        headers=auth,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "IN_PROGRESS"
    assert resp.json()["driver"]["name"] == "Carlos"
    assert resp.json()["driver"]["has_push_token"] is True

    in_progress = (await client.get("/api/v1/orders/in-progress", headers=auth)).json()
    assert [o["id"] for o in in_progress] == [order_id]

    resp = await client.post(
        f"/api/v1/orders/{order_id}/close",
        json={"kind": "FINALIZED_PLAIN", "reason": "ok"},
        headers=auth,
    )
    assert resp.status_code == 200
    closed = resp.json()
    assert closed["status"] == "FINALIZED_PLAIN"
    assert closed["archive_path"] == f"archive/{closed['archive_date']}/orders/{order_id}"

    resp = await client.get(
        f"/api/v1/orders/archive/{closed['archive_date']}/{order_id}", headers=auth
    )
    assert resp.status_code == 200
    assert resp.json()["payload"]["address"] == "Av. Quito 100"
    assert (await client.get("/api/v1/orders/in-progress", headers=auth)).json() == []


@pytest.mark.asyncio
async def test_assign_inactive_unit_is_409(client: AsyncClient, auth: dict):
    order_id = (await _register(client, auth)).json()["id"]
    resp = await client.post(
        f"/api/v1/orders/{order_id}/assign", json={"unit": "40"}, headers=auth
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "unit_inactive"


@pytest.mark.asyncio
async def test_assign_unknown_order_is_404(client: AsyncClient, auth: dict):
    resp = await client.post(
        "/api/v1/orders/nope/assign", json={"unit": "12"}, headers=auth
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "order_not_found"


@pytest.mark.asyncio
async def test_cancel_twice_fails(client: AsyncClient, auth: dict):
    order_id = (await _register(client, auth)).json()["id"]
    body = {"kind": "CANCELLED_UNASSIGNED", "reason": "cliente colgó"}
    first = await client.post(f"/api/v1/orders/{order_id}/cancel", json=body, headers=auth)
    second = await client.post(f"/api/v1/orders/{order_id}/cancel", json=body, headers=auth)
    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["code"] == "invalid_transition"


@pytest.mark.asyncio
async def test_bad_archive_date(client: AsyncClient, auth: dict):
    resp = await client.get("/api/v1/orders/archive/2026-10-19", headers=auth)
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_failed"


# ── Vouchers & reports ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_voucher_finalization_and_export(client: AsyncClient, auth: dict):
    order = (
        await _register(client, auth, unit="12", empresa="Corporación Andina")
    ).json()
    assert order["status"] == "IN_PROGRESS"
    assert order["authorization_number"] == 200

    next_number = await client.get("/api/v1/vouchers/next-number", headers=auth)
    assert next_number.json() == {"next_number": 40000}

    resp = await client.post(
        f"/api/v1/orders/{order['id']}/voucher",
        json={
            "client_name": "Ana",
            "destination": "Aeropuerto",
            "empresa": "Corporación Andina",
        },
        headers=auth,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["order"]["status"] == "FINALIZED_VOUCHER"
    assert data["voucher"]["voucher_number"] == 40000
    assert data["voucher"]["authorization_number"] == 200

    resp = await client.get("/api/v1/vouchers/export", headers=auth)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0].startswith("voucher_number,authorization_number")
    assert lines[1].startswith("40000,200,")

    state = await client.get("/api/v1/admin/authorization", headers=auth)
    assert state.json() == {"last_issued": 200}


@pytest.mark.asyncio
async def test_voucher_missing_fields_is_422(client: AsyncClient, auth: dict):
    order_id = (await _register(client, auth, unit="12")).json()["id"]
    resp = await client.post(
        f"/api/v1/orders/{order_id}/voucher",
        json={"client_name": "Ana", "empresa": "Corporación Andina"},
        headers=auth,
    )
    assert resp.status_code == 422
    assert "destination" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_daily_report_and_archive_export(client: AsyncClient, auth: dict):
    order_id = (await _register(client, auth)).json()["id"]
    closed = (
        await client.post(
            f"/api/v1/orders/{order_id}/cancel",
            json={"kind": "NO_UNIT_AVAILABLE"},
            headers=auth,
        )
    ).json()

    resp = await client.get(
        "/api/v1/reports/daily", params={"operator": "María"}, headers=auth
    )
    assert resp.status_code == 200
    [report] = resp.json()
    assert (report["registered"], report["cancelled"]) == (1, 1)

    resp = await client.get(
        f"/api/v1/reports/archive/{closed['archive_date']}/export", headers=auth
    )
    assert resp.status_code == 200
    body = resp.text
    assert order_id in body
    assert "NO_UNIT_AVAILABLE" in body


# ── Reservations & drivers ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reservation_promotion(client: AsyncClient, auth: dict):
    resp = await client.post(
        "/api/v1/reservations",
        json={
            "phone": "2345678",
            "scheduled_at": "2026-10-20T06:00:00-05:00",
            "address": "Av. 9 de Octubre 100",
            "destination": "Aeropuerto",
        },
        headers=auth,
    )
    assert resp.status_code == 201
    reservation = resp.json()
    assert reservation["status"] == "pendiente"
    assert reservation["client_name"] == "Rosa"

    resp = await client.post(
        f"/api/v1/reservations/{reservation['id']}/promote",
        json={"unit": "12", "eta_minutes": 10},
        headers=auth,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["reservation"]["status"] == "asignada"
    assert data["order"]["status"] == "IN_PROGRESS"

    again = await client.post(
        f"/api/v1/reservations/{reservation['id']}/promote",
        json={"unit": "12"},
        headers=auth,
    )
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_driver_status_change_is_logged(client: AsyncClient, auth: dict):
    resp = await client.post(
        "/api/v1/drivers/12/status", json={"estatus": "false"}, headers=auth
    )
    assert resp.status_code == 200
    assert resp.json()["estatus"] is False

    history = (await client.get("/api/v1/drivers/12/history", headers=auth)).json()
    assert len(history) == 1
    assert history[0]["operator"] == "María"


@pytest.mark.asyncio
async def test_create_driver_with_foreign_photo_is_422(client: AsyncClient, auth: dict):
    resp = await client.post(
        "/api/v1/drivers",
        json={"unit": "77", "name": "Pedro", "photo": "https://example.com/p.jpg"},
        headers=auth,
    )
    assert resp.status_code == 422
