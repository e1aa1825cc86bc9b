"""
tests.test_api

Operator API: probes, auth, identity CRUD and an end-to-end lock through the controller.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import pytest

from guarduim.api.app import create_app
from guarduim.auth.jwt import JwtConfig, issue_token
from guarduim.auth.models import ADMIN_ROLE, OPERATOR_ROLE, VIEWER_ROLE
from guarduim.settings import Settings
from guarduim.signals.memory import StaticFailureSignalSource


def _settings(tmp_path, **overrides) -> Settings:
    values = {
        "env": "test",
        "database_url": f"sqlite+aiosqlite:///{tmp_path}/api.db",
        "controller_enabled": False,
        "watch_namespace": "guarduim",
    }
    values.update(overrides)
    return Settings(**values)


def _auth(settings: Settings, *roles: str) -> dict[str, str]:
    token = issue_token(cfg=JwtConfig.from_settings(settings), subject="ops", roles=list(roles))
    return {"Authorization": f"Bearer {token}"}


@asynccontextmanager
async def running_app(
    settings: Settings, signals: StaticFailureSignalSource | None = None
) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(settings=settings, signals=signals or StaticFailureSignalSource())

    # httpx 0.28 ASGITransport does not manage lifespan automatically; do it explicitly.
    await app.router.startup()
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        await app.router.shutdown()


_ALICE = {
    "namespace": "guarduim",
    "name": "alice-guard",
    "spec": {"username": "alice", "threshold": 3},
}


@pytest.mark.asyncio
async def test_health_endpoints(tmp_path) -> None:
    async with running_app(_settings(tmp_path)) as client:
        r = await client.get("/healthz")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"

        r = await client.get("/readyz")
        assert r.status_code == 200
        assert r.json() == {"status": "ready", "controller": "disabled", "queue_depth": 0}


@pytest.mark.asyncio
async def test_auth_is_required(tmp_path) -> None:
    settings = _settings(tmp_path)
    async with running_app(settings) as client:
        r = await client.get("/v1/identities")
        assert r.status_code == 401

        r = await client.get("/v1/identities", headers={"Authorization": "Bearer nonsense"})
        assert r.status_code == 401

        r = await client.post("/v1/identities", json=_ALICE, headers=_auth(settings, VIEWER_ROLE))
        assert r.status_code == 403

        # Operators implicitly hold the viewer role; admins bypass role checks.
        r = await client.get("/v1/identities", headers=_auth(settings, OPERATOR_ROLE))
        assert r.status_code == 200
        r = await client.get("/v1/bindings", headers=_auth(settings, ADMIN_ROLE))
        assert r.status_code == 200


@pytest.mark.asyncio
async def test_identity_lifecycle(tmp_path) -> None:
    settings = _settings(tmp_path)
    operator = _auth(settings, OPERATOR_ROLE)
    async with running_app(settings) as client:
        r = await client.post("/v1/identities", json=_ALICE, headers=operator)
        assert r.status_code == 201
        created = r.json()
        assert created["status"] == {"failureCount": 0, "blocked": False}
        assert created["resourceVersion"] == 1

        r = await client.post("/v1/identities", json=_ALICE, headers=operator)
        assert r.status_code == 409

        r = await client.get("/v1/identities/guarduim/alice-guard", headers=operator)
        assert r.status_code == 200
        assert r.json()["spec"] == {"username": "alice", "threshold": 3}

        r = await client.put(
            "/v1/identities/guarduim/alice-guard/spec",
            json={"spec": {"username": "alice", "threshold": 1}, "resourceVersion": 1},
            headers=operator,
        )
        assert r.status_code == 200
        assert r.json()["resourceVersion"] == 2

        # Stale version.
        r = await client.put(
            "/v1/identities/guarduim/alice-guard/spec",
            json={"spec": {"username": "alice", "threshold": 9}, "resourceVersion": 1},
            headers=operator,
        )
        assert r.status_code == 409

        r = await client.get("/v1/identities", params={"namespace": "other"}, headers=operator)
        assert r.json() == []

        r = await client.delete("/v1/identities/guarduim/alice-guard", headers=operator)
        assert r.status_code == 204
        r = await client.get("/v1/identities/guarduim/alice-guard", headers=operator)
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_malformed_record_is_rejected(tmp_path) -> None:
    settings = _settings(tmp_path)
    async with running_app(settings) as client:
        r = await client.post(
            "/v1/identities",
            json={**_ALICE, "name": "Not_A_Valid_Name"},
            headers=_auth(settings, OPERATOR_ROLE),
        )
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_reconcile_trigger_needs_running_controller(tmp_path) -> None:
    settings = _settings(tmp_path)
    operator = _auth(settings, OPERATOR_ROLE)
    async with running_app(settings) as client:
        await client.post("/v1/identities", json=_ALICE, headers=operator)

        r = await client.post("/v1/identities/guarduim/alice-guard/reconcile", headers=operator)
        assert r.status_code == 503


@pytest.mark.asyncio
async def test_controller_locks_identity_end_to_end(tmp_path) -> None:
    settings = _settings(tmp_path, controller_enabled=True, workers=2)
    signals = StaticFailureSignalSource({"alice": 4})
    operator = _auth(settings, OPERATOR_ROLE)
    async with running_app(settings, signals) as client:
        r = await client.get("/readyz")
        assert r.json()["controller"] == "running"

        r = await client.post("/v1/identities", json=_ALICE, headers=operator)
        assert r.status_code == 201

        for _ in range(200):
            r = await client.get("/v1/identities/guarduim/alice-guard", headers=operator)
            if r.json()["status"]["blocked"]:
                break
            await asyncio.sleep(0.01)
        assert r.json()["status"] == {"failureCount": 4, "blocked": True}

        r = await client.get("/v1/bindings", headers=operator)
        assert r.json() == [
            {"name": "block-user-alice", "username": "alice", "role_name": "guarduim-deny"}
        ]

        r = await client.post("/v1/identities/guarduim/alice-guard/reconcile", headers=operator)
        assert r.status_code == 202
        r = await client.post("/v1/identities/guarduim/nobody/reconcile", headers=operator)
        assert r.status_code == 404
