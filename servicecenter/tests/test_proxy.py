from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from httpx import ASGITransport, AsyncClient

from core.api import create_api_app
from core.app import ServiceCenterApp
from core.config import AppConfig, N8nConfig, StorageConfig
from core.errors import UpstreamError
from services.proxy_service import N8nProxy


def _n8n_app(calls: list[tuple[str, Any]]) -> web.Application:
    async def read_complaint(request: web.Request) -> web.Response:
        calls.append(("read-complaint", await request.text()))
        return web.json_response([{"Ticket ID": "PG-1001"}])

    async def read_technician(request: web.Request) -> web.Response:
        calls.append(("read-technician", await request.text()))
        return web.json_response({"error": "sheet locked"}, status=423)

    async def submit(request: web.Request) -> web.Response:
        calls.append(("submit", await request.json()))
        return web.Response(status=200, text='{"received": true}')

    app = web.Application()
    app.router.add_post("/webhook/read-complaint", read_complaint)
    app.router.add_post("/webhook/read-technician", read_technician)
    app.router.add_post("/webhook/submit", submit)
    return app


def _n8n_config(base_url: str) -> N8nConfig:
    return N8nConfig(base_url=base_url, submit_path="/webhook/submit")


@pytest.mark.asyncio
async def test_read_actions_post_without_body(upstream) -> None:
    calls: list[tuple[str, Any]] = []
    proxy = N8nProxy(_n8n_config(await upstream(_n8n_app(calls))))

    result = await proxy.forward("read-complaint", b"")
    assert result.status == 200
    assert result.json() == [{"Ticket ID": "PG-1001"}]

    alias = await proxy.forward("read", b"")
    assert alias.json() == [{"Ticket ID": "PG-1001"}]
    assert calls == [("read-complaint", ""), ("read-complaint", "")]


@pytest.mark.asyncio
async def test_upstream_status_is_relayed(upstream) -> None:
    calls: list[tuple[str, Any]] = []
    proxy = N8nProxy(_n8n_config(await upstream(_n8n_app(calls))))

    result = await proxy.read("read-technician")
    assert result.status == 423
    assert result.json() == {"error": "sheet locked"}


@pytest.mark.asyncio
async def test_other_actions_submit_body(upstream) -> None:
    calls: list[tuple[str, Any]] = []
    proxy = N8nProxy(_n8n_config(await upstream(_n8n_app(calls))))

    result = await proxy.forward(None, b'{"action": "NEW_TICKET", "data": {"Ticket ID": "PG-1"}}')
    assert result.status == 200
    assert calls == [("submit", {"action": "NEW_TICKET", "data": {"Ticket ID": "PG-1"}})]

    await proxy.forward("something-else", b"")
    assert calls[-1] == ("submit", {})


@pytest.mark.asyncio
async def test_unreachable_upstream_raises(dead_url: str) -> None:
    proxy = N8nProxy(_n8n_config(dead_url))
    with pytest.raises(UpstreamError) as info:
        await proxy.read("read-complaint")
    assert info.value.user_message == "Failed to read data from n8n"
    assert info.value.detail


@pytest_asyncio.fixture
async def make_client(tmp_path: Path) -> AsyncIterator[Any]:
    apps: list[ServiceCenterApp] = []
    clients: list[AsyncClient] = []

    async def make(base_url: str) -> AsyncClient:
        config = AppConfig(
            n8n=_n8n_config(base_url),
            storage=StorageConfig(database_url=f"sqlite:///{tmp_path / 'proxy.db'}"),
        )
        service_center = ServiceCenterApp(config)
        api = create_api_app(service_center)
        await service_center.setup()
        apps.append(service_center)
        client = AsyncClient(transport=ASGITransport(app=api), base_url="http://test")
        clients.append(client)
        return client

    yield make
    for client in clients:
        await client.aclose()
    for service_center in apps:
        await service_center.close()


@pytest.mark.asyncio
async def test_proxy_route_relays_status_and_body(upstream, make_client) -> None:
    calls: list[tuple[str, Any]] = []
    client = await make_client(await upstream(_n8n_app(calls)))

    ok = await client.get("/api/n8n-proxy", params={"action": "read-complaint"})
    assert ok.status_code == 200
    assert ok.json() == [{"Ticket ID": "PG-1001"}]
    assert ok.headers["access-control-allow-origin"] == "*"

    locked = await client.post("/api/n8n-proxy", params={"action": "read-technician"})
    assert locked.status_code == 423
    assert locked.json() == {"error": "sheet locked"}

    submitted = await client.post("/api/n8n-proxy", json={"action": "HEARTBEAT"})
    assert submitted.status_code == 200
    assert calls[-1] == ("submit", {"action": "HEARTBEAT"})


@pytest.mark.asyncio
async def test_proxy_route_failures(dead_url: str, make_client) -> None:
    client = await make_client(dead_url)

    failed = await client.post("/api/n8n-proxy", params={"action": "read-complaint"})
    assert failed.status_code == 500
    body = failed.json()
    assert body["success"] is False
    assert body["message"] == "Failed to read data from n8n"
    assert body["error"]

    broken = await client.post("/api/n8n-proxy", content=b"{oops")
    assert broken.status_code == 500
    assert broken.json()["message"] == "Internal error"


@pytest.mark.asyncio
async def test_unknown_path_and_preflight(dead_url: str, make_client) -> None:
    client = await make_client(dead_url)

    missing = await client.get("/nope")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Not found"}
    assert missing.headers["access-control-allow-origin"] == "*"

    preflight = await client.options("/api/n8n-proxy")
    assert preflight.status_code == 200
    assert "POST" in preflight.headers["access-control-allow-methods"]
