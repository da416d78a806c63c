from __future__ import annotations

import random
import socket
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web

from core.config import TicketConfig
from database.base import Database
from database.migrations.runner import run_migrations
from database.models import Technician
from database.repositories import KeyValueRepository, SessionRepository
from services.signal_store import MemorySignalStore
from services.store import ServiceCenterStore, StoreDeps
from services.sync_channel import SyncChannel
from services.toasts import ToastFeed


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def notify(self, action: str, data: Mapping[str, Any]) -> None:
        self.calls.append((action, dict(data)))

    def actions(self) -> list[str]:
        return [action for action, _ in self.calls]


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest_asyncio.fixture
async def database() -> AsyncIterator[Database]:
    db = Database(url="sqlite:///:memory:")
    await db.connect()
    await run_migrations(db)
    yield db
    await db.close()


@pytest_asyncio.fixture
async def store(database: Database) -> ServiceCenterStore:
    deps = StoreDeps(
        notifier=RecordingNotifier(),
        sync=SyncChannel(MemorySignalStore()),
        sessions=SessionRepository(KeyValueRepository(database)),
        toasts=ToastFeed(),
    )
    service = ServiceCenterStore(
        TicketConfig(),
        deps,
        origin="test-origin",
        clock=FakeClock(datetime(2025, 3, 14, 10, 30, tzinfo=UTC)),
        rng=random.Random(7),
    )
    service.replace_technicians(
        [
            Technician(id="tech1", name="Anil Kumar", pin="1234"),
            Technician(id="tech2", name="Suresh Singh", pin="5678"),
        ]
    )
    return service


StartUpstream = Callable[[web.Application], Awaitable[str]]


@pytest_asyncio.fixture
async def upstream() -> AsyncIterator[StartUpstream]:
    """Serve aiohttp apps on ephemeral local ports; yields a starter returning the base URL."""
    runners: list[web.AppRunner] = []

    async def start(app: web.Application) -> str:
        runner = web.AppRunner(app)
        await runner.setup()
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        site = web.SockSite(runner, sock)
        await site.start()
        runners.append(runner)
        host, port = sock.getsockname()[:2]
        return f"http://{host}:{port}"

    yield start
    for runner in runners:
        await runner.cleanup()


@pytest.fixture
def dead_url() -> str:
    """A local URL nothing listens on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"

