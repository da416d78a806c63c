from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine
from typing import Any

from core.config import AppConfig
from core.errors import UpstreamError
from database.base import Database
from database.migrations.runner import run_migrations
from database.models import Technician
from database.repositories import (
    SETTING_COMPLAINT_SHEET_URL,
    SETTING_MASTER_WEBHOOK_URL,
    SETTING_UPDATE_SHEET_URL,
    KeyValueRepository,
    SessionRepository,
    SettingsRepository,
)
from services.analytics_service import AnalyticsService
from services.draft_extractor import DraftExtractor
from services.notifier import WebhookNotifier
from services.proxy_service import N8nProxy
from services.session_gate import SessionGate
from services.sheet_reader import SheetReader
from services.signal_store import SignalStore, build_signal_store
from services.store import ServiceCenterStore, StoreDeps
from services.sync_channel import SyncChannel, SyncNotification
from services.toasts import ToastFeed

LOGGER = logging.getLogger(__name__)


class ServiceCenterApp:
    """Owns the storage handles and services for one dashboard process."""

    def __init__(self, config: AppConfig, extractor: DraftExtractor | None = None) -> None:
        self.config = config
        self.database = Database(url=config.storage.database_url)
        self.signal_store: SignalStore | None = None
        self.extractor = extractor
        self.toasts = ToastFeed()
        self.refresh_requested = False
        self._watch_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._stop_sync: Any = None

        # Repositories and services are initialized during setup.
        self.kv_repo: KeyValueRepository
        self.session_repo: SessionRepository
        self.settings_repo: SettingsRepository
        self.notifier: WebhookNotifier
        self.sync: SyncChannel
        self.gate: SessionGate
        self.proxy: N8nProxy
        self.sheet_reader: SheetReader
        self.store: ServiceCenterStore
        self.analytics: AnalyticsService

    async def setup(self) -> None:
        await self.database.connect()
        await run_migrations(self.database)
        self.signal_store = build_signal_store(self.config.redis)

        self.kv_repo = KeyValueRepository(self.database)
        self.session_repo = SessionRepository(self.kv_repo, self.config.session.storage_key)
        self.settings_repo = SettingsRepository(self.kv_repo)
        await self.settings_repo.seed(
            {
                SETTING_MASTER_WEBHOOK_URL: self.config.webhook.master_webhook_url,
                SETTING_COMPLAINT_SHEET_URL: self.config.webhook.complaint_sheet_url,
                SETTING_UPDATE_SHEET_URL: self.config.webhook.update_sheet_url,
            }
        )

        self.notifier = WebhookNotifier(self.config.webhook, self.settings_repo.webhook_url, self.toasts)
        self.sync = SyncChannel(self.signal_store, self.config.sync.key, self.config.sync.staleness_seconds)
        self.gate = SessionGate(self.config.session.role_codes)
        self.proxy = N8nProxy(self.config.n8n)
        self.sheet_reader = SheetReader(self.proxy)

        deps = StoreDeps(
            notifier=self.notifier,
            sync=self.sync,
            sessions=self.session_repo,
            toasts=self.toasts,
        )
        self.store = ServiceCenterStore(self.config.tickets, deps)
        self.store.replace_technicians(
            Technician(id=seed.id, name=seed.name, pin=seed.pin, points=seed.points)
            for seed in self.config.technicians
        )
        self.analytics = AnalyticsService(self.store)

        user = await self.store.restore_session()
        if user:
            LOGGER.info("Restored session for %s", user.id)

        self._stop_sync = self.sync.listen(self._on_sync)
        self._watch_task = asyncio.create_task(self.sync.watch(self.config.sync.poll_interval_seconds))
        LOGGER.info("Service center ready with %s technicians", len(self.store.technicians))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_sync(self, notification: SyncNotification) -> None:
        data = notification.data or {}
        if data.get("origin") == self.store.origin:
            return
        LOGGER.info("Change signalled elsewhere: %s %s", notification.type, data)
        self.refresh_requested = True
        if self.config.sync.refetch_on_signal:
            self._spawn(self._refetch_in_background())

    async def _refetch_in_background(self) -> None:
        try:
            await self.refetch()
        except UpstreamError as exc:
            LOGGER.warning("Background refetch failed: %s (%s)", exc.user_message, exc.detail)

    async def refetch(self) -> int:
        technicians = await self.sheet_reader.read_technicians()
        if technicians:
            self.store.replace_technicians(technicians)
        tickets = await self.sheet_reader.read_tickets(self.store.technicians)
        self.store.replace_tickets(tickets)
        self.refresh_requested = False
        self.toasts.success(f"Synced {len(tickets)} jobs successfully!")
        return len(tickets)

    async def close(self) -> None:
        if self._stop_sync:
            self._stop_sync()
            self._stop_sync = None
        if self._watch_task:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
            self._watch_task = None
        for task in list(self._background):
            task.cancel()
        if hasattr(self, "notifier"):
            await self.notifier.drain()
        if self.signal_store:
            await self.signal_store.close()
        await self.database.close()
        LOGGER.info("Service center stopped")

    async def __aenter__(self) -> ServiceCenterApp:
        await self.setup()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
