from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from services.signal_store import SignalStore

LOGGER = logging.getLogger(__name__)

SyncListener = Callable[["SyncNotification"], None]
Clock = Callable[[], float]


@dataclass(slots=True)
class SyncNotification:
    type: str
    timestamp: int
    data: dict[str, Any] | None = None


class SyncChannel:
    """Advisory "something changed" signal shared through one store key.

    Writers store the newest envelope under ``key`` and notify their own
    listeners straight away. Other processes pick the value up through
    ``poll_once``/``watch``. Only the latest envelope is visible, listeners
    registered after a trigger never see it, and envelopes older than the
    staleness window are dropped. Consumers refetch; nothing here carries a
    delta.
    """

    def __init__(
        self,
        store: SignalStore,
        key: str = "glen_sync_notification",
        staleness_seconds: float = 5.0,
        clock: Clock = time.time,
    ) -> None:
        self.store = store
        self.key = key
        self.staleness_seconds = staleness_seconds
        self._clock = clock
        self._listeners: list[SyncListener] = []
        self._last_raw: str | None = None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def trigger(self, sync_type: str, data: dict[str, Any] | None = None) -> SyncNotification:
        notification = SyncNotification(type=sync_type, timestamp=self._now_ms(), data=data)
        raw = json.dumps(asdict(notification), ensure_ascii=True, separators=(",", ":"))
        # Keep the key around a while longer than the window so late pollers can still discard it.
        await self.store.write(self.key, raw, ttl_seconds=self.staleness_seconds * 4)
        self._last_raw = raw
        self.deliver(raw)
        return notification

    def listen(self, on_sync: SyncListener) -> Callable[[], None]:
        self._listeners.append(on_sync)

        def unregister() -> None:
            if on_sync in self._listeners:
                self._listeners.remove(on_sync)

        return unregister

    def deliver(self, raw: str | None) -> int:
        if not raw:
            return 0
        try:
            payload = json.loads(raw)
            notification = SyncNotification(
                type=str(payload["type"]),
                timestamp=int(payload["timestamp"]),
                data=payload.get("data"),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            LOGGER.error("Failed to parse sync notification: %r", raw)
            return 0

        age_ms = self._now_ms() - notification.timestamp
        if age_ms >= self.staleness_seconds * 1000:
            LOGGER.debug("Ignoring stale sync notification type=%s age_ms=%s", notification.type, age_ms)
            return 0

        delivered = 0
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                LOGGER.exception("Sync listener failed for type=%s", notification.type)
                continue
            delivered += 1
        return delivered

    async def poll_once(self) -> int:
        raw = await self.store.read(self.key)
        if raw is None or raw == self._last_raw:
            return 0
        self._last_raw = raw
        return self.deliver(raw)

    async def watch(self, interval_seconds: float) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:  # pragma: no cover - runtime safety
                LOGGER.exception("Sync poll failed for key %s", self.key)
            await asyncio.sleep(interval_seconds)
