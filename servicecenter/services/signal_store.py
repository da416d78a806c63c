from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

from core.config import RedisConfig


class SignalStore(Protocol):
    """A single-slot-per-key home for the latest sync envelope."""

    async def read(self, key: str) -> str | None: ...
    async def write(self, key: str, raw: str, ttl_seconds: float) -> None: ...
    async def close(self) -> None: ...


@dataclass(slots=True)
class _Slot:
    raw: str
    expires_at: float


class MemorySignalStore:
    """Process-local slots; only channels sharing this object see each other."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._slots: dict[str, _Slot] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def read(self, key: str) -> str | None:
        async with self._lock:
            slot = self._slots.get(key)
            if slot is None:
                return None
            if self._clock() >= slot.expires_at:
                del self._slots[key]
                return None
            return slot.raw

    async def write(self, key: str, raw: str, ttl_seconds: float) -> None:
        async with self._lock:
            self._slots[key] = _Slot(raw=raw, expires_at=self._clock() + ttl_seconds)

    async def close(self) -> None:
        self._slots.clear()


class RedisSignalStore:
    """Slots shared by every dashboard process pointed at the same Redis."""

    def __init__(self, url: str) -> None:
        self._client = redis.from_url(url, decode_responses=True)

    async def read(self, key: str) -> str | None:
        return await self._client.get(key)

    async def write(self, key: str, raw: str, ttl_seconds: float) -> None:
        await self._client.set(key, raw, px=max(1, int(ttl_seconds * 1000)))

    async def close(self) -> None:
        await self._client.aclose()


def build_signal_store(config: RedisConfig) -> SignalStore:
    if config.enabled:
        return RedisSignalStore(config.url)
    return MemorySignalStore()
