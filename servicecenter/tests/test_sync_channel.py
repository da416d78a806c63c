from __future__ import annotations

import json

import pytest

from services.signal_store import MemorySignalStore
from services.sync_channel import SyncChannel, SyncNotification


class ManualClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.mark.asyncio
async def test_listener_registered_after_trigger_gets_nothing() -> None:
    channel = SyncChannel(MemorySignalStore(), clock=ManualClock())
    await channel.trigger("ticket_created", {"ticketId": "PG-1001"})

    seen: list[SyncNotification] = []
    channel.listen(seen.append)
    assert await channel.poll_once() == 0
    assert seen == []


@pytest.mark.asyncio
async def test_listener_registered_before_trigger_receives_it() -> None:
    channel = SyncChannel(MemorySignalStore(), clock=ManualClock())
    seen: list[SyncNotification] = []
    channel.listen(seen.append)

    notification = await channel.trigger("ticket_updated", {"ticketId": "PG-1001"})

    assert seen == [notification]
    assert seen[0].data == {"ticketId": "PG-1001"}


@pytest.mark.asyncio
async def test_other_process_sees_signal_within_window_only() -> None:
    store = MemorySignalStore()
    clock = ManualClock()
    writer = SyncChannel(store, clock=clock)
    fresh_reader = SyncChannel(store, clock=clock)
    late_reader = SyncChannel(store, clock=clock)
    fresh: list[SyncNotification] = []
    late: list[SyncNotification] = []
    fresh_reader.listen(fresh.append)
    late_reader.listen(late.append)

    await writer.trigger("general_refresh")

    clock.advance(4.9)
    assert await fresh_reader.poll_once() == 1
    clock.advance(0.2)
    assert await late_reader.poll_once() == 0

    assert [item.type for item in fresh] == ["general_refresh"]
    assert late == []


@pytest.mark.asyncio
async def test_same_value_is_not_delivered_twice() -> None:
    store = MemorySignalStore()
    clock = ManualClock()
    writer = SyncChannel(store, clock=clock)
    reader = SyncChannel(store, clock=clock)
    seen: list[SyncNotification] = []
    reader.listen(seen.append)

    await writer.trigger("technician_added", {"technicianId": "tech9"})
    assert await reader.poll_once() == 1
    assert await reader.poll_once() == 0
    assert len(seen) == 1


def test_stale_and_malformed_values_are_dropped() -> None:
    clock = ManualClock()
    channel = SyncChannel(MemorySignalStore(), clock=clock)
    seen: list[SyncNotification] = []
    channel.listen(seen.append)

    stale = json.dumps({"type": "ticket_created", "timestamp": int((clock.now - 5) * 1000)})
    assert channel.deliver(stale) == 0
    assert channel.deliver("{not json") == 0
    assert channel.deliver(json.dumps({"timestamp": 1})) == 0
    assert channel.deliver(None) == 0
    assert seen == []


def test_unregister_and_failing_listener() -> None:
    clock = ManualClock()
    channel = SyncChannel(MemorySignalStore(), clock=clock)
    seen: list[SyncNotification] = []

    def broken(_: SyncNotification) -> None:
        raise RuntimeError("boom")

    channel.listen(broken)
    unregister = channel.listen(seen.append)
    raw = json.dumps({"type": "general_refresh", "timestamp": int(clock.now * 1000)})

    assert channel.deliver(raw) == 1
    unregister()
    assert channel.deliver(raw) == 0
    assert len(seen) == 1
