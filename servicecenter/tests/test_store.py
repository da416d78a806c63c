from __future__ import annotations

from dataclasses import replace

import pytest

from core.errors import ValidationError
from database.models import (
    AttendanceStatus,
    SessionUser,
    TicketDraft,
    TicketStatus,
    UrgentAlertType,
    UserRole,
)
from services.store import ServiceCenterStore
from services.sync_channel import SyncNotification


def _draft(**overrides: str) -> TicketDraft:
    values = {
        "customer_name": "A",
        "phone": "1",
        "address": "X",
        "complaint": "leak",
        "technician_id": "tech1",
        "service_category": "Chimney",
    }
    values.update(overrides)
    return TicketDraft(**values)


@pytest.mark.asyncio
async def test_create_ticket_scenario(store: ServiceCenterStore) -> None:
    ticket = await store.add_ticket(_draft())

    assert len(store.tickets) == 1
    assert store.tickets[0] is ticket
    assert ticket.status is TicketStatus.NEW
    assert ticket.id.startswith("PG-")
    assert ticket.product_details.category == "Chimney"

    action, row = store.deps.notifier.calls[0]
    assert action == "NEW_TICKET"
    assert row["Assigned Technician"] == "tech1"
    assert row["Ticket ID"] == ticket.id
    assert row["Status"] == "New"


@pytest.mark.asyncio
async def test_new_tickets_are_unique_and_newest_first(store: ServiceCenterStore) -> None:
    created = []
    for idx in range(30):
        ticket = await store.add_ticket(_draft(customer_name=f"Customer {idx}"))
        assert store.tickets[0] is ticket
        created.append(ticket.id)

    assert len(set(created)) == len(created)
    assert [ticket.id for ticket in store.tickets] == list(reversed(created))


@pytest.mark.asyncio
async def test_completion_fires_every_time_but_awards_points_once(store: ServiceCenterStore) -> None:
    ticket = await store.add_ticket(_draft())
    completed = replace(ticket, status=TicketStatus.COMPLETED, work_done="Replaced motor")

    first = await store.update_ticket(completed)
    assert first is not None
    second = await store.update_ticket(first)

    notifier = store.deps.notifier
    assert notifier.actions().count("JOB_COMPLETED") == 2
    rows = [row for action, row in notifier.calls if action == "JOB_COMPLETED"]
    assert rows[0]["Points Awarded"] == 250
    assert rows[1]["Points Awarded"] == 0
    assert rows[0]["Technician Name"] == "Anil Kumar"
    assert second is not None and second.points_awarded
    assert store.get_technician("tech1").points == 250


@pytest.mark.asyncio
async def test_update_unknown_ticket_is_ignored(store: ServiceCenterStore) -> None:
    ticket = await store.add_ticket(_draft())
    ghost = replace(ticket, id="PG-0000", status=TicketStatus.COMPLETED)

    assert await store.update_ticket(ghost) is None
    assert store.deps.notifier.actions() == ["NEW_TICKET"]


@pytest.mark.asyncio
async def test_reopen_resets_completion(store: ServiceCenterStore) -> None:
    ticket = await store.add_ticket(_draft())
    done = await store.update_ticket(
        replace(ticket, status=TicketStatus.COMPLETED, completed_at=store._clock())
    )
    assert done is not None and done.completed_at is not None

    reopened = await store.reopen_ticket(ticket.id, "tech2", "Customer called back")

    assert reopened is not None
    assert reopened.status is TicketStatus.NEW
    assert reopened.completed_at is None
    assert reopened.technician_id == "tech2"
    assert reopened.admin_notes == "Customer called back"
    assert reopened.is_escalated


@pytest.mark.asyncio
async def test_reopen_from_new_still_yields_new(store: ServiceCenterStore) -> None:
    ticket = await store.add_ticket(_draft())
    reopened = await store.reopen_ticket(ticket.id, "tech1", "again")
    assert reopened is not None
    assert reopened.status is TicketStatus.NEW
    assert reopened.completed_at is None


@pytest.mark.asyncio
async def test_mutations_signal_other_tabs(store: ServiceCenterStore) -> None:
    seen: list[SyncNotification] = []
    store.deps.sync.listen(seen.append)

    ticket = await store.add_ticket(_draft())
    await store.update_ticket(replace(ticket, status=TicketStatus.IN_PROGRESS))
    await store.add_technician("Ravi")

    assert [item.type for item in seen] == ["ticket_created", "ticket_updated", "technician_added"]
    assert seen[0].data == {"ticketId": ticket.id, "origin": "test-origin"}


@pytest.mark.asyncio
async def test_login_persists_and_restores(store: ServiceCenterStore) -> None:
    user = SessionUser(id="admin01", name="Admin User", role=UserRole.ADMIN)
    await store.login(user)

    store.user = None
    assert await store.restore_session() == user

    await store.logout()
    assert store.user is None
    assert await store.restore_session() is None


@pytest.mark.asyncio
async def test_technician_visibility(store: ServiceCenterStore) -> None:
    await store.add_ticket(_draft())
    await store.add_ticket(_draft(technician_id="tech2"))

    tech = SessionUser(id="tech2", name="Suresh Singh", role=UserRole.TECHNICIAN)
    coordinator = SessionUser(id="coordinator01", name="Coordinator", role=UserRole.COORDINATOR)

    assert [ticket.technician_id for ticket in store.tickets_for(tech)] == ["tech2"]
    assert len(store.tickets_for(coordinator)) == 2
    assert store.tickets_for(coordinator, TicketStatus.COMPLETED) == []


@pytest.mark.asyncio
async def test_technician_crud_and_points_reset(store: ServiceCenterStore) -> None:
    added = await store.add_technician("Ravi", pin="4321")
    assert added.id.startswith("tech")
    assert store.pin_in_use("4321")
    assert not store.pin_in_use("4321", exclude_id=added.id)

    updated = await store.update_technician(replace(added, name="Ravi K", points=-5))
    assert updated is not None
    assert updated.points == 0

    store.get_technician("tech1").points = 500
    await store.reset_all_technician_points()
    assert {tech.points for tech in store.technicians} == {0}

    assert await store.delete_technician(added.id)
    assert not await store.delete_technician(added.id)


@pytest.mark.asyncio
async def test_technician_actions_notify(store: ServiceCenterStore) -> None:
    assert await store.record_heartbeat("tech1") is not None
    assert await store.mark_attendance("tech1", AttendanceStatus.CHECK_IN)
    await store.raise_urgent_alert("tech1", UrgentAlertType.VEHICLE_BREAKDOWN, "Flat tyre")

    assert store.deps.notifier.actions() == ["HEARTBEAT", "ATTENDANCE", "URGENT_ALERT"]
    alert = store.deps.notifier.calls[-1][1]
    assert alert["Alert Type"] == "Vehicle Breakdown"
    assert alert["Comments"] == "Flat tyre"
    assert store.is_online(store.get_technician("tech1"))
    assert not store.is_online(store.get_technician("tech2"))


@pytest.mark.asyncio
async def test_feedback_is_prepended(store: ServiceCenterStore) -> None:
    ticket = await store.add_ticket(_draft())
    first = await store.add_feedback(ticket.id, 4, "Good")
    second = await store.add_feedback(ticket.id, 5)
    assert store.feedback == [second, first]


@pytest.mark.asyncio
async def test_custom_payload_limited_to_row_actions(store: ServiceCenterStore) -> None:
    row = {"Ticket ID": "PG-1", "Work Done Summary": "Cleaned filter"}

    await store.send_custom_payload("JOB_COMPLETED", row)
    with pytest.raises(ValidationError):
        await store.send_custom_payload("URGENT_ALERT", row)

    assert store.deps.notifier.calls == [("JOB_COMPLETED", row)]
