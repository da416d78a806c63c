from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Protocol
from uuid import uuid4

from core.config import TicketConfig
from core.errors import ValidationError
from database.models import (
    AttendanceStatus,
    Feedback,
    SessionUser,
    Technician,
    Ticket,
    TicketDraft,
    TicketStatus,
    UrgentAlertType,
    UserRole,
)
from database.repositories import SessionRepository
from services.payloads import (
    build_attendance_row,
    build_heartbeat_row,
    build_job_completed_row,
    build_new_ticket_row,
    build_urgent_alert_row,
)
from services.sync_channel import SyncChannel
from services.toasts import ToastFeed
from utils.constants import (
    ACTION_ATTENDANCE,
    ACTION_HEARTBEAT,
    ACTION_JOB_COMPLETED,
    ACTION_NEW_TICKET,
    ACTION_URGENT_ALERT,
    CUSTOM_PAYLOAD_ACTIONS,
    SYNC_GENERAL_REFRESH,
    SYNC_TECHNICIAN_ADDED,
    SYNC_TECHNICIAN_REMOVED,
    SYNC_TECHNICIAN_UPDATED,
    SYNC_TICKET_CREATED,
    SYNC_TICKET_UPDATED,
)
from utils.time import is_recent, utc_now

LOGGER = logging.getLogger(__name__)

STAFF_ROLES = {UserRole.ADMIN, UserRole.CONTROLLER, UserRole.COORDINATOR}


class Notifier(Protocol):
    def notify(self, action: str, data: Mapping[str, Any]) -> object: ...


@dataclass(slots=True)
class StoreDeps:
    notifier: Notifier
    sync: SyncChannel
    sessions: SessionRepository
    toasts: ToastFeed


class ServiceCenterStore:
    """Single source of truth for tickets, technicians, feedback and the session.

    Mutations trust their callers: required fields and technician references
    are checked by the forms and routes in front of the store. Webhook sends
    are scheduled, never awaited, so a mutation is visible as soon as the
    method returns whatever happens on the network.
    """

    def __init__(
        self,
        config: TicketConfig,
        deps: StoreDeps,
        *,
        origin: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.deps = deps
        self.origin = origin or uuid4().hex
        self._clock = clock
        self._rng = rng or random.Random()
        self.tickets: list[Ticket] = []
        self.technicians: list[Technician] = []
        self.feedback: list[Feedback] = []
        self.user: SessionUser | None = None

    # Lookups

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        return next((ticket for ticket in self.tickets if ticket.id == ticket_id), None)

    def get_technician(self, technician_id: str) -> Technician | None:
        return next((tech for tech in self.technicians if tech.id == technician_id), None)

    def tickets_for(self, user: SessionUser, status: TicketStatus | None = None) -> list[Ticket]:
        if user.role in STAFF_ROLES:
            visible = list(self.tickets)
        else:
            visible = [ticket for ticket in self.tickets if ticket.technician_id == user.id]
        if status is not None:
            visible = [ticket for ticket in visible if ticket.status is status]
        return visible

    def pin_in_use(self, pin: str, exclude_id: str | None = None) -> bool:
        return any(tech.pin == pin and tech.id != exclude_id for tech in self.technicians)

    def is_online(self, technician: Technician) -> bool:
        window = timedelta(minutes=self.config.online_window_minutes)
        return is_recent(technician.last_seen, window, self._clock())

    def _ticket_index(self, ticket_id: str) -> int | None:
        return next((idx for idx, ticket in enumerate(self.tickets) if ticket.id == ticket_id), None)

    def _new_ticket_id(self) -> str:
        taken = {ticket.id for ticket in self.tickets}
        for _ in range(100):
            candidate = f"{self.config.id_prefix}{self._rng.randint(1000, 9999)}"
            if candidate not in taken:
                return candidate
        # The four-digit space is nearly exhausted; fall back to a longer suffix.
        return f"{self.config.id_prefix}{uuid4().hex[:8].upper()}"

    def _new_technician_id(self) -> str:
        stamp = int(self._clock().timestamp() * 1000)
        while self.get_technician(f"tech{stamp}") is not None:
            stamp += 1
        return f"tech{stamp}"

    async def _signal(self, sync_type: str, **data: str | None) -> None:
        payload: dict[str, Any] = {key: value for key, value in data.items() if value is not None}
        payload["origin"] = self.origin
        await self.deps.sync.trigger(sync_type, payload)

    # Session

    async def login(self, user: SessionUser) -> None:
        self.user = user
        await self.deps.sessions.save(user)
        LOGGER.info("Session started for %s (%s)", user.id, user.role.value)

    async def logout(self) -> None:
        if self.user:
            LOGGER.info("Session ended for %s", self.user.id)
        self.user = None
        await self.deps.sessions.clear()

    async def restore_session(self) -> SessionUser | None:
        self.user = await self.deps.sessions.load()
        return self.user

    # Tickets

    async def add_ticket(self, draft: TicketDraft) -> Ticket:
        now = self._clock()
        product = draft.product_details
        if not product.category:
            product = replace(product, category=draft.service_category)
        ticket = Ticket(
            id=self._new_ticket_id(),
            customer_name=draft.customer_name,
            phone=draft.phone,
            address=draft.address,
            complaint=draft.complaint,
            technician_id=draft.technician_id,
            service_category=draft.service_category,
            status=TicketStatus.NEW,
            created_at=now,
            service_booking_date=now,
            preferred_time=draft.preferred_time,
            product_details=product,
            symptoms=list(draft.symptoms),
            serial_no=draft.serial_no,
            purchase_date=draft.purchase_date,
            admin_notes=draft.admin_notes,
        )
        self.tickets.insert(0, ticket)
        LOGGER.info("Ticket created. id=%s technician=%s", ticket.id, ticket.technician_id)

        self.deps.notifier.notify(ACTION_NEW_TICKET, build_new_ticket_row(ticket))
        await self._signal(SYNC_TICKET_CREATED, ticketId=ticket.id)
        return ticket

    async def update_ticket(self, ticket: Ticket) -> Ticket | None:
        index = self._ticket_index(ticket.id)
        if index is None:
            LOGGER.warning("Ignoring update for unknown ticket %s", ticket.id)
            return None

        completed = ticket.status is TicketStatus.COMPLETED
        points_earned = 0
        if completed and not ticket.points_awarded:
            points_earned = self._award_points(ticket.technician_id)
            if points_earned:
                ticket = replace(ticket, points_awarded=True)

        self.tickets[index] = ticket
        LOGGER.info("Ticket updated. id=%s status=%s", ticket.id, ticket.status.value)

        # Fires on every update that carries Completed, not only on the transition.
        if completed:
            technician = self.get_technician(ticket.technician_id)
            self.deps.notifier.notify(
                ACTION_JOB_COMPLETED,
                build_job_completed_row(ticket, technician, points_earned, self._clock()),
            )
        await self._signal(SYNC_TICKET_UPDATED, ticketId=ticket.id)
        return ticket

    async def reopen_ticket(self, ticket_id: str, new_technician_id: str, notes: str) -> Ticket | None:
        ticket = self.get_ticket(ticket_id)
        if ticket is None:
            LOGGER.warning("Ignoring reopen for unknown ticket %s", ticket_id)
            return None
        reopened = replace(
            ticket,
            status=TicketStatus.NEW,
            technician_id=new_technician_id,
            admin_notes=notes,
            completed_at=None,
            is_escalated=True,
        )
        return await self.update_ticket(reopened)

    def replace_tickets(self, tickets: Iterable[Ticket]) -> None:
        self.tickets = list(tickets)

    # Technicians

    def _award_points(self, technician_id: str) -> int:
        technician = self.get_technician(technician_id)
        if technician is None:
            return 0
        earned = self.config.completion_points
        technician.points += earned
        self.deps.toasts.success(f"{technician.name} earned {earned} points!")
        return earned

    async def add_technician(self, name: str, pin: str | None = None) -> Technician:
        technician = Technician(id=self._new_technician_id(), name=name, pin=pin, points=0)
        self.technicians.append(technician)
        self.deps.toasts.success("Technician added successfully!")
        await self._signal(SYNC_TECHNICIAN_ADDED, technicianId=technician.id)
        return technician

    async def update_technician(self, technician: Technician) -> Technician | None:
        for idx, current in enumerate(self.technicians):
            if current.id == technician.id:
                updated = replace(technician, points=max(0, technician.points))
                self.technicians[idx] = updated
                self.deps.toasts.success("Technician updated successfully!")
                await self._signal(SYNC_TECHNICIAN_UPDATED, technicianId=technician.id)
                return updated
        return None

    async def delete_technician(self, technician_id: str) -> bool:
        remaining = [tech for tech in self.technicians if tech.id != technician_id]
        if len(remaining) == len(self.technicians):
            return False
        # Tickets keep their technician_id; the reference is weak.
        self.technicians = remaining
        self.deps.toasts.success("Technician removed successfully!")
        await self._signal(SYNC_TECHNICIAN_REMOVED, technicianId=technician_id)
        return True

    async def reset_all_technician_points(self) -> None:
        for technician in self.technicians:
            technician.points = 0
        self.deps.toasts.success("All technician points have been reset to 0.")
        await self._signal(SYNC_GENERAL_REFRESH)

    def replace_technicians(self, technicians: Iterable[Technician]) -> None:
        self.technicians = list(technicians)

    async def record_heartbeat(self, technician_id: str) -> Technician | None:
        technician = self.get_technician(technician_id)
        if technician is None:
            return None
        now = self._clock()
        technician.last_seen = now
        self.deps.notifier.notify(ACTION_HEARTBEAT, build_heartbeat_row(technician, now))
        await self._signal(SYNC_TECHNICIAN_UPDATED, technicianId=technician.id)
        return technician

    async def mark_attendance(self, technician_id: str, status: AttendanceStatus) -> bool:
        technician = self.get_technician(technician_id)
        if technician is None:
            return False
        now = self._clock()
        technician.last_seen = now
        self.deps.notifier.notify(ACTION_ATTENDANCE, build_attendance_row(technician, status, now))
        await self._signal(SYNC_TECHNICIAN_UPDATED, technicianId=technician.id)
        return True

    async def raise_urgent_alert(self, technician_id: str, alert_type: UrgentAlertType, comments: str = "") -> None:
        technician = self.get_technician(technician_id)
        LOGGER.warning("Urgent alert from %s: %s", technician_id, alert_type.value)
        self.deps.notifier.notify(
            ACTION_URGENT_ALERT,
            build_urgent_alert_row(technician, technician_id, alert_type, comments, self._clock()),
        )

    async def send_custom_payload(self, action: str, payload: Mapping[str, Any]) -> None:
        """Push a hand-edited sheet row through the notifier unchanged.

        Only the two row-writing actions are accepted; the payload becomes the
        envelope's ``data`` as is, so the keys must already match the sheet.
        """
        if action not in CUSTOM_PAYLOAD_ACTIONS:
            allowed = " or ".join(CUSTOM_PAYLOAD_ACTIONS)
            raise ValidationError(user_message=f"Custom payloads are limited to {allowed}.")
        LOGGER.info("Sending custom %s payload with %s fields", action, len(payload))
        self.deps.notifier.notify(action, payload)

    # Feedback

    async def add_feedback(self, ticket_id: str, rating: int, comment: str | None = None) -> Feedback:
        now = self._clock()
        item = Feedback(
            id=f"FB-{int(now.timestamp() * 1000)}",
            ticket_id=ticket_id,
            rating=rating,
            comment=comment,
            created_at=now,
        )
        self.feedback.insert(0, item)
        LOGGER.info("Feedback recorded. ticket=%s rating=%s", ticket_id, rating)
        await self._signal(SYNC_GENERAL_REFRESH, ticketId=ticket_id)
        return item
