from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import asdict, replace
from typing import Any

from fastapi import APIRouter, Depends

from core.app import ServiceCenterApp
from core.errors import (
    ExtractorUnavailableError,
    NotLoggedInError,
    PermissionDeniedError,
    TechnicianNotFoundError,
    TicketNotFoundError,
    ValidationError,
)
from database.models import SessionUser, Technician, Ticket, TicketStatus, UserRole
from database.repositories import (
    SETTING_COMPLAINT_SHEET_URL,
    SETTING_MASTER_WEBHOOK_URL,
    SETTING_UPDATE_SHEET_URL,
)
from services.draft_extractor import ExtractionInput, coerce_draft
from utils.decorators import (
    admin_only,
    current_user,
    get_service_center,
    staff_only,
    technician_only,
)
from utils.time import utc_now
from views.schemas import (
    AttendanceRequest,
    CustomPayloadRequest,
    ExtractRequest,
    FeedbackRequest,
    HealthCheckRequest,
    LoginRequest,
    ReopenRequest,
    SettingsRequest,
    TechnicianCreateRequest,
    TechnicianUpdateRequest,
    TicketCreateRequest,
    TicketUpdateRequest,
    UrgentAlertRequest,
    serialize,
)

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SETTING_FIELDS = {
    "master_webhook_url": SETTING_MASTER_WEBHOOK_URL,
    "complaint_sheet_url": SETTING_COMPLAINT_SHEET_URL,
    "update_sheet_url": SETTING_UPDATE_SHEET_URL,
}


def _ticket_or_404(service_center: ServiceCenterApp, ticket_id: str) -> Ticket:
    ticket = service_center.store.get_ticket(ticket_id)
    if ticket is None:
        raise TicketNotFoundError()
    return ticket


def _technician_or_404(service_center: ServiceCenterApp, technician_id: str) -> Technician:
    technician = service_center.store.get_technician(technician_id)
    if technician is None:
        raise TechnicianNotFoundError()
    return technician


def _technician_view(service_center: ServiceCenterApp, technician: Technician) -> dict[str, Any]:
    data = serialize(technician)
    data["online"] = service_center.store.is_online(technician)
    return data


# Session


@router.post("/session/login")
async def login(
    body: LoginRequest,
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    attempt = service_center.gate.attempt(body.code, service_center.store.technicians)
    if not attempt.ok or attempt.user is None:
        LOGGER.info("Rejected login attempt")
        raise NotLoggedInError(user_message=attempt.error or "Invalid code. Please try again.")
    await service_center.store.login(attempt.user)
    return {"success": True, "user": serialize(attempt.user)}


@router.post("/session/logout")
async def logout(service_center: ServiceCenterApp = Depends(get_service_center)) -> dict[str, Any]:
    await service_center.store.logout()
    return {"success": True}


@router.get("/session")
async def session(user: SessionUser = Depends(current_user)) -> dict[str, Any]:
    return {"user": serialize(user)}


# Tickets


@router.get("/tickets")
async def list_tickets(
    status: TicketStatus | None = None,
    user: SessionUser = Depends(current_user),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    tickets = service_center.store.tickets_for(user, status)
    return {"items": serialize(tickets), "refresh_requested": service_center.refresh_requested}


@router.get("/tickets/{ticket_id}")
async def get_ticket(
    ticket_id: str,
    user: SessionUser = Depends(current_user),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    ticket = _ticket_or_404(service_center, ticket_id)
    if user.role is UserRole.TECHNICIAN and ticket.technician_id != user.id:
        raise TicketNotFoundError()
    return serialize(ticket)


@router.post("/tickets", status_code=201)
async def create_ticket(
    body: TicketCreateRequest,
    _: SessionUser = Depends(staff_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    _technician_or_404(service_center, body.technician_id)
    ticket = await service_center.store.add_ticket(body.to_draft())
    return serialize(ticket)


@router.put("/tickets/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    body: TicketUpdateRequest,
    user: SessionUser = Depends(current_user),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    current = _ticket_or_404(service_center, ticket_id)
    if user.role is UserRole.TECHNICIAN and current.technician_id != user.id:
        raise PermissionDeniedError(user_message="This job is assigned to another technician.")

    changes = body.changes()
    if user.role is UserRole.TECHNICIAN:
        changes.pop("technician_id", None)
    elif "technician_id" in changes:
        _technician_or_404(service_center, changes["technician_id"])
    updated = replace(current, **changes)
    if updated.status is TicketStatus.COMPLETED and updated.completed_at is None:
        updated = replace(updated, completed_at=utc_now())

    ticket = await service_center.store.update_ticket(updated)
    if ticket is None:
        raise TicketNotFoundError()
    return serialize(ticket)


@router.post("/tickets/{ticket_id}/reopen")
async def reopen_ticket(
    ticket_id: str,
    body: ReopenRequest,
    _: SessionUser = Depends(staff_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    _ticket_or_404(service_center, ticket_id)
    _technician_or_404(service_center, body.technician_id)
    ticket = await service_center.store.reopen_ticket(ticket_id, body.technician_id, body.notes)
    if ticket is None:
        raise TicketNotFoundError()
    return serialize(ticket)


@router.post("/tickets/extract")
async def extract_draft(
    body: ExtractRequest,
    _: SessionUser = Depends(staff_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    if service_center.extractor is None:
        raise ExtractorUnavailableError()
    if not body.text and not body.image_base64:
        raise ValidationError(user_message="Please paste some text or upload an image to analyze.")
    image = None
    if body.image_base64:
        try:
            image = base64.b64decode(body.image_base64, validate=True)
        except binascii.Error as exc:
            raise ValidationError(user_message="The uploaded image could not be decoded.") from exc
    raw = await service_center.extractor.extract(
        ExtractionInput(text=body.text, image=image, mime_type=body.mime_type)
    )
    return {"draft": coerce_draft(raw)}


@router.post("/sync")
async def sync_now(
    _: SessionUser = Depends(current_user),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    synced = await service_center.refetch()
    return {"success": True, "synced": synced}


# Technicians


@router.get("/technicians")
async def list_technicians(
    _: SessionUser = Depends(staff_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    return {"items": [_technician_view(service_center, tech) for tech in service_center.store.technicians]}


@router.post("/technicians", status_code=201)
async def add_technician(
    body: TechnicianCreateRequest,
    _: SessionUser = Depends(admin_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    if body.pin and service_center.store.pin_in_use(body.pin):
        raise ValidationError(user_message="This PIN is already used by another technician.")
    technician = await service_center.store.add_technician(body.name.strip(), body.pin)
    return serialize(technician)


@router.put("/technicians/{technician_id}")
async def update_technician(
    technician_id: str,
    body: TechnicianUpdateRequest,
    _: SessionUser = Depends(admin_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    current = _technician_or_404(service_center, technician_id)
    if body.pin and service_center.store.pin_in_use(body.pin, exclude_id=technician_id):
        raise ValidationError(user_message="This PIN is already used by another technician.")
    updated = await service_center.store.update_technician(
        replace(current, **body.model_dump(exclude_unset=True, exclude_none=True))
    )
    if updated is None:
        raise TechnicianNotFoundError()
    return serialize(updated)


@router.delete("/technicians/{technician_id}")
async def delete_technician(
    technician_id: str,
    _: SessionUser = Depends(admin_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    if not await service_center.store.delete_technician(technician_id):
        raise TechnicianNotFoundError()
    return {"success": True}


@router.post("/technicians/reset-points")
async def reset_points(
    _: SessionUser = Depends(admin_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    await service_center.store.reset_all_technician_points()
    return {"success": True}


@router.post("/me/heartbeat")
async def heartbeat(
    user: SessionUser = Depends(technician_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    technician = await service_center.store.record_heartbeat(user.id)
    if technician is None:
        raise TechnicianNotFoundError()
    return {"success": True, "last_seen": technician.last_seen}


@router.post("/me/attendance")
async def attendance(
    body: AttendanceRequest,
    user: SessionUser = Depends(technician_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    if not await service_center.store.mark_attendance(user.id, body.status):
        raise TechnicianNotFoundError()
    return {"success": True, "status": body.status.value}


@router.post("/me/urgent-alert")
async def urgent_alert(
    body: UrgentAlertRequest,
    user: SessionUser = Depends(technician_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    await service_center.store.raise_urgent_alert(user.id, body.alert_type, body.comments)
    return {"success": True}


# Feedback and analytics


@router.get("/feedback")
async def list_feedback(
    _: SessionUser = Depends(staff_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    return {"items": serialize(service_center.store.feedback)}


@router.post("/feedback", status_code=201)
async def add_feedback(
    body: FeedbackRequest,
    _: SessionUser = Depends(staff_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    _ticket_or_404(service_center, body.ticket_id)
    item = await service_center.store.add_feedback(body.ticket_id, body.rating, body.comment)
    return serialize(item)


@router.get("/analytics")
async def analytics(
    _: SessionUser = Depends(staff_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    return asdict(service_center.analytics.build_dashboard())


# Settings and automation


@router.get("/settings")
async def get_settings(
    _: SessionUser = Depends(admin_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, str]:
    stored = await service_center.settings_repo.all()
    return {field: stored[key] for field, key in SETTING_FIELDS.items()}


@router.put("/settings")
async def put_settings(
    body: SettingsRequest,
    user: SessionUser = Depends(admin_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, str]:
    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        await service_center.settings_repo.set(SETTING_FIELDS[field], value or "")
    LOGGER.info("Settings updated by %s: %s", user.id, ", ".join(sorted(changes)) or "nothing")
    service_center.toasts.success("Settings saved!")
    stored = await service_center.settings_repo.all()
    return {field: stored[key] for field, key in SETTING_FIELDS.items()}


@router.post("/webhook/health")
async def webhook_health(
    body: HealthCheckRequest,
    _: SessionUser = Depends(admin_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, str]:
    status = await service_center.notifier.check_health(body.url)
    return {"status": status.value}


@router.post("/webhook/custom", status_code=202)
async def webhook_custom(
    body: CustomPayloadRequest,
    _: SessionUser = Depends(admin_only()),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, Any]:
    await service_center.store.send_custom_payload(body.action, body.data)
    return {"success": True, "action": body.action}


@router.get("/webhook/status")
async def webhook_status(
    _: SessionUser = Depends(current_user),
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> dict[str, str]:
    return {"status": service_center.notifier.status.value}


@router.get("/toasts")
async def toasts(service_center: ServiceCenterApp = Depends(get_service_center)) -> dict[str, Any]:
    return {"items": serialize(service_center.toasts.drain())}
