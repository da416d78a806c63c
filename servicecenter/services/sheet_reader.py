"""Turns sheet rows read back from the automation server into domain objects."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from core.errors import UpstreamError
from database.models import (
    PartType,
    PartWarrantyStatus,
    PaymentStatus,
    ProductDetails,
    ReplacedPart,
    ServiceChecklist,
    Technician,
    Ticket,
    TicketStatus,
)
from services.proxy_service import N8nProxy
from utils.constants import PART_FIELD_SEPARATOR, PART_SEPARATOR
from utils.time import parse_sheet_time, utc_now

LOGGER = logging.getLogger(__name__)

PARTS_COLUMN = "Parts Replaced (Name | Price | Warranty)"


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _as_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return _text(value).lower() in {"true", "yes", "1"}


def parse_parts(raw: str | None) -> list[ReplacedPart]:
    parts: list[ReplacedPart] = []
    for chunk in (raw or "").split(PART_SEPARATOR):
        if not chunk.strip():
            continue
        fields = chunk.split(PART_FIELD_SEPARATOR)
        name = fields[0].strip() if fields else ""
        price = _as_float(fields[1]) if len(fields) > 1 else None
        warranty = fields[2].strip() if len(fields) > 2 else ""
        parts.append(
            ReplacedPart(
                name=name or "N/A",
                price=price or 0.0,
                type=PartType.REPLACEMENT,
                warranty_status=PartWarrantyStatus.OUT_OF_WARRANTY,
                category="N/A",
                warranty_duration=warranty or "N/A",
            )
        )
    return parts


def normalize_technician_row(row: Mapping[str, Any] | None) -> Technician | None:
    if not row:
        return None
    tech_id = _text(row.get("technician_id"))
    if not tech_id:
        return None
    pin = _text(row.get("pin"))
    return Technician(
        id=tech_id,
        name=_text(row.get("technician_name")) or "(Unnamed)",
        pin=pin or None,
        points=max(0, int(_as_float(row.get("points")) or 0)),
    )


def _resolve_technician(value: str, technicians: Iterable[Technician]) -> str:
    if not value:
        return ""
    for technician in technicians:
        if technician.id == value or technician.name == value:
            return technician.id
    return ""


def _enum_or(enum_cls: type, value: Any, default: Any) -> Any:
    try:
        return enum_cls(_text(value))
    except ValueError:
        return default


def normalize_ticket_row(row: Mapping[str, Any], technicians: Iterable[Technician]) -> Ticket | None:
    ticket_id = _text(row.get("Ticket ID"))
    if not ticket_id:
        return None
    now = utc_now()
    category = _text(row.get("Service Category"))
    assigned = _text(row.get("Assigned Technician")) or _text(row.get("Technician Name"))
    return Ticket(
        id=ticket_id,
        customer_name=_text(row.get("Customer Name")),
        phone=_text(row.get("Phone")),
        address=_text(row.get("Address")),
        complaint=_text(row.get("Complaint")),
        technician_id=_resolve_technician(assigned, technicians),
        service_category=category,
        status=_enum_or(TicketStatus, row.get("Status"), TicketStatus.NEW),
        created_at=parse_sheet_time(row.get("Created At")) or now,
        service_booking_date=parse_sheet_time(row.get("Service Booking Date")) or now,
        preferred_time=_text(row.get("Preferred Time")),
        product_details=ProductDetails(category=category),
        completed_at=parse_sheet_time(row.get("Completed At")),
        work_done=_text(row.get("Work Done Summary")) or None,
        amount_collected=_as_float(row.get("Amount Collected")) or None,
        payment_status=_enum_or(PaymentStatus, row.get("Payment Status"), None),
        parts_replaced=parse_parts(_text(row.get(PARTS_COLUMN))),
        service_checklist=ServiceChecklist(amc_discussion=_flag(row.get("AMC Discussion"))),
        free_service=_flag(row.get("Free Service")),
        points_awarded=bool(_as_float(row.get("Points Awarded"))),
    )


def extract_rows(data: Any, wrapper_key: str) -> list[Mapping[str, Any]]:
    """Accept a bare list or a ``{wrapper_key: [...]}`` object; anything else reads as empty."""
    if isinstance(data, list):
        rows = data
    elif isinstance(data, dict) and isinstance(data.get(wrapper_key), list):
        rows = data[wrapper_key]
    else:
        LOGGER.warning("Sheet read returned JSON without rows; treating the sheet as empty")
        rows = []
    return [row for row in rows if isinstance(row, Mapping)]


class SheetReader:
    def __init__(self, proxy: N8nProxy) -> None:
        self.proxy = proxy

    async def _rows(self, action: str, wrapper_key: str) -> list[Mapping[str, Any]]:
        result = await self.proxy.read(action)
        if result.status >= 400:
            raise UpstreamError(
                user_message=f"Sync failed with status: {result.status}",
                detail=result.body[:200].decode("utf-8", "replace"),
            )
        try:
            data = result.json()
        except json.JSONDecodeError as exc:
            raise UpstreamError(
                user_message="The automation server did not return JSON.",
                detail=result.body[:80].decode("utf-8", "replace"),
            ) from exc
        return extract_rows(data, wrapper_key)

    async def read_technicians(self) -> list[Technician]:
        rows = await self._rows("read-technician", "technicians")
        technicians = [tech for tech in map(normalize_technician_row, rows) if tech is not None]
        skipped = len(rows) - len(technicians)
        if skipped:
            LOGGER.warning("Skipped %s technician rows without an id", skipped)
        return technicians

    async def read_tickets(self, technicians: Iterable[Technician]) -> list[Ticket]:
        known = list(technicians)
        rows = await self._rows("read-complaint", "tickets")
        tickets = [ticket for row in rows if (ticket := normalize_ticket_row(row, known)) is not None]
        LOGGER.info("Read %s tickets from the complaint sheet", len(tickets))
        return tickets
