"""Typed builders for the webhook rows.

Each builder returns exactly the key set of one spreadsheet, so a renamed or
missing column shows up as a type error instead of a silently empty cell.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import TypedDict

from database.models import (
    AttendanceStatus,
    PaymentStatus,
    ReplacedPart,
    Technician,
    Ticket,
    UrgentAlertType,
)
from utils.constants import PART_FIELD_SEPARATOR, PART_SEPARATOR, UNASSIGNED
from utils.time import to_iso, to_sheet_time

NewTicketRow = TypedDict(
    "NewTicketRow",
    {
        "Ticket ID": str,
        "Created At": str,
        "Service Booking Date": str,
        "Preferred Time": str,
        "Customer Name": str,
        "Phone": str,
        "Address": str,
        "Service Category": str,
        "Complaint": str,
        "Assigned Technician": str,
        "Status": str,
    },
)

JobCompletedRow = TypedDict(
    "JobCompletedRow",
    {
        "Ticket ID": str,
        "Created At": str,
        "Service Booking Date": str,
        "Preferred Time": str,
        "Customer Name": str,
        "Phone": str,
        "Address": str,
        "Service Category": str,
        "Complaint": str,
        "Completed At": str,
        "Technician Name": str,
        "Work Done Summary": str,
        "Amount Collected": float,
        "Payment Status": str,
        "Points Awarded": int,
        "Parts Replaced (Name | Price | Warranty)": str,
        "AMC Discussion": str,
        "Free Service": str,
    },
)

AttendanceRow = TypedDict(
    "AttendanceRow",
    {
        "TechnicianId": str,
        "Technician Name": str,
        "AttendanceStatus": str,
        "Timestamp": str,
        "TimestampISO": str,
        "CheckIn": str,
        "CheckOut": str,
    },
)

UrgentAlertRow = TypedDict(
    "UrgentAlertRow",
    {
        "Technician ID": str,
        "Technician Name": str,
        "Alert Type": str,
        "Comments": str,
        "Timestamp": str,
    },
)

HeartbeatRow = TypedDict(
    "HeartbeatRow",
    {
        "Technician ID": str,
        "Technician Name": str,
        "Last Seen": str,
    },
)


def yes_no(flag: bool | None) -> str:
    return "Yes" if flag else "No"


def _technician_name(technician: Technician | None) -> str:
    return technician.name if technician else UNASSIGNED


def format_price(price: float) -> str:
    # Whole amounts print without ".0"; anything else keeps every digit.
    value = float(price)
    return str(int(value)) if value.is_integer() else repr(value)


def format_parts(parts: Iterable[ReplacedPart]) -> str:
    return PART_SEPARATOR.join(
        PART_FIELD_SEPARATOR.join((part.name, format_price(part.price), part.warranty_duration)) for part in parts
    )


def build_new_ticket_row(ticket: Ticket) -> NewTicketRow:
    return {
        "Ticket ID": ticket.id,
        "Created At": to_sheet_time(ticket.created_at),
        "Service Booking Date": to_sheet_time(ticket.service_booking_date),
        "Preferred Time": ticket.preferred_time,
        "Customer Name": ticket.customer_name,
        "Phone": ticket.phone,
        "Address": ticket.address,
        "Service Category": ticket.service_category,
        "Complaint": ticket.complaint,
        "Assigned Technician": ticket.technician_id,
        "Status": ticket.status.value,
    }


def build_job_completed_row(
    ticket: Ticket,
    technician: Technician | None,
    points_awarded: int,
    now: datetime,
) -> JobCompletedRow:
    checklist = ticket.service_checklist
    return {
        "Ticket ID": ticket.id,
        "Created At": to_sheet_time(ticket.created_at),
        "Service Booking Date": to_sheet_time(ticket.service_booking_date),
        "Preferred Time": ticket.preferred_time,
        "Customer Name": ticket.customer_name,
        "Phone": ticket.phone,
        "Address": ticket.address,
        "Service Category": ticket.service_category,
        "Complaint": ticket.complaint,
        "Completed At": to_sheet_time(ticket.completed_at or now),
        "Technician Name": _technician_name(technician),
        "Work Done Summary": ticket.work_done or "",
        "Amount Collected": ticket.amount_collected or 0,
        "Payment Status": (ticket.payment_status or PaymentStatus.PENDING).value,
        "Points Awarded": points_awarded,
        "Parts Replaced (Name | Price | Warranty)": format_parts(ticket.parts_replaced),
        "AMC Discussion": yes_no(checklist.amc_discussion if checklist else False),
        "Free Service": yes_no(ticket.free_service),
    }


def build_attendance_row(technician: Technician, status: AttendanceStatus, now: datetime) -> AttendanceRow:
    stamp = to_sheet_time(now)
    return {
        "TechnicianId": technician.id,
        "Technician Name": technician.name,
        "AttendanceStatus": status.value,
        "Timestamp": stamp,
        "TimestampISO": to_iso(now) or "",
        "CheckIn": stamp if status is AttendanceStatus.CHECK_IN else "",
        "CheckOut": stamp if status is AttendanceStatus.CHECK_OUT else "",
    }


def build_urgent_alert_row(
    technician: Technician | None,
    technician_id: str,
    alert_type: UrgentAlertType,
    comments: str,
    now: datetime,
) -> UrgentAlertRow:
    return {
        "Technician ID": technician_id,
        "Technician Name": _technician_name(technician),
        "Alert Type": alert_type.value,
        "Comments": comments,
        "Timestamp": to_sheet_time(now),
    }


def build_heartbeat_row(technician: Technician, now: datetime) -> HeartbeatRow:
    return {
        "Technician ID": technician.id,
        "Technician Name": technician.name,
        "Last Seen": to_iso(now) or "",
    }
