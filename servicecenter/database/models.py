from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "Admin"
    TECHNICIAN = "Technician"
    CONTROLLER = "Controller"
    COORDINATOR = "Coordinator"


class TicketStatus(str, Enum):
    NEW = "New"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    CASH = "Cash"
    UPI = "UPI"
    PENDING = "Pending"


class PartType(str, Enum):
    REPAIR = "Repair"
    REPLACEMENT = "Replacement"


class PartWarrantyStatus(str, Enum):
    IN_WARRANTY = "In-Warranty"
    OUT_OF_WARRANTY = "Out Of Warranty"


class UrgentAlertType(str, Enum):
    VEHICLE_BREAKDOWN = "Vehicle Breakdown"
    PAYMENT_ISSUE = "Payment/Discount Approval"
    PART_UNAVAILABLE = "Part Unavailable"
    CUSTOMER_DISPUTE = "Customer Dispute"
    CALL_ME = "Call Me Urgently"
    OTHER = "Other"


class AttendanceStatus(str, Enum):
    CHECK_IN = "Check In"
    CHECK_OUT = "Check Out"


@dataclass(slots=True)
class ProductDetails:
    make: str = "Glen"
    segment: str = ""
    category: str = ""
    sub_category: str = ""
    product: str = ""


@dataclass(slots=True)
class ServiceChecklist:
    concern_informed: bool = False
    replaced_parts_shown: bool = False
    tagging_done: bool = False
    site_cleaned: bool = False
    amc_discussion: bool = False
    parts_given_to_customer: bool = False
    cash_receipt_handed: bool = False


@dataclass(slots=True)
class ReplacedPart:
    name: str
    price: float = 0.0
    type: PartType = PartType.REPLACEMENT
    warranty_status: PartWarrantyStatus = PartWarrantyStatus.OUT_OF_WARRANTY
    category: str = "N/A"
    warranty_duration: str = "N/A"


@dataclass(slots=True)
class TicketDraft:
    customer_name: str
    phone: str
    address: str
    complaint: str
    technician_id: str
    service_category: str
    preferred_time: str = ""
    product_details: ProductDetails = field(default_factory=ProductDetails)
    symptoms: list[str] = field(default_factory=list)
    serial_no: str | None = None
    purchase_date: datetime | None = None
    admin_notes: str | None = None


@dataclass(slots=True)
class Ticket:
    id: str
    customer_name: str
    phone: str
    address: str
    complaint: str
    technician_id: str
    service_category: str
    status: TicketStatus
    created_at: datetime
    service_booking_date: datetime
    preferred_time: str = ""
    product_details: ProductDetails = field(default_factory=ProductDetails)
    symptoms: list[str] = field(default_factory=list)
    serial_no: str | None = None
    purchase_date: datetime | None = None
    completed_at: datetime | None = None
    work_done: str | None = None
    cause: str | None = None
    reason: str | None = None
    remarks: str | None = None
    comments: str | None = None
    payment_status: PaymentStatus | None = None
    amount_collected: float | None = None
    parts_replaced: list[ReplacedPart] = field(default_factory=list)
    service_checklist: ServiceChecklist | None = None
    warranty_applicable: bool = False
    free_service: bool = False
    points_awarded: bool = False
    photo_url: str | None = None
    damaged_part_image_url: str | None = None
    admin_notes: str | None = None
    is_escalated: bool = False


@dataclass(slots=True)
class Technician:
    id: str
    name: str
    pin: str | None = None
    points: int = 0
    last_seen: datetime | None = None


@dataclass(slots=True)
class Feedback:
    id: str
    ticket_id: str
    rating: int
    created_at: datetime
    comment: str | None = None


@dataclass(slots=True)
class SessionUser:
    id: str
    name: str
    role: UserRole
