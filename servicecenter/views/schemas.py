from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Literal

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from database.models import (
    AttendanceStatus,
    PartType,
    PartWarrantyStatus,
    PaymentStatus,
    ProductDetails,
    ReplacedPart,
    ServiceChecklist,
    TicketDraft,
    TicketStatus,
    UrgentAlertType,
)


def serialize(item: Any) -> Any:
    if isinstance(item, list):
        return [serialize(entry) for entry in item]
    return jsonable_encoder(asdict(item))


class LoginRequest(BaseModel):
    code: str


class ProductDetailsModel(BaseModel):
    make: str = "Glen"
    segment: str = ""
    category: str = ""
    sub_category: str = ""
    product: str = ""

    def to_domain(self) -> ProductDetails:
        return ProductDetails(**self.model_dump())


class TicketCreateRequest(BaseModel):
    customer_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: str = Field(min_length=1)
    complaint: str = Field(min_length=1)
    technician_id: str = Field(min_length=1)
    service_category: str = Field(min_length=1)
    preferred_time: str = ""
    product_details: ProductDetailsModel | None = None
    symptoms: list[str] = Field(default_factory=list)
    serial_no: str | None = None
    purchase_date: datetime | None = None
    admin_notes: str | None = None

    def to_draft(self) -> TicketDraft:
        return TicketDraft(
            customer_name=self.customer_name.strip(),
            phone=self.phone.strip(),
            address=self.address.strip(),
            complaint=self.complaint.strip(),
            technician_id=self.technician_id,
            service_category=self.service_category,
            preferred_time=self.preferred_time,
            product_details=self.product_details.to_domain() if self.product_details else ProductDetails(),
            symptoms=self.symptoms,
            serial_no=self.serial_no,
            purchase_date=self.purchase_date,
            admin_notes=self.admin_notes,
        )


class ReplacedPartModel(BaseModel):
    name: str = Field(min_length=1)
    price: float = Field(default=0.0, ge=0)
    type: PartType = PartType.REPLACEMENT
    warranty_status: PartWarrantyStatus = PartWarrantyStatus.OUT_OF_WARRANTY
    category: str = "N/A"
    warranty_duration: str = "N/A"


class ServiceChecklistModel(BaseModel):
    concern_informed: bool = False
    replaced_parts_shown: bool = False
    tagging_done: bool = False
    site_cleaned: bool = False
    amc_discussion: bool = False
    parts_given_to_customer: bool = False
    cash_receipt_handed: bool = False


class TicketUpdateRequest(BaseModel):
    """Fields a dashboard form may change; unset fields keep their current value."""

    status: TicketStatus | None = None
    technician_id: str | None = None
    completed_at: datetime | None = None
    work_done: str | None = None
    cause: str | None = None
    reason: str | None = None
    remarks: str | None = None
    comments: str | None = None
    payment_status: PaymentStatus | None = None
    amount_collected: float | None = Field(default=None, ge=0)
    parts_replaced: list[ReplacedPartModel] | None = None
    service_checklist: ServiceChecklistModel | None = None
    warranty_applicable: bool | None = None
    free_service: bool | None = None
    photo_url: str | None = None
    damaged_part_image_url: str | None = None
    admin_notes: str | None = None

    def changes(self) -> dict[str, Any]:
        changes = self.model_dump(exclude_unset=True, exclude_none=True)
        if self.parts_replaced is not None:
            changes["parts_replaced"] = [ReplacedPart(**part.model_dump()) for part in self.parts_replaced]
        if self.service_checklist is not None:
            changes["service_checklist"] = ServiceChecklist(**self.service_checklist.model_dump())
        return changes


class ReopenRequest(BaseModel):
    technician_id: str = Field(min_length=1)
    notes: str = Field(min_length=1)


class ExtractRequest(BaseModel):
    text: str | None = None
    image_base64: str | None = None
    mime_type: str | None = None


class TechnicianCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    pin: str | None = Field(default=None, pattern=r"^\d{4}$")


class TechnicianUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    pin: str | None = Field(default=None, pattern=r"^\d{4}$")
    points: int | None = Field(default=None, ge=0)


class AttendanceRequest(BaseModel):
    status: AttendanceStatus


class UrgentAlertRequest(BaseModel):
    alert_type: UrgentAlertType
    comments: str = ""


class FeedbackRequest(BaseModel):
    ticket_id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    comment: str | None = None


class SettingsRequest(BaseModel):
    master_webhook_url: str | None = None
    complaint_sheet_url: str | None = None
    update_sheet_url: str | None = None


class HealthCheckRequest(BaseModel):
    url: str | None = None


class CustomPayloadRequest(BaseModel):
    action: Literal["NEW_TICKET", "JOB_COMPLETED"]
    data: dict[str, Any] = Field(min_length=1)
