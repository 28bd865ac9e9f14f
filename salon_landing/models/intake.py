"""IntakeRequest model: a prospective salon's onboarding submission."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, EmailStr
from pydantic import Field as PydanticField
from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from salon_landing.models.base import TimestampMixin, new_uuid


class IntakeStatus(StrEnum):
    PENDING = "pending"
    CONTACTED = "contacted"
    APPROVED_PENDING_PAYMENT = "approved_pending_payment"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PROVISIONING = "provisioning"
    PROVISIONED = "provisioned"
    REJECTED = "rejected"


# ── Business profile (stored as JSON on the request) ─────────

class DaySchedule(BaseModel):
    open: bool = True
    start: str = "09:00"
    end: str = "18:00"


def _default_schedule() -> dict[str, DaySchedule]:
    weekday = {
        day: DaySchedule()
        for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
    }
    return {
        **weekday,
        "saturday": DaySchedule(start="09:00", end="14:00"),
        "sunday": DaySchedule(open=False, start="", end=""),
    }


class SocialLinks(BaseModel):
    facebook: str = ""
    instagram: str = ""
    whatsapp: str = ""


class ServiceDraft(BaseModel):
    name: str = PydanticField(min_length=1, max_length=120)
    description: str = ""
    price: float | None = PydanticField(default=None, ge=0)
    duration: str = PydanticField(default="00:30", pattern=r"^\d{2}:\d{2}$")
    active: bool = True
    image_url: str = ""


class ProductDraft(BaseModel):
    name: str = PydanticField(min_length=1, max_length=120)
    description: str = ""
    brand: str = ""
    sku: str = ""
    price: float | None = PydanticField(default=None, ge=0)
    stock: int = PydanticField(default=10, ge=0)
    min_stock: int = PydanticField(default=5, ge=0)
    active: bool = True
    image_url: str = ""


class StaffDraft(BaseModel):
    name: str = ""
    specialty: str = "General"
    email: str = ""
    active: bool = True
    photo_url: str = ""


class TenantProfile(BaseModel):
    """Everything the onboarding form collects about the business."""

    slogan: str = ""
    address: str = ""
    city: str = ""
    country: str = "El Salvador"
    palette_id: str = "paleta1"
    custom_colors: dict[str, str] | None = None
    logo_url: str = ""
    gallery_urls: list[str] = PydanticField(default_factory=list)
    services: list[ServiceDraft] = PydanticField(default_factory=list)
    products: list[ProductDraft] = PydanticField(default_factory=list)
    staff: list[StaffDraft] = PydanticField(default_factory=list)
    schedule: dict[str, DaySchedule] = PydanticField(default_factory=_default_schedule)
    social: SocialLinks = PydanticField(default_factory=SocialLinks)
    maps_url: str = ""


class IntakeRequest(TimestampMixin, SQLModel, table=True):
    __tablename__ = "intake_requests"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)

    # Contact
    business_name: str = Field(max_length=255, nullable=False)
    owner_name: str = Field(max_length=255, nullable=False)
    email: str = Field(max_length=320, nullable=False, index=True)
    phone: str = Field(default="", max_length=50)
    plan: str = Field(default="basic", max_length=50)

    # TenantProfile as JSON text
    profile: str = Field(default="{}", sa_column=Column(Text, nullable=False, server_default="{}"))
    staging_key: str | None = Field(default=None, max_length=100, index=True)

    status: IntakeStatus = Field(default=IntakeStatus.PENDING, index=True)

    # Identifier claimed by a provisioning attempt; reused by retries
    reserved_tenant_id: str | None = Field(default=None, max_length=30)
    # Set once, never changed afterwards
    linked_tenant_id: str | None = Field(default=None, max_length=30, index=True)
    linked_account_id: uuid.UUID | None = Field(default=None)

    payment_reference: str | None = Field(default=None, max_length=255)
    last_error: str | None = Field(default=None, max_length=2000)
    notes: str = Field(default="", max_length=2000)

    def tenant_profile(self) -> TenantProfile:
        return TenantProfile.model_validate_json(self.profile or "{}")


# ── Pydantic schemas ─────────────────────────────────────────

class IntakeCreate(SQLModel):
    business_name: str = Field(min_length=1, max_length=255)
    owner_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(default="", max_length=50)
    plan: str = Field(default="basic", max_length=50)
    staging_key: str | None = Field(default=None, max_length=100)
    profile: TenantProfile = Field(default_factory=TenantProfile)
    notes: str = Field(default="", max_length=2000)


class IntakeStatusUpdate(SQLModel):
    status: IntakeStatus
    notes: str | None = Field(default=None, max_length=2000)


class PaymentConfirmation(SQLModel):
    payment_reference: str = Field(min_length=1, max_length=255)


class IntakeRead(SQLModel):
    id: uuid.UUID
    business_name: str
    owner_name: str
    email: str
    phone: str
    plan: str
    status: IntakeStatus
    staging_key: str | None
    linked_tenant_id: str | None
    linked_account_id: uuid.UUID | None
    last_error: str | None
    notes: str
    profile: TenantProfile
    created_at: datetime
    updated_at: datetime
