"""Waitlist entry schemas for public inquiries, staff edits and responses."""

from datetime import date, datetime
from typing import Annotated, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, StringConstraints, field_validator

from admissions.app.models.waitlist_entry import OfferResponse, WaitlistStage


def _blank_to_none(value):
    if isinstance(value, str):
        return value.strip() or None
    return value


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


RequiredName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
OptionalText30 = Annotated[Optional[Annotated[str, StringConstraints(max_length=30)]], BeforeValidator(_blank_to_none)]
OptionalText100 = Annotated[Optional[Annotated[str, StringConstraints(max_length=100)]], BeforeValidator(_blank_to_none)]
OptionalText200 = Annotated[Optional[Annotated[str, StringConstraints(max_length=200)]], BeforeValidator(_blank_to_none)]
OptionalText500 = Annotated[Optional[Annotated[str, StringConstraints(max_length=500)]], BeforeValidator(_blank_to_none)]
OptionalText2000 = Annotated[Optional[Annotated[str, StringConstraints(max_length=2000)]], BeforeValidator(_blank_to_none)]
ParentEmail = Annotated[EmailStr, BeforeValidator(_normalize_email)]


class InquiryCreate(BaseModel):
    """Public inquiry form payload; no authentication required."""

    tenant_id: UUID

    parent_first_name: RequiredName
    parent_last_name: RequiredName
    parent_email: ParentEmail
    parent_phone: OptionalText30 = None

    child_first_name: RequiredName
    child_last_name: RequiredName
    child_date_of_birth: date
    child_gender: OptionalText30 = None
    child_current_school: OptionalText200 = None

    requested_program: OptionalText100 = None
    requested_start: OptionalText100 = None
    requested_start_date: Optional[date] = None

    siblings_at_school: bool = False
    sibling_names: OptionalText500 = None
    how_heard_about_us: OptionalText200 = None
    notes: OptionalText2000 = None

    source_url: OptionalText2000 = None
    source_campaign: OptionalText200 = None

    @field_validator("source_url")
    @classmethod
    def source_url_is_http(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.startswith(("http://", "https://")):
            raise ValueError("source_url must be an http(s) URL")
        return value


class WaitlistEntryUpdate(BaseModel):
    """Staff metadata edits; stage changes go through transitions."""

    priority: Optional[int] = None
    child_gender: OptionalText30 = None
    child_current_school: OptionalText200 = None
    requested_program: OptionalText100 = None
    requested_start: OptionalText100 = None
    requested_start_date: Optional[date] = None
    parent_phone: OptionalText30 = None
    siblings_at_school: Optional[bool] = None
    sibling_names: OptionalText500 = None
    admin_notes: Optional[str] = None


class WaitlistEntryRead(BaseModel):
    id: int
    tenant_id: str
    stage: WaitlistStage
    priority: int
    child_first_name: str
    child_last_name: str
    child_date_of_birth: date
    child_gender: Optional[str] = None
    child_current_school: Optional[str] = None
    requested_program: Optional[str] = None
    requested_start: Optional[str] = None
    requested_start_date: Optional[date] = None
    parent_first_name: str
    parent_last_name: str
    parent_email: str
    parent_phone: Optional[str] = None
    siblings_at_school: bool
    sibling_names: Optional[str] = None
    how_heard_about_us: Optional[str] = None
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    tour_slot_id: Optional[int] = None
    tour_date: Optional[datetime] = None
    tour_guide: Optional[str] = None
    tour_notes: Optional[str] = None
    tour_attended: Optional[bool] = None
    offered_at: Optional[datetime] = None
    offered_program: Optional[str] = None
    offered_start_date: Optional[date] = None
    offer_expires_at: Optional[datetime] = None
    offer_response: Optional[OfferResponse] = None
    offer_response_at: Optional[datetime] = None
    converted_application_id: Optional[str] = None
    source_url: Optional[str] = None
    source_campaign: Optional[str] = None
    inquiry_date: date
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StageHistoryRead(BaseModel):
    id: int
    sequence: int
    from_stage: Optional[WaitlistStage] = None
    to_stage: WaitlistStage
    changed_by_id: Optional[int] = None
    changed_by_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WaitlistEntryDetail(WaitlistEntryRead):
    stage_history: list[StageHistoryRead]
    days_in_pipeline: int


class StageTransitionRequest(BaseModel):
    to_stage: WaitlistStage
    notes: Optional[str] = None


class WithdrawRequest(BaseModel):
    reason: Optional[str] = None


class OfferCreate(BaseModel):
    offered_program: Optional[str] = None
    offered_start_date: Optional[date] = None
    offer_expires_at: Optional[datetime] = None
    notes: Optional[str] = None


class OfferAccept(BaseModel):
    enrollment_period_id: str


class OfferDecline(BaseModel):
    reason: Optional[str] = None


class OfferAcceptResponse(BaseModel):
    entry: WaitlistEntryRead
    application_id: str


class InquiryLookup(BaseModel):
    """Identifies a family's inquiry without an account."""

    tenant_id: UUID
    parent_email: ParentEmail
    child_first_name: RequiredName
    child_last_name: RequiredName


class InquiryStatus(BaseModel):
    stage: WaitlistStage
    child_name: str
    inquiry_date: date
    days_waiting: int
    tour_date: Optional[datetime] = None
    offered_program: Optional[str] = None
    offer_expires_at: Optional[datetime] = None


class InquiryStatusResponse(BaseModel):
    status: Optional[InquiryStatus] = None


SortField = Literal["priority", "inquiry_date", "child_last_name"]
SortOrder = Literal["asc", "desc"]
