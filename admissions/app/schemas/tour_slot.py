"""Tour slot schemas for staff scheduling and public booking."""

import datetime as dt
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from admissions.app.models.waitlist_entry import WaitlistStage
from admissions.app.schemas.waitlist import ParentEmail, RequiredName


class TourSlotCreate(BaseModel):
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    max_families: Optional[int] = Field(default=None, ge=1)
    guide_id: Optional[int] = None
    location: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = None


class TourSlotBulkCreate(BaseModel):
    """Same times and capacity on several dates, e.g. every Wednesday of a term."""

    dates: list[dt.date] = Field(min_length=1)
    start_time: dt.time
    end_time: dt.time
    max_families: Optional[int] = Field(default=None, ge=1)
    guide_id: Optional[int] = None
    location: Optional[str] = Field(default=None, max_length=200)


class TourSlotUpdate(BaseModel):
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    max_families: Optional[int] = Field(default=None, ge=1)
    guide_id: Optional[int] = None
    location: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class TourSlotRead(BaseModel):
    id: int
    tenant_id: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    max_families: int
    guide_id: Optional[int] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class TourBookingRead(BaseModel):
    entry_id: int
    child_name: str
    parent_name: str
    parent_email: str
    stage: WaitlistStage
    tour_attended: Optional[bool] = None


class TourSlotWithBookings(BaseModel):
    slot: TourSlotRead
    guide_name: Optional[str] = None
    booked_count: int
    attended_count: int
    spots_remaining: int
    bookings: list[TourBookingRead]


class AvailableTourSlot(BaseModel):
    id: int
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    location: Optional[str] = None
    spots_remaining: int


class BookTourRequest(BaseModel):
    tour_slot_id: int


class PublicTourBooking(BaseModel):
    tenant_id: UUID
    tour_slot_id: int
    parent_email: ParentEmail
    child_first_name: RequiredName
    child_last_name: RequiredName


class PublicTourBookingResponse(BaseModel):
    entry_id: int
    tour_date: dt.datetime


class AttendanceRequest(BaseModel):
    attended: bool
    notes: Optional[str] = None
