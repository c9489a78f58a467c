"""Unauthenticated self-service endpoints for families."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from admissions.app.db.session import get_db
from admissions.app.schemas.tour_slot import AvailableTourSlot, PublicTourBooking, PublicTourBookingResponse
from admissions.app.schemas.waitlist import InquiryCreate, InquiryLookup, InquiryStatusResponse
from admissions.app.services import tour_allocator, waitlist
from admissions.app.services.stage_machine import submit_inquiry

router = APIRouter(prefix="/public", tags=["public"])


@router.post("/inquiries", status_code=status.HTTP_201_CREATED)
async def create_inquiry(inquiry_in: InquiryCreate, db: Session = Depends(get_db)):
    entry = submit_inquiry(db, inquiry_in)
    return {"id": entry.id, "stage": entry.stage, "inquiry_date": entry.inquiry_date}


@router.post("/inquiries/status", response_model=InquiryStatusResponse)
async def inquiry_status(lookup_in: InquiryLookup, db: Session = Depends(get_db)):
    # Email and names travel in the body so they stay out of access logs
    found = waitlist.check_inquiry_status(
        db,
        str(lookup_in.tenant_id),
        lookup_in.parent_email,
        lookup_in.child_first_name,
        lookup_in.child_last_name,
    )
    return {"status": found}


@router.get("/tenants/{tenant_id}/tour-slots", response_model=list[AvailableTourSlot])
async def available_tour_slots(tenant_id: UUID, db: Session = Depends(get_db)):
    return tour_allocator.available_slots(db, str(tenant_id))


@router.post("/tour-bookings", response_model=PublicTourBookingResponse)
async def book_tour(booking_in: PublicTourBooking, db: Session = Depends(get_db)):
    entry = tour_allocator.book_tour_for_family(
        db,
        str(booking_in.tenant_id),
        booking_in.tour_slot_id,
        booking_in.parent_email,
        booking_in.child_first_name,
        booking_in.child_last_name,
    )
    return {"entry_id": entry.id, "tour_date": entry.tour_date}
