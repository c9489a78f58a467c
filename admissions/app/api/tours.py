"""Staff endpoints for tour slot scheduling, booking and attendance."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from admissions.app.core.permissions import Permission
from admissions.app.core.settings import get_settings
from admissions.app.db.session import get_db
from admissions.app.dependencies.auth import require_permission
from admissions.app.models.user import User
from admissions.app.schemas.common import Page
from admissions.app.schemas.tour_slot import (
    AttendanceRequest,
    BookTourRequest,
    TourSlotBulkCreate,
    TourSlotCreate,
    TourSlotRead,
    TourSlotUpdate,
    TourSlotWithBookings,
)
from admissions.app.schemas.waitlist import WaitlistEntryRead
from admissions.app.services import tour_allocator, tour_slots

router = APIRouter(prefix="/admin/tours", tags=["admin-tours"])

can_manage_tours = require_permission(Permission.MANAGE_TOURS)


@router.post("/slots", response_model=TourSlotRead, status_code=status.HTTP_201_CREATED)
async def create_slot(
    slot_in: TourSlotCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_tours),
):
    return tour_slots.create_tour_slot(db, current_user.tenant_id, slot_in)


@router.post("/slots/bulk", response_model=list[TourSlotRead], status_code=status.HTTP_201_CREATED)
async def bulk_create_slots(
    slots_in: TourSlotBulkCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_tours),
):
    return tour_slots.bulk_create_tour_slots(db, current_user.tenant_id, slots_in)


@router.get("/slots", response_model=Page[TourSlotWithBookings])
async def list_slots(
    from_date: date | None = None,
    to_date: date | None = None,
    guide_id: int | None = None,
    is_active: bool | None = None,
    page: int = Query(default=1, ge=1),
    per_page: int | None = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_tours),
):
    per_page = per_page or get_settings().default_tour_page_size
    items, total = tour_slots.list_tour_slots(
        db,
        current_user.tenant_id,
        from_date=from_date,
        to_date=to_date,
        guide_id=guide_id,
        is_active=is_active,
        page=page,
        per_page=per_page,
    )
    return Page[TourSlotWithBookings].build(
        [TourSlotWithBookings.model_validate(item, from_attributes=True) for item in items], total, page, per_page
    )


@router.patch("/slots/{slot_id}", response_model=TourSlotRead)
async def update_slot(
    slot_id: int,
    slot_in: TourSlotUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_tours),
):
    return tour_slots.update_tour_slot(db, current_user.tenant_id, slot_id, slot_in.model_dump(exclude_unset=True))


@router.delete("/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(slot_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_manage_tours)):
    tour_slots.delete_tour_slot(db, current_user.tenant_id, slot_id)


@router.post("/entries/{entry_id}/book", response_model=WaitlistEntryRead)
async def book_tour(
    entry_id: int,
    booking_in: BookTourRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_tours),
):
    return tour_allocator.book_tour(db, current_user.tenant_id, entry_id, booking_in.tour_slot_id, current_user)


@router.post("/entries/{entry_id}/attendance", response_model=WaitlistEntryRead)
async def record_attendance(
    entry_id: int,
    attendance_in: AttendanceRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_tours),
):
    return tour_allocator.record_attendance(
        db, current_user.tenant_id, entry_id, attendance_in.attended, attendance_in.notes, current_user
    )
