"""Tour slot store: staff-managed visiting windows and their derived bookings."""

from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from admissions.app.core.errors import ConflictError, NotFoundError, ValidationError
from admissions.app.core.logging import get_logger
from admissions.app.core.settings import get_settings
from admissions.app.core.time import utc_now
from admissions.app.db.unit_of_work import unit_of_work
from admissions.app.models.tour_slot import TourSlot
from admissions.app.models.user import User
from admissions.app.models.waitlist_entry import WaitlistEntry
from admissions.app.services.stage_machine import SEAT_HOLDING_STAGES

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("date", "start_time", "end_time", "max_families", "guide_id", "location", "notes", "is_active")
NON_NULLABLE_FIELDS = ("date", "start_time", "end_time", "max_families", "is_active")


def get_slot(db: Session, tenant_id: str, slot_id: int, *, for_update: bool = False) -> TourSlot:
    query = db.query(TourSlot).filter(
        TourSlot.id == slot_id,
        TourSlot.tenant_id == tenant_id,
        TourSlot.deleted_at.is_(None),
    )
    if for_update:
        query = query.with_for_update()
    slot = query.first()
    if not slot:
        raise NotFoundError("Tour slot not found", details={"slot_id": slot_id})
    return slot


def _seat_holders(db: Session):
    return db.query(WaitlistEntry).filter(
        WaitlistEntry.stage.in_(sorted(SEAT_HOLDING_STAGES)),
        WaitlistEntry.deleted_at.is_(None),
    )


def booked_count(db: Session, slot_id: int) -> int:
    return _seat_holders(db).filter(WaitlistEntry.tour_slot_id == slot_id).count()


def booked_counts(db: Session, slot_ids: list[int]) -> dict[int, int]:
    if not slot_ids:
        return {}
    rows = (
        db.query(WaitlistEntry.tour_slot_id, func.count(WaitlistEntry.id))
        .filter(
            WaitlistEntry.tour_slot_id.in_(slot_ids),
            WaitlistEntry.stage.in_(sorted(SEAT_HOLDING_STAGES)),
            WaitlistEntry.deleted_at.is_(None),
        )
        .group_by(WaitlistEntry.tour_slot_id)
        .all()
    )
    counts = {slot_id: 0 for slot_id in slot_ids}
    counts.update({slot_id: count for slot_id, count in rows})
    return counts


def _validate_guide(db: Session, tenant_id: str, guide_id: int | None) -> None:
    if guide_id is None:
        return
    guide = db.query(User).filter(User.id == guide_id, User.tenant_id == tenant_id).first()
    if not guide:
        raise ValidationError("Tour guide not found", details={"guide_id": guide_id})


def _validate_times(start_time, end_time) -> None:
    if end_time <= start_time:
        raise ValidationError("End time must be after start time")


def _strip(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def create_tour_slot(db: Session, tenant_id: str, payload) -> TourSlot:
    _validate_times(payload.start_time, payload.end_time)
    with unit_of_work(db):
        _validate_guide(db, tenant_id, payload.guide_id)
        slot = TourSlot(
            tenant_id=tenant_id,
            date=payload.date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            max_families=payload.max_families or get_settings().default_tour_capacity,
            guide_id=payload.guide_id,
            location=_strip(payload.location),
            notes=_strip(payload.notes),
            is_active=True,
        )
        db.add(slot)
        db.flush()

    logger.info("tour_slot_created", slot_id=slot.id, date=slot.date.isoformat())
    return slot


def bulk_create_tour_slots(db: Session, tenant_id: str, payload) -> list[TourSlot]:
    """Create one slot per date with shared times, e.g. every Wednesday for a term."""
    if not payload.dates:
        raise ValidationError("At least one date is required")
    _validate_times(payload.start_time, payload.end_time)

    with unit_of_work(db):
        _validate_guide(db, tenant_id, payload.guide_id)
        slots = [
            TourSlot(
                tenant_id=tenant_id,
                date=slot_date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                max_families=payload.max_families or get_settings().default_tour_capacity,
                guide_id=payload.guide_id,
                location=_strip(payload.location),
                is_active=True,
            )
            for slot_date in sorted(set(payload.dates))
        ]
        db.add_all(slots)
        db.flush()

    logger.info("tour_slots_bulk_created", created=len(slots))
    return slots


def update_tour_slot(db: Session, tenant_id: str, slot_id: int, fields: dict) -> TourSlot:
    update_fields = {key: value for key, value in fields.items() if key in UPDATABLE_FIELDS}
    if not update_fields:
        raise ValidationError("No fields to update")
    cleared = sorted(field for field in NON_NULLABLE_FIELDS if field in update_fields and update_fields[field] is None)
    if cleared:
        raise ValidationError("These fields cannot be cleared", details={"fields": cleared})

    with unit_of_work(db):
        slot = get_slot(db, tenant_id, slot_id, for_update=True)
        seats_taken = booked_count(db, slot.id)

        rescheduled = any(
            field in update_fields and update_fields[field] != getattr(slot, field)
            for field in ("date", "start_time")
        )
        if rescheduled and seats_taken > 0:
            raise ConflictError(
                "Cannot move a tour slot that already has bookings",
                details={"booked_count": seats_taken},
            )
        new_capacity = update_fields.get("max_families")
        if new_capacity is not None and new_capacity < seats_taken:
            raise ValidationError(
                f"Capacity cannot be lower than the {seats_taken} families already booked",
                details={"booked_count": seats_taken},
            )
        if "guide_id" in update_fields:
            _validate_guide(db, tenant_id, update_fields["guide_id"])
        _validate_times(
            update_fields.get("start_time", slot.start_time),
            update_fields.get("end_time", slot.end_time),
        )

        for field, value in update_fields.items():
            if field in ("location", "notes"):
                value = _strip(value)
            setattr(slot, field, value)
        db.flush()

    logger.info("tour_slot_updated", slot_id=slot.id, fields=sorted(update_fields))
    return slot


def delete_tour_slot(db: Session, tenant_id: str, slot_id: int) -> TourSlot:
    with unit_of_work(db):
        slot = get_slot(db, tenant_id, slot_id, for_update=True)
        slot.deleted_at = utc_now()
        slot.is_active = False
        db.flush()

    logger.info("tour_slot_deleted", slot_id=slot.id)
    return slot


def list_tour_slots(
    db: Session,
    tenant_id: str,
    *,
    from_date: date | None = None,
    to_date: date | None = None,
    guide_id: int | None = None,
    is_active: bool | None = None,
    page: int = 1,
    per_page: int = 25,
) -> tuple[list[dict], int]:
    """Staff view: slots in date order, each with its current bookings."""
    if page < 1 or per_page < 1:
        raise ValidationError("page and per_page must be positive")

    query = db.query(TourSlot).filter(TourSlot.tenant_id == tenant_id, TourSlot.deleted_at.is_(None))
    if from_date:
        query = query.filter(TourSlot.date >= from_date)
    if to_date:
        query = query.filter(TourSlot.date <= to_date)
    if guide_id:
        query = query.filter(TourSlot.guide_id == guide_id)
    if is_active is not None:
        query = query.filter(TourSlot.is_active == is_active)

    total = query.count()
    if total == 0:
        return [], 0

    slots = (
        query.order_by(TourSlot.date.asc(), TourSlot.start_time.asc(), TourSlot.id.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    bookings_by_slot: dict[int, list[WaitlistEntry]] = {slot.id: [] for slot in slots}
    for entry in _seat_holders(db).filter(WaitlistEntry.tour_slot_id.in_(list(bookings_by_slot))).all():
        bookings_by_slot[entry.tour_slot_id].append(entry)

    results = []
    for slot in slots:
        bookings = [
            {
                "entry_id": entry.id,
                "child_name": entry.child_name,
                "parent_name": entry.parent_name,
                "parent_email": entry.parent_email,
                "stage": entry.stage,
                "tour_attended": entry.tour_attended,
            }
            for entry in sorted(bookings_by_slot[slot.id], key=lambda e: e.id)
        ]
        results.append(
            {
                "slot": slot,
                "guide_name": slot.guide.display_name if slot.guide else None,
                "booked_count": len(bookings),
                "attended_count": sum(1 for booking in bookings if booking["tour_attended"] is True),
                "spots_remaining": max(slot.max_families - len(bookings), 0),
                "bookings": bookings,
            }
        )
    return results, total
