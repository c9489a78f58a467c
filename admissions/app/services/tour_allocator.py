"""Tour slot allocator: books waitlist entries onto capacity-limited tour slots.

Capacity is enforced by locking the slot row before counting its seat holders,
so the count and the booking write happen in one serialised unit of work. Two
requests racing for the last seat queue on the slot lock; the loser sees the
winner's booking in its count and fails with ``CapacityExceededError``.
"""

from datetime import date, datetime

from sqlalchemy.orm import Session

from admissions.app.core.errors import CapacityExceededError, InactiveError, InvalidTransitionError, NotFoundError
from admissions.app.core.logging import get_logger
from admissions.app.core.time import utc_today
from admissions.app.db.unit_of_work import unit_of_work
from admissions.app.models.tour_slot import TourSlot
from admissions.app.models.user import User
from admissions.app.models.waitlist_entry import WaitlistEntry, WaitlistStage
from admissions.app.services.stage_machine import allowed_next_stages, apply_transition
from admissions.app.services.tour_slots import booked_count, booked_counts, get_slot
from admissions.app.services.waitlist import find_live_entry, get_entry

logger = get_logger(__name__)


def _bookable_slot(db: Session, tenant_id: str, slot_id: int, *, earliest: date | None = None) -> TourSlot:
    slot = get_slot(db, tenant_id, slot_id, for_update=True)
    if not slot.is_active:
        raise InactiveError("Tour slot is not open for booking", details={"slot_id": slot_id})
    if earliest is not None and slot.date < earliest:
        raise InactiveError("Tour slot has already taken place", details={"slot_id": slot_id})
    return slot


def book_tour(
    db: Session,
    tenant_id: str,
    entry_id: int,
    slot_id: int,
    actor: User | None,
    *,
    earliest: date | None = None,
) -> WaitlistEntry:
    with unit_of_work(db):
        slot = _bookable_slot(db, tenant_id, slot_id, earliest=earliest)
        entry = get_entry(db, tenant_id, entry_id, for_update=True)
        seats_taken = booked_count(db, slot.id)
        if seats_taken >= slot.max_families:
            logger.warning(
                "tour_capacity_exceeded",
                slot_id=slot.id,
                entry_id=entry_id,
                max_families=slot.max_families,
            )
            raise CapacityExceededError(
                "This tour slot is fully booked",
                details={"slot_id": slot.id, "max_families": slot.max_families},
            )

        entry.tour_slot_id = slot.id
        entry.tour_date = datetime.combine(slot.date, slot.start_time)
        entry.tour_guide = slot.guide.display_name if slot.guide else None
        entry.tour_attended = None
        entry.tour_notes = None
        apply_transition(
            db,
            entry,
            WaitlistStage.TOUR_SCHEDULED,
            actor,
            f"Tour booked for {slot.date.isoformat()} at {slot.start_time.strftime('%H:%M')} (slot {slot.id})",
        )

    logger.info(
        "tour_booked",
        entry_id=entry.id,
        slot_id=slot.id,
        seats_taken=seats_taken + 1,
        max_families=slot.max_families,
        actor_id=actor.id if actor else None,
    )
    return entry


def book_tour_for_family(
    db: Session,
    tenant_id: str,
    slot_id: int,
    parent_email: str,
    child_first_name: str,
    child_last_name: str,
) -> WaitlistEntry:
    """Self-service booking: the family identifies its own live inquiry."""
    entry = find_live_entry(db, tenant_id, parent_email, child_first_name, child_last_name)
    if not entry:
        raise NotFoundError("No open inquiry found for this child")
    return book_tour(db, tenant_id, entry.id, slot_id, actor=None, earliest=utc_today())


def record_attendance(
    db: Session,
    tenant_id: str,
    entry_id: int,
    attended: bool,
    notes: str | None,
    actor: User | None,
) -> WaitlistEntry:
    target = WaitlistStage.TOUR_COMPLETED if attended else WaitlistStage.WAITLISTED
    tour_notes = (notes or "").strip() or None

    with unit_of_work(db):
        entry = get_entry(db, tenant_id, entry_id, for_update=True)
        if entry.stage != WaitlistStage.TOUR_SCHEDULED:
            raise InvalidTransitionError(
                entry.stage,
                target,
                allowed_next_stages(entry.stage),
                message=(
                    "Entry must be at 'tour_scheduled' to record attendance, "
                    f"currently '{WaitlistStage(entry.stage).value}'"
                ),
            )
        entry.tour_attended = attended
        entry.tour_notes = tour_notes
        if attended:
            history_note = f"Tour attended. {tour_notes or ''}"
        else:
            history_note = f"Tour not attended - moved back to waitlist. {tour_notes or ''}"
        apply_transition(db, entry, target, actor, history_note)

    logger.info("tour_attendance_recorded", entry_id=entry.id, attended=attended)
    return entry


def available_slots(db: Session, tenant_id: str, today: date | None = None) -> list[dict]:
    """Public view: upcoming active slots that still have at least one seat."""
    as_of = today or utc_today()
    slots = (
        db.query(TourSlot)
        .filter(
            TourSlot.tenant_id == tenant_id,
            TourSlot.is_active.is_(True),
            TourSlot.deleted_at.is_(None),
            TourSlot.date >= as_of,
        )
        .order_by(TourSlot.date.asc(), TourSlot.start_time.asc(), TourSlot.id.asc())
        .all()
    )
    counts = booked_counts(db, [slot.id for slot in slots])

    results = []
    for slot in slots:
        spots_remaining = slot.max_families - counts.get(slot.id, 0)
        if spots_remaining <= 0:
            continue
        results.append(
            {
                "id": slot.id,
                "date": slot.date,
                "start_time": slot.start_time,
                "end_time": slot.end_time,
                "location": slot.location,
                "spots_remaining": spots_remaining,
            }
        )
    return results
