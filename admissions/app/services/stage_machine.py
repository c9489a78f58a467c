"""Stage machine for the admissions pipeline.

The allowed-transition graph is data: ``ALLOWED_TRANSITIONS`` maps every stage to
the set of stages it may move to. ``apply_transition`` is the only code that
writes ``WaitlistEntry.stage`` and the only producer of stage history; it never
commits, so callers compose it with their own writes inside one unit of work.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from admissions.app.core.errors import AlreadyExistsError, InvalidTransitionError
from admissions.app.core.logging import get_logger
from admissions.app.db.unit_of_work import unit_of_work
from admissions.app.models.user import User
from admissions.app.models.waitlist_entry import WaitlistEntry, WaitlistStage
from admissions.app.services.audit_log import record_stage_change
from admissions.app.services.waitlist import find_live_entry, get_entry

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[WaitlistStage, frozenset[WaitlistStage]] = {
    WaitlistStage.INQUIRY: frozenset({WaitlistStage.WAITLISTED, WaitlistStage.WITHDRAWN}),
    WaitlistStage.WAITLISTED: frozenset(
        {WaitlistStage.TOUR_SCHEDULED, WaitlistStage.OFFERED, WaitlistStage.WITHDRAWN}
    ),
    WaitlistStage.TOUR_SCHEDULED: frozenset(
        {WaitlistStage.TOUR_COMPLETED, WaitlistStage.WAITLISTED, WaitlistStage.WITHDRAWN}
    ),
    WaitlistStage.TOUR_COMPLETED: frozenset(
        {WaitlistStage.OFFERED, WaitlistStage.WAITLISTED, WaitlistStage.WITHDRAWN}
    ),
    WaitlistStage.OFFERED: frozenset(
        {WaitlistStage.ACCEPTED, WaitlistStage.DECLINED, WaitlistStage.WITHDRAWN}
    ),
    WaitlistStage.ACCEPTED: frozenset({WaitlistStage.ENROLLED, WaitlistStage.WITHDRAWN}),
    WaitlistStage.ENROLLED: frozenset(),
    WaitlistStage.DECLINED: frozenset({WaitlistStage.WAITLISTED}),
    WaitlistStage.WITHDRAWN: frozenset({WaitlistStage.INQUIRY}),
}

# Stages that occupy a seat on the tour slot the entry is linked to
SEAT_HOLDING_STAGES = frozenset(
    {
        WaitlistStage.TOUR_SCHEDULED,
        WaitlistStage.TOUR_COMPLETED,
        WaitlistStage.OFFERED,
        WaitlistStage.ACCEPTED,
        WaitlistStage.ENROLLED,
    }
)

ACTIVE_STAGES = frozenset(
    {
        WaitlistStage.INQUIRY,
        WaitlistStage.WAITLISTED,
        WaitlistStage.TOUR_SCHEDULED,
        WaitlistStage.TOUR_COMPLETED,
        WaitlistStage.OFFERED,
        WaitlistStage.ACCEPTED,
    }
)

OFFER_RESPONSE_STAGES = frozenset({WaitlistStage.ACCEPTED, WaitlistStage.DECLINED})


def allowed_next_stages(stage: WaitlistStage) -> frozenset[WaitlistStage]:
    return ALLOWED_TRANSITIONS[WaitlistStage(stage)]


def can_transition(from_stage: WaitlistStage, to_stage: WaitlistStage) -> bool:
    return WaitlistStage(to_stage) in allowed_next_stages(from_stage)


def ensure_transition(entry: WaitlistEntry, to_stage: WaitlistStage) -> None:
    if not can_transition(entry.stage, to_stage):
        raise InvalidTransitionError(entry.stage, to_stage, allowed_next_stages(entry.stage))


def apply_transition(
    db: Session,
    entry: WaitlistEntry,
    to_stage: WaitlistStage,
    actor: User | None,
    notes: str | None = None,
) -> WaitlistEntry:
    """Validate and write one transition plus its history record, without committing.

    The caller must have loaded ``entry`` with a row lock inside the current
    transaction.
    """
    to_stage = WaitlistStage(to_stage)
    ensure_transition(entry, to_stage)
    from_stage = WaitlistStage(entry.stage)

    entry.stage = to_stage
    if from_stage in SEAT_HOLDING_STAGES and to_stage not in SEAT_HOLDING_STAGES:
        # Leaving the seat-holding set frees the tour seat; tour_date stays as a record
        entry.tour_slot_id = None
    if to_stage not in OFFER_RESPONSE_STAGES:
        entry.offer_response = None
        entry.offer_response_at = None

    record_stage_change(
        db,
        entry,
        from_stage=from_stage,
        to_stage=to_stage,
        actor_id=actor.id if actor else None,
        notes=(notes or "").strip() or None,
    )
    db.flush()
    return entry


def transition_stage(
    db: Session,
    tenant_id: str,
    entry_id: int,
    to_stage: WaitlistStage,
    actor: User | None,
    notes: str | None = None,
) -> WaitlistEntry:
    with unit_of_work(db):
        entry = get_entry(db, tenant_id, entry_id, for_update=True)
        from_stage = entry.stage
        apply_transition(db, entry, to_stage, actor, notes)

    logger.info(
        "stage_transitioned",
        entry_id=entry.id,
        from_stage=WaitlistStage(from_stage).value,
        to_stage=entry.stage.value,
        actor_id=actor.id if actor else None,
    )
    return entry


def withdraw_entry(
    db: Session,
    tenant_id: str,
    entry_id: int,
    actor: User | None,
    reason: str | None = None,
) -> WaitlistEntry:
    return transition_stage(
        db,
        tenant_id,
        entry_id,
        WaitlistStage.WITHDRAWN,
        actor,
        (reason or "").strip() or "Entry withdrawn",
    )


def submit_inquiry(db: Session, inquiry) -> WaitlistEntry:
    """Create a new journey at ``inquiry`` with its creation history record.

    ``inquiry`` is a validated ``InquiryCreate``; email, names and optional text
    fields arrive trimmed and normalized.
    """
    duplicate_message = "An inquiry for this child already exists. Please contact the school for an update."
    tenant_id = str(inquiry.tenant_id)

    with unit_of_work(db):
        existing = find_live_entry(
            db,
            tenant_id,
            inquiry.parent_email,
            inquiry.child_first_name,
            inquiry.child_last_name,
        )
        if existing:
            raise AlreadyExistsError(duplicate_message)

        entry = WaitlistEntry(
            tenant_id=tenant_id,
            stage=WaitlistStage.INQUIRY,
            priority=0,
            **inquiry.model_dump(exclude={"tenant_id"}),
        )
        db.add(entry)
        try:
            db.flush()
        except IntegrityError as exc:
            # A concurrent submission for the same child committed first
            raise AlreadyExistsError(duplicate_message) from exc

        record_stage_change(
            db,
            entry,
            from_stage=None,
            to_stage=WaitlistStage.INQUIRY,
            actor_id=None,
            notes="Inquiry submitted via public form",
        )
        db.flush()

    logger.info("inquiry_submitted", entry_id=entry.id, tenant_id=tenant_id)
    return entry
