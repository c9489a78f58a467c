"""Offer lifecycle: make, accept and decline time-bounded offers."""

from datetime import date, datetime

from sqlalchemy.orm import Session

from admissions.app.core.errors import (
    ConflictError,
    InvalidTransitionError,
    OfferExpiredError,
    ValidationError,
)
from admissions.app.core.logging import get_logger
from admissions.app.core.time import as_utc, utc_now
from admissions.app.db.unit_of_work import unit_of_work
from admissions.app.models.user import User
from admissions.app.models.waitlist_entry import OfferResponse, WaitlistEntry, WaitlistStage
from admissions.app.services.conversion import ApplicationCreator, convert_entry
from admissions.app.services.stage_machine import allowed_next_stages, apply_transition
from admissions.app.services.waitlist import get_entry

logger = get_logger(__name__)

OFFERABLE_STAGES = frozenset({WaitlistStage.WAITLISTED, WaitlistStage.TOUR_COMPLETED})


def _require_offered(entry: WaitlistEntry, target: WaitlistStage, action: str) -> None:
    if entry.stage != WaitlistStage.OFFERED:
        raise InvalidTransitionError(
            entry.stage,
            target,
            allowed_next_stages(entry.stage),
            message=f"Cannot {action} offer - entry is at '{WaitlistStage(entry.stage).value}', must be 'offered'",
        )


def make_offer(
    db: Session,
    tenant_id: str,
    entry_id: int,
    program: str | None,
    start_date: date | None,
    expires_at: datetime | None,
    actor: User | None,
    notes: str | None = None,
) -> WaitlistEntry:
    with unit_of_work(db):
        entry = get_entry(db, tenant_id, entry_id, for_update=True)
        if entry.stage not in OFFERABLE_STAGES:
            raise InvalidTransitionError(
                entry.stage,
                WaitlistStage.OFFERED,
                allowed_next_stages(entry.stage),
                message=(
                    f"Cannot make offer from '{WaitlistStage(entry.stage).value}'. "
                    "Entry must be 'waitlisted' or 'tour_completed'."
                ),
            )
        program = (program or "").strip()
        if not program:
            raise ValidationError("Offered program is required")
        if not start_date:
            raise ValidationError("Offered start date is required")
        expires_at = as_utc(expires_at)
        if expires_at is not None and expires_at <= utc_now():
            raise ValidationError("Offer expiry must be in the future")

        entry.offered_at = utc_now()
        entry.offered_program = program
        entry.offered_start_date = start_date
        entry.offer_expires_at = expires_at
        apply_transition(
            db,
            entry,
            WaitlistStage.OFFERED,
            actor,
            (notes or "").strip() or f"Offered {program} starting {start_date.isoformat()}",
        )

    logger.info("offer_made", entry_id=entry.id, program=program, expires_at=expires_at.isoformat() if expires_at else None)
    return entry


def accept_offer(
    db: Session,
    tenant_id: str,
    entry_id: int,
    enrollment_period_id: str,
    actor: User | None,
    creator: ApplicationCreator,
) -> tuple[WaitlistEntry, str]:
    """Accept an offer and convert the entry, all-or-nothing.

    The application is created through the same transaction as the stage
    write; if creation fails nothing is committed and the entry stays offered.
    """
    with unit_of_work(db):
        entry = get_entry(db, tenant_id, entry_id, for_update=True)
        _require_offered(entry, WaitlistStage.ACCEPTED, "accept")

        expires_at = as_utc(entry.offer_expires_at)
        if expires_at is not None and expires_at <= utc_now():
            raise OfferExpiredError(
                "This offer has expired",
                details={"offer_expires_at": expires_at.isoformat()},
            )
        if not (enrollment_period_id or "").strip():
            raise ValidationError("Enrollment period is required")

        application_id = convert_entry(db, entry, enrollment_period_id.strip(), creator)
        if entry.converted_application_id and entry.converted_application_id != application_id:
            raise ConflictError(
                "Entry is already linked to a different enrollment application",
                details={"converted_application_id": entry.converted_application_id},
            )

        entry.offer_response = OfferResponse.ACCEPTED
        entry.offer_response_at = utc_now()
        entry.converted_application_id = application_id
        apply_transition(
            db,
            entry,
            WaitlistStage.ACCEPTED,
            actor,
            f"Offer accepted. Enrollment application {application_id} created.",
        )

    logger.info("offer_accepted", entry_id=entry.id, application_id=application_id)
    return entry, application_id


def decline_offer(
    db: Session,
    tenant_id: str,
    entry_id: int,
    reason: str | None,
    actor: User | None,
) -> WaitlistEntry:
    with unit_of_work(db):
        entry = get_entry(db, tenant_id, entry_id, for_update=True)
        _require_offered(entry, WaitlistStage.DECLINED, "decline")
        entry.offer_response = OfferResponse.DECLINED
        entry.offer_response_at = utc_now()
        apply_transition(db, entry, WaitlistStage.DECLINED, actor, (reason or "").strip() or "Offer declined")

    logger.info("offer_declined", entry_id=entry.id)
    return entry
