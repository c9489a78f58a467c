"""Stage history services: append-only audit of waitlist stage changes."""

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from admissions.app.models.stage_history import StageHistoryRecord
from admissions.app.models.waitlist_entry import WaitlistEntry, WaitlistStage


def record_stage_change(
    db: Session,
    entry: WaitlistEntry,
    from_stage: WaitlistStage | None,
    to_stage: WaitlistStage,
    actor_id: int | None,
    notes: str | None,
) -> StageHistoryRecord:
    """Append a history record inside the caller's unit of work.

    Never commits: the record must become durable together with the stage write.
    The caller holds the entry lock, so the next sequence number is stable.
    """
    last_sequence = (
        db.query(func.max(StageHistoryRecord.sequence))
        .filter(StageHistoryRecord.waitlist_entry_id == entry.id)
        .scalar()
    )
    record = StageHistoryRecord(
        tenant_id=entry.tenant_id,
        waitlist_entry_id=entry.id,
        sequence=(last_sequence or 0) + 1,
        from_stage=from_stage,
        to_stage=to_stage,
        changed_by_id=actor_id,
        notes=notes,
    )
    db.add(record)
    return record


def list_history(db: Session, entry_id: int, newest_first: bool = False) -> list[StageHistoryRecord]:
    order = StageHistoryRecord.sequence.desc() if newest_first else StageHistoryRecord.sequence.asc()
    return (
        db.query(StageHistoryRecord)
        .options(joinedload(StageHistoryRecord.changed_by))
        .filter(StageHistoryRecord.waitlist_entry_id == entry_id)
        .order_by(order)
        .all()
    )


def list_tenant_history(db: Session, tenant_id: str) -> list[StageHistoryRecord]:
    """History of a tenant's live entries in replay order: per entry, by sequence."""
    return (
        db.query(StageHistoryRecord)
        .join(WaitlistEntry, WaitlistEntry.id == StageHistoryRecord.waitlist_entry_id)
        .filter(StageHistoryRecord.tenant_id == tenant_id, WaitlistEntry.deleted_at.is_(None))
        .order_by(StageHistoryRecord.waitlist_entry_id.asc(), StageHistoryRecord.sequence.asc())
        .all()
    )
