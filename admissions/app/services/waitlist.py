"""Waitlist entry store: reads and metadata edits that never touch stage."""

from sqlalchemy import or_
from sqlalchemy.orm import Session

from admissions.app.core.errors import NotFoundError, ValidationError
from admissions.app.core.logging import get_logger
from admissions.app.core.time import days_between, utc_now, utc_today
from admissions.app.db.unit_of_work import unit_of_work
from admissions.app.models.waitlist_entry import WaitlistEntry, WaitlistStage

logger = get_logger(__name__)

# Fields staff may edit outside of a stage transition
EDITABLE_FIELDS = (
    "priority",
    "child_gender",
    "child_current_school",
    "requested_program",
    "requested_start",
    "requested_start_date",
    "parent_phone",
    "siblings_at_school",
    "sibling_names",
    "admin_notes",
)

NON_NULLABLE_FIELDS = ("priority", "siblings_at_school")

SUPPORTED_SORTS = {"priority", "inquiry_date", "child_last_name"}


def get_entry(db: Session, tenant_id: str, entry_id: int, *, for_update: bool = False) -> WaitlistEntry:
    query = db.query(WaitlistEntry).filter(
        WaitlistEntry.id == entry_id,
        WaitlistEntry.tenant_id == tenant_id,
        WaitlistEntry.deleted_at.is_(None),
    )
    if for_update:
        query = query.with_for_update()
    entry = query.first()
    if not entry:
        raise NotFoundError("Waitlist entry not found", details={"entry_id": entry_id})
    return entry


def find_live_entry(
    db: Session,
    tenant_id: str,
    parent_email: str,
    child_first_name: str,
    child_last_name: str,
) -> WaitlistEntry | None:
    """Return the family's journey that is still in the pipeline, if any."""
    return (
        db.query(WaitlistEntry)
        .filter(
            WaitlistEntry.tenant_id == tenant_id,
            WaitlistEntry.parent_email == parent_email.strip().lower(),
            WaitlistEntry.child_first_name == child_first_name.strip(),
            WaitlistEntry.child_last_name == child_last_name.strip(),
            WaitlistEntry.deleted_at.is_(None),
            WaitlistEntry.stage.notin_([WaitlistStage.DECLINED, WaitlistStage.WITHDRAWN]),
        )
        .first()
    )


def list_entries(
    db: Session,
    tenant_id: str,
    *,
    stage: WaitlistStage | None = None,
    requested_program: str | None = None,
    search: str | None = None,
    sort_by: str = "priority",
    sort_order: str = "desc",
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[WaitlistEntry], int]:
    if sort_by not in SUPPORTED_SORTS:
        raise ValidationError("Invalid sort_by value", details={"allowed": sorted(SUPPORTED_SORTS)})
    sort_order = (sort_order or "desc").lower()
    if sort_order not in {"asc", "desc"}:
        raise ValidationError("Invalid sort_order value")
    if page < 1 or per_page < 1:
        raise ValidationError("page and per_page must be positive")

    query = db.query(WaitlistEntry).filter(
        WaitlistEntry.tenant_id == tenant_id,
        WaitlistEntry.deleted_at.is_(None),
    )
    if stage:
        query = query.filter(WaitlistEntry.stage == stage)
    if requested_program:
        query = query.filter(WaitlistEntry.requested_program == requested_program)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                WaitlistEntry.child_first_name.ilike(pattern),
                WaitlistEntry.child_last_name.ilike(pattern),
                WaitlistEntry.parent_first_name.ilike(pattern),
                WaitlistEntry.parent_last_name.ilike(pattern),
                WaitlistEntry.parent_email.ilike(pattern),
            )
        )

    total = query.count()
    if total == 0:
        return [], 0

    sort_column = getattr(WaitlistEntry, sort_by)
    primary = sort_column.asc() if sort_order == "asc" else sort_column.desc()
    if sort_by == "priority":
        order_by_clause = [primary, WaitlistEntry.inquiry_date.asc(), WaitlistEntry.id.asc()]
    else:
        order_by_clause = [primary, WaitlistEntry.id.asc()]

    items = query.order_by(*order_by_clause).offset((page - 1) * per_page).limit(per_page).all()
    return items, total


def days_in_pipeline(entry: WaitlistEntry) -> int:
    return max(days_between(entry.inquiry_date, utc_today()), 0)


def update_entry_metadata(db: Session, tenant_id: str, entry_id: int, fields: dict) -> WaitlistEntry:
    update_fields = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS}
    if not update_fields:
        raise ValidationError("No fields to update")
    cleared = sorted(field for field in NON_NULLABLE_FIELDS if field in update_fields and update_fields[field] is None)
    if cleared:
        raise ValidationError("These fields cannot be cleared", details={"fields": cleared})

    with unit_of_work(db):
        entry = get_entry(db, tenant_id, entry_id, for_update=True)
        for field, value in update_fields.items():
            setattr(entry, field, value)
        db.flush()

    logger.info("entry_metadata_updated", entry_id=entry.id, fields=sorted(update_fields))
    return entry


def soft_delete_entry(db: Session, tenant_id: str, entry_id: int) -> WaitlistEntry:
    with unit_of_work(db):
        entry = get_entry(db, tenant_id, entry_id, for_update=True)
        entry.deleted_at = utc_now()
        db.flush()

    logger.info("entry_deleted", entry_id=entry.id)
    return entry


def check_inquiry_status(
    db: Session,
    tenant_id: str,
    parent_email: str,
    child_first_name: str,
    child_last_name: str,
) -> dict | None:
    """Sanitized status for a family; never exposes admin notes or internal fields."""
    entry = (
        db.query(WaitlistEntry)
        .filter(
            WaitlistEntry.tenant_id == tenant_id,
            WaitlistEntry.parent_email == parent_email.strip().lower(),
            WaitlistEntry.child_first_name == child_first_name.strip(),
            WaitlistEntry.child_last_name == child_last_name.strip(),
            WaitlistEntry.deleted_at.is_(None),
        )
        .order_by(WaitlistEntry.created_at.desc(), WaitlistEntry.id.desc())
        .first()
    )
    if not entry:
        return None
    return {
        "stage": entry.stage,
        "child_name": entry.child_name,
        "inquiry_date": entry.inquiry_date,
        "days_waiting": days_in_pipeline(entry),
        "tour_date": entry.tour_date,
        "offered_program": entry.offered_program,
        "offer_expires_at": entry.offer_expires_at,
    }
