"""Staff endpoints for the admissions waitlist pipeline."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from admissions.app.core.permissions import Permission
from admissions.app.core.settings import get_settings
from admissions.app.db.session import get_db
from admissions.app.dependencies.auth import get_application_creator, require_permission
from admissions.app.models.user import User
from admissions.app.models.waitlist_entry import WaitlistEntry, WaitlistStage
from admissions.app.schemas.common import Page
from admissions.app.schemas.waitlist import (
    OfferAccept,
    OfferAcceptResponse,
    OfferCreate,
    OfferDecline,
    SortField,
    SortOrder,
    StageHistoryRead,
    StageTransitionRequest,
    WaitlistEntryDetail,
    WaitlistEntryRead,
    WaitlistEntryUpdate,
    WithdrawRequest,
)
from admissions.app.services import offers, stage_machine, waitlist
from admissions.app.services.audit_log import list_history
from admissions.app.services.conversion import ApplicationCreator

router = APIRouter(prefix="/admin/waitlist", tags=["admin-waitlist"])

can_view = require_permission(Permission.VIEW_WAITLIST)
can_manage = require_permission(Permission.MANAGE_WAITLIST)


def _entry_detail(db: Session, entry: WaitlistEntry) -> WaitlistEntryDetail:
    history = list_history(db, entry.id, newest_first=True)
    return WaitlistEntryDetail(
        **WaitlistEntryRead.model_validate(entry).model_dump(),
        stage_history=[StageHistoryRead.model_validate(record) for record in history],
        days_in_pipeline=waitlist.days_in_pipeline(entry),
    )


@router.get("/", response_model=Page[WaitlistEntryRead])
async def list_entries(
    stage: WaitlistStage | None = None,
    requested_program: str | None = None,
    search: str | None = None,
    sort_by: SortField = "priority",
    sort_order: SortOrder = "desc",
    page: int = Query(default=1, ge=1),
    per_page: int | None = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
):
    per_page = per_page or get_settings().default_page_size
    items, total = waitlist.list_entries(
        db,
        current_user.tenant_id,
        stage=stage,
        requested_program=requested_program,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        per_page=per_page,
    )
    return Page[WaitlistEntryRead].build(
        [WaitlistEntryRead.model_validate(item) for item in items], total, page, per_page
    )


@router.get("/{entry_id}", response_model=WaitlistEntryDetail)
async def get_entry(entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_view)):
    entry = waitlist.get_entry(db, current_user.tenant_id, entry_id)
    return _entry_detail(db, entry)


@router.patch("/{entry_id}", response_model=WaitlistEntryRead)
async def update_entry(
    entry_id: int,
    entry_in: WaitlistEntryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    return waitlist.update_entry_metadata(
        db, current_user.tenant_id, entry_id, entry_in.model_dump(exclude_unset=True)
    )


@router.post("/{entry_id}/transition", response_model=WaitlistEntryRead)
async def transition_entry(
    entry_id: int,
    transition_in: StageTransitionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    return stage_machine.transition_stage(
        db, current_user.tenant_id, entry_id, transition_in.to_stage, current_user, transition_in.notes
    )


@router.post("/{entry_id}/withdraw", response_model=WaitlistEntryRead)
async def withdraw_entry(
    entry_id: int,
    withdraw_in: WithdrawRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    return stage_machine.withdraw_entry(db, current_user.tenant_id, entry_id, current_user, withdraw_in.reason)


@router.post("/{entry_id}/offer", response_model=WaitlistEntryRead)
async def make_offer(
    entry_id: int,
    offer_in: OfferCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    return offers.make_offer(
        db,
        current_user.tenant_id,
        entry_id,
        offer_in.offered_program,
        offer_in.offered_start_date,
        offer_in.offer_expires_at,
        current_user,
        offer_in.notes,
    )


@router.post("/{entry_id}/offer/accept", response_model=OfferAcceptResponse)
async def accept_offer(
    entry_id: int,
    accept_in: OfferAccept,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
    creator: ApplicationCreator = Depends(get_application_creator),
):
    entry, application_id = offers.accept_offer(
        db, current_user.tenant_id, entry_id, accept_in.enrollment_period_id, current_user, creator
    )
    return {"entry": WaitlistEntryRead.model_validate(entry), "application_id": application_id}


@router.post("/{entry_id}/offer/decline", response_model=WaitlistEntryRead)
async def decline_offer(
    entry_id: int,
    decline_in: OfferDecline,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage),
):
    return offers.decline_offer(db, current_user.tenant_id, entry_id, decline_in.reason, current_user)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(can_manage)):
    waitlist.soft_delete_entry(db, current_user.tenant_id, entry_id)
