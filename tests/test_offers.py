from datetime import date, time, timedelta

import pytest
from fastapi.testclient import TestClient

from admissions.app.core.errors import (
    ApplicationCreationError,
    CapacityExceededError,
    ConflictError,
    InvalidTransitionError,
    OfferExpiredError,
    ValidationError,
)
from admissions.app.core.security import get_password_hash
from admissions.app.core.time import as_utc, utc_now, utc_today
from admissions.app.db.base import Base
from admissions.app.db.session import SessionLocal, engine
from admissions.app.dependencies.auth import get_application_creator
from admissions.app.main import app
from admissions.app.models.enrollment_application import EnrollmentApplication
from admissions.app.models.tour_slot import TourSlot
from admissions.app.models.user import User
from admissions.app.models.waitlist_entry import OfferResponse, WaitlistEntry, WaitlistStage
from admissions.app.services.audit_log import list_history, record_stage_change
from admissions.app.services.conversion import DatabaseApplicationCreator, application_key
from admissions.app.services.offers import accept_offer, decline_offer, make_offer
from admissions.app.services.stage_machine import transition_stage
from admissions.app.services.tour_allocator import book_tour, record_attendance

TENANT_ID = "11111111-1111-4111-8111-111111111111"
PERIOD_ID = "fall-2025"


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


class FailingCreator:
    """Writes an application row, then fails as a remote collaborator would."""

    def create_application(self, db, request):
        DatabaseApplicationCreator().create_application(db, request)
        raise RuntimeError("enrollment service unavailable")


def make_entry(db, stage: WaitlistStage = WaitlistStage.WAITLISTED, child_first_name: str = "Milo") -> WaitlistEntry:
    entry = WaitlistEntry(
        tenant_id=TENANT_ID,
        stage=stage,
        parent_first_name="Dana",
        parent_last_name="Reyes",
        parent_email="dana@example.com",
        parent_phone="555-0100",
        child_first_name=child_first_name,
        child_last_name="Reyes",
        child_date_of_birth=date(2020, 4, 2),
        requested_program="Toddler",
    )
    db.add(entry)
    db.flush()
    record_stage_change(db, entry, None, stage, None, "seeded")
    db.commit()
    return entry


def offered_entry(db, expires_in: timedelta | None = timedelta(days=7)) -> WaitlistEntry:
    entry = make_entry(db)
    expires_at = utc_now() + expires_in if expires_in is not None else None
    return make_offer(db, TENANT_ID, entry.id, "Primary", date(2025, 2, 1), expires_at, actor=None)


def application_count(db) -> int:
    return db.query(EnrollmentApplication).count()


def test_make_offer_sets_offer_fields(db):
    entry = offered_entry(db)
    db.refresh(entry)
    assert entry.stage == WaitlistStage.OFFERED
    assert entry.offered_program == "Primary"
    assert entry.offered_start_date == date(2025, 2, 1)
    assert entry.offered_at is not None
    assert list_history(db, entry.id, newest_first=True)[0].notes == "Offered Primary starting 2025-02-01"


def test_make_offer_validates_input(db):
    entry = make_entry(db)
    with pytest.raises(ValidationError):
        make_offer(db, TENANT_ID, entry.id, "  ", date(2025, 2, 1), None, actor=None)
    with pytest.raises(ValidationError):
        make_offer(db, TENANT_ID, entry.id, "Primary", None, None, actor=None)
    with pytest.raises(ValidationError):
        make_offer(db, TENANT_ID, entry.id, "Primary", date(2025, 2, 1), utc_now() - timedelta(hours=1), actor=None)
    db.refresh(entry)
    assert entry.stage == WaitlistStage.WAITLISTED


def test_make_offer_requires_waitlisted_or_tour_completed(db):
    entry = make_entry(db, WaitlistStage.INQUIRY)
    with pytest.raises(InvalidTransitionError) as exc_info:
        make_offer(db, TENANT_ID, entry.id, "Primary", date(2025, 2, 1), None, actor=None)
    assert "must be 'waitlisted' or 'tour_completed'" in str(exc_info.value)


def test_accept_offer_creates_one_application(db):
    entry = offered_entry(db)
    entry, application_id = accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, DatabaseApplicationCreator())

    assert entry.stage == WaitlistStage.ACCEPTED
    assert entry.offer_response == OfferResponse.ACCEPTED
    assert entry.offer_response_at is not None
    assert entry.converted_application_id == application_id

    application = db.query(EnrollmentApplication).one()
    assert str(application.id) == application_id
    assert application.idempotency_key == application_key(entry)
    assert application.enrollment_period_id == PERIOD_ID
    assert application.requested_program == "Primary"
    assert application.requested_start_date == date(2025, 2, 1)
    assert application.submitted_by_email == "dana@example.com"
    assert application.guardians == [
        {
            "first_name": "Dana",
            "last_name": "Reyes",
            "email": "dana@example.com",
            "phone": "555-0100",
            "relationship": "parent",
        }
    ]
    note = list_history(db, entry.id, newest_first=True)[0].notes
    assert note == f"Offer accepted. Enrollment application {application_id} created."


def test_accept_offer_twice_is_rejected_and_keeps_application(db):
    entry = offered_entry(db)
    _, application_id = accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, DatabaseApplicationCreator())
    with pytest.raises(InvalidTransitionError):
        accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, DatabaseApplicationCreator())
    db.refresh(entry)
    assert entry.converted_application_id == application_id
    assert application_count(db) == 1


def test_expired_offer_cannot_be_accepted(db):
    entry = offered_entry(db)
    entry.offer_expires_at = utc_now() - timedelta(minutes=1)
    db.commit()

    with pytest.raises(OfferExpiredError):
        accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, DatabaseApplicationCreator())
    db.refresh(entry)
    assert entry.stage == WaitlistStage.OFFERED
    assert entry.converted_application_id is None
    assert application_count(db) == 0


def test_offer_without_expiry_never_expires(db):
    entry = offered_entry(db, expires_in=None)
    entry, _ = accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, DatabaseApplicationCreator())
    assert entry.stage == WaitlistStage.ACCEPTED


def test_failed_conversion_rolls_back_everything(db):
    entry = offered_entry(db)
    with pytest.raises(ApplicationCreationError) as exc_info:
        accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, FailingCreator())
    assert exc_info.value.code == "CREATE_FAILED"

    db.refresh(entry)
    assert entry.stage == WaitlistStage.OFFERED
    assert entry.offer_response is None
    assert entry.converted_application_id is None
    assert application_count(db) == 0
    assert list_history(db, entry.id, newest_first=True)[0].to_stage == WaitlistStage.OFFERED


def test_reacceptance_after_withdrawal_reuses_application(db):
    entry = offered_entry(db)
    _, first_id = accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, DatabaseApplicationCreator())
    for stage in [WaitlistStage.WITHDRAWN, WaitlistStage.INQUIRY, WaitlistStage.WAITLISTED]:
        transition_stage(db, TENANT_ID, entry.id, stage, actor=None)
    db.refresh(entry)
    assert entry.converted_application_id == first_id
    assert entry.offer_response is None

    make_offer(db, TENANT_ID, entry.id, "Primary", date(2025, 9, 1), None, actor=None)
    _, second_id = accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, DatabaseApplicationCreator())
    assert second_id == first_id
    assert application_count(db) == 1


def test_conversion_to_a_different_application_is_a_conflict(db):
    class OtherApplicationCreator:
        def create_application(self, db, request):
            return "external-42"

    entry = offered_entry(db)
    entry.converted_application_id = "external-41"
    db.commit()
    with pytest.raises(ConflictError):
        accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, OtherApplicationCreator())
    db.refresh(entry)
    assert entry.stage == WaitlistStage.OFFERED
    assert entry.converted_application_id == "external-41"


def test_accepted_to_enrolled_clears_offer_response(db):
    entry = offered_entry(db)
    accept_offer(db, TENANT_ID, entry.id, PERIOD_ID, None, DatabaseApplicationCreator())
    transition_stage(db, TENANT_ID, entry.id, WaitlistStage.ENROLLED, actor=None)
    db.refresh(entry)
    assert entry.stage == WaitlistStage.ENROLLED
    assert entry.offer_response is None
    assert entry.converted_application_id is not None


def test_decline_offer(db):
    entry = offered_entry(db)
    decline_offer(db, TENANT_ID, entry.id, None, actor=None)
    db.refresh(entry)
    assert entry.stage == WaitlistStage.DECLINED
    assert entry.offer_response == OfferResponse.DECLINED
    assert list_history(db, entry.id, newest_first=True)[0].notes == "Offer declined"

    with pytest.raises(InvalidTransitionError) as exc_info:
        decline_offer(db, TENANT_ID, entry.id, "Changed mind", actor=None)
    assert "must be 'offered'" in str(exc_info.value)

    transition_stage(db, TENANT_ID, entry.id, WaitlistStage.WAITLISTED, actor=None)
    db.refresh(entry)
    assert entry.offer_response is None
    assert entry.offered_program == "Primary"


def test_tour_to_enrollment_scenario(db):
    slot = TourSlot(
        tenant_id=TENANT_ID,
        date=utc_today() + timedelta(days=3),
        start_time=time(9, 0),
        end_time=time(10, 0),
        max_families=1,
    )
    db.add(slot)
    db.commit()
    first = make_entry(db, child_first_name="Ava")
    second = make_entry(db, child_first_name="Ben")

    book_tour(db, TENANT_ID, first.id, slot.id, actor=None)
    assert first.stage == WaitlistStage.TOUR_SCHEDULED
    with pytest.raises(CapacityExceededError):
        book_tour(db, TENANT_ID, second.id, slot.id, actor=None)

    record_attendance(db, TENANT_ID, first.id, True, None, actor=None)
    db.refresh(first)
    assert first.stage == WaitlistStage.TOUR_COMPLETED

    expires_at = utc_now() + timedelta(days=7)
    make_offer(db, TENANT_ID, first.id, "Primary", date(2025, 2, 1), expires_at, actor=None)
    db.refresh(first)
    assert first.stage == WaitlistStage.OFFERED
    assert abs(as_utc(first.offer_expires_at) - expires_at) < timedelta(seconds=1)

    first, application_id = accept_offer(db, TENANT_ID, first.id, PERIOD_ID, None, DatabaseApplicationCreator())
    assert first.stage == WaitlistStage.ACCEPTED
    assert first.converted_application_id == application_id
    assert application_count(db) == 1

    with pytest.raises(InvalidTransitionError):
        accept_offer(db, TENANT_ID, first.id, PERIOD_ID, None, DatabaseApplicationCreator())
    assert application_count(db) == 1


def officer_headers(client: TestClient) -> dict:
    db = SessionLocal()
    db.add(
        User(
            tenant_id=TENANT_ID,
            email="officer@example.com",
            hashed_password=get_password_hash("secret"),
            role="admissions_officer",
        )
    )
    db.commit()
    db.close()
    response = client.post("/auth/login", json={"email": "officer@example.com", "password": "secret"})
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_offer_endpoints():
    client = TestClient(app)
    headers = officer_headers(client)
    db = SessionLocal()
    entry_id = make_entry(db).id
    db.close()

    response = client.post(f"/admin/waitlist/{entry_id}/offer", json={"offered_program": "Primary"}, headers=headers)
    assert response.status_code == 400

    response = client.post(
        f"/admin/waitlist/{entry_id}/offer",
        json={"offered_program": "Primary", "offered_start_date": "2025-02-01"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["stage"] == "offered"

    response = client.post(
        f"/admin/waitlist/{entry_id}/offer/accept",
        json={"enrollment_period_id": PERIOD_ID},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["entry"]["stage"] == "accepted"
    assert data["entry"]["converted_application_id"] == data["application_id"]


def test_accept_endpoint_reports_expired_offer():
    client = TestClient(app)
    headers = officer_headers(client)
    db = SessionLocal()
    entry = offered_entry(db)
    entry.offer_expires_at = utc_now() - timedelta(days=1)
    db.commit()
    entry_id = entry.id
    db.close()

    response = client.post(
        f"/admin/waitlist/{entry_id}/offer/accept",
        json={"enrollment_period_id": PERIOD_ID},
        headers=headers,
    )
    assert response.status_code == 410
    assert response.json()["code"] == "EXPIRED"


def test_accept_endpoint_reports_failed_conversion():
    app.dependency_overrides[get_application_creator] = lambda: FailingCreator()
    client = TestClient(app)
    headers = officer_headers(client)
    db = SessionLocal()
    entry_id = offered_entry(db).id
    db.close()

    response = client.post(
        f"/admin/waitlist/{entry_id}/offer/accept",
        json={"enrollment_period_id": PERIOD_ID},
        headers=headers,
    )
    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "CREATE_FAILED"
    assert "enrollment service unavailable" in body["detail"]

    db = SessionLocal()
    assert db.get(WaitlistEntry, entry_id).stage == WaitlistStage.OFFERED
    assert application_count(db) == 0
    db.close()
