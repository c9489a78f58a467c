from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from admissions.app.core.security import get_password_hash
from admissions.app.core.time import utc_today
from admissions.app.db.base import Base
from admissions.app.db.session import SessionLocal, engine
from admissions.app.main import app
from admissions.app.models.user import User
from admissions.app.models.waitlist_entry import WaitlistEntry

TENANT_ID = "11111111-1111-4111-8111-111111111111"


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def staff_headers(client: TestClient, role: str = "admin") -> dict:
    email = f"{role}@example.com"
    db = SessionLocal()
    db.add(
        User(
            tenant_id=TENANT_ID,
            email=email,
            hashed_password=get_password_hash("secret"),
            role=role,
            first_name="Pat",
            last_name="Lee",
        )
    )
    db.commit()
    db.close()
    response = client.post("/auth/login", json={"email": email, "password": "secret"})
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def submit(client: TestClient, child_first_name: str, **overrides) -> int:
    payload = {
        "tenant_id": TENANT_ID,
        "parent_first_name": "Dana",
        "parent_last_name": "Reyes",
        "parent_email": "dana@example.com",
        "child_first_name": child_first_name,
        "child_last_name": "Reyes",
        "child_date_of_birth": "2020-04-02",
    }
    payload.update(overrides)
    response = client.post("/public/inquiries", json=payload)
    assert response.status_code == 201
    return response.json()["id"]


def set_fields(entry_id: int, **fields) -> None:
    db = SessionLocal()
    entry = db.get(WaitlistEntry, entry_id)
    for field, value in fields.items():
        setattr(entry, field, value)
    db.commit()
    db.close()


def test_list_entries_sorts_by_priority_then_inquiry_date():
    client = TestClient(app)
    headers = staff_headers(client)
    older = submit(client, "Older")
    newer = submit(client, "Newer")
    urgent = submit(client, "Urgent")
    set_fields(older, inquiry_date=date(2024, 1, 5))
    set_fields(newer, inquiry_date=date(2024, 3, 5))
    set_fields(urgent, priority=5, inquiry_date=date(2024, 6, 1))

    response = client.get("/admin/waitlist/", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["page"] == 1
    assert data["per_page"] == 50
    assert [item["id"] for item in data["items"]] == [urgent, older, newer]

    response = client.get("/admin/waitlist/?sort_by=child_last_name&sort_order=asc", headers=headers)
    assert response.status_code == 200


def test_list_entries_filters_and_pages():
    client = TestClient(app)
    headers = staff_headers(client)
    for name in ["Ava", "Ben", "Cal"]:
        submit(client, name, requested_program="Primary")
    submit(client, "Dee", requested_program="Toddler", parent_email="other@example.com")

    data = client.get("/admin/waitlist/?requested_program=Primary&per_page=2&page=2", headers=headers).json()
    assert data["total"] == 3
    assert data["total_pages"] == 2
    assert len(data["items"]) == 1

    data = client.get("/admin/waitlist/?search=other@", headers=headers).json()
    assert [item["child_first_name"] for item in data["items"]] == ["Dee"]

    data = client.get("/admin/waitlist/?stage=waitlisted", headers=headers).json()
    assert data["total"] == 0


def test_list_entries_rejects_unknown_sort():
    client = TestClient(app)
    headers = staff_headers(client)
    assert client.get("/admin/waitlist/?sort_by=parent_email", headers=headers).status_code == 422


def test_get_entry_includes_history_and_days_in_pipeline():
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo")
    set_fields(entry_id, inquiry_date=utc_today() - timedelta(days=400))
    client.post(
        f"/admin/waitlist/{entry_id}/transition",
        json={"to_stage": "waitlisted", "notes": "Reviewed"},
        headers=headers,
    )

    response = client.get(f"/admin/waitlist/{entry_id}", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["stage"] == "waitlisted"
    assert data["days_in_pipeline"] == 400
    history = data["stage_history"]
    assert [record["to_stage"] for record in history] == ["waitlisted", "inquiry"]
    assert history[0]["changed_by_name"] == "Pat Lee"
    assert history[0]["notes"] == "Reviewed"
    assert history[1]["changed_by_name"] is None


def test_get_missing_entry_returns_404():
    client = TestClient(app)
    headers = staff_headers(client)
    response = client.get("/admin/waitlist/999", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"detail": "Waitlist entry not found", "code": "NOT_FOUND", "details": {"entry_id": 999}}


def test_update_metadata_never_touches_stage():
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo")
    response = client.patch(
        f"/admin/waitlist/{entry_id}",
        json={"priority": 4, "admin_notes": "Call back in March", "stage": "enrolled"},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["priority"] == 4
    assert data["admin_notes"] == "Call back in March"
    assert data["stage"] == "inquiry"


def test_empty_update_is_a_validation_error():
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo")
    response = client.patch(f"/admin/waitlist/{entry_id}", json={}, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.parametrize("field", ["priority", "siblings_at_school"])
def test_update_rejects_clearing_required_fields(field):
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo")
    response = client.patch(f"/admin/waitlist/{entry_id}", json={field: None}, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert response.json()["details"] == {"fields": [field]}


def test_update_clears_optional_text_with_null_or_blank():
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo", parent_phone="555-0100", child_gender="F")
    response = client.patch(
        f"/admin/waitlist/{entry_id}",
        json={"parent_phone": None, "child_gender": "   "},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["parent_phone"] is None
    assert response.json()["child_gender"] is None


def test_invalid_transition_returns_409_with_allowed_stages():
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo")
    response = client.post(f"/admin/waitlist/{entry_id}/transition", json={"to_stage": "offered"}, headers=headers)
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "INVALID_TRANSITION"
    assert body["details"]["current_stage"] == "inquiry"
    assert body["details"]["allowed"] == ["waitlisted", "withdrawn"]


def test_unknown_stage_is_rejected_by_request_validation():
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo")
    response = client.post(f"/admin/waitlist/{entry_id}/transition", json={"to_stage": "graduated"}, headers=headers)
    assert response.status_code == 422


def test_withdraw_endpoint():
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo")
    response = client.post(f"/admin/waitlist/{entry_id}/withdraw", json={"reason": "Moved away"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["stage"] == "withdrawn"
    response = client.post(f"/admin/waitlist/{entry_id}/withdraw", json={}, headers=headers)
    assert response.status_code == 409


def test_deleted_entry_disappears():
    client = TestClient(app)
    headers = staff_headers(client)
    entry_id = submit(client, "Milo")
    assert client.delete(f"/admin/waitlist/{entry_id}", headers=headers).status_code == 204
    assert client.get(f"/admin/waitlist/{entry_id}", headers=headers).status_code == 404
    assert client.get("/admin/waitlist/", headers=headers).json()["total"] == 0
    response = client.post(f"/admin/waitlist/{entry_id}/transition", json={"to_stage": "waitlisted"}, headers=headers)
    assert response.status_code == 404
    # A deleted journey no longer blocks a fresh inquiry
    submit(client, "Milo")
