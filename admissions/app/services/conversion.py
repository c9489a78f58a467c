"""Conversion bridge: turns an accepted offer into an enrollment application.

The bridge makes exactly one creation call per acceptance and never retries or
compensates. The default creator writes the application through the caller's
session, so it commits or rolls back with the waitlist entry update. Every
request carries an idempotency key derived from the entry, and a creator must
return the existing application for a key it has already seen.
"""

from typing import Protocol

from sqlalchemy.orm import Session

from admissions.app.core.errors import AdmissionsError, ApplicationCreationError
from admissions.app.core.logging import get_logger
from admissions.app.models.enrollment_application import EnrollmentApplication
from admissions.app.models.waitlist_entry import WaitlistEntry
from admissions.app.schemas.enrollment_application import ApplicationRequest, GuardianRecord

logger = get_logger(__name__)


class ApplicationCreator(Protocol):
    def create_application(self, db: Session, request: ApplicationRequest) -> str:
        ...


class DatabaseApplicationCreator:
    """Creates applications in the admissions store inside the current transaction."""

    def create_application(self, db: Session, request: ApplicationRequest) -> str:
        existing = (
            db.query(EnrollmentApplication)
            .filter(EnrollmentApplication.idempotency_key == request.idempotency_key)
            .first()
        )
        if existing:
            return str(existing.id)

        application = EnrollmentApplication(
            status="submitted",
            **request.model_dump(mode="python", exclude={"guardians"}),
            guardians=[guardian.model_dump(mode="json") for guardian in request.guardians],
        )
        db.add(application)
        db.flush()
        return str(application.id)


def application_key(entry: WaitlistEntry) -> str:
    return f"waitlist-entry:{entry.id}"


def build_application_request(entry: WaitlistEntry, enrollment_period_id: str) -> ApplicationRequest:
    guardian = GuardianRecord(
        first_name=entry.parent_first_name,
        last_name=entry.parent_last_name,
        email=entry.parent_email,
        phone=entry.parent_phone,
        relationship="parent",
    )
    return ApplicationRequest(
        tenant_id=entry.tenant_id,
        enrollment_period_id=enrollment_period_id,
        idempotency_key=application_key(entry),
        submitted_by_email=entry.parent_email,
        submitted_by_user_id=entry.parent_user_id,
        child_first_name=entry.child_first_name,
        child_last_name=entry.child_last_name,
        child_date_of_birth=entry.child_date_of_birth,
        child_gender=entry.child_gender,
        child_previous_school=entry.child_current_school,
        requested_program=entry.offered_program or entry.requested_program,
        requested_start_date=entry.offered_start_date,
        guardians=[guardian],
    )


def convert_entry(
    db: Session,
    entry: WaitlistEntry,
    enrollment_period_id: str,
    creator: ApplicationCreator,
) -> str:
    request = build_application_request(entry, enrollment_period_id)
    try:
        application_id = creator.create_application(db, request)
    except AdmissionsError:
        raise
    except Exception as exc:
        logger.warning("application_creation_failed", entry_id=entry.id, error=str(exc))
        raise ApplicationCreationError(f"Failed to create enrollment application: {exc}") from exc
    if not application_id:
        raise ApplicationCreationError("Enrollment application creation returned no identifier")
    return str(application_id)
