"""Enrollment application created when a waitlist offer is accepted."""

from sqlalchemy import JSON, Column, Date, DateTime, Integer, String

from admissions.app.db.base_class import Base
from admissions.app.core.time import utc_now


class EnrollmentApplication(Base):
    __tablename__ = "enrollment_applications"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    enrollment_period_id = Column(String(64), nullable=False)
    idempotency_key = Column(String(128), nullable=False, unique=True)
    status = Column(String(32), nullable=False, default="submitted")
    submitted_by_email = Column(String(254), nullable=False)
    submitted_by_user_id = Column(Integer, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    child_first_name = Column(String(100), nullable=False)
    child_last_name = Column(String(100), nullable=False)
    child_date_of_birth = Column(Date, nullable=False)
    child_gender = Column(String(30), nullable=True)
    child_previous_school = Column(String(200), nullable=True)
    requested_program = Column(String(100), nullable=True)
    requested_start_date = Column(Date, nullable=True)
    guardians = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
