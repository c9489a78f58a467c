"""Request sent across the conversion boundary to create an enrollment application."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, EmailStr


class GuardianRecord(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None
    relationship: str = "parent"


class ApplicationRequest(BaseModel):
    tenant_id: str
    enrollment_period_id: str
    idempotency_key: str
    submitted_by_email: EmailStr
    submitted_by_user_id: Optional[int] = None
    child_first_name: str
    child_last_name: str
    child_date_of_birth: date
    child_gender: Optional[str] = None
    child_previous_school: Optional[str] = None
    requested_program: Optional[str] = None
    requested_start_date: Optional[date] = None
    guardians: list[GuardianRecord]
