"""Waitlist entry model: one admissions journey per child and family."""

import enum

from sqlalchemy import Boolean, Column, Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from admissions.app.db.base_class import Base
from admissions.app.core.time import utc_now, utc_today


class WaitlistStage(str, enum.Enum):
    INQUIRY = "inquiry"
    WAITLISTED = "waitlisted"
    TOUR_SCHEDULED = "tour_scheduled"
    TOUR_COMPLETED = "tour_completed"
    OFFERED = "offered"
    ACCEPTED = "accepted"
    ENROLLED = "enrolled"
    DECLINED = "declined"
    WITHDRAWN = "withdrawn"


class OfferResponse(str, enum.Enum):
    ACCEPTED = "accepted"
    DECLINED = "declined"


def stage_type(name: str) -> Enum:
    """Non-native enum column type; each column gets its own CHECK constraint name."""
    return Enum(
        WaitlistStage,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


OFFER_RESPONSE_TYPE = Enum(
    OfferResponse,
    name="ck_waitlist_entries_offer_response",
    native_enum=False,
    create_constraint=True,
    length=16,
    values_callable=lambda members: [member.value for member in members],
    validate_strings=True,
)

_LIVE_JOURNEY = text("stage NOT IN ('declined', 'withdrawn') AND deleted_at IS NULL")


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"
    __table_args__ = (
        # One live journey per child per family per tenant
        Index(
            "uq_waitlist_entries_live_journey",
            "tenant_id",
            "parent_email",
            "child_first_name",
            "child_last_name",
            unique=True,
            sqlite_where=_LIVE_JOURNEY,
            postgresql_where=_LIVE_JOURNEY,
        ),
        Index("ix_waitlist_entries_tenant_stage", "tenant_id", "stage"),
        Index("ix_waitlist_entries_slot_stage", "tour_slot_id", "stage"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), nullable=False)
    stage = Column(stage_type("ck_waitlist_entries_stage"), nullable=False, default=WaitlistStage.INQUIRY)
    priority = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    child_first_name = Column(String(100), nullable=False)
    child_last_name = Column(String(100), nullable=False)
    child_date_of_birth = Column(Date, nullable=False)
    child_gender = Column(String(30), nullable=True)
    child_current_school = Column(String(200), nullable=True)

    requested_program = Column(String(100), nullable=True)
    requested_start = Column(String(100), nullable=True)
    requested_start_date = Column(Date, nullable=True)

    parent_first_name = Column(String(100), nullable=False)
    parent_last_name = Column(String(100), nullable=False)
    parent_email = Column(String(254), nullable=False, index=True)
    parent_phone = Column(String(30), nullable=True)
    parent_user_id = Column(Integer, nullable=True)

    siblings_at_school = Column(Boolean, nullable=False, default=False)
    sibling_names = Column(String(500), nullable=True)
    how_heard_about_us = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    tour_slot_id = Column(Integer, ForeignKey("tour_slots.id"), nullable=True)
    tour_date = Column(DateTime, nullable=True)
    tour_guide = Column(String(200), nullable=True)
    tour_notes = Column(Text, nullable=True)
    tour_attended = Column(Boolean, nullable=True)

    offered_at = Column(DateTime(timezone=True), nullable=True)
    offered_program = Column(String(100), nullable=True)
    offered_start_date = Column(Date, nullable=True)
    offer_expires_at = Column(DateTime(timezone=True), nullable=True)
    offer_response = Column(OFFER_RESPONSE_TYPE, nullable=True)
    offer_response_at = Column(DateTime(timezone=True), nullable=True)
    converted_application_id = Column(String(64), nullable=True)

    source_url = Column(String(2000), nullable=True)
    source_campaign = Column(String(200), nullable=True)

    inquiry_date = Column(Date, nullable=False, default=utc_today)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    tour_slot = relationship("TourSlot", back_populates="entries")
    stage_history = relationship(
        "StageHistoryRecord",
        back_populates="entry",
        order_by="StageHistoryRecord.sequence",
        passive_deletes="all",
    )

    # Concurrent writers to the same row surface as StaleDataError
    __mapper_args__ = {"version_id_col": version}

    @property
    def child_name(self) -> str:
        return f"{self.child_first_name} {self.child_last_name}"

    @property
    def parent_name(self) -> str:
        return f"{self.parent_first_name} {self.parent_last_name}"
