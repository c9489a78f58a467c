"""Tour slot model: a bookable, capacity-limited visiting window."""

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time
from sqlalchemy.orm import relationship

from admissions.app.db.base_class import Base
from admissions.app.core.time import utc_now


class TourSlot(Base):
    __tablename__ = "tour_slots"
    __table_args__ = (
        CheckConstraint("max_families > 0", name="ck_tour_slots_max_families_positive"),
        Index("ix_tour_slots_tenant_date", "tenant_id", "date", "start_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    max_families = Column(Integer, nullable=False, default=5)
    guide_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    location = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    guide = relationship("User", foreign_keys=[guide_id])
    entries = relationship("WaitlistEntry", back_populates="tour_slot")
