"""Append-only stage history for waitlist entries.

Records are written in the same unit of work as the stage change they describe
and can never be updated or deleted through the ORM.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import relationship

from admissions.app.db.base_class import Base
from admissions.app.core.time import utc_now
from admissions.app.models.waitlist_entry import stage_type


class StageHistoryImmutableError(Exception):
    """Raised on any attempt to modify a written stage history record."""


class StageHistoryRecord(Base):
    __tablename__ = "waitlist_stage_history"
    __table_args__ = (
        UniqueConstraint("waitlist_entry_id", "sequence", name="uq_stage_history_entry_sequence"),
        Index("ix_stage_history_tenant_created", "tenant_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), nullable=False)
    waitlist_entry_id = Column(Integer, ForeignKey("waitlist_entries.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    from_stage = Column(stage_type("ck_stage_history_from_stage"), nullable=True)
    to_stage = Column(stage_type("ck_stage_history_to_stage"), nullable=False)
    changed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    entry = relationship("WaitlistEntry", back_populates="stage_history")
    changed_by = relationship("User", foreign_keys=[changed_by_id])

    @property
    def changed_by_name(self) -> str | None:
        return self.changed_by.display_name if self.changed_by else None


@event.listens_for(StageHistoryRecord, "before_update")
def _reject_update(mapper, connection, target):
    raise StageHistoryImmutableError("Stage history records are immutable and cannot be updated")


@event.listens_for(StageHistoryRecord, "before_delete")
def _reject_delete(mapper, connection, target):
    raise StageHistoryImmutableError("Stage history records are immutable and cannot be deleted")
