"""CounselingFollowUp model - Scheduled follow-up work arising from a session"""
import uuid

from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    Text,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.sql import func

from counselboard.database import Base

FOLLOW_UP_PRIORITIES = ("low", "medium", "high", "urgent")
FOLLOW_UP_STATUSES = ("pending", "in_progress", "completed")


def _new_follow_up_id() -> str:
    return str(uuid.uuid4())


class CounselingFollowUp(Base):
    """Follow-up assigned to a staff member, optionally tied to a session"""

    __tablename__ = "counseling_follow_ups"

    id = Column(String(36), primary_key=True, default=_new_follow_up_id)

    # Survives deletion of its session with the link cleared
    session_id = Column(
        String(36),
        ForeignKey("counseling_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )

    follow_up_date = Column(Date, nullable=False)
    assigned_to = Column(String(200), nullable=False)
    priority = Column(String(10), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="pending")
    action_items = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    completed_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'urgent')", name="follow_up_priority_check"
        ),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed')", name="follow_up_status_check"
        ),
        Index("idx_follow_ups_session", "session_id"),
        Index("idx_follow_ups_status", "status"),
        Index("idx_follow_ups_date", "follow_up_date"),
    )

    def __repr__(self):
        return (
            f"<CounselingFollowUp(id={self.id}, date={self.follow_up_date}, "
            f"priority={self.priority}, status={self.status})>"
        )
