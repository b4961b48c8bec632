"""CounselingSession model - One counseling encounter from entry to exit"""
import enum
import uuid

from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    Date,
    DateTime,
    Text,
    JSON,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from counselboard.database import Base


class SessionState(str, enum.Enum):
    """Lifecycle state derived from the completion flags"""

    ACTIVE = "active"
    COMPLETED = "completed"
    AUTO_COMPLETED = "auto_completed"

    @classmethod
    def of(cls, session: "CounselingSession") -> "SessionState":
        if not session.completed:
            return cls.ACTIVE
        if session.auto_completed:
            return cls.AUTO_COMPLETED
        return cls.COMPLETED


# JSONB on PostgreSQL so SELECT DISTINCT can compare rows
JSONList = JSON().with_variant(postgresql.JSONB(), "postgresql")


def _new_session_id() -> str:
    return str(uuid.uuid4())


class CounselingSession(Base):
    """Counseling session with classification, timing and post-session evaluation"""

    __tablename__ = "counseling_sessions"

    id = Column(String(36), primary_key=True, default=_new_session_id)
    counselor_id = Column(String(64), nullable=False)

    # Classification
    session_type = Column(String(20), nullable=False)
    group_name = Column(String(200), nullable=True)
    participant_type = Column(String(50), nullable=False)
    relationship_type = Column(String(100), nullable=True)
    topic = Column(String(300), nullable=False)

    # Timing: calendar date plus HH:MM wall-clock times
    session_date = Column(Date, nullable=False)
    entry_time = Column(String(5), nullable=False)
    entry_class_hour_id = Column(Integer, nullable=True)
    exit_time = Column(String(5), nullable=True)
    # Calendar day of the exit, recorded by auto-completion; manual exits
    # leave it null and roll past midnight at most once
    exit_date = Column(Date, nullable=True)
    exit_class_hour_id = Column(Integer, nullable=True)

    # Other participants
    other_participants = Column(Text, nullable=True)
    parent_name = Column(String(200), nullable=True)
    parent_relationship = Column(String(100), nullable=True)
    teacher_name = Column(String(200), nullable=True)
    teacher_branch = Column(String(100), nullable=True)
    other_participant_description = Column(Text, nullable=True)

    # Context
    session_mode = Column(String(30), nullable=False)
    session_location = Column(String(100), nullable=False)
    discipline_status = Column(String(100), nullable=True)
    institutional_cooperation = Column(String(200), nullable=True)
    session_details = Column(Text, nullable=True)

    # Post-session evaluation (set on completion)
    detailed_notes = Column(Text, nullable=True)
    session_flow = Column(String(30), nullable=True)
    student_participation_level = Column(String(30), nullable=True)
    cooperation_level = Column(Integer, nullable=True)
    emotional_state = Column(String(30), nullable=True)
    physical_state = Column(String(30), nullable=True)
    communication_quality = Column(String(30), nullable=True)
    session_tags = Column(JSONList, nullable=True)
    achieved_outcomes = Column(Text, nullable=True)
    follow_up_needed = Column(Boolean, nullable=False, default=False)
    follow_up_plan = Column(Text, nullable=True)
    action_items = Column(JSONList, nullable=True)

    # Lifecycle flags
    completed = Column(Boolean, nullable=False, default=False)
    auto_completed = Column(Boolean, nullable=False, default=False)
    extension_granted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    participants = relationship(
        "SessionParticipant",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("session_type IN ('individual', 'group')", name="session_type_check"),
        CheckConstraint(
            "(completed AND exit_time IS NOT NULL) OR (NOT completed AND exit_time IS NULL)",
            name="exit_time_matches_completed",
        ),
        CheckConstraint("NOT auto_completed OR completed", name="auto_completed_implies_completed"),
        CheckConstraint("exit_date IS NULL OR completed", name="exit_date_requires_completed"),
        Index("idx_sessions_date_entry", "session_date", "entry_time"),
        Index("idx_sessions_completed", "completed"),
        Index("idx_sessions_topic", "topic"),
    )

    @property
    def state(self) -> SessionState:
        return SessionState.of(self)

    def __repr__(self):
        return f"<CounselingSession(id={self.id}, date={self.session_date}, completed={self.completed})>"
