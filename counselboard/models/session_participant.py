"""SessionParticipant model - Links a counseling session to its students"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from counselboard.database import Base


class SessionParticipant(Base):
    """Many-to-many association between sessions and students"""

    __tablename__ = "counseling_session_participants"

    session_id = Column(
        String(36),
        ForeignKey("counseling_sessions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    student_id = Column(String(64), primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    session = relationship("CounselingSession", back_populates="participants")

    # Students live in the external directory, so no foreign key is enforced
    student = relationship(
        "Student",
        primaryjoin="foreign(SessionParticipant.student_id) == Student.id",
        viewonly=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_participants_student", "student_id"),
    )

    def __repr__(self):
        return f"<SessionParticipant(session_id={self.session_id}, student_id={self.student_id})>"
