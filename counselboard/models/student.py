"""Student model - Read-only view of the student directory"""
from sqlalchemy import Column, String, DateTime, Index
from sqlalchemy.sql import func

from counselboard.database import Base


class Student(Base):
    """Student directory entry; owned by the student records service"""

    __tablename__ = "students"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    class_name = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_students_class", "class_name"),
    )

    def __repr__(self):
        return f"<Student(id={self.id}, class_name={self.class_name})>"
