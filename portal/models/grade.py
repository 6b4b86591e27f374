from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint

from portal.extensions import Base


class Term(str, Enum):
    PRELIM = "prelim"
    MIDTERM = "midterm"
    SEMIFINAL = "semifinal"
    FINAL = "final"


class Grade(Base):
    __tablename__ = "grades"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    term = Column(String(20), nullable=False)
    grade = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", "term", name="uq_grade_term"),
        Index("ix_grade_subject", "subject_id"),
        Index("ix_grade_student", "student_id"),
    )

    def __repr__(self):
        return f"<Grade student_id={self.student_id} subject_id={self.subject_id} term={self.term} grade={self.grade}>"
