from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint

from portal.extensions import Base


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class Attendance(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=AttendanceStatus.ABSENT.value)
    marked_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", "date", name="uq_attendance_unique"),
        Index("ix_attendance_subject_date", "subject_id", "date"),
        Index("ix_attendance_student", "student_id"),
    )

    def __repr__(self):
        return f"<Attendance student_id={self.student_id} subject_id={self.subject_id} date={self.date} status={self.status}>"
