from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String

from portal.extensions import Base


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True)
    code = Column(String(32), nullable=False)
    name = Column(String(200), nullable=False)
    semester = Column(String(20), nullable=False, default="1st")  # "1st" | "2nd" | "summer"
    school_year = Column(String(20), nullable=False, default="")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_subject_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<Subject id={self.id} code={self.code}>"
