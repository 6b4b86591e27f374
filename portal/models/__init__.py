# Re-export models so external code can keep using: from portal.models import Subject, Student, ...
from .auth_user import AuthUser
from .subject import Subject
from .student import Student
from .grade import Grade, Term
from .attendance import Attendance, AttendanceStatus

__all__ = [
    # backend-owned
    "AuthUser",
    # core
    "Subject", "Student",
    # records
    "Grade", "Term", "Attendance", "AttendanceStatus",
]
