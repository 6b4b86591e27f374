from datetime import date, timedelta

from portal.backend import create_backend
from portal.config import settings

backend = create_backend(settings)
backend.database.drop_all()
backend.database.create_all()

# Teacher
backend.auth.sign_up("teacher@example.com", "Teacher123!", {"role": "teacher"})

# Subjects
math, prog = backend.table("subjects").insert([
    {"code": "MATH101", "name": "College Algebra", "semester": "1st", "school_year": "2025-2026"},
    {"code": "CS102", "name": "Computer Programming 1", "semester": "1st", "school_year": "2025-2026"},
])

# Students, each with a sign-in account
roster = [
    ("2025-0001", "Kai Nguyen", "kai@example.com", [math["id"], prog["id"]]),
    ("2025-0002", "Mia Singh", "mia@example.com", [math["id"]]),
    ("2025-0003", "Noah Smith", "noah@example.com", [prog["id"]]),
]
students = []
for student_id, full_name, email, subjects in roster:
    account = backend.auth.sign_up(
        email,
        settings.DEFAULT_STUDENT_PASSWORD,
        {"role": "student", "student_id": student_id, "full_name": full_name},
    )
    students += backend.table("students").insert({
        "student_id": student_id,
        "full_name": full_name,
        "email": email,
        "subjects": subjects,
        "user_id": account.id,
    })

# Grades: one complete record, one partial, one failing
marks = {
    students[0]["id"]: {"prelim": 1.5, "midterm": 1.75, "semifinal": 2.0, "final": 1.5},
    students[1]["id"]: {"prelim": 2.25, "midterm": 2.5},
    students[2]["id"]: {"prelim": 4.0, "midterm": 3.5, "semifinal": 4.0, "final": 5.0},
}
grades = []
for student in students:
    for subject_id in student["subjects"]:
        for term in ("prelim", "midterm", "semifinal", "final"):
            grades.append({
                "student_id": student["id"],
                "subject_id": subject_id,
                "term": term,
                "grade": marks[student["id"]].get(term, 0.0),
            })
backend.table("grades").upsert(grades, on_conflict=["subject_id", "student_id", "term"])

# Attendance for the past week
statuses = ["present", "present", "late", "absent", "excused"]
today = date.today()
attendance = []
for offset in range(5):
    day = today - timedelta(days=offset)
    for i, student in enumerate(students):
        for subject_id in student["subjects"]:
            attendance.append({
                "student_id": student["id"],
                "subject_id": subject_id,
                "date": day,
                "status": statuses[(offset + i) % len(statuses)],
            })
backend.table("attendance").upsert(attendance, on_conflict=["date", "subject_id", "student_id"])

backend.close()
print("Database seeded. Teacher login: teacher@example.com / Teacher123!")
print(f"Student logins: kai@example.com, mia@example.com, noah@example.com / {settings.DEFAULT_STUDENT_PASSWORD}")
