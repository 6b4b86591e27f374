from datetime import date

import pytest

from portal.backend import BackendError, RowNotFound
from portal.services.enrollment import drop_subject, subject_ids

from .conftest import make_student


def test_insert_returns_rows_with_defaults(backend, subject):
    assert subject["id"]
    assert subject["semester"] == "1st"
    assert subject["created_at"] is not None


def test_filters_and_ordering(backend):
    backend.table("subjects").insert(
        [{"code": "B", "name": "Beta"}, {"code": "A", "name": "Alpha"}, {"code": "C", "name": "Gamma"}]
    )
    codes = [s["code"] for s in backend.table("subjects").order("code").execute()]
    assert codes == ["A", "B", "C"]
    assert [s["code"] for s in backend.table("subjects").order("code", desc=True).limit(2).execute()] == ["C", "B"]
    assert backend.table("subjects").in_("code", ["A", "C"]).count() == 2
    assert backend.table("subjects").in_("code", []).execute() == []


def test_single_and_maybe_single(backend, subject):
    assert backend.table("subjects").eq("id", subject["id"]).single()["code"] == "MATH101"
    assert backend.table("subjects").eq("id", 999).maybe_single() is None
    with pytest.raises(RowNotFound):
        backend.table("subjects").eq("id", 999).single()


def test_unknown_table_and_column(backend):
    with pytest.raises(BackendError):
        backend.table("nope")
    with pytest.raises(BackendError):
        backend.table("subjects").eq("nope", 1)


def test_update_and_delete_require_filters(backend, subject):
    with pytest.raises(BackendError):
        backend.table("subjects").update({"name": "x"})
    with pytest.raises(BackendError):
        backend.table("subjects").delete()
    updated = backend.table("subjects").eq("id", subject["id"]).update({"name": "Algebra"})
    assert updated[0]["name"] == "Algebra"


def test_unique_violation_is_wrapped(backend):
    make_student(backend, "S-1", "Kai Nguyen", "kai@example.com")
    with pytest.raises(BackendError) as excinfo:
        backend.table("students").insert({"student_id": "S-1", "full_name": "Dup", "email": "dup@example.com"})
    message = str(excinfo.value)
    assert "UNIQUE constraint failed: students.student_id" in message
    assert "INSERT INTO" not in message
    assert "sqlalche.me" not in message


def test_grade_upsert_keeps_one_row(backend, subject):
    student = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"]])
    key = ["subject_id", "student_id", "term"]
    row = {"student_id": student["id"], "subject_id": subject["id"], "term": "prelim"}
    backend.table("grades").upsert({**row, "grade": 2.0}, on_conflict=key)
    backend.table("grades").upsert({**row, "grade": 1.5}, on_conflict=key)
    rows = backend.table("grades").eq("student_id", student["id"]).execute()
    assert len(rows) == 1
    assert rows[0]["grade"] == 1.5


def test_attendance_upsert_keeps_one_row(backend, subject):
    student = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"]])
    key = ["date", "subject_id", "student_id"]
    row = {"student_id": student["id"], "subject_id": subject["id"], "date": "2025-03-01"}
    backend.table("attendance").upsert({**row, "status": "absent"}, on_conflict=key)
    backend.table("attendance").upsert({**row, "status": "late"}, on_conflict=key)
    rows = backend.table("attendance").eq("date", date(2025, 3, 1)).execute()
    assert [(r["status"], r["date"]) for r in rows] == [("late", date(2025, 3, 1))]


def test_upsert_requires_conflict_columns(backend, subject):
    with pytest.raises(BackendError):
        backend.table("grades").upsert({"subject_id": subject["id"], "grade": 1.0}, on_conflict=["subject_id", "student_id"])


def test_invalid_date_string(backend):
    with pytest.raises(BackendError):
        backend.table("attendance").eq("date", "yesterday")


def test_subject_delete_cascades_and_prunes_enrollment(backend, subject):
    other = backend.table("subjects").insert({"code": "CS102", "name": "Programming"})[0]
    student = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"], other["id"]])
    backend.table("grades").insert({"student_id": student["id"], "subject_id": subject["id"], "term": "prelim", "grade": 2.0})
    backend.table("attendance").insert(
        {"student_id": student["id"], "subject_id": subject["id"], "date": date(2025, 3, 1), "status": "present"}
    )

    assert backend.table("subjects").eq("id", subject["id"]).delete() == 1
    assert drop_subject(backend, subject["id"]) == 1

    assert backend.table("grades").count() == 0
    assert backend.table("attendance").count() == 0
    assert subject_ids(backend.table("students").eq("id", student["id"]).single()) == [other["id"]]


def test_closed_client_refuses_queries(backend):
    backend.close()
    with pytest.raises(BackendError):
        backend.table("subjects")
