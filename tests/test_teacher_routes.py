import os
import re

import pytest
import pytest_asyncio
from httpx import AsyncClient

from portal.backend import AuthError, BackendError
from portal.services.enrollment import subject_ids

from .conftest import TEACHER_EMAIL, TEACHER_PASSWORD, image_bytes, login, make_student, make_teacher


@pytest_asyncio.fixture(name="teacher_client")
async def teacher_client_fixture(backend, client: AsyncClient):
    make_teacher(backend)
    await login(client, TEACHER_EMAIL, TEACHER_PASSWORD)
    return client


@pytest.mark.asyncio
async def test_dashboard_counts(backend, subject, teacher_client: AsyncClient):
    make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"]])
    response = await teacher_client.get("/teacher/dashboard")
    assert response.status_code == 200
    assert "<strong>1</strong><span>Subjects</span>" in response.text
    assert "<strong>1</strong><span>Students</span>" in response.text


@pytest.mark.asyncio
async def test_subject_crud(backend, teacher_client: AsyncClient):
    response = await teacher_client.post(
        "/teacher/subjects/",
        data={"code": "CS102", "name": "Programming", "semester": "2nd", "school_year": "2025-2026"},
        follow_redirects=True,
    )
    assert "Subject CS102 added." in response.text
    subject = backend.table("subjects").eq("code", "CS102").single()
    assert subject["semester"] == "2nd"

    response = await teacher_client.post(
        f"/teacher/subjects/{subject['id']}/edit",
        data={"code": "CS102", "name": "Programming 1", "semester": "bogus", "school_year": "2025-2026"},
        follow_redirects=False,
    )
    assert response.headers["location"] == "/teacher/subjects/"
    updated = backend.table("subjects").eq("id", subject["id"]).single()
    assert (updated["name"], updated["semester"]) == ("Programming 1", "1st")

    await teacher_client.post(f"/teacher/subjects/{subject['id']}/delete")
    assert backend.table("subjects").count() == 0


@pytest.mark.asyncio
async def test_subject_requires_code_and_name(backend, teacher_client: AsyncClient):
    response = await teacher_client.post("/teacher/subjects/", data={"code": "", "name": "X"}, follow_redirects=True)
    assert "Please fill in all required fields" in response.text
    assert backend.table("subjects").count() == 0


@pytest.mark.asyncio
async def test_missing_subject_renders_not_found(teacher_client: AsyncClient):
    response = await teacher_client.get("/teacher/subjects/999/edit")
    assert response.status_code == 404
    assert "Not found" in response.text


@pytest.mark.asyncio
async def test_create_student_with_account_and_photo(backend, subject, teacher_client: AsyncClient):
    response = await teacher_client.post(
        "/teacher/students/",
        data={
            "student_id": "2025-0001",
            "full_name": "Kai Nguyen",
            "email": "Kai@Example.com",
            "password": "",
            "subjects": [str(subject["id"]), "999"],
        },
        files={"photo": ("kai.jpg", image_bytes(fmt="JPEG"), "image/jpeg")},
        follow_redirects=True,
    )
    assert "Student Kai Nguyen added." in response.text
    assert "kai@example.com" in response.text
    assert "Share these now" in response.text

    student = backend.table("students").eq("student_id", "2025-0001").single()
    assert subject_ids(student) == [subject["id"]]
    assert student["photo"].startswith("/storage/student-profile-photos/")
    photo = await teacher_client.get(student["photo"])
    assert photo.status_code == 200

    account = backend.auth.admin_get_user(student["user_id"])
    assert account.role == "student"
    assert account.user_metadata["student_id"] == "2025-0001"
    assert backend.auth.sign_in_with_password("kai@example.com", "password").user.id == account.id

    again = await teacher_client.get("/teacher/students/")
    assert "Share these now" not in again.text


@pytest.mark.asyncio
async def test_create_student_rejects_large_or_non_image_upload(backend, settings, teacher_client: AsyncClient):
    data = {"student_id": "S-1", "full_name": "Kai Nguyen", "email": "kai@example.com"}
    response = await teacher_client.post(
        "/teacher/students/", data=data, files={"photo": ("notes.txt", b"hello", "text/plain")}, follow_redirects=True
    )
    assert "Please upload an image file (JPEG, PNG)" in response.text

    big = b"\0" * (settings.MAX_PHOTO_BYTES + 1)
    response = await teacher_client.post(
        "/teacher/students/", data=data, files={"photo": ("big.png", big, "image/png")}, follow_redirects=True
    )
    assert "Image size should be less than 2MB" in response.text
    assert backend.table("students").count() == 0
    assert backend.auth.admin_get_user(1).email == TEACHER_EMAIL


@pytest.mark.asyncio
async def test_duplicate_student_id_removes_new_account_and_photo(backend, teacher_client: AsyncClient):
    make_student(backend, "S-1", "Kai Nguyen", "kai@example.com")
    response = await teacher_client.post(
        "/teacher/students/",
        data={"student_id": "S-1", "full_name": "Other", "email": "other@example.com"},
        files={"photo": ("other.png", image_bytes(), "image/png")},
        follow_redirects=True,
    )
    assert "Error creating student record" in response.text
    assert "UNIQUE constraint failed" in response.text
    assert "INSERT INTO" not in response.text
    bucket_dir = os.path.join(backend.storage.root, backend.settings.PROFILE_PHOTO_BUCKET)
    assert os.listdir(bucket_dir) == []
    with pytest.raises(AuthError):
        backend.auth.sign_in_with_password("other@example.com", "password")


@pytest.mark.asyncio
async def test_edit_student_updates_account(backend, subject, teacher_client: AsyncClient):
    student = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com")
    response = await teacher_client.post(
        f"/teacher/students/{student['id']}/edit",
        data={"full_name": "Kai N.", "email": "kai.n@example.com", "subjects": [str(subject["id"])]},
        follow_redirects=False,
    )
    assert response.headers["location"] == "/teacher/students/"
    row = backend.table("students").eq("id", student["id"]).single()
    assert (row["full_name"], row["email"], subject_ids(row)) == ("Kai N.", "kai.n@example.com", [subject["id"]])
    account = backend.auth.admin_get_user(student["user_id"])
    assert account.email == "kai.n@example.com"
    assert account.user_metadata["full_name"] == "Kai N."


@pytest.mark.asyncio
async def test_delete_student_removes_account_and_records(backend, subject, teacher_client: AsyncClient):
    student = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"]])
    backend.table("grades").insert({"student_id": student["id"], "subject_id": subject["id"], "term": "prelim", "grade": 1.0})
    await teacher_client.post(f"/teacher/students/{student['id']}/delete")
    assert backend.table("students").count() == 0
    assert backend.table("grades").count() == 0
    assert backend.auth.admin_get_user(student["user_id"]) is None


@pytest.mark.asyncio
async def test_attendance_sheet_defaults_and_saves(backend, subject, teacher_client: AsyncClient):
    kai = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"]])
    mia = make_student(backend, "S-2", "Mia Singh", "mia@example.com", [subject["id"]])
    make_student(backend, "S-3", "Noah Smith", "noah@example.com")

    page = await teacher_client.get(f"/teacher/attendance/?subject_id={subject['id']}&date=2025-03-01")
    assert "Kai Nguyen" in page.text and "Mia Singh" in page.text
    assert "Noah Smith" not in page.text
    assert re.search(rf'name="status_{kai["id"]}" value="absent"\s+checked', page.text)

    form = {"subject_id": str(subject["id"]), "date": "2025-03-01", f"status_{kai['id']}": "present"}
    response = await teacher_client.post("/teacher/attendance/", data=form, follow_redirects=True)
    assert "Saved attendance for 2 student(s)." in response.text

    form[f"status_{kai['id']}"] = "late"
    await teacher_client.post("/teacher/attendance/", data=form)
    rows = {r["student_id"]: r["status"] for r in backend.table("attendance").execute()}
    assert rows == {kai["id"]: "late", mia["id"]: "absent"}


@pytest.mark.asyncio
async def test_grade_sheet_saves_and_shows_cumulative(backend, subject, teacher_client: AsyncClient):
    kai = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"]])
    form = {"subject_id": str(subject["id"]), f"grade_{kai['id']}_prelim": "2", f"grade_{kai['id']}_midterm": ""}
    response = await teacher_client.post("/teacher/grades/", data=form, follow_redirects=True)
    assert "Saved grades for 1 student(s)." in response.text

    grades = {g["term"]: g["grade"] for g in backend.table("grades").execute()}
    assert grades == {"prelim": 2.0, "midterm": 0.0, "semifinal": 0.0, "final": 0.0}

    page = await teacher_client.get(f"/teacher/grades/?subject_id={subject['id']}&tab=cumulative")
    for value in ("2.00", "1.00", "0.50", "0.25", "Passed"):
        assert value in page.text


@pytest.mark.asyncio
async def test_grade_out_of_range_is_rejected(backend, subject, teacher_client: AsyncClient):
    kai = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"]])
    form = {"subject_id": str(subject["id"]), f"grade_{kai['id']}_final": "7"}
    response = await teacher_client.post("/teacher/grades/", data=form, follow_redirects=True)
    assert "outside the 1-5 scale" in response.text
    assert backend.table("grades").count() == 0


@pytest.mark.asyncio
async def test_reports_csv_and_print(backend, subject, teacher_client: AsyncClient):
    kai = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com", [subject["id"]])
    backend.table("attendance").insert(
        {"student_id": kai["id"], "subject_id": subject["id"], "date": "2025-03-01", "status": "present"}
    )
    backend.table("grades").insert({"student_id": kai["id"], "subject_id": subject["id"], "term": "prelim", "grade": 2.0})

    response = await teacher_client.get(f"/teacher/reports/{subject['id']}/attendance.csv")
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="MATH101_attendance.csv"' in response.headers["content-disposition"]
    assert response.text.splitlines() == ["Student ID,Student Name,2025-03-01", "S-1,Kai Nguyen,present"]

    response = await teacher_client.get(f"/teacher/reports/{subject['id']}/grades.csv")
    assert response.text.splitlines()[1] == "S-1,Kai Nguyen,2,0,0,0,2.00,1.00,0.50,0.25,Passed"

    printable = await teacher_client.get(f"/teacher/reports/{subject['id']}/grades/print")
    assert "Grade Report" in printable.text
    assert "Grading Scale: 1.0-3.0 = Passed, 3.1-5.0 = Failed" in printable.text
    assert "2025-2026" in printable.text

    preview = await teacher_client.get(f"/teacher/reports/?subject_id={subject['id']}&tab=attendance")
    assert "1 enrolled student(s)" in preview.text


@pytest.mark.asyncio
async def test_report_for_missing_subject(teacher_client: AsyncClient):
    response = await teacher_client.get("/teacher/reports/999/grades.csv")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_failed_account_cleanup_still_reports_insert_error(backend, teacher_client: AsyncClient, monkeypatch):
    make_student(backend, "S-1", "Kai Nguyen", "kai@example.com")

    def refuse_delete(user_id):
        raise BackendError("auth service unavailable")

    monkeypatch.setattr(backend.auth, "admin_delete_user", refuse_delete)
    response = await teacher_client.post(
        "/teacher/students/",
        data={"student_id": "S-1", "full_name": "Other", "email": "other@example.com"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    page = await teacher_client.get(response.headers["location"])
    assert "Error creating student record" in page.text


@pytest.mark.asyncio
async def test_edit_to_email_of_student_without_account_keeps_account(backend, teacher_client: AsyncClient):
    kai = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com")
    backend.table("students").insert({"student_id": "S-2", "full_name": "Mia Singh", "email": "mia@example.com"})

    response = await teacher_client.post(
        f"/teacher/students/{kai['id']}/edit",
        data={"full_name": "Kai Nguyen", "email": "mia@example.com"},
        follow_redirects=True,
    )
    assert "Error updating student" in response.text
    row = backend.table("students").eq("id", kai["id"]).single()
    account = backend.auth.admin_get_user(kai["user_id"])
    assert row["email"] == account.email == "kai@example.com"


@pytest.mark.asyncio
async def test_edit_to_email_of_other_account_restores_record(backend, teacher_client: AsyncClient):
    kai = make_student(backend, "S-1", "Kai Nguyen", "kai@example.com")
    backend.auth.sign_up("taken@example.com", "secret", {"role": "teacher"})

    response = await teacher_client.post(
        f"/teacher/students/{kai['id']}/edit",
        data={"full_name": "Kai N.", "email": "taken@example.com"},
        files={"photo": ("kai.png", image_bytes(), "image/png")},
        follow_redirects=True,
    )
    assert "Email already in use" in response.text
    row = backend.table("students").eq("id", kai["id"]).single()
    account = backend.auth.admin_get_user(kai["user_id"])
    assert (row["full_name"], row["email"], row["photo"]) == ("Kai Nguyen", "kai@example.com", None)
    assert account.email == "kai@example.com"
    bucket_dir = os.path.join(backend.storage.root, backend.settings.PROFILE_PHOTO_BUCKET)
    assert os.listdir(bucket_dir) == []
