from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.backend import BackendClient, BackendError, Principal
from portal.dependencies import get_backend, require_teacher
from portal.services.enrollment import subject_ids, subject_names
from portal.services.images import check_upload, remove_photo, store_profile_photo
from portal.templating import render_template
from portal.utils import flash

log = logging.getLogger(__name__)

router = APIRouter(prefix="/teacher/students", tags=["students"])


def _initials(full_name: str) -> str:
    return "".join(part[0] for part in (full_name or "").split() if part).upper()


async def _read_photo(request: Request, backend: BackendClient, photo: UploadFile | None) -> bytes | None:
    """Bytes of a submitted photo, None when no file was chosen. Flashes and raises ValueError when rejected."""
    if not photo or not photo.filename:
        return None
    data = await photo.read()
    settings = backend.settings
    try:
        check_upload(photo.filename, photo.content_type, len(data), settings.MAX_PHOTO_BYTES, settings.ALLOWED_IMAGE_EXTS)
    except ValueError as e:
        flash(request, str(e), "warning")
        raise
    return data


def _discard_new_student(backend: BackendClient, user_id: int, photo_url: str | None) -> None:
    """Remove the account and photo created for a student whose record was not saved."""
    try:
        remove_photo(backend, photo_url)
    except BackendError:
        log.exception("Could not remove photo %s", photo_url)
    try:
        backend.auth.admin_delete_user(user_id)
    except BackendError:
        log.exception("Could not remove auth user %s", user_id)


def _restore_student(backend: BackendClient, student: dict, values: dict) -> None:
    """Put back the fields of ``student`` that ``values`` overwrote, dropping any new photo."""
    try:
        backend.table("students").eq("id", student["id"]).update({key: student.get(key) for key in values})
    except BackendError:
        log.exception("Could not restore student %s", student["id"])
        return
    if values.get("photo"):
        remove_photo(backend, values["photo"])


def _known_subject_ids(backend: BackendClient, selected: list[int]) -> list[int]:
    if not selected:
        return []
    known = {s["id"] for s in backend.table("subjects").in_("id", selected).execute()}
    return [sid for sid in dict.fromkeys(selected) if sid in known]


@router.get("/", response_class=HTMLResponse, name="students.list_students")
def list_students(
    request: Request,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Lists students with their enrolled subjects. Credentials of a student
    created on the previous request are shown once.
    """
    students = backend.table("students").order("created_at", desc=True).order("id", desc=True).execute()
    subjects = backend.table("subjects").order("code").execute()
    subjects_by_id = {s["id"]: s for s in subjects}
    for student in students:
        student["subject_names"] = subject_names(student, subjects_by_id)
        student["initials"] = _initials(student["full_name"])
    return render_template(
        "teacher/students.html",
        {
            "request": request,
            "current_user": current_user,
            "students": students,
            "subjects": subjects,
            "credentials": request.session.pop("new_credentials", None),
        },
    )


@router.post("/", name="students.create_student")
async def create_student(
    request: Request,
    student_id: str = Form(""),
    full_name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    subjects: list[int] = Form([]),
    photo: UploadFile | None = File(None),
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Creates the student's sign-in account and then the student record.
    """
    student_id, full_name, email = student_id.strip(), full_name.strip(), email.strip().lower()
    if not student_id or not full_name or not email:
        flash(request, "Please fill in all required fields", "warning")
        return RedirectResponse("/teacher/students/", status_code=303)

    try:
        photo_data = await _read_photo(request, backend, photo)
    except ValueError:
        return RedirectResponse("/teacher/students/", status_code=303)

    password = password or backend.settings.DEFAULT_STUDENT_PASSWORD
    try:
        account = backend.auth.sign_up(
            email,
            password,
            {"role": "student", "student_id": student_id, "full_name": full_name},
        )
    except BackendError as e:
        flash(request, str(e), "danger")
        return RedirectResponse("/teacher/students/", status_code=303)

    photo_url = None
    try:
        if photo_data:
            photo_url = store_profile_photo(backend, student_id, photo_data)
        backend.table("students").insert(
            {
                "student_id": student_id,
                "full_name": full_name,
                "email": email,
                "subjects": _known_subject_ids(backend, subjects),
                "photo": photo_url,
                "user_id": account.id,
            }
        )
    except (BackendError, ValueError) as e:
        log.exception("Student create failed for %s", email)
        _discard_new_student(backend, account.id, photo_url)
        flash(request, f"Error creating student record: {e}", "danger")
        return RedirectResponse("/teacher/students/", status_code=303)

    request.session["new_credentials"] = {"email": email, "password": password}
    flash(request, f"Student {full_name} added.", "success")
    return RedirectResponse("/teacher/students/", status_code=303)


@router.get("/{student_pk}/edit", response_class=HTMLResponse, name="students.edit_student")
def edit_student_form(
    request: Request,
    student_pk: int,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    student = backend.table("students").eq("id", student_pk).single()
    student["subjects"] = subject_ids(student)
    student["initials"] = _initials(student["full_name"])
    subjects = backend.table("subjects").order("code").execute()
    return render_template(
        "teacher/student_form.html",
        {"request": request, "current_user": current_user, "student": student, "subjects": subjects},
    )


@router.post("/{student_pk}/edit", name="students.edit_student_post")
async def edit_student(
    request: Request,
    student_pk: int,
    full_name: str = Form(""),
    email: str = Form(""),
    subjects: list[int] = Form([]),
    photo: UploadFile | None = File(None),
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Updates a student record and keeps the sign-in account's email and name in step.
    """
    edit_url = f"/teacher/students/{student_pk}/edit"
    student = backend.table("students").eq("id", student_pk).single()
    full_name, email = full_name.strip(), email.strip().lower()
    if not full_name or not email:
        flash(request, "Please fill in all required fields", "warning")
        return RedirectResponse(edit_url, status_code=303)

    try:
        photo_data = await _read_photo(request, backend, photo)
    except ValueError:
        return RedirectResponse(edit_url, status_code=303)

    values = {
        "full_name": full_name,
        "email": email,
        "subjects": _known_subject_ids(backend, subjects),
        "updated_at": datetime.now(timezone.utc),
    }
    try:
        if photo_data:
            values["photo"] = store_profile_photo(backend, student["student_id"], photo_data)
        backend.table("students").eq("id", student_pk).update(values)
    except (BackendError, ValueError) as e:
        log.exception("Student update failed for %s", student_pk)
        remove_photo(backend, values.get("photo"))
        flash(request, f"Error updating student: {e}", "danger")
        return RedirectResponse(edit_url, status_code=303)

    # The record is saved first; the account follows it or the record is put back.
    if student.get("user_id"):
        try:
            backend.auth.admin_update_user(
                student["user_id"],
                email=email if email != student["email"] else None,
                metadata={"full_name": full_name},
            )
        except BackendError as e:
            log.exception("Account update failed for student %s", student_pk)
            _restore_student(backend, student, values)
            flash(request, f"Error updating student: {e}", "danger")
            return RedirectResponse(edit_url, status_code=303)

    if photo_data:
        remove_photo(backend, student.get("photo"))
    flash(request, "Student updated.", "success")
    return RedirectResponse("/teacher/students/", status_code=303)


@router.post("/{student_pk}/delete", name="students.delete_student")
def delete_student(
    request: Request,
    student_pk: int,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Deletes the student record (grades and attendance go with it) and the sign-in account.
    """
    student = backend.table("students").eq("id", student_pk).maybe_single()
    if not student:
        flash(request, "Student not found.", "warning")
        return RedirectResponse("/teacher/students/", status_code=303)
    try:
        backend.table("students").eq("id", student_pk).delete()
        if student.get("user_id"):
            backend.auth.admin_delete_user(student["user_id"])
    except BackendError as e:
        log.exception("Student delete failed for %s", student_pk)
        flash(request, f"Error deleting student: {e}", "danger")
        return RedirectResponse("/teacher/students/", status_code=303)

    remove_photo(backend, student.get("photo"))
    flash(request, f"Student {student['full_name']} deleted.", "success")
    return RedirectResponse("/teacher/students/", status_code=303)
