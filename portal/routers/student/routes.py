from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.backend import BackendClient, BackendError, Principal
from portal.dependencies import get_backend, get_current_student, require_student
from portal.services.attendance_service import STATUS_DISPLAY, count_by_status
from portal.services.enrollment import subject_ids
from portal.services.grading import TERM_LABELS, TERMS, grades_by_student, summarize, TermGrades
from portal.services.images import check_upload, remove_photo, store_profile_photo
from portal.templating import render_template
from portal.utils import flash, parse_int

log = logging.getLogger(__name__)

router = APIRouter(prefix="/student", tags=["student"])


def _enrolled_subjects(backend: BackendClient, student: dict[str, Any]) -> list[dict[str, Any]]:
    return backend.table("subjects").in_("id", subject_ids(student)).order("code").execute()


@router.get("/dashboard", response_class=HTMLResponse, name="student.dashboard")
def dashboard(
    request: Request,
    current_user: Principal = Depends(require_student),
    student: dict = Depends(get_current_student),
    backend: BackendClient = Depends(get_backend),
):
    stats = {
        "subjects": len(subject_ids(student)),
        "attendance_records": backend.table("attendance").eq("student_id", student["id"]).count(),
    }
    return render_template(
        "student/dashboard.html",
        {"request": request, "current_user": current_user, "student": student, "stats": stats},
    )


@router.get("/attendance", response_class=HTMLResponse, name="student.attendance")
def attendance(
    request: Request,
    subject_id: str | None = None,
    current_user: Principal = Depends(require_student),
    student: dict = Depends(get_current_student),
    backend: BackendClient = Depends(get_backend),
):
    """
    The student's own attendance across enrolled subjects, newest first.
    """
    subjects = _enrolled_subjects(backend, student)
    subjects_by_id = {s["id"]: s for s in subjects}
    selected_id = parse_int(subject_id)
    if selected_id not in subjects_by_id:
        selected_id = None

    query = backend.table("attendance").eq("student_id", student["id"])
    if selected_id is not None:
        query = query.eq("subject_id", selected_id)
    else:
        query = query.in_("subject_id", list(subjects_by_id))
    records = query.order("date", desc=True).execute()
    for record in records:
        record["subject"] = subjects_by_id.get(record["subject_id"])

    return render_template(
        "student/attendance.html",
        {
            "request": request,
            "current_user": current_user,
            "student": student,
            "subjects": subjects,
            "selected_id": selected_id,
            "records": records,
            "totals": count_by_status(records),
            "statuses": STATUS_DISPLAY,
        },
    )


@router.get("/grades", response_class=HTMLResponse, name="student.grades")
def grades(
    request: Request,
    subject_id: str | None = None,
    tab: str = "raw",
    current_user: Principal = Depends(require_student),
    student: dict = Depends(get_current_student),
    backend: BackendClient = Depends(get_backend),
):
    """
    Raw and cumulative grades per enrolled subject, computed the same way as the teacher's sheet.
    """
    subjects = _enrolled_subjects(backend, student)
    selected_id = parse_int(subject_id)
    shown = [s for s in subjects if selected_id is None or s["id"] == selected_id]

    records = backend.table("grades").eq("student_id", student["id"]).execute()
    rows = []
    for subject in shown:
        raw = grades_by_student(records, subject["id"]).get(student["id"], TermGrades())
        rows.append({"subject": subject, "summary": summarize(raw)})

    return render_template(
        "student/grades.html",
        {
            "request": request,
            "current_user": current_user,
            "student": student,
            "subjects": subjects,
            "selected_id": selected_id,
            "rows": rows,
            "tab": tab if tab in ("raw", "cumulative") else "raw",
            "terms": TERMS,
            "term_labels": TERM_LABELS,
        },
    )


@router.get("/profile", response_class=HTMLResponse, name="student.profile")
def profile(
    request: Request,
    current_user: Principal = Depends(require_student),
    student: dict = Depends(get_current_student),
    backend: BackendClient = Depends(get_backend),
):
    return render_template(
        "student/profile.html",
        {
            "request": request,
            "current_user": current_user,
            "student": student,
            "subjects": _enrolled_subjects(backend, student),
        },
    )


@router.post("/profile", name="student.profile_post")
async def upload_photo(
    request: Request,
    photo: UploadFile | None = File(None),
    current_user: Principal = Depends(require_student),
    student: dict = Depends(get_current_student),
    backend: BackendClient = Depends(get_backend),
):
    """Replace the student's profile photo."""
    if not photo or not photo.filename:
        flash(request, "Please choose a photo to upload.", "warning")
        return RedirectResponse("/student/profile", status_code=303)

    data = await photo.read()
    settings = backend.settings
    try:
        check_upload(photo.filename, photo.content_type, len(data), settings.MAX_PHOTO_BYTES, settings.ALLOWED_IMAGE_EXTS)
        url = store_profile_photo(backend, student["student_id"], data)
    except ValueError as e:
        flash(request, str(e), "warning")
        return RedirectResponse("/student/profile", status_code=303)
    except BackendError as e:
        log.exception("Photo upload failed for student %s", student["id"])
        flash(request, f"Error uploading photo: {e}", "danger")
        return RedirectResponse("/student/profile", status_code=303)

    try:
        backend.table("students").eq("id", student["id"]).update(
            {"photo": url, "updated_at": datetime.now(timezone.utc)}
        )
    except BackendError as e:
        log.exception("Photo update failed for student %s", student["id"])
        remove_photo(backend, url)
        flash(request, f"Error updating profile: {e}", "danger")
        return RedirectResponse("/student/profile", status_code=303)

    remove_photo(backend, student.get("photo"))
    flash(request, "Profile photo updated.", "success")
    return RedirectResponse("/student/profile", status_code=303)
