from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.backend import BackendClient, BackendError, Principal
from portal.dependencies import get_backend, require_teacher
from portal.services.attendance_service import STATUS_DISPLAY, attendance_sheet, sheet_rows
from portal.services.enrollment import enrolled_students
from portal.templating import render_template
from portal.utils import flash, parse_int

log = logging.getLogger(__name__)

router = APIRouter(prefix="/teacher/attendance", tags=["attendance"])


def _parse_date(value: str | None) -> date:
    if value:
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    return date.today()


def _sheet_url(subject_id: int | None, on: date) -> str:
    if subject_id is None:
        return f"/teacher/attendance/?date={on.isoformat()}"
    return f"/teacher/attendance/?subject_id={subject_id}&date={on.isoformat()}"


@router.get("/", response_class=HTMLResponse, name="attendance.sheet")
def attendance_page(
    request: Request,
    subject_id: str | None = None,
    on: str | None = Query(None, alias="date"),
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Attendance sheet for one subject and date. Students without a mark start out absent.
    """
    selected_id = parse_int(subject_id)
    selected_date = _parse_date(on)
    subjects = backend.table("subjects").order("code").execute()
    subject = next((s for s in subjects if s["id"] == selected_id), None)

    students, sheet = [], {}
    if subject:
        students = enrolled_students(backend.table("students").order("full_name").execute(), subject["id"])
        records = (
            backend.table("attendance")
            .eq("subject_id", subject["id"])
            .eq("date", selected_date)
            .execute()
        )
        sheet = attendance_sheet([s["id"] for s in students], records)

    return render_template(
        "teacher/attendance.html",
        {
            "request": request,
            "current_user": current_user,
            "subjects": subjects,
            "subject": subject,
            "selected_date": selected_date,
            "students": students,
            "sheet": sheet,
            "statuses": STATUS_DISPLAY,
        },
    )


@router.post("/", name="attendance.save")
async def save_attendance(
    request: Request,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Upserts one row per enrolled student, keyed on (student, subject, date).
    Fields are named ``status_<student id>``.
    """
    form = await request.form()
    subject_id = parse_int(form.get("subject_id"))
    selected_date = _parse_date(form.get("date"))
    if subject_id is None:
        flash(request, "Select a subject first.", "warning")
        return RedirectResponse(_sheet_url(None, selected_date), status_code=303)

    subject = backend.table("subjects").eq("id", subject_id).single()
    students = enrolled_students(backend.table("students").execute(), subject["id"])
    existing = backend.table("attendance").eq("subject_id", subject_id).eq("date", selected_date).execute()
    statuses = attendance_sheet([s["id"] for s in students], existing)
    for student in students:
        value = form.get(f"status_{student['id']}")
        if value is not None:
            statuses[student["id"]] = value

    try:
        saved = backend.table("attendance").upsert(
            sheet_rows(subject_id, selected_date, statuses),
            on_conflict=["date", "subject_id", "student_id"],
        )
    except BackendError as e:
        log.exception("Attendance save failed for subject %s on %s", subject_id, selected_date)
        flash(request, f"Error saving attendance: {e}", "danger")
        return RedirectResponse(_sheet_url(subject_id, selected_date), status_code=303)

    flash(request, f"Saved attendance for {len(saved)} student(s).", "success")
    return RedirectResponse(_sheet_url(subject_id, selected_date), status_code=303)
