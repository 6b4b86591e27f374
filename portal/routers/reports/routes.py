from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, Response

from portal.backend import BackendClient, Principal
from portal.dependencies import get_backend, require_teacher
from portal.services.enrollment import enrolled_students
from portal.services.reports import (
    GRADING_SCALE_NOTE,
    attendance_frame,
    attendance_totals,
    grade_frame,
    report_filename,
    status_totals,
    to_csv,
)
from portal.templating import render_template
from portal.utils import parse_int

router = APIRouter(prefix="/teacher/reports", tags=["reports"])

TABS = ("attendance", "grades")


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _report_data(backend: BackendClient, subject_id: int) -> dict:
    subject = backend.table("subjects").eq("id", subject_id).single()
    students = backend.table("students").order("full_name").execute()
    attendance = backend.table("attendance").eq("subject_id", subject_id).execute()
    grades = backend.table("grades").eq("subject_id", subject_id).execute()
    return {
        "subject": subject,
        "enrolled_count": len(enrolled_students(students, subject_id)),
        "attendance": attendance_frame(students, attendance, subject_id),
        "attendance_totals": attendance_totals(attendance, subject_id),
        "grades": grade_frame(students, grades, subject_id),
    }


@router.get("/", response_class=HTMLResponse, name="reports.index")
def reports_page(
    request: Request,
    subject_id: str | None = None,
    tab: str = "attendance",
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Report preview for one subject with links to the CSV and printable exports.
    """
    selected_id = parse_int(subject_id)
    subjects = backend.table("subjects").order("code").execute()
    context = {
        "request": request,
        "current_user": current_user,
        "subjects": subjects,
        "subject": None,
        "tab": tab if tab in TABS else "attendance",
    }
    if selected_id is not None and any(s["id"] == selected_id for s in subjects):
        data = _report_data(backend, selected_id)
        context.update(data)
        context["grade_totals"] = status_totals(data["grades"])
    return render_template("teacher/reports.html", context)


@router.get("/{subject_id}/attendance.csv", name="reports.attendance_csv")
def attendance_csv(
    subject_id: int,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    data = _report_data(backend, subject_id)
    return _csv_response(to_csv(data["attendance"]), report_filename(data["subject"], "attendance"))


@router.get("/{subject_id}/grades.csv", name="reports.grades_csv")
def grades_csv(
    subject_id: int,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    data = _report_data(backend, subject_id)
    return _csv_response(to_csv(data["grades"]), report_filename(data["subject"], "grades"))


@router.get("/{subject_id}/attendance/print", response_class=HTMLResponse, name="reports.attendance_print")
def attendance_print(
    request: Request,
    subject_id: int,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """Print-ready attendance report; the page opens the browser's print dialog."""
    data = _report_data(backend, subject_id)
    return render_template(
        "reports/attendance_print.html",
        {"request": request, "generated_at": datetime.now(), **data},
    )


@router.get("/{subject_id}/grades/print", response_class=HTMLResponse, name="reports.grades_print")
def grades_print(
    request: Request,
    subject_id: int,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """Print-ready grade report; the page opens the browser's print dialog."""
    data = _report_data(backend, subject_id)
    return render_template(
        "reports/grades_print.html",
        {
            "request": request,
            "generated_at": datetime.now(),
            "grading_scale": GRADING_SCALE_NOTE,
            **data,
        },
    )
